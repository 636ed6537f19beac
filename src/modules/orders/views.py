"""Order API views.

Exposes the order services via HTTP using a DRF ViewSet.  Domain
exceptions are caught and translated into HTTP status codes; the view never
swallows generic exceptions.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Optional
from uuid import UUID

import structlog
from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.datastore import get_record_store
from modules.orders.cache import OrderListingCache, submission_lock
from modules.orders.draft import OrderDraft, visible_fields
from modules.orders.exceptions import (
    OrderDraftError,
    OrderRecordNotFound,
    StoreReadFailed,
    StoreWriteFailed,
    ValidationFailed,
)
from modules.orders.export import write_orders_csv
from modules.orders.handlers import build_order_event_bus
from modules.orders.serializers import (
    OrderListQuerySerializer,
    OrderRecordSerializer,
    OrderStatusUpdateSerializer,
    OrderSummarySerializer,
)
from modules.orders.services import OrderQueryService, OrderSubmissionService
from modules.orders.validation import validate_draft

logger = structlog.get_logger(__name__)


class OrderViewSet(GenericViewSet):
    """ViewSet for the order form and the order listing.

    All data access goes through the services and the configured record
    store; there is no queryset.
    """

    serializer_class = OrderRecordSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        store = get_record_store()
        listing_cache = OrderListingCache()
        self._submission_service = OrderSubmissionService(
            store, event_bus=build_order_event_bus(listing_cache)
        )
        self._query_service = OrderQueryService(store, listing_cache=listing_cache)

    def get_throttles(self) -> list[BaseThrottle]:
        """Assign a throttle scope per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "export", "summary"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create (submit a draft)
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Loads the payload into a fresh draft and submits it.  A request
        carrying an ``Idempotency-Key`` that is already in flight gets 409.
        """
        draft, error_response = _load_draft(request.data)
        if error_response is not None:
            return error_response

        idempotency_key = request.headers.get("Idempotency-Key")
        with submission_lock(idempotency_key) as acquired:
            if not acquired:
                return Response(
                    {"detail": "Order submission is already in progress."},
                    status=status.HTTP_409_CONFLICT,
                )
            result = self._submission_service.submit(draft)

        if result.ok:
            return Response(
                {
                    "message": result.message,
                    "order_total": f"{result.order_total:.2f}",
                    "records": OrderRecordSerializer(result.records, many=True).data,
                },
                status=status.HTTP_201_CREATED,
            )
        if isinstance(result.error, StoreWriteFailed):
            return Response(
                {"detail": result.error.message, "message": result.message},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return Response(
            {"detail": result.message, "errors": _errors_payload(result.errors)},
            status=status.HTTP_400_BAD_REQUEST,
        )

    @action(detail=False, methods=["post"])
    def preview(self, request: Request) -> Response:
        """POST /api/v1/orders/preview/

        Totals, visible fields and validation messages for a draft payload.
        Nothing is persisted.
        """
        draft, error_response = _load_draft(request.data)
        if error_response is not None:
            return error_response

        errors = validate_draft(draft)
        return Response(
            {
                "items": [
                    {**item.as_dict(), "line_total": f"{item.line_total:.2f}"}
                    for item in draft.items
                ],
                "order_total": f"{draft.order_total:.2f}",
                "visible_fields": sorted(visible_fields(draft)),
                "valid": not errors,
                "errors": _errors_payload(errors),
            }
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/"""
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        limit = query.to_limit()
        offset = query.validated_data.get("offset", 0)

        try:
            rows = self._query_service.list_records(
                query.to_filters(),
                ordering=query.to_ordering(),
                limit=limit,
                offset=offset,
            )
        except StoreReadFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_502_BAD_GATEWAY)

        return Response(
            {
                "limit": limit,
                "offset": offset,
                "results": OrderRecordSerializer(rows, many=True).data,
            }
        )

    @action(detail=False, methods=["get"])
    def export(self, request: Request) -> HttpResponse:
        """GET /api/v1/orders/export/ (``orders.csv``)"""
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            rows = self._query_service.list_records(
                query.to_filters(), ordering=query.to_ordering()
            )
        except StoreReadFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_502_BAD_GATEWAY)

        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="orders.csv"'
        count = write_orders_csv(rows, response)
        logger.info("order.exported", row_count=count)
        return response

    @action(detail=False, methods=["get"])
    def summary(self, request: Request) -> Response:
        """GET /api/v1/orders/summary/"""
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            summary = self._query_service.summarize(query.to_filters())
        except StoreReadFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_502_BAD_GATEWAY)
        return Response(OrderSummarySerializer(summary).data)

    # ------------------------------------------------------------------
    # Single record maintenance
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/ (status only)"""
        record_id = _parse_id(pk)
        if record_id is None:
            return Response(
                {"detail": "Invalid order ID format."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        payload = OrderStatusUpdateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        try:
            row = self._query_service.update_status(record_id, payload.validated_data["status"])
        except OrderRecordNotFound:
            return Response({"detail": "Order not found."}, status=status.HTTP_404_NOT_FOUND)
        except ValidationFailed as exc:
            return Response(
                {"errors": _errors_payload(exc.errors)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except StoreWriteFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_502_BAD_GATEWAY)

        return Response(OrderRecordSerializer(row).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        record_id = _parse_id(pk)
        if record_id is None:
            return Response(
                {"detail": "Invalid order ID format."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            self._query_service.delete_record(record_id)
        except OrderRecordNotFound:
            return Response({"detail": "Order not found."}, status=status.HTTP_404_NOT_FOUND)
        except StoreWriteFailed as exc:
            return Response({"detail": exc.message}, status=status.HTTP_502_BAD_GATEWAY)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _load_draft(data: Any) -> tuple[Optional[OrderDraft], Optional[Response]]:
    if not isinstance(data, Mapping):
        return None, Response(
            {"detail": "Expected a JSON object."},
            status=status.HTTP_400_BAD_REQUEST,
        )
    draft = OrderDraft.open()
    try:
        draft.load(data)
    except OrderDraftError as exc:
        return None, Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    return draft, None


def _errors_payload(errors: Mapping[str, Any]) -> Dict[str, Dict[str, str]]:
    return {path: error.as_dict() for path, error in sorted(errors.items())}


def _parse_id(pk: str | None) -> Optional[str]:
    if pk is None:
        return None
    try:
        return str(UUID(pk))
    except ValueError:
        return None
