"""Order service layer (Use Cases).

``OrderSubmissionService`` turns a validated ``OrderDraft`` into persisted
order records: one flat row per line item, written with a single batch
insert so that either every row of the order exists or none does.

``OrderQueryService`` serves the listing screen: filtered reads, summary
statistics, status updates and deletion of single records.

Rules enforced on submission:
- The draft passes the validation schema before any write is attempted.
- ``transaction_id`` is persisted only for ``bkash`` / ``nagad``.
- A failed write leaves the draft untouched and open for a retry.
- A successful write publishes ``OrderRecordsCreated``, resets and closes
  the draft.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from modules.core.datastore.interfaces import Filters, IRecordStore, Row
from modules.orders.cache import OrderListingCache
from modules.orders.constants import (
    ORDERS_TABLE,
    TRANSACTION_ID_METHODS,
    OrderStatus,
    PaymentMethod,
)
from modules.orders.draft import OrderDraft
from modules.orders.dtos import OrderRecordPayload, OrderSummaryDTO
from modules.orders.events import OrderRecordsCreated
from modules.orders.exceptions import (
    OrderDraftError,
    OrderDraftInvariantViolation,
    OrderRecordNotFound,
    StoreReadFailed,
    StoreWriteFailed,
    ValidationFailed,
)
from modules.orders.validation import (
    INVALID_CHOICE,
    FieldError,
    OrderDraftSchema,
    validate_draft,
)
from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Order created successfully"
VALIDATION_MESSAGE = "Please correct the highlighted fields"


@dataclass(frozen=True)
class SubmissionResult:
    """What the authoring surface needs to show after a submit attempt."""

    ok: bool
    message: str
    records: List[Row] = field(default_factory=list)
    order_total: Decimal = Decimal("0.00")
    error: Optional[OrderDraftError] = None

    @property
    def errors(self) -> Dict[str, FieldError]:
        if isinstance(self.error, ValidationFailed):
            return self.error.errors
        return {}


def build_order_records(draft: OrderDraft) -> List[Row]:
    """Flatten a draft into one ``orders`` row per line item.

    Values come from the parsed validation schema, so text fields are
    strings, quantities integers and prices decimals.  The invariants
    validation guarantees are re-checked and fail fast.

    Raises:
        OrderDraftInvariantViolation: empty items, unknown payment method,
            or values validation should have rejected.
    """
    if not draft.items:
        raise OrderDraftInvariantViolation("Cannot build order records without items.")
    try:
        method = PaymentMethod(draft.payment_method)
    except ValueError as exc:
        raise OrderDraftInvariantViolation(
            f"Unknown payment method {draft.payment_method!r}."
        ) from exc

    try:
        order = OrderDraftSchema.model_validate(draft.as_dict())
    except ValidationError as exc:
        raise OrderDraftInvariantViolation(str(exc)) from exc

    transaction_id = order.transaction_id if method.value in TRANSACTION_ID_METHODS else None
    address = order.shipping_address

    return [
        OrderRecordPayload(
            shipping_street=address.street,
            shipping_city=address.city,
            shipping_state=address.state,
            shipping_zip=address.zip,
            payment_method=method,
            transaction_id=transaction_id,
            status=order.status,
            product_name=item.product_name,
            product_price=item.price,
            quantity=item.quantity,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            order_date=order.order_date.isoformat(),
        ).as_row()
        for item in order.items or []
    ]


class OrderSubmissionService:
    """Application service for the order-creation use case.

    Receives the record store and, optionally, an event bus via constructor
    injection.  Listeners subscribed on the bus are notified after every
    successful submission.
    """

    def __init__(
        self,
        store: IRecordStore,
        event_bus: Optional[IEventBus] = None,
        table: str = ORDERS_TABLE,
    ) -> None:
        self._store = store
        self._event_bus = event_bus
        self._table = table

    def submit(self, draft: OrderDraft) -> SubmissionResult:
        """Validate and persist ``draft``.

        Steps:
        1. Refuse a second submit while one is in flight.
        2. Run the validation schema; stop with ``ValidationFailed``.
        3. Build one row per line item and insert them in one batch.
        4. On a store error report ``StoreWriteFailed`` and keep the draft.
        5. On success publish ``OrderRecordsCreated``, reset and close.

        Raises:
            SubmissionInProgress: the draft is already being submitted.
            OrderDraftInvariantViolation: payload building found a state
                validation should have rejected.
        """
        log = logger.bind(draft_id=str(draft.id), item_count=len(draft.items))

        with draft.submission():
            log.info("order.submission_started")

            errors = validate_draft(draft)
            if errors:
                log.info("order.validation_failed", fields=sorted(errors))
                return SubmissionResult(
                    ok=False,
                    message=VALIDATION_MESSAGE,
                    error=ValidationFailed(errors),
                )

            rows = build_order_records(draft)
            order_total = draft.order_total
            result = self._store.insert(self._table, rows)

            if result.error is not None:
                error = StoreWriteFailed(result.error.message, code=result.error.code)
                log.warning("order.store_write_failed", error=error.message, code=error.code)
                return SubmissionResult(
                    ok=False,
                    message=f"Failed to create order: {error.message}",
                    order_total=order_total,
                    error=error,
                )

        event = OrderRecordsCreated(
            aggregate_id=draft.id,
            table=self._table,
            record_ids=tuple(str(row.get("id")) for row in result.data),
            order_total=order_total,
        )
        draft.reset()
        draft.close()
        log.info("order.created", record_count=len(result.data), order_total=str(order_total))

        if self._event_bus is not None:
            self._event_bus.publish(event)

        return SubmissionResult(
            ok=True,
            message=SUCCESS_MESSAGE,
            records=result.data,
            order_total=order_total,
        )


class OrderQueryService:
    """Reads and single-record maintenance for the order listing."""

    def __init__(
        self,
        store: IRecordStore,
        listing_cache: Optional[OrderListingCache] = None,
        table: str = ORDERS_TABLE,
    ) -> None:
        self._store = store
        self._listing_cache = listing_cache
        self._table = table

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_records(
        self,
        filters: Optional[Filters] = None,
        ordering: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Row]:
        """Return rows matching ``filters``, newest first by default.

        Raises:
            StoreReadFailed: the store reported an error.
        """
        ordering = list(ordering or ["-created_at", "-id"])
        query: Dict[str, Any] = {
            "filters": dict(filters or {}),
            "ordering": ordering,
            "limit": limit,
            "offset": offset,
        }
        if self._listing_cache is not None:
            cached = self._listing_cache.get(query)
            if cached is not None:
                return cached

        result = self._store.select(
            self._table, filters=filters, ordering=ordering, limit=limit, offset=offset
        )
        if result.error is not None:
            logger.warning("order.listing_failed", error=result.error.message)
            raise StoreReadFailed(result.error.message)

        if self._listing_cache is not None:
            self._listing_cache.set(query, result.data)
        return result.data

    def summarize(self, filters: Optional[Filters] = None) -> OrderSummaryDTO:
        """Revenue and status counts over every row matching ``filters``."""
        return OrderSummaryDTO.from_rows(self.list_records(filters))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def update_status(self, record_id: str, new_status: str) -> Row:
        """Set the status of one record.

        Raises:
            ValidationFailed: ``new_status`` is not an order status.
            OrderRecordNotFound: no record has ``record_id``.
            StoreWriteFailed: the store rejected the update.
        """
        if new_status not in OrderStatus.values:
            raise ValidationFailed(
                {"status": FieldError(INVALID_CHOICE, "Please select an order status")}
            )

        result = self._store.update(self._table, {"status": new_status}, {"id": record_id})
        if result.error is not None:
            raise StoreWriteFailed(result.error.message, code=result.error.code)
        if not result.data:
            raise OrderRecordNotFound(f"Order {record_id} not found.")

        self._invalidate()
        logger.info("order.status_updated", record_id=record_id, new_status=new_status)
        return result.data[0]

    def delete_record(self, record_id: str) -> Row:
        """Delete one record.

        Raises:
            OrderRecordNotFound: no record has ``record_id``.
            StoreWriteFailed: the store rejected the delete.
        """
        result = self._store.delete(self._table, {"id": record_id})
        if result.error is not None:
            raise StoreWriteFailed(result.error.message, code=result.error.code)
        if not result.data:
            raise OrderRecordNotFound(f"Order {record_id} not found.")

        self._invalidate()
        logger.info("order.deleted", record_id=record_id)
        return result.data[0]

    def _invalidate(self) -> None:
        if self._listing_cache is not None:
            self._listing_cache.invalidate()
