"""Order DRF serializers for API input/output.

The serializers operate at the Interface layer (API views).  Draft payloads
are not validated here: they are loaded into an ``OrderDraft`` and checked
by the validation schema, so the API reports exactly the messages the form
shows.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List

from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentMethod

ORDERING_FIELDS = ["created_at", "order_date", "customer_name", "status", "product_price"]

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class OrderListQuerySerializer(serializers.Serializer):
    """Validates listing query parameters and turns them into store filters."""

    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    search = serializers.CharField(required=False, allow_blank=True, max_length=255)
    ordering = serializers.ChoiceField(
        choices=ORDERING_FIELDS + [f"-{name}" for name in ORDERING_FIELDS],
        required=False,
        default="-created_at",
    )
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError(
                {"end_date": "End date must not be before start date."}
            )
        return attrs

    def to_filters(self) -> Dict[str, Any]:
        data = self.validated_data
        filters: Dict[str, Any] = {}
        if data.get("status"):
            filters["status"] = data["status"]
        if data.get("payment_method"):
            filters["payment_method"] = data["payment_method"]
        if data.get("start_date"):
            filters["created_at__gte"] = _start_of_day(data["start_date"])
        if data.get("end_date"):
            filters["created_at__lt"] = _start_of_day(data["end_date"] + timedelta(days=1))
        if data.get("search"):
            filters["customer_name__icontains"] = data["search"]
        return filters

    def to_ordering(self) -> List[str]:
        ordering = self.validated_data.get("ordering") or "-created_at"
        tie_breaker = "-id" if ordering.startswith("-") else "id"
        return [ordering, tie_breaker]

    def to_limit(self) -> int:
        return self.validated_data.get("limit") or settings.REST_FRAMEWORK["PAGE_SIZE"]


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderRecordSerializer(serializers.Serializer):
    """Read serializer for persisted order rows (plain ``dict`` instances)."""

    id = serializers.UUIDField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    customer_name = serializers.CharField(read_only=True)
    customer_email = serializers.CharField(read_only=True, allow_null=True)
    customer_phone = serializers.CharField(read_only=True)
    order_date = serializers.CharField(read_only=True)
    shipping_street = serializers.CharField(read_only=True)
    shipping_city = serializers.CharField(read_only=True)
    shipping_state = serializers.CharField(read_only=True)
    shipping_zip = serializers.CharField(read_only=True)
    payment_method = serializers.CharField(read_only=True)
    transaction_id = serializers.CharField(read_only=True, allow_null=True)
    status = serializers.CharField(read_only=True)
    product_name = serializers.CharField(read_only=True)
    product_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    quantity = serializers.IntegerField(read_only=True)
    line_total = serializers.SerializerMethodField()

    def get_line_total(self, row: Dict[str, Any]) -> str:
        amount = Decimal(str(row.get("product_price") or 0)) * int(row.get("quantity") or 0)
        return f"{amount:.2f}"


class OrderSummarySerializer(serializers.Serializer):
    total_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    fulfilled_orders = serializers.IntegerField()
    pending_orders = serializers.IntegerField()
    record_count = serializers.IntegerField()


def _start_of_day(day) -> datetime:
    moment = datetime.combine(day, time.min)
    if settings.USE_TZ:
        return timezone.make_aware(moment)
    return moment
