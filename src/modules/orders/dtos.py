"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  DTOs are
immutable (``frozen=True``).

- ``OrderRecordPayload``: one row written to the ``orders`` table.
- ``OrderSummaryDTO``: statistics over a set of persisted rows.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from modules.orders.constants import TRANSACTION_ID_METHODS, OrderStatus, PaymentMethod


class OrderRecordPayload(BaseModel):
    """Insert payload for a single line item and its full order context.

    Field names are the column names of the ``orders`` table.
    """

    model_config = ConfigDict(frozen=True)

    shipping_street: str
    shipping_city: str
    shipping_state: str
    shipping_zip: str
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    status: OrderStatus
    product_name: str
    product_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: str
    order_date: str

    @model_validator(mode="after")
    def transaction_id_only_for_wallets(self) -> OrderRecordPayload:
        if (
            self.payment_method.value not in TRANSACTION_ID_METHODS
            and self.transaction_id is not None
        ):
            raise ValueError("transaction_id is only kept for bkash and nagad payments.")
        return self

    def as_row(self) -> Dict[str, Any]:
        row = self.model_dump()
        row["payment_method"] = self.payment_method.value
        row["status"] = self.status.value
        return row


class OrderSummaryDTO(BaseModel):
    """Totals shown above the order listing."""

    model_config = ConfigDict(frozen=True)

    total_revenue: Decimal
    fulfilled_orders: int
    pending_orders: int
    record_count: int

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> OrderSummaryDTO:
        revenue = Decimal("0.00")
        fulfilled = pending = count = 0
        for row in rows:
            count += 1
            revenue += Decimal(str(row.get("product_price") or 0)) * int(row.get("quantity") or 0)
            if row.get("status") == OrderStatus.FULFILLED:
                fulfilled += 1
            elif row.get("status") == OrderStatus.PENDING:
                pending += 1
        return cls(
            total_revenue=revenue.quantize(Decimal("0.01")),
            fulfilled_orders=fulfilled,
            pending_orders=pending,
            record_count=count,
        )
