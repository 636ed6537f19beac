"""Persisted order record.

One row per line item: each row repeats the full customer, shipping and
payment context of the order it was submitted with.  There is no parent
order table and no foreign key; the rows are self-contained.

``transaction_id`` is only populated for mobile-wallet payments
(``bkash`` / ``nagad``).  ``order_date`` is stored as ISO-8601 text.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    CUSTOMER_EMAIL_MAX_LENGTH,
    CUSTOMER_NAME_MAX_LENGTH,
    CUSTOMER_PHONE_MAX_LENGTH,
    ORDERS_TABLE,
    PRICE_DECIMAL_PLACES,
    PRICE_MAX_DIGITS,
    PRODUCT_NAME_MAX_LENGTH,
    SHIPPING_CITY_MAX_LENGTH,
    SHIPPING_STATE_MAX_LENGTH,
    SHIPPING_STREET_MAX_LENGTH,
    SHIPPING_ZIP_MAX_LENGTH,
    TRANSACTION_ID_MAX_LENGTH,
    OrderStatus,
    PaymentMethod,
)


class OrderRecord(BaseModel):
    """A single persisted line item with its denormalised order context."""

    customer_name: models.CharField = models.CharField(max_length=CUSTOMER_NAME_MAX_LENGTH)
    customer_email: models.EmailField = models.EmailField(  # noqa: DJ01
        max_length=CUSTOMER_EMAIL_MAX_LENGTH, null=True, blank=True
    )
    customer_phone: models.CharField = models.CharField(max_length=CUSTOMER_PHONE_MAX_LENGTH)
    order_date: models.CharField = models.CharField(max_length=32)

    shipping_street: models.CharField = models.CharField(
        max_length=SHIPPING_STREET_MAX_LENGTH
    )
    shipping_city: models.CharField = models.CharField(max_length=SHIPPING_CITY_MAX_LENGTH)
    shipping_state: models.CharField = models.CharField(
        max_length=SHIPPING_STATE_MAX_LENGTH
    )
    shipping_zip: models.CharField = models.CharField(max_length=SHIPPING_ZIP_MAX_LENGTH)

    payment_method: models.CharField = models.CharField(
        max_length=20, choices=PaymentMethod.choices
    )
    transaction_id: models.CharField = models.CharField(  # noqa: DJ01
        max_length=TRANSACTION_ID_MAX_LENGTH, null=True, blank=True
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )

    product_name: models.CharField = models.CharField(max_length=PRODUCT_NAME_MAX_LENGTH)
    product_price: models.DecimalField = models.DecimalField(
        max_digits=PRICE_MAX_DIGITS,
        decimal_places=PRICE_DECIMAL_PLACES,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )

    class Meta:
        db_table = ORDERS_TABLE
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="orders_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(product_price__gte=0),
                name="orders_price_non_negative",
            ),
        ]

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.product_price

    def __str__(self) -> str:
        return f"{self.customer_name}: {self.product_name} x{self.quantity} ({self.status})"
