"""Order domain constants.

Enumerated choices of the order form and the limits applied to a draft.
"""

from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db import models


class PaymentMethod(models.TextChoices):
    CREDIT_CARD = "credit_card", "Credit Card"
    PAYPAL = "paypal", "PayPal"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    BKASH = "bkash", "Bkash"
    NAGAD = "nagad", "Nagad"
    COD = "cod", "Cash on Delivery"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    FULFILLED = "fulfilled", "Fulfilled"
    CANCELLED = "cancelled", "Cancelled"
    RETURNED = "returned", "Returned"


# Mobile wallets: the payment is only traceable through its transaction id.
TRANSACTION_ID_METHODS: frozenset[str] = frozenset(
    {PaymentMethod.BKASH.value, PaymentMethod.NAGAD.value}
)

ORDERS_TABLE = "orders"

DEFAULT_PAYMENT_METHOD = PaymentMethod.COD.value
DEFAULT_STATUS = OrderStatus.PENDING.value

MIN_SELECTABLE_ORDER_DATE = date(1900, 1, 1)

PRICE_DECIMAL_PLACES = 2


def max_line_items() -> int:
    return getattr(settings, "ORDER_MAX_LINE_ITEMS", 100)


# Column widths of the ``orders`` table, shared by the model and the schema.
CUSTOMER_NAME_MAX_LENGTH = 255
CUSTOMER_EMAIL_MAX_LENGTH = 255
CUSTOMER_PHONE_MAX_LENGTH = 50
SHIPPING_STREET_MAX_LENGTH = 255
SHIPPING_CITY_MAX_LENGTH = 120
SHIPPING_STATE_MAX_LENGTH = 120
SHIPPING_ZIP_MAX_LENGTH = 20
TRANSACTION_ID_MAX_LENGTH = 100
PRODUCT_NAME_MAX_LENGTH = 255

PRICE_MAX_DIGITS = 10
# Largest amount a NUMERIC(10, 2) column holds.
MAX_PRICE = Decimal(10) ** (PRICE_MAX_DIGITS - PRICE_DECIMAL_PLACES) - Decimal("0.01")
# PostgreSQL ``integer``.
MAX_QUANTITY = 2147483647
