"""Validation schema for the order form.

The schema is a pydantic v2 model whose field validators raise
``PydanticCustomError`` with the error code as the error type, so every
failure maps straight onto a ``FieldError``.  Pydantic collects the errors of
all fields independently; the one cross-field rule (transaction id required
for mobile-wallet payments) is checked outside the model so that it runs even
when other fields fail.

Rules:
- ``customer_name``, ``customer_phone``, ``shipping_address.*``: non-blank and
  no longer than their ``orders`` columns.
- ``customer_email``: optional; when present an address accepted by both
  ``EmailStr`` and Django's ``EmailValidator``.
- ``order_date``: a date, a datetime or an ISO-8601 string.
- ``payment_method`` / ``status``: members of their enumerations.
- ``items``: 1..``ORDER_MAX_LINE_ITEMS`` entries; each with a non-blank
  ``product_name``, ``quantity >= 1`` and ``0 <= price <= MAX_PRICE`` with at most
  two decimal places.
- ``transaction_id``: non-blank when ``payment_method`` is ``bkash``/``nagad``;
  dropped for other methods and stored stripped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_core import PydanticCustomError

from modules.orders.constants import (
    CUSTOMER_EMAIL_MAX_LENGTH,
    CUSTOMER_NAME_MAX_LENGTH,
    CUSTOMER_PHONE_MAX_LENGTH,
    MAX_PRICE,
    MAX_QUANTITY,
    PRICE_DECIMAL_PLACES,
    PRODUCT_NAME_MAX_LENGTH,
    SHIPPING_CITY_MAX_LENGTH,
    SHIPPING_STATE_MAX_LENGTH,
    SHIPPING_STREET_MAX_LENGTH,
    SHIPPING_ZIP_MAX_LENGTH,
    TRANSACTION_ID_MAX_LENGTH,
    TRANSACTION_ID_METHODS,
    OrderStatus,
    PaymentMethod,
    max_line_items,
)
from modules.orders.exceptions import ValidationFailed

MISSING_REQUIRED_FIELD = "MissingRequiredField"
INVALID_FORMAT = "InvalidFormat"
INVALID_CHOICE = "InvalidChoice"
MISSING_ITEMS = "MissingItems"
TOO_MANY_ITEMS = "TooManyItems"
INVALID_QUANTITY = "InvalidQuantity"
INVALID_PRICE = "InvalidPrice"

ERROR_CODES = frozenset(
    {
        MISSING_REQUIRED_FIELD,
        INVALID_FORMAT,
        INVALID_CHOICE,
        MISSING_ITEMS,
        TOO_MANY_ITEMS,
        INVALID_QUANTITY,
        INVALID_PRICE,
    }
)


@dataclass(frozen=True)
class FieldError:
    """A field-scoped validation failure, rendered next to the field."""

    code: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Coercion helpers (shared with the draft container)
# ---------------------------------------------------------------------------


def to_int(value: Any) -> Optional[int]:
    """Parse an integral quantity, ``None`` when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a money amount, ``None`` when it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    return amount if amount.is_finite() else None


def to_date(value: Any) -> Optional[date]:
    """Accept a date, a datetime (reduced to its date) or an ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def _required_text(value: Any, message: str, label: str, max_length: int) -> str:
    if value is None or not str(value).strip():
        raise PydanticCustomError(MISSING_REQUIRED_FIELD, message)
    return _bounded_text(str(value).strip(), label, max_length)


def _bounded_text(text: str, label: str, max_length: int) -> str:
    if len(text) > max_length:
        raise PydanticCustomError(
            INVALID_FORMAT,
            "{label} must be at most {max_length} characters",
            {"label": label, "max_length": max_length},
        )
    return text


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class LineItemSchema(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    product_name: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = None

    @field_validator("product_name", mode="before")
    @classmethod
    def product_name_required(cls, v: Any) -> str:
        return _required_text(
            v, "Product name is required", "Product name", PRODUCT_NAME_MAX_LENGTH
        )

    @field_validator("quantity", mode="before")
    @classmethod
    def quantity_at_least_one(cls, v: Any) -> int:
        quantity = to_int(v)
        if quantity is None or quantity < 1:
            raise PydanticCustomError(INVALID_QUANTITY, "Quantity must be at least 1")
        if quantity > MAX_QUANTITY:
            raise PydanticCustomError(
                INVALID_QUANTITY,
                "Quantity must be at most {max_quantity}",
                {"max_quantity": MAX_QUANTITY},
            )
        return quantity

    @field_validator("price", mode="before")
    @classmethod
    def price_not_negative(cls, v: Any) -> Decimal:
        price = to_decimal(v)
        if price is None or price < 0:
            raise PydanticCustomError(INVALID_PRICE, "Price must be positive")
        exponent = price.as_tuple().exponent
        if isinstance(exponent, int) and -exponent > PRICE_DECIMAL_PLACES:
            raise PydanticCustomError(
                INVALID_PRICE, "Price must have at most 2 decimal places"
            )
        if price > MAX_PRICE:
            raise PydanticCustomError(
                INVALID_PRICE,
                "Price must be at most {max_price}",
                {"max_price": str(MAX_PRICE)},
            )
        return price


class ShippingAddressSchema(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    @field_validator("street", mode="before")
    @classmethod
    def street_required(cls, v: Any) -> str:
        return _required_text(
            v, "Shipping street is required", "Shipping street", SHIPPING_STREET_MAX_LENGTH
        )

    @field_validator("city", mode="before")
    @classmethod
    def city_required(cls, v: Any) -> str:
        return _required_text(
            v, "Shipping city is required", "Shipping city", SHIPPING_CITY_MAX_LENGTH
        )

    @field_validator("state", mode="before")
    @classmethod
    def state_required(cls, v: Any) -> str:
        return _required_text(
            v, "Shipping state is required", "Shipping state", SHIPPING_STATE_MAX_LENGTH
        )

    @field_validator("zip", mode="before")
    @classmethod
    def zip_required(cls, v: Any) -> str:
        return _required_text(
            v, "Shipping ZIP is required", "Shipping ZIP", SHIPPING_ZIP_MAX_LENGTH
        )


class OrderDraftSchema(BaseModel):
    """Field constraints of an order draft (everything but the cross-field rule).

    Fields are validated in declaration order, so ``transaction_id`` sees the
    already validated ``payment_method``.
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    order_date: Optional[date] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    shipping_address: ShippingAddressSchema = Field(default_factory=dict)
    items: Optional[List[LineItemSchema]] = None

    @field_validator("customer_name", mode="before")
    @classmethod
    def customer_name_required(cls, v: Any) -> str:
        return _required_text(
            v, "Customer name is required", "Customer name", CUSTOMER_NAME_MAX_LENGTH
        )

    @field_validator("customer_phone", mode="before")
    @classmethod
    def customer_phone_required(cls, v: Any) -> str:
        return _required_text(
            v, "Phone number is required", "Phone number", CUSTOMER_PHONE_MAX_LENGTH
        )

    @field_validator("customer_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Any) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if not isinstance(v, str):
            raise PydanticCustomError(INVALID_FORMAT, "Invalid email address")
        return _bounded_text(v.strip(), "Email address", CUSTOMER_EMAIL_MAX_LENGTH)

    @field_validator("customer_email", mode="after")
    @classmethod
    def email_accepted_by_the_store(cls, v: Optional[str]) -> Optional[str]:
        # The orders table validates with Django's EmailValidator, which is
        # stricter than EmailStr about the top-level domain.
        if v is None:
            return v
        try:
            validate_email(v)
        except DjangoValidationError:
            raise PydanticCustomError(INVALID_FORMAT, "Invalid email address") from None
        return v

    @field_validator("order_date", mode="before")
    @classmethod
    def order_date_required(cls, v: Any) -> date:
        parsed = to_date(v)
        if parsed is None:
            raise PydanticCustomError(MISSING_REQUIRED_FIELD, "Order date is required")
        return parsed

    @field_validator("payment_method", mode="before")
    @classmethod
    def payment_method_choice(cls, v: Any) -> str:
        if v not in PaymentMethod.values:
            raise PydanticCustomError(INVALID_CHOICE, "Please select a payment method")
        return v

    @field_validator("transaction_id", mode="before")
    @classmethod
    def transaction_id_for_wallets(cls, v: Any, info: ValidationInfo) -> Optional[str]:
        if info.data.get("payment_method") not in TRANSACTION_ID_METHODS or v is None:
            return None
        return _bounded_text(str(v).strip(), "Transaction ID", TRANSACTION_ID_MAX_LENGTH)

    @field_validator("status", mode="before")
    @classmethod
    def status_choice(cls, v: Any) -> str:
        if v not in OrderStatus.values:
            raise PydanticCustomError(INVALID_CHOICE, "Please select an order status")
        return v

    @field_validator("shipping_address", mode="before")
    @classmethod
    def shipping_address_mapping(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("items", mode="before")
    @classmethod
    def items_present(cls, v: Any) -> Any:
        if not isinstance(v, (list, tuple)) or not v:
            raise PydanticCustomError(MISSING_ITEMS, "At least one item is required")
        limit = max_line_items()
        if len(v) > limit:
            raise PydanticCustomError(
                TOO_MANY_ITEMS,
                "An order cannot have more than {limit} items",
                {"limit": limit},
            )
        return list(v)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_draft(draft: Union[Mapping[str, Any], Any]) -> Dict[str, FieldError]:
    """Check a draft (``OrderDraft`` or mapping) against every rule.

    Returns a mapping of field path to ``FieldError``; empty means valid.
    Pure: the draft is never modified.
    """
    data = _as_mapping(draft)
    errors: Dict[str, FieldError] = {}

    try:
        OrderDraftSchema.model_validate(data)
    except ValidationError as exc:
        for error in exc.errors():
            path = field_path(error["loc"])
            errors.setdefault(path, _field_error(path, error))

    transaction_error = _transaction_id_error(data)
    if transaction_error is not None:
        errors["transaction_id"] = transaction_error

    return errors


def validated_order(draft: Union[Mapping[str, Any], Any]) -> OrderDraftSchema:
    """Return the parsed schema or raise ``ValidationFailed``."""
    errors = validate_draft(draft)
    if errors:
        raise ValidationFailed(errors)
    return OrderDraftSchema.model_validate(_as_mapping(draft))


def field_path(loc: Tuple[Union[str, int], ...]) -> str:
    """Render a pydantic ``loc`` as ``items[0].quantity`` / ``shipping_address.zip``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path or "__all__"


def _field_error(path: str, error: Mapping[str, Any]) -> FieldError:
    code = error["type"]
    if code in ERROR_CODES:
        return FieldError(code=code, message=error["msg"])
    if path == "customer_email":
        return FieldError(INVALID_FORMAT, "Invalid email address")
    if path.endswith(".quantity"):
        return FieldError(INVALID_QUANTITY, "Quantity must be at least 1")
    if path.endswith(".price"):
        return FieldError(INVALID_PRICE, "Price must be positive")
    if path.startswith("items["):
        return FieldError(INVALID_FORMAT, "Item must be an object")
    if path == "shipping_address":
        return FieldError(INVALID_FORMAT, "Shipping address must be an object")
    return FieldError(INVALID_FORMAT, error["msg"])


def _transaction_id_error(data: Mapping[str, Any]) -> Optional[FieldError]:
    method = data.get("payment_method")
    if not isinstance(method, str) or method not in TRANSACTION_ID_METHODS:
        return None
    transaction_id = data.get("transaction_id")
    if transaction_id is None or not str(transaction_id).strip():
        label = PaymentMethod(method).label
        return FieldError(
            MISSING_REQUIRED_FIELD,
            f"Transaction ID is required for {label} payments",
        )
    return None


def _as_mapping(draft: Any) -> Mapping[str, Any]:
    if isinstance(draft, Mapping):
        return draft
    return draft.as_dict()
