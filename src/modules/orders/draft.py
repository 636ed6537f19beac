"""In-memory order draft: the state behind the order form.

``OrderDraft`` holds the customer, shipping, payment and line item values
while an order is being authored.  Totals are properties computed from the
current items on every read, never stored.  Field paths follow the form:
``customer_name``, ``shipping_address.city``, ``items[0].quantity``.

A draft has a single writer (the authoring surface); no locking is done.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional

import uuid6

from modules.orders.constants import (
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_STATUS,
    MIN_SELECTABLE_ORDER_DATE,
    TRANSACTION_ID_METHODS,
    max_line_items,
)
from modules.orders.exceptions import (
    InvalidFieldPath,
    InvalidFieldValue,
    InvalidIndex,
    LineItemLimitExceeded,
    SubmissionInProgress,
)
from modules.orders.validation import to_date, to_decimal, to_int

SCALAR_FIELDS = (
    "customer_name",
    "customer_email",
    "customer_phone",
    "order_date",
    "payment_method",
    "transaction_id",
    "status",
)
ADDRESS_FIELDS = ("street", "city", "state", "zip")
ITEM_FIELDS = ("product_name", "quantity", "price")

ORDER_TOTAL = "order_total"

_ITEM_PATH = re.compile(r"^items\[(\d+)\]\.(\w+)$")
_ADDRESS_PATH = re.compile(r"^shipping_address\.(\w+)$")

ZERO = Decimal("0")


@dataclass
class LineItem:
    product_name: Any = ""
    quantity: Any = 1
    price: Any = ZERO

    @property
    def line_total(self) -> Decimal:
        quantity = to_int(self.quantity)
        price = to_decimal(self.price)
        if quantity is None or price is None:
            return ZERO
        return quantity * price

    def set(self, name: str, value: Any) -> None:
        if name == "quantity":
            parsed = to_int(value)
            self.quantity = value if parsed is None else parsed
        elif name == "price":
            parsed_price = to_decimal(value)
            self.price = value if parsed_price is None else parsed_price
        elif name == "product_name":
            self.product_name = value
        else:
            raise InvalidFieldPath(f"Unknown line item field '{name}'.")

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ShippingAddress:
    street: Any = ""
    city: Any = ""
    state: Any = ""
    zip: Any = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class OrderDraft:
    """Mutable order form state with derived totals."""

    def __init__(self, today: Optional[date] = None) -> None:
        self._today = today
        self.is_open = True
        self.is_submitting = False
        self.reset()

    @classmethod
    def open(cls, today: Optional[date] = None) -> OrderDraft:
        """Create the draft shown when the authoring surface opens."""
        return cls(today=today)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Restore the defaults: one empty line item, ``cod``, ``pending``."""
        self.id = uuid6.uuid7()
        self.customer_name: Any = ""
        self.customer_email: Any = ""
        self.customer_phone: Any = ""
        self.order_date: Any = self._today or date.today()
        self.payment_method: Any = DEFAULT_PAYMENT_METHOD
        self.transaction_id: Any = ""
        self.status: Any = DEFAULT_STATUS
        self.shipping_address = ShippingAddress()
        self.items: List[LineItem] = [LineItem()]

    def cancel(self) -> None:
        self.reset()
        self.is_open = False

    def close(self) -> None:
        self.is_open = False

    @contextmanager
    def submission(self) -> Iterator[OrderDraft]:
        """Mark the draft as in flight; nested submissions are refused."""
        if self.is_submitting:
            raise SubmissionInProgress("Order submission is already in progress.")
        self.is_submitting = True
        try:
            yield self
        finally:
            self.is_submitting = False

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    def add_item(self) -> int:
        """Append an empty line item and return its index."""
        limit = max_line_items()
        if len(self.items) >= limit:
            raise LineItemLimitExceeded(f"An order cannot have more than {limit} items.")
        self.items.append(LineItem())
        return len(self.items) - 1

    def remove_item(self, index: int) -> LineItem:
        """Remove the item at ``index``; the last remaining item cannot go."""
        if not 0 <= index < len(self.items):
            raise InvalidIndex(f"No line item at index {index}.")
        if len(self.items) == 1:
            raise InvalidIndex("At least one item is required.")
        return self.items.pop(index)

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def set_field(self, path: str, value: Any) -> None:
        if path in SCALAR_FIELDS:
            if path == "order_date":
                parsed = to_date(value)
                value = value if parsed is None else parsed
            setattr(self, path, value)
            return
        if path == "shipping_address":
            self._set_address(value)
            return
        if path == "items":
            self._set_items(value)
            return

        match = _ADDRESS_PATH.match(path)
        if match:
            name = match.group(1)
            if name not in ADDRESS_FIELDS:
                raise InvalidFieldPath(f"Unknown field path '{path}'.")
            setattr(self.shipping_address, name, value)
            return

        match = _ITEM_PATH.match(path)
        if match:
            item = self._item(int(match.group(1)))
            name = match.group(2)
            if name not in ITEM_FIELDS:
                raise InvalidFieldPath(f"Unknown field path '{path}'.")
            item.set(name, value)
            return

        raise InvalidFieldPath(f"Unknown field path '{path}'.")

    def watch(self, path: str) -> Any:
        """Current value at ``path``, including ``order_total`` and line totals."""
        if path == ORDER_TOTAL:
            return self.order_total
        if path in SCALAR_FIELDS:
            return getattr(self, path)
        if path == "shipping_address":
            return self.shipping_address.as_dict()
        if path == "items":
            return [item.as_dict() for item in self.items]

        match = _ADDRESS_PATH.match(path)
        if match and match.group(1) in ADDRESS_FIELDS:
            return getattr(self.shipping_address, match.group(1))

        match = _ITEM_PATH.match(path)
        if match:
            item = self._item(int(match.group(1)))
            name = match.group(2)
            if name == "line_total":
                return item.line_total
            if name in ITEM_FIELDS:
                return getattr(item, name)

        raise InvalidFieldPath(f"Unknown field path '{path}'.")

    def load(self, payload: Mapping[str, Any]) -> None:
        """Apply every known key of ``payload``; unknown keys are ignored."""
        for key in SCALAR_FIELDS + ("shipping_address", "items"):
            if key in payload:
                self.set_field(key, payload[key])

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def order_total(self) -> Decimal:
        return sum((item.line_total for item in self.items), ZERO)

    def line_totals(self) -> List[Decimal]:
        return [item.line_total for item in self.items]

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: getattr(self, name) for name in SCALAR_FIELDS}
        data["shipping_address"] = self.shipping_address.as_dict()
        data["items"] = [item.as_dict() for item in self.items]
        return data

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _item(self, index: int) -> LineItem:
        if not 0 <= index < len(self.items):
            raise InvalidIndex(f"No line item at index {index}.")
        return self.items[index]

    def _set_address(self, value: Any) -> None:
        if not isinstance(value, Mapping):
            raise InvalidFieldValue("shipping_address must be an object.")
        address = ShippingAddress()
        for name in ADDRESS_FIELDS:
            if name in value:
                setattr(address, name, value[name])
        self.shipping_address = address

    def _set_items(self, value: Any) -> None:
        if not isinstance(value, (list, tuple)):
            raise InvalidFieldValue("items must be a list.")
        limit = max_line_items()
        if len(value) > limit:
            raise LineItemLimitExceeded(f"An order cannot have more than {limit} items.")
        items = []
        for raw in value:
            if not isinstance(raw, Mapping):
                raise InvalidFieldValue("Each item must be an object.")
            item = LineItem()
            for name in ITEM_FIELDS:
                if name in raw:
                    item.set(name, raw[name])
            items.append(item)
        self.items = items


def visible_fields(draft: OrderDraft) -> FrozenSet[str]:
    """Field paths the form renders for the draft's current values."""
    fields = {name for name in SCALAR_FIELDS if name != "transaction_id"}
    fields.update(f"shipping_address.{name}" for name in ADDRESS_FIELDS)
    for index in range(len(draft.items)):
        fields.update(f"items[{index}].{name}" for name in ITEM_FIELDS)
    if isinstance(draft.payment_method, str) and draft.payment_method in TRANSACTION_ID_METHODS:
        fields.add("transaction_id")
    return frozenset(fields)


def is_selectable_order_date(value: date, today: Optional[date] = None) -> bool:
    """Whether the date picker offers ``value`` (not enforced on submit)."""
    return MIN_SELECTABLE_ORDER_DATE <= value <= (today or date.today())
