"""Order domain exceptions.

Raised by the draft container and the submission service.  The API layer
(views) catches them and translates them into HTTP responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict

if TYPE_CHECKING:
    from modules.orders.validation import FieldError


class OrderDraftError(Exception):
    """Base class for every order-authoring failure."""


class InvalidIndex(OrderDraftError, IndexError):
    """A line item index is out of range, or removal would empty the list."""


class InvalidFieldPath(OrderDraftError, KeyError):
    """``set_field`` / ``watch`` received a path the draft does not have."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InvalidFieldValue(OrderDraftError, ValueError):
    """A structured field (``items``, ``shipping_address``) got the wrong shape."""


class LineItemLimitExceeded(OrderDraftError):
    """Adding a line item would exceed ``ORDER_MAX_LINE_ITEMS``."""


class SubmissionInProgress(OrderDraftError):
    """The draft is already being submitted; resubmission is blocked."""


class OrderDraftInvariantViolation(OrderDraftError):
    """A draft reached payload building in a state validation forbids."""


class ValidationFailed(OrderDraftError):
    """The draft did not pass the validation schema."""

    def __init__(self, errors: Dict[str, FieldError]) -> None:
        self.errors = dict(errors)
        super().__init__(f"Order draft has {len(self.errors)} invalid field(s).")


class StoreWriteFailed(OrderDraftError):
    """The record store rejected the write; ``message`` comes from the store."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class StoreReadFailed(Exception):
    """The record store could not answer a listing query."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class OrderRecordNotFound(Exception):
    """No persisted order record has the requested id."""
