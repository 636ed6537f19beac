"""Table-oriented data store contract.

The store mirrors the client API of a hosted relational backend: every call
names a table, works on plain ``dict`` rows and answers with a
``StoreResult`` holding either the affected rows or an error.  Backend and
network failures are reported through ``StoreResult.error``; adapters never
raise for them.

Filters are a mapping of ``field`` or ``field__op`` to a value, where ``op``
is one of ``SUPPORTED_LOOKUPS``.  Ordering is a sequence of field names,
prefixed with ``-`` for descending order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

Row = Dict[str, Any]
Filters = Mapping[str, Any]

SUPPORTED_LOOKUPS = frozenset({"exact", "gt", "gte", "lt", "lte", "in", "icontains"})


class UnsupportedLookup(ValueError):
    """A filter used an operator outside ``SUPPORTED_LOOKUPS``."""


@dataclass(frozen=True)
class StoreError:
    """Error reported by the backend, passed through to the user verbatim."""

    message: str
    code: Optional[str] = None
    details: Optional[str] = None

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store call: ``data`` on success, ``error`` otherwise."""

    data: List[Row] = field(default_factory=list)
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, code: Optional[str] = None, details: Optional[str] = None) -> StoreResult:
        return cls(data=[], error=StoreError(message=message, code=code, details=details))


def split_lookup(key: str) -> Tuple[str, str]:
    """Split ``"created_at__gte"`` into ``("created_at", "gte")``.

    Raises:
        UnsupportedLookup: the operator is not supported by every adapter.
    """
    column, sep, op = key.rpartition("__")
    if not sep:
        return key, "exact"
    if op not in SUPPORTED_LOOKUPS:
        raise UnsupportedLookup(f"Unsupported filter operator '{op}' in '{key}'.")
    return column, op


class IRecordStore(ABC):
    """Generic create/read/update/delete contract over named tables."""

    @abstractmethod
    def insert(self, table: str, rows: Sequence[Row]) -> StoreResult:
        """Create all ``rows`` in one all-or-nothing batch.

        Returns the created rows including server-assigned columns.
        """

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        ordering: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> StoreResult:
        """Read rows matching ``filters``."""

    @abstractmethod
    def update(self, table: str, values: Row, filters: Filters) -> StoreResult:
        """Apply ``values`` to every row matching ``filters``; return them."""

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> StoreResult:
        """Delete every row matching ``filters``; return the deleted rows."""
