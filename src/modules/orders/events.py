"""Domain events for the Orders module."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderRecordsCreated(DomainEvent):
    """Raised once a draft has been persisted; ``aggregate_id`` is the draft id."""

    table: str = ""
    record_ids: Tuple[str, ...] = ()
    order_total: Decimal = Decimal("0.00")
