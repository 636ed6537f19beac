"""Event handlers for Orders domain events and the bus that wires them."""

from __future__ import annotations

import structlog

from modules.orders.cache import OrderListingCache
from modules.orders.events import OrderRecordsCreated
from shared.domain.bus import IEventHandler
from shared.infrastructure.bus import InMemoryEventBus

logger = structlog.get_logger(__name__)


class OrderRecordsCreatedLogger(IEventHandler[OrderRecordsCreated]):
    def handle(self, event: OrderRecordsCreated) -> None:
        logger.info("order.event.records_created", **event.to_payload())


class OrderListingCacheInvalidator(IEventHandler[OrderRecordsCreated]):
    """Drops cached order listings so the next read sees the new rows."""

    def __init__(self, listing_cache: OrderListingCache) -> None:
        self._listing_cache = listing_cache

    def handle(self, event: OrderRecordsCreated) -> None:
        self._listing_cache.invalidate()


def build_order_event_bus(listing_cache: OrderListingCache) -> InMemoryEventBus:
    """Bus handed to ``OrderSubmissionService`` by the HTTP layer."""
    bus = InMemoryEventBus()
    bus.subscribe(OrderRecordsCreated, OrderRecordsCreatedLogger())
    bus.subscribe(OrderRecordsCreated, OrderListingCacheInvalidator(listing_cache))
    return bus
