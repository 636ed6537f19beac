"""Unit tests for domain event primitives and the in-memory bus."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.events import OrderRecordsCreated
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


class _Recorder:
    def __init__(self, name: str, calls: list) -> None:
        self.name = name
        self.calls = calls

    def handle(self, event) -> None:
        self.calls.append((self.name, event))


def test_event_name_and_payload():
    draft_id = uuid4()
    event = OrderRecordsCreated(
        aggregate_id=draft_id,
        table="orders",
        record_ids=("r1", "r2"),
        order_total=Decimal("17.50"),
    )

    payload = event.to_payload()

    assert event.event_name == "OrderRecordsCreated"
    assert payload["aggregate_id"] == str(draft_id)
    assert payload["record_ids"] == ["r1", "r2"]
    assert payload["order_total"] == "17.50"
    assert isinstance(payload["occurred_on"], str)


def test_events_are_immutable():
    event = OrderRecordsCreated(aggregate_id=uuid4())
    with pytest.raises(AttributeError):
        event.table = "other"


def test_bus_calls_handlers_in_subscription_order():
    calls: list = []
    bus = InMemoryEventBus()
    bus.subscribe(OrderRecordsCreated, _Recorder("first", calls))
    bus.subscribe(OrderRecordsCreated, _Recorder("second", calls))

    event = OrderRecordsCreated(aggregate_id=uuid4())
    bus.publish(event)

    assert [name for name, _ in calls] == ["first", "second"]
    assert all(received is event for _, received in calls)


def test_subscribing_twice_is_ignored():
    calls: list = []
    handler = _Recorder("only", calls)
    bus = InMemoryEventBus()
    bus.subscribe(OrderRecordsCreated, handler)
    bus.subscribe(OrderRecordsCreated, handler)

    bus.publish(OrderRecordsCreated(aggregate_id=uuid4()))

    assert len(calls) == 1


def test_buses_do_not_share_subscriptions():
    calls: list = []
    subscribed = InMemoryEventBus()
    subscribed.subscribe(OrderRecordsCreated, _Recorder("only", calls))

    InMemoryEventBus().publish(OrderRecordsCreated(aggregate_id=uuid4()))

    assert calls == []
    assert InMemoryEventBus().handlers_for(OrderRecordsCreated) == []
