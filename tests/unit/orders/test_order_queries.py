"""Unit tests for OrderQueryService, the listing cache and its invalidation."""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.cache import cache

from modules.core.datastore import DjangoRecordStore, StoreResult
from modules.orders.cache import OrderListingCache, submission_lock
from modules.orders.draft import OrderDraft
from modules.orders.events import OrderRecordsCreated
from modules.orders.exceptions import (
    OrderRecordNotFound,
    StoreReadFailed,
    StoreWriteFailed,
    ValidationFailed,
)
from modules.orders.handlers import (
    OrderListingCacheInvalidator,
    OrderRecordsCreatedLogger,
    build_order_event_bus,
)
from modules.orders.models import OrderRecord
from modules.orders.services import OrderQueryService, OrderSubmissionService

pytestmark = pytest.mark.unit


def _record(**overrides) -> OrderRecord:
    values = {
        "customer_name": "Rahim Uddin",
        "customer_phone": "+8801711000000",
        "order_date": "2024-05-01",
        "shipping_street": "12 Lake Road",
        "shipping_city": "Dhaka",
        "shipping_state": "Dhaka",
        "shipping_zip": "1205",
        "payment_method": "cod",
        "status": "pending",
        "product_name": "Phone Case",
        "product_price": Decimal("10.00"),
        "quantity": 1,
    }
    values.update(overrides)
    return OrderRecord.objects.create(**values)


class FailingStore(DjangoRecordStore):
    def __init__(self) -> None:
        super().__init__({"orders": OrderRecord})

    def select(self, table, filters=None, ordering=None, limit=None, offset=None):
        return StoreResult.failure("connection refused", code="network_error")

    def update(self, table, values, filters):
        return StoreResult.failure("permission denied for table orders", code="42501")


@pytest.fixture()
def store():
    return DjangoRecordStore({"orders": OrderRecord})


@pytest.fixture()
def listing_cache():
    return OrderListingCache(cache=cache, ttl=60)


class TestListRecords:
    def test_newest_first_by_default(self, store):
        first = _record(customer_name="First")
        second = _record(customer_name="Second")

        rows = OrderQueryService(store).list_records()

        assert [row["id"] for row in rows] == [second.id, first.id]

    def test_filters_and_search(self, store):
        _record(customer_name="Ayesha Khan", status="fulfilled")
        _record(customer_name="Karim", status="fulfilled")
        _record(customer_name="Ayesha Noor", status="pending")

        rows = OrderQueryService(store).list_records(
            {"status": "fulfilled", "customer_name__icontains": "ayesha"}
        )

        assert [row["customer_name"] for row in rows] == ["Ayesha Khan"]

    def test_limit_and_offset(self, store):
        for index in range(5):
            _record(product_name=f"Item {index}")

        rows = OrderQueryService(store).list_records(
            ordering=["product_name"], limit=2, offset=1
        )

        assert [row["product_name"] for row in rows] == ["Item 1", "Item 2"]

    def test_store_error_raises(self):
        with pytest.raises(StoreReadFailed, match="connection refused"):
            OrderQueryService(FailingStore()).list_records()

    def test_results_are_cached_until_invalidated(self, store, listing_cache):
        service = OrderQueryService(store, listing_cache=listing_cache)
        _record()
        assert len(service.list_records()) == 1

        _record()
        assert len(service.list_records()) == 1

        listing_cache.invalidate()
        assert len(service.list_records()) == 2


class TestSummary:
    def test_revenue_and_status_counts(self, store):
        _record(product_price=Decimal("10.00"), quantity=2, status="fulfilled")
        _record(product_price=Decimal("5.50"), quantity=1, status="pending")
        _record(product_price=Decimal("1.00"), quantity=3, status="cancelled")

        summary = OrderQueryService(store).summarize()

        assert summary.total_revenue == Decimal("28.50")
        assert summary.fulfilled_orders == 1
        assert summary.pending_orders == 1
        assert summary.record_count == 3


class TestUpdateStatus:
    def test_updates_and_invalidates_cache(self, store, listing_cache):
        record = _record()
        version = listing_cache.version()

        row = OrderQueryService(store, listing_cache=listing_cache).update_status(
            str(record.id), "fulfilled"
        )

        assert row["status"] == "fulfilled"
        record.refresh_from_db()
        assert record.status == "fulfilled"
        assert listing_cache.version() == version + 1

    def test_rejects_unknown_status(self, store):
        record = _record()
        with pytest.raises(ValidationFailed) as exc_info:
            OrderQueryService(store).update_status(str(record.id), "lost")
        assert exc_info.value.errors["status"].code == "InvalidChoice"

    def test_missing_record(self, store):
        with pytest.raises(OrderRecordNotFound):
            OrderQueryService(store).update_status(
                "0190a8e0-0000-7000-8000-000000000000", "fulfilled"
            )

    def test_store_error_is_reported_verbatim(self):
        with pytest.raises(StoreWriteFailed) as exc_info:
            OrderQueryService(FailingStore()).update_status(
                "0190a8e0-0000-7000-8000-000000000000", "fulfilled"
            )
        assert exc_info.value.message == "permission denied for table orders"


class TestDeleteRecord:
    def test_deletes_one_record(self, store):
        keep = _record(product_name="Keep")
        drop = _record(product_name="Drop")

        row = OrderQueryService(store).delete_record(str(drop.id))

        assert row["product_name"] == "Drop"
        assert list(OrderRecord.objects.values_list("id", flat=True)) == [keep.id]

    def test_missing_record(self, store):
        with pytest.raises(OrderRecordNotFound):
            OrderQueryService(store).delete_record("0190a8e0-0000-7000-8000-000000000000")


class TestListingCacheInvalidation:
    def test_successful_submission_invalidates_listings(
        self, store, listing_cache, order_payload
    ):
        queries = OrderQueryService(store, listing_cache=listing_cache)
        assert queries.list_records() == []

        draft = OrderDraft.open()
        draft.load(order_payload)
        OrderSubmissionService(
            store, event_bus=build_order_event_bus(listing_cache)
        ).submit(draft)

        assert len(queries.list_records()) == 2

    def test_order_event_bus_wiring(self, listing_cache):
        bus = build_order_event_bus(listing_cache)
        handlers = bus.handlers_for(OrderRecordsCreated)
        assert [type(h) for h in handlers] == [
            OrderRecordsCreatedLogger,
            OrderListingCacheInvalidator,
        ]


class TestSubmissionLock:
    def test_second_holder_is_refused(self):
        with submission_lock("key-1", cache=cache, ttl=30) as first:
            assert first is True
            with submission_lock("key-1", cache=cache, ttl=30) as second:
                assert second is False
        with submission_lock("key-1", cache=cache, ttl=30) as again:
            assert again is True

    def test_no_key_is_always_granted(self):
        with submission_lock(None) as first, submission_lock(None) as second:
            assert first is True
            assert second is True
