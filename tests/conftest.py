import pytest

from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.core.datastore import get_record_store


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _fresh_cache_and_store():
    """Throttle counters, listing caches and the shared store start empty."""
    cache.clear()
    get_record_store.cache_clear()
    yield
    get_record_store.cache_clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def auth_client():
    """APIClient with a force-authenticated Django user."""
    client = APIClient()
    user = get_user_model().objects.create_user(username="orders", password="testpass123")
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def order_payload():
    """A valid order form payload with two line items (total 60.00)."""
    return {
        "customer_name": "Rahim Uddin",
        "customer_email": "rahim@example.com",
        "customer_phone": "+8801711000000",
        "order_date": "2024-05-01",
        "shipping_address": {
            "street": "12 Lake Road",
            "city": "Dhaka",
            "state": "Dhaka",
            "zip": "1205",
        },
        "payment_method": "cod",
        "transaction_id": "",
        "status": "pending",
        "items": [
            {"product_name": "Phone Case", "quantity": 2, "price": "10.00"},
            {"product_name": "Screen Guard", "quantity": 1, "price": "40.00"},
        ],
    }
