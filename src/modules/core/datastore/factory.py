"""Builds the configured record store from Django settings."""

from __future__ import annotations

from functools import lru_cache

from django.apps import apps
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from modules.core.datastore.django_store import DjangoRecordStore
from modules.core.datastore.interfaces import IRecordStore
from modules.core.datastore.postgrest_store import PostgrestRecordStore


def build_record_store() -> IRecordStore:
    """Instantiate the store named by ``ORDER_STORE_BACKEND``.

    ``django`` maps ``RECORD_STORE_TABLES`` (``{"orders": "orders.OrderRecord"}``)
    onto installed models; ``postgrest`` talks to ``SUPABASE_URL``.
    """
    backend = settings.ORDER_STORE_BACKEND
    if backend == "django":
        tables = {
            table: apps.get_model(label)
            for table, label in settings.RECORD_STORE_TABLES.items()
        }
        return DjangoRecordStore(tables)
    if backend == "postgrest":
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise ImproperlyConfigured(
                "SUPABASE_URL and SUPABASE_KEY are required for the postgrest store."
            )
        return PostgrestRecordStore(
            base_url=settings.SUPABASE_URL,
            api_key=settings.SUPABASE_KEY,
            timeout=settings.SUPABASE_TIMEOUT,
        )
    raise ImproperlyConfigured(f"Unknown ORDER_STORE_BACKEND '{backend}'.")


@lru_cache(maxsize=1)
def get_record_store() -> IRecordStore:
    """Process-wide store instance shared by the HTTP views."""
    return build_record_store()
