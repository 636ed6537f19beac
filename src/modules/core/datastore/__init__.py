"""Record store package."""

from modules.core.datastore.django_store import DjangoRecordStore
from modules.core.datastore.factory import build_record_store, get_record_store
from modules.core.datastore.interfaces import (
    IRecordStore,
    StoreError,
    StoreResult,
)
from modules.core.datastore.postgrest_store import PostgrestRecordStore

__all__ = [
    "DjangoRecordStore",
    "IRecordStore",
    "PostgrestRecordStore",
    "StoreError",
    "StoreResult",
    "build_record_store",
    "get_record_store",
]
