"""Cached order listings.

Listing results are stored in the Django cache under a versioned key.
Invalidation bumps the version, which orphans every cached query at once;
orphaned entries expire with ``ORDER_LISTING_CACHE_TTL``.
"""

from __future__ import annotations

import hashlib
import json
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional

import structlog
from django.conf import settings
from django.core.cache import BaseCache, cache as default_cache

from shared.domain.serialization import normalize_for_json

logger = structlog.get_logger(__name__)

VERSION_KEY = "orders:listing:version"


class OrderListingCache:
    def __init__(self, cache: Optional[BaseCache] = None, ttl: Optional[int] = None) -> None:
        self._cache = cache or default_cache
        self._ttl = ttl if ttl is not None else settings.ORDER_LISTING_CACHE_TTL

    def get(self, query: Mapping[str, Any]) -> Optional[List[dict]]:
        return self._cache.get(self._key(query))

    def set(self, query: Mapping[str, Any], rows: List[dict]) -> None:
        self._cache.set(self._key(query), rows, self._ttl)

    def invalidate(self) -> None:
        self._cache.add(VERSION_KEY, 1, None)
        version = self._cache.incr(VERSION_KEY)
        logger.info("order.listing_cache_invalidated", version=version)

    def version(self) -> int:
        self._cache.add(VERSION_KEY, 1, None)
        return int(self._cache.get(VERSION_KEY, 1))

    def _key(self, query: Mapping[str, Any]) -> str:
        encoded = json.dumps(normalize_for_json(dict(query)), sort_keys=True)
        digest = hashlib.sha256(encoded.encode()).hexdigest()[:24]
        return f"orders:listing:v{self.version()}:{digest}"


@contextmanager
def submission_lock(
    key: Optional[str],
    cache: Optional[BaseCache] = None,
    ttl: Optional[int] = None,
) -> Iterator[bool]:
    """Hold a short-lived lock for an ``Idempotency-Key`` while submitting.

    Yields ``False`` when another request holds the same key.  Without a key
    there is nothing to coordinate and the lock is always granted.
    """
    if not key:
        yield True
        return

    backend = cache or default_cache
    lock_key = f"orders:submission:{key}"
    timeout = ttl if ttl is not None else settings.ORDER_SUBMISSION_LOCK_TTL
    acquired = backend.add(lock_key, 1, timeout)
    if not acquired:
        logger.info("order.submission_locked", idempotency_key=key)
    try:
        yield acquired
    finally:
        if acquired:
            backend.delete(lock_key)
