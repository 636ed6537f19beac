"""JSON normalisation helpers for values crossing a process boundary."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def normalize_for_json(value: Any) -> Any:
    """Recursively convert dates, UUIDs and decimals into JSON-safe values.

    Decimals become strings so no precision is lost on the way to the
    backend; PostgreSQL casts them back to ``numeric`` on insert.
    """
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: normalize_for_json(val) for key, val in value.items()}
    return value
