"""Base abstract models shared by the Case Empire tables.

Every table row carries a server-assigned UUIDv7 primary key and a creation
timestamp; neither is ever supplied by the client.
"""

from __future__ import annotations

from typing import Any, Dict

import uuid6
from django.db import models


class BaseModel(models.Model):
    """Abstract base with UUIDv7 PK and creation timestamp."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid6.uuid7,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def as_row(self) -> Dict[str, Any]:
        """Return the instance as a flat ``{column: value}`` mapping."""
        return {
            field.attname: getattr(self, field.attname)
            for field in self._meta.concrete_fields
        }
