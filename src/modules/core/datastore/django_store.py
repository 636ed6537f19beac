"""Django ORM implementation of the record store.

Satisfies ``IRecordStore`` for tables living in the project's own database.
Each public table name maps to a concrete model; rows are validated with
``full_clean()`` before any write so that constraint violations surface as
``StoreError`` messages instead of exceptions.  Every write runs inside
``transaction.atomic()``: a batch insert either creates all rows or none.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Type

import structlog
from django.core.exceptions import FieldDoesNotExist, FieldError, ValidationError
from django.db import DatabaseError, models, transaction

from modules.core.datastore.interfaces import (
    Filters,
    IRecordStore,
    Row,
    StoreResult,
    UnsupportedLookup,
    split_lookup,
)

logger = structlog.get_logger(__name__)

_STORE_FAILURES = (
    DatabaseError,
    FieldError,
    TypeError,
    UnsupportedLookup,
    ValidationError,
    ValueError,
)


class DjangoRecordStore(IRecordStore):
    """Record store backed by Django models.

    ``tables`` maps a public table name (``"orders"``) to its model class.
    """

    def __init__(self, tables: Mapping[str, Type[models.Model]]) -> None:
        self._tables: Dict[str, Type[models.Model]] = dict(tables)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def insert(self, table: str, rows: Sequence[Row]) -> StoreResult:
        model = self._tables.get(table)
        if model is None:
            return _unknown_table(table)
        if not rows:
            return StoreResult(data=[])

        log = logger.bind(table=table, row_count=len(rows))
        try:
            with transaction.atomic():
                instances = [model(**row) for row in rows]
                for instance in instances:
                    instance.full_clean()
                created = model.objects.bulk_create(instances)
        except _STORE_FAILURES as exc:
            log.warning("datastore.insert_failed", error=_describe(exc))
            return StoreResult.failure(_describe(exc), code=exc.__class__.__name__)

        log.info("datastore.inserted")
        return StoreResult(data=[_as_row(obj) for obj in created])

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        ordering: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> StoreResult:
        model = self._tables.get(table)
        if model is None:
            return _unknown_table(table)

        try:
            queryset = model.objects.filter(**_lookups(filters))
            if ordering:
                queryset = queryset.order_by(*ordering)
            start = offset or 0
            if limit is not None:
                queryset = queryset[start : start + limit]
            elif start:
                queryset = queryset[start:]
            rows = [_as_row(obj) for obj in queryset]
        except _STORE_FAILURES as exc:
            logger.warning("datastore.select_failed", table=table, error=_describe(exc))
            return StoreResult.failure(_describe(exc), code=exc.__class__.__name__)

        return StoreResult(data=rows)

    # ------------------------------------------------------------------
    # Update / Delete
    # ------------------------------------------------------------------

    def update(self, table: str, values: Row, filters: Filters) -> StoreResult:
        model = self._tables.get(table)
        if model is None:
            return _unknown_table(table)
        if not filters:
            return StoreResult.failure("UPDATE requires a WHERE clause", code="21000")

        log = logger.bind(table=table, columns=sorted(values))
        try:
            for column in values:
                model._meta.get_field(column)
            with transaction.atomic():
                instances = list(
                    model.objects.select_for_update().filter(**_lookups(filters))
                )
                for instance in instances:
                    for column, value in values.items():
                        setattr(instance, column, value)
                    instance.full_clean()
                    instance.save(update_fields=list(values))
        except FieldDoesNotExist as exc:
            log.warning("datastore.update_failed", error=str(exc))
            return StoreResult.failure(str(exc), code="FieldDoesNotExist")
        except _STORE_FAILURES as exc:
            log.warning("datastore.update_failed", error=_describe(exc))
            return StoreResult.failure(_describe(exc), code=exc.__class__.__name__)

        log.info("datastore.updated", row_count=len(instances))
        return StoreResult(data=[_as_row(obj) for obj in instances])

    def delete(self, table: str, filters: Filters) -> StoreResult:
        model = self._tables.get(table)
        if model is None:
            return _unknown_table(table)
        if not filters:
            return StoreResult.failure("DELETE requires a WHERE clause", code="21000")

        try:
            with transaction.atomic():
                queryset = model.objects.filter(**_lookups(filters))
                rows = [_as_row(obj) for obj in queryset]
                queryset.delete()
        except _STORE_FAILURES as exc:
            logger.warning("datastore.delete_failed", table=table, error=_describe(exc))
            return StoreResult.failure(_describe(exc), code=exc.__class__.__name__)

        logger.info("datastore.deleted", table=table, row_count=len(rows))
        return StoreResult(data=rows)


def _lookups(filters: Optional[Filters]) -> Dict[str, Any]:
    """Validate operators and translate filters into ORM keyword lookups."""
    lookups: Dict[str, Any] = {}
    for key, value in (filters or {}).items():
        column, op = split_lookup(key)
        if op == "exact" and value is None:
            lookups[f"{column}__isnull"] = True
        else:
            lookups[f"{column}__{op}"] = value
    return lookups


def _as_row(instance: models.Model) -> Row:
    if hasattr(instance, "as_row"):
        return instance.as_row()
    return {
        field.attname: getattr(instance, field.attname)
        for field in instance._meta.concrete_fields
    }


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError) and hasattr(exc, "error_dict"):
        return "; ".join(
            f"{field}: {' '.join(messages)}"
            for field, messages in sorted(exc.message_dict.items())
        )
    if isinstance(exc, ValidationError):
        return " ".join(exc.messages)
    return str(exc)


def _unknown_table(table: str) -> StoreResult:
    logger.warning("datastore.unknown_table", table=table)
    return StoreResult.failure(f'relation "{table}" does not exist', code="42P01")
