"""Record store speaking the PostgREST protocol of the hosted backend.

Every table is exposed under ``<base_url>/rest/v1/<table>``.  Requests
authenticate with the project's API key (sent both as ``apikey`` and as a
bearer token) and ask for ``return=representation`` so writes answer with
the affected rows.  A JSON array body is inserted as one statement, which
makes batch inserts all-or-nothing on the server side.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

import httpx
import structlog

from modules.core.datastore.interfaces import (
    Filters,
    IRecordStore,
    Row,
    StoreResult,
    UnsupportedLookup,
    split_lookup,
)
from shared.domain.serialization import normalize_for_json

logger = structlog.get_logger(__name__)

_OPERATORS = {
    "exact": "eq",
    "gt": "gt",
    "gte": "gte",
    "lt": "lt",
    "lte": "lte",
}


class PostgrestRecordStore(IRecordStore):
    """``IRecordStore`` over HTTP using a synchronous ``httpx.Client``.

    ``client`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise one is created for ``base_url``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Prefer": "return=representation",
        }
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # IRecordStore
    # ------------------------------------------------------------------

    def insert(self, table: str, rows: Sequence[Row]) -> StoreResult:
        if not rows:
            return StoreResult(data=[])
        return self._request("POST", table, json=normalize_for_json(list(rows)))

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        ordering: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> StoreResult:
        try:
            params = [("select", "*")] + _filter_params(filters)
        except UnsupportedLookup as exc:
            return StoreResult.failure(str(exc), code="UnsupportedLookup")
        if ordering:
            params.append(("order", _order_param(ordering)))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))
        return self._request("GET", table, params=params)

    def update(self, table: str, values: Row, filters: Filters) -> StoreResult:
        if not filters:
            return StoreResult.failure("UPDATE requires a WHERE clause", code="21000")
        try:
            params = _filter_params(filters)
        except UnsupportedLookup as exc:
            return StoreResult.failure(str(exc), code="UnsupportedLookup")
        return self._request(
            "PATCH", table, params=params, json=normalize_for_json(dict(values))
        )

    def delete(self, table: str, filters: Filters) -> StoreResult:
        if not filters:
            return StoreResult.failure("DELETE requires a WHERE clause", code="21000")
        try:
            params = _filter_params(filters)
        except UnsupportedLookup as exc:
            return StoreResult.failure(str(exc), code="UnsupportedLookup")
        return self._request("DELETE", table, params=params)

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
    ) -> StoreResult:
        log = logger.bind(method=method, table=table)
        try:
            response = self._client.request(
                method,
                f"/rest/v1/{table}",
                params=params,
                json=json,
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            message = str(exc) or exc.__class__.__name__
            log.warning("datastore.request_failed", error=message)
            return StoreResult.failure(message, code="network_error")

        if response.is_error:
            result = _error_result(response)
            log.warning(
                "datastore.backend_error",
                status_code=response.status_code,
                error=result.error.message if result.error else None,
            )
            return result

        if not response.content:
            return StoreResult(data=[])
        try:
            payload = response.json()
        except ValueError:
            log.warning("datastore.invalid_response", status_code=response.status_code)
            return StoreResult.failure("Invalid JSON in backend response", code="invalid_response")
        if isinstance(payload, dict):
            payload = [payload]
        return StoreResult(data=payload)


def _filter_params(filters: Optional[Filters]) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    for key, value in (filters or {}).items():
        column, op = split_lookup(key)
        if op == "exact" and value is None:
            params.append((column, "is.null"))
        elif op == "in":
            joined = ",".join(_format_value(item) for item in value)
            params.append((column, f"in.({joined})"))
        elif op == "icontains":
            params.append((column, f"ilike.*{_format_value(value)}*"))
        else:
            params.append((column, f"{_OPERATORS[op]}.{_format_value(value)}"))
    return params


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(normalize_for_json(value))


def _order_param(ordering: Sequence[str]) -> str:
    parts = []
    for field in ordering:
        if field.startswith("-"):
            parts.append(f"{field[1:]}.desc")
        else:
            parts.append(f"{field}.asc")
    return ",".join(parts)


def _error_result(response: httpx.Response) -> StoreResult:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        return StoreResult.failure(
            body.get("message") or response.reason_phrase,
            code=body.get("code"),
            details=body.get("details"),
        )
    return StoreResult.failure(response.text or response.reason_phrase)
