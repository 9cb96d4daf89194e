"""Narrow per-table interface over the Supabase query client.

Every table access in the API goes through ``DataStore``:

- exact-match filters only (``{"column": value}``), simple ordering
- rows come back as typed records (``agora_api.db.records``)
- client failures are translated to ``UpstreamError`` here, so handlers never
  see ``postgrest`` or ``httpx`` exceptions

No raw SQL, no transactions: multi-step writes are sequences of independent
calls.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from agora_api.db.client import get_supabase_client
from agora_api.db.records import RECORD_TYPES, Record, Table
from agora_api.errors import UpstreamError

logger = logging.getLogger(__name__)

Filters = Mapping[str, Any]


def _filter_value(value: Any) -> Any:
    # UUIDs and enums arrive from typed path params and models
    if isinstance(value, (bool, int, float, str)) or value is None:
        return value
    return str(getattr(value, "value", value))


def _column_value(value: Any) -> Any:
    # Array and json columns keep their structure
    if isinstance(value, (list, tuple)):
        return [_column_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _column_value(item) for key, item in value.items()}
    return _filter_value(value)


class DataStore:
    """Per-table CRUD facade over a Supabase ``Client``."""

    def __init__(self, client: Client):
        self._client = client

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select(
        self,
        table: Table,
        filters: Optional[Filters] = None,
        *,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """Return every row of ``table`` matching ``filters``.

        Args:
            table: Target table
            filters: Column -> value exact-match filters (ANDed)
            order: Column to order by
            descending: Order direction
            limit: Maximum number of rows

        Returns:
            list of records of the table's record type

        Raises:
            UpstreamError: If the query fails or a row is malformed
        """
        query = self._client.table(table.value).select("*")
        query = self._apply_filters(query, filters)
        if order:
            query = query.order(order, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        response = self._execute(table, "select", query)
        return self._to_records(table, response.data or [])

    def select_one(self, table: Table, filters: Filters) -> Optional[Record]:
        """Return the first row matching ``filters``, or None."""
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table: Table, row: Mapping[str, Any]) -> Record:
        """Insert one row and return it as stored (server defaults applied)."""
        query = self._client.table(table.value).insert(self._payload(row))
        response = self._execute(table, "insert", query)
        records = self._to_records(table, response.data or [])
        if not records:
            raise UpstreamError(f"Insert into {table.value} returned no row")
        return records[0]

    def update(
        self, table: Table, filters: Filters, patch: Mapping[str, Any]
    ) -> Optional[Record]:
        """Apply ``patch`` to the rows matching ``filters``.

        Returns:
            The first updated row, or None when nothing matched
        """
        query = self._client.table(table.value).update(self._payload(patch))
        query = self._apply_filters(query, filters)
        response = self._execute(table, "update", query)
        records = self._to_records(table, response.data or [])
        return records[0] if records else None

    def delete(self, table: Table, filters: Filters) -> None:
        """Delete the rows matching ``filters``.

        An empty filter set is refused rather than wiping the table.
        """
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table.value}")
        query = self._client.table(table.value).delete()
        query = self._apply_filters(query, filters)
        self._execute(table, "delete", query)

    def upsert(
        self, table: Table, row: Mapping[str, Any], conflict_keys: Iterable[str]
    ) -> None:
        """Insert ``row`` or update the existing row sharing ``conflict_keys``."""
        on_conflict = ",".join(conflict_keys)
        query = self._client.table(table.value).upsert(
            self._payload(row), on_conflict=on_conflict
        )
        self._execute(table, "upsert", query)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_filters(query: Any, filters: Optional[Filters]) -> Any:
        for column, value in (filters or {}).items():
            query = query.eq(column, _filter_value(value))
        return query

    @staticmethod
    def _payload(row: Mapping[str, Any]) -> dict[str, Any]:
        return {key: _column_value(value) for key, value in row.items()}

    @staticmethod
    def _execute(table: Table, operation: str, query: Any) -> Any:
        try:
            return query.execute()
        except APIError as e:
            logger.warning(
                "store.request.failed",
                extra={
                    "table": table.value,
                    "operation": operation,
                    "error_code": e.code,
                    "error": e.message,
                },
            )
            raise UpstreamError(e.message or "Data store request failed", details=e.details)
        except httpx.HTTPError as e:
            logger.error(
                "store.request.unreachable",
                extra={
                    "table": table.value,
                    "operation": operation,
                    "error_type": type(e).__name__,
                },
            )
            raise UpstreamError("Data store unreachable", status_code=502)

    @staticmethod
    def _to_records(table: Table, rows: list[dict[str, Any]]) -> list[Record]:
        record_type = RECORD_TYPES[table]
        try:
            return [record_type.model_validate(row) for row in rows]
        except PydanticValidationError as e:
            logger.error(
                "store.row.malformed",
                extra={"table": table.value, "error_count": e.error_count()},
            )
            raise UpstreamError(
                f"Malformed row returned from {table.value}", status_code=500
            )


def get_store() -> DataStore:
    """FastAPI dependency: the process-wide store over the cached client.

    Tests replace this through ``app.dependency_overrides``.
    """
    return DataStore(get_supabase_client())
