"""Async client for the hosted data store's PostgREST interface."""

from typing import Any

import structlog

from commission_tracker.clients.base import BaseHTTPClient
from commission_tracker.config import get_settings

logger = structlog.get_logger(__name__)

Filters = dict[str, Any]


def encode_filter(value: Any) -> str:
    """Encode one column filter in PostgREST syntax.

    A plain value means equality; an ``(operator, value)`` tuple selects
    another operator, e.g. ``("lt", "2025-01-01")`` or ``("is", "null")``.
    """
    if isinstance(value, tuple):
        operator, operand = value
        return f"{operator}.{_literal(operand)}"
    return f"eq.{_literal(value)}"


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SupabaseClient(BaseHTTPClient):
    """Table-level select/insert/upsert/update/delete over PostgREST.

    Usage:
        async with SupabaseClient() as db:
            rows = await db.select("policies", {"user_id": agent_id})
    """

    service_name = "data_store"

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        super().__init__(
            base_url=f"{(base_url or settings.supabase_url).rstrip('/')}/rest/v1",
            timeout=timeout if timeout is not None else settings.http_timeout,
            max_retries=max_retries if max_retries is not None else settings.http_max_retries,
        )
        self._service_key = service_key or settings.supabase_service_key.get_secret_value()

    def _default_headers(self) -> dict[str, str]:
        return {
            **super()._default_headers(),
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
        }

    @staticmethod
    def _params(filters: Filters | None, **extra: Any) -> dict[str, Any]:
        params = {column: encode_filter(value) for column, value in (filters or {}).items()}
        params.update({key: value for key, value in extra.items() if value is not None})
        return params

    @staticmethod
    def _rows(response: Any) -> list[dict[str, Any]]:
        if not response.content:
            return []
        data = response.json()
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return [data]
        return []

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Rows of ``table`` matching all filters."""
        response = await self._send(
            "GET",
            f"/{table}",
            params=self._params(filters, select=columns, order=order, limit=limit),
        )
        return self._rows(response)

    async def insert(
        self, table: str, rows: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert rows and return them as stored."""
        response = await self._send(
            "POST",
            f"/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)

    async def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> list[dict[str, Any]]:
        """Insert rows, merging (or skipping) those that hit the unique key."""
        resolution = "ignore-duplicates" if ignore_duplicates else "merge-duplicates"
        response = await self._send(
            "POST",
            f"/{table}",
            params={"on_conflict": on_conflict},
            json=rows,
            headers={"Prefer": f"resolution={resolution},return=representation"},
        )
        return self._rows(response)

    async def update(
        self, table: str, values: dict[str, Any], filters: Filters
    ) -> list[dict[str, Any]]:
        """Update matching rows and return them."""
        if not filters:
            raise ValueError(f"refusing unfiltered update on {table}")
        response = await self._send(
            "PATCH",
            f"/{table}",
            params=self._params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)

    async def delete(self, table: str, filters: Filters) -> list[dict[str, Any]]:
        """Delete matching rows and return them."""
        if not filters:
            raise ValueError(f"refusing unfiltered delete on {table}")
        response = await self._send(
            "DELETE",
            f"/{table}",
            params=self._params(filters),
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)
