"""Supabase record store.

A thin async wrapper around the Supabase PostgREST API, used as a generic
record store with filter/insert/update/delete operations.

Usage:
    from app.services.integrations.supabase_store import supabase_store

    row = await supabase_store.select(
        "livestreams",
        filters={"stream_key": "webrtc_v1_1700000000000"},
        single=True,
    )
    await supabase_store.update(
        "livestreams",
        {"status": "live"},
        filters={"stream_key": "webrtc_v1_1700000000000"},
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import httpx
from loguru import logger

from app.app_config import get_app_environ_config
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _format_in(values: Iterable[Any]) -> str:
    # PostgREST requires quoting for values with reserved characters
    quoted = []
    for value in values:
        text = _format_value(value)
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        quoted.append(text)
    return f"in.({','.join(quoted)})"


def build_query_params(
    *,
    filters: Mapping[str, Any] | None = None,
    in_filters: Mapping[str, Iterable[Any]] | None = None,
    columns: str | None = None,
    order: str | None = None,
    desc: bool = False,
    limit: int | None = None,
) -> list[tuple[str, str]]:
    """Build PostgREST query parameters from simple equality/in filters."""
    params: list[tuple[str, str]] = []
    if columns:
        params.append(("select", columns))
    for column, value in (filters or {}).items():
        if value is None:
            params.append((column, "is.null"))
        else:
            params.append((column, f"eq.{_format_value(value)}"))
    for column, values in (in_filters or {}).items():
        params.append((column, _format_in(values)))
    if order:
        params.append(("order", f"{order}.{'desc' if desc else 'asc'}"))
    if limit is not None:
        params.append(("limit", str(limit)))
    return params


class SupabaseStore:
    """Generic record store backed by Supabase PostgREST."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        demo_mode: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cfg = get_app_environ_config()
        self.base_url = (base_url or cfg.SUPABASE_URL or "").rstrip("/")
        self.api_key = api_key or cfg.SUPABASE_SERVICE_ROLE_KEY
        self.timeout = timeout if timeout is not None else cfg.SUPABASE_HTTP_TIMEOUT
        self._demo_mode = cfg.DEMO_MODE if demo_mode is None else demo_mode
        self._transport = transport
        logger.info("SupabaseStore initialized (demo_mode={})", self._demo_mode)

    def _build_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if extra:
            headers.update(extra)
        return headers

    def _table_url(self, table: str) -> str:
        if not self.base_url:
            logger.error("SUPABASE_URL not configured")
            raise AppError(
                errcode=AppErrorCode.E_STORE_NOT_CONFIGURED,
                errmesg="Record store URL must be configured. Set SUPABASE_URL in env.local or environment variables.",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            )
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        url = self._table_url(table)
        headers = self._build_headers({"Prefer": prefer} if prefer else None)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text
            logger.warning(
                "Record store {} {} failed: status={} body={}",
                method,
                table,
                exc.response.status_code,
                body,
            )
            raise AppError(
                errcode=AppErrorCode.E_PERSISTENCE_ERROR,
                errmesg=f"Record store {method} {table} failed ({exc.response.status_code}): {body}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Record store {} {} unreachable: {}", method, table, exc)
            raise AppError(
                errcode=AppErrorCode.E_PERSISTENCE_ERROR,
                errmesg=f"Record store {method} {table} unreachable: {exc}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            ) from exc

        if not response.content:
            return []
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return list(data)

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        in_filters: Mapping[str, Iterable[Any]] | None = None,
        columns: str = "*",
        order: str | None = None,
        desc: bool = False,
        single: bool = False,
    ) -> list[dict[str, Any]] | dict[str, Any] | None:
        """Select rows. With `single=True` returns the first row or None."""
        if self._demo_mode:
            logger.info("SupabaseStore DEMO_MODE=true: stubbed select from {}", table)
            return None if single else []

        params = build_query_params(
            filters=filters,
            in_filters=in_filters,
            columns=columns,
            order=order,
            desc=desc,
            limit=1 if single else None,
        )
        rows = await self._request("GET", table, params=params)
        if single:
            return rows[0] if rows else None
        return rows

    async def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        if self._demo_mode:
            logger.info("SupabaseStore DEMO_MODE=true: stubbed insert into {}", table)
            return dict(values)

        rows = await self._request(
            "POST",
            table,
            json=dict(values),
            prefer="return=representation",
        )
        return rows[0] if rows else dict(values)

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching `filters` and return the updated rows."""
        if not filters:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Refusing to update without filters",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        if self._demo_mode:
            logger.info("SupabaseStore DEMO_MODE=true: stubbed update of {}", table)
            return []

        return await self._request(
            "PATCH",
            table,
            params=build_query_params(filters=filters),
            json=dict(values),
            prefer="return=representation",
        )

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> int:
        """Delete rows matching `filters` and return how many were removed."""
        if not filters:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Refusing to delete without filters",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        if self._demo_mode:
            logger.info("SupabaseStore DEMO_MODE=true: stubbed delete from {}", table)
            return 0

        rows = await self._request(
            "DELETE",
            table,
            params=build_query_params(filters=filters),
            prefer="return=representation",
        )
        return len(rows)


supabase_store = SupabaseStore()
