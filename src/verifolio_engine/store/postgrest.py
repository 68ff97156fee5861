"""Supabase / PostgREST store over httpx.

The document counter relies on this database function, executed through
``/rest/v1/rpc/next_sequence`` so the increment happens in one statement:

    create function next_sequence(p_user_id uuid, p_doc_type text, p_period_key text)
    returns integer language sql as $$
      insert into number_sequences (user_id, doc_type, period_key, last_value)
      values (p_user_id, p_doc_type, p_period_key, 1)
      on conflict (user_id, doc_type, period_key)
      do update set last_value = number_sequences.last_value + 1
      returning last_value;
    $$;
"""

import asyncio
from typing import Any

import httpx
import structlog

from verifolio_engine.config import get_settings
from verifolio_engine.errors import StoreError
from verifolio_engine.store.base import Filters, Row

logger = structlog.get_logger(__name__)


def ilike_pattern(term: str) -> str:
    """Escape the LIKE wildcards of a search term used in an ilike filter.

    ``%`` and ``_`` are escaped with a backslash. PostgREST rewrites every
    ``*`` to ``%`` before the database sees it, so a literal star cannot be
    escaped and stands for exactly one character instead.
    """
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped.replace("*", "_")


class PostgrestStore:
    """Async client for a PostgREST endpoint authenticated with a service key."""

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self._service_key = service_key or settings.supabase_service_key.get_secret_value()
        self._timeout = timeout if timeout is not None else settings.store_timeout
        self._max_retries = max_retries if max_retries is not None else settings.store_max_retries
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PostgrestStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _filter_params(filters: Filters | None) -> dict[str, str]:
        params: dict[str, str] = {}
        for column, value in (filters or {}).items():
            if value is None:
                params[column] = "is.null"
            elif isinstance(value, bool):
                params[column] = f"is.{str(value).lower()}"
            else:
                params[column] = f"eq.{value}"
        return params

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        prefer: str | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make a request with retry on transport errors."""
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=self._get_headers(prefer),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, params, json, prefer, retry_count + 1)
            logger.error("store_unreachable", path=path, error=str(e))
            raise StoreError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {"raw": response.text[:500] if response.text else "empty response"}
            logger.warning(
                "store_request_failed",
                method=method,
                path=path,
                status=response.status_code,
                details=error_detail,
            )
            raise StoreError(
                f"Store error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
            )

        return response.json() if response.content else None

    @staticmethod
    def _rows(result: Any) -> list[Row]:
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            return [result]
        return []

    # === Table access ===

    async def select(
        self,
        table: str,
        *,
        filters: Filters | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        params: dict[str, Any] = {"select": columns, **self._filter_params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        return self._rows(await self._request("GET", f"/{table}", params=params))

    async def search(
        self,
        table: str,
        *,
        column: str,
        term: str,
        filters: Filters | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        params: dict[str, Any] = {"select": "*", **self._filter_params(filters)}
        params[column] = f"ilike.*{ilike_pattern(term)}*"
        if order_by:
            params["order"] = f"{order_by}.asc"
        if limit is not None:
            params["limit"] = limit
        return self._rows(await self._request("GET", f"/{table}", params=params))

    async def insert(self, table: str, rows: Row | list[Row]) -> list[Row]:
        result = await self._request(
            "POST", f"/{table}", json=rows, prefer="return=representation"
        )
        return self._rows(result)

    async def update(self, table: str, values: Row, *, filters: Filters) -> list[Row]:
        if not filters:
            raise ValueError("update requires at least one filter")
        result = await self._request(
            "PATCH",
            f"/{table}",
            params=self._filter_params(filters),
            json=values,
            prefer="return=representation",
        )
        return self._rows(result)

    async def delete(self, table: str, *, filters: Filters) -> list[Row]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        result = await self._request(
            "DELETE",
            f"/{table}",
            params=self._filter_params(filters),
            prefer="return=representation",
        )
        return self._rows(result)

    # === Counters ===

    async def next_sequence(self, owner_id: str, doc_type: str, period_key: str) -> int:
        result = await self._request(
            "POST",
            "/rpc/next_sequence",
            json={
                "p_user_id": owner_id,
                "p_doc_type": doc_type,
                "p_period_key": period_key,
            },
        )
        if not isinstance(result, int) or isinstance(result, bool):
            raise StoreError("Invalid next_sequence response", details={"raw": result})
        return result

    async def current_sequence(self, owner_id: str, doc_type: str, period_key: str) -> int:
        rows = await self.select(
            "number_sequences",
            filters={"user_id": owner_id, "doc_type": doc_type, "period_key": period_key},
            columns="last_value",
            limit=1,
        )
        return int(rows[0]["last_value"]) if rows else 0
