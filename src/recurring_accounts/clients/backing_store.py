"""Backing store access over the PostgREST HTTP API."""

import asyncio
from datetime import date, datetime
from typing import Any, Protocol

import httpx
import structlog

from recurring_accounts.config.settings import Settings

logger = structlog.get_logger(__name__)


class BackingStoreError(Exception):
    """Base exception for backing store failures."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ConflictError(BackingStoreError):
    """A uniqueness constraint rejected the write."""

    pass


class BackingStoreUnavailable(BackingStoreError):
    """The store could not be reached at all."""

    pass


class BackingStore(Protocol):
    """Minimal store interface the projector depends on."""

    async def query(
        self,
        table: str,
        filters: dict[str, Any],
        select: str = "*",
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...


def _encode_filter(value: Any) -> str:
    """Render an equality filter value in PostgREST syntax."""
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if isinstance(value, (date, datetime)):
        return f"eq.{value.isoformat()}"
    return f"eq.{value}"


class RestStoreClient:
    """Async client for a PostgREST endpoint authenticated with a service key."""

    _REST_PREFIX = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 30.0,
        max_retries: int = 0,
    ):
        self.base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RestStoreClient":
        return cls(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_role_key.get_secret_value(),
            timeout=settings.store_timeout,
            max_retries=settings.store_max_retries,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RestStoreClient":
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

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        prefer: str | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make an authenticated request with retry on transport errors."""
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=f"{self._REST_PREFIX}/{table}",
                params=params,
                json=json,
                headers=self._get_headers(prefer),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)
                return await self._request(
                    method, table, params, json, prefer, retry_count + 1
                )
            logger.error("store_unreachable", table=table, error=str(e))
            raise BackingStoreUnavailable(f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {
                    "raw": response.text[:500] if response.text else "empty response"
                }
            error_cls = ConflictError if response.status_code == 409 else BackingStoreError
            raise error_cls(
                f"Store error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
            )

        return response.json() if response.content else None

    async def query(
        self,
        table: str,
        filters: dict[str, Any],
        select: str = "*",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows whose columns equal the given values."""
        params: dict[str, Any] = {"select": select}
        for column, value in filters.items():
            params[column] = _encode_filter(value)
        if limit is not None:
            params["limit"] = limit

        result = await self._request("GET", table, params=params)
        if not isinstance(result, list):
            raise BackingStoreError(f"Unexpected response for {table} query", details=result)
        return result

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        result = await self._request(
            "POST", table, json=record, prefer="return=representation"
        )
        if isinstance(result, list):
            return result[0] if result else {}
        return result if isinstance(result, dict) else {}
