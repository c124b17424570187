"""Shared request handling for the outbound HTTP clients."""

import asyncio
from typing import Any

import httpx
import structlog

from commission_tracker.errors import UpstreamUnavailable

logger = structlog.get_logger(__name__)


class BaseHTTPClient:
    """Async JSON client with an explicit timeout and a small retry budget.

    Transport errors, 429 and 5xx responses are retried up to ``max_retries``
    times with exponential backoff; any other 4xx fails immediately.
    Failures surface as UpstreamUnavailable.
    """

    service_name = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        max_retries: int,
        backoff_base: float = 0.5,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._client: httpx.AsyncClient | None = None

    def _default_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    async def _get_client(self) -> httpx.AsyncClient:
        """The pooled connection, opened on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={"User-Agent": f"commission-tracker/{self.service_name}"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("upstream_client_closed", service=self.service_name)

    async def __aenter__(self) -> "BaseHTTPClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
    ) -> httpx.Response:
        """Send a request, retrying transient failures."""
        client = await self._get_client()
        request_headers = {**self._default_headers(), **(headers or {})}

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await self._backoff(retry_count, method, path, reason=str(e))
                return await self._send(method, path, params, json, headers, retry_count + 1)
            raise UpstreamUnavailable(f"{self.service_name} request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            if retry_count < self._max_retries:
                await self._backoff(
                    retry_count, method, path, reason=f"status {response.status_code}"
                )
                return await self._send(method, path, params, json, headers, retry_count + 1)
            raise UpstreamUnavailable(
                f"{self.service_name} error: {response.status_code}",
                status_code=response.status_code,
                details=self._error_detail(response),
            )

        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"{self.service_name} rejected request: {response.status_code}",
                status_code=response.status_code,
                details=self._error_detail(response),
                retryable=False,
            )

        return response

    async def _backoff(self, retry_count: int, method: str, path: str, reason: str) -> None:
        logger.warning(
            "upstream_retry",
            service=self.service_name,
            method=method,
            path=path,
            attempt=retry_count + 1,
            reason=reason,
        )
        await asyncio.sleep(self._backoff_base * 2**retry_count)

    @staticmethod
    def _error_detail(response: httpx.Response) -> Any:
        try:
            return response.json() if response.content else {}
        except ValueError:
            return {"raw": response.text[:500] if response.text else "empty response"}
