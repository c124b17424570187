"""Async client for the chat service's Web API."""

from typing import Any

import structlog

from commission_tracker.clients.base import BaseHTTPClient
from commission_tracker.config import get_settings
from commission_tracker.errors import UpstreamUnavailable

logger = structlog.get_logger(__name__)


class SlackAPIError(UpstreamUnavailable):
    """The chat API answered ``ok: false``."""

    def __init__(self, method: str, error: str, details: Any = None):
        super().__init__(
            f"Slack {method} failed: {error}",
            details=details,
            retryable=error in {"ratelimited", "service_unavailable", "request_timeout"},
        )
        self.error = error


class SlackClient(BaseHTTPClient):
    """Minimal Web API client: post messages and check the bot's access."""

    service_name = "chat"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        super().__init__(
            base_url=base_url or settings.slack_api_url,
            timeout=timeout if timeout is not None else settings.http_timeout,
            max_retries=max_retries if max_retries is not None else settings.http_max_retries,
        )
        if token is None and settings.slack_bot_token is not None:
            token = settings.slack_bot_token.get_secret_value()
        self._token = token

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def _default_headers(self) -> dict[str, str]:
        headers = {**super()._default_headers(), "Content-Type": "application/json; charset=utf-8"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _call(
        self, method: str, payload: dict[str, Any] | None = None, http_method: str = "POST"
    ) -> dict[str, Any]:
        if not self._token:
            raise UpstreamUnavailable("Slack bot token is not configured", retryable=False)

        if http_method == "GET":
            response = await self._send("GET", f"/{method}", params=payload)
        else:
            response = await self._send("POST", f"/{method}", json=payload or {})

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            raise SlackAPIError(
                method, "bad_response", details={"raw": response.text[:200]}
            ) from e
        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error", "unknown_error") if isinstance(data, dict) else "bad_response"
            raise SlackAPIError(method, error, details=data)
        return data

    async def post_message(
        self, channel: str, text: str, blocks: list[dict[str, Any]] | None = None
    ) -> dict[str, Any]:
        """Post a message; ``text`` is the notification fallback for ``blocks``."""
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        data = await self._call("chat.postMessage", payload)
        logger.debug("chat_message_posted", channel=channel, ts=data.get("ts"))
        return data

    async def auth_test(self) -> dict[str, Any]:
        return await self._call("auth.test")

    async def conversation_info(self, channel: str) -> dict[str, Any]:
        return await self._call("conversations.info", {"channel": channel}, http_method="GET")
