"""Read-only client for the identity provider's user directory."""

from typing import Any

import structlog

from commission_tracker.clients.base import BaseHTTPClient
from commission_tracker.config import get_settings
from commission_tracker.errors import UpstreamUnavailable
from commission_tracker.models import AgentIdentity

logger = structlog.get_logger(__name__)


def identity_from_user(user: dict[str, Any]) -> AgentIdentity:
    """Map a directory user record to an AgentIdentity."""
    emails = user.get("email_addresses") or []
    primary_id = user.get("primary_email_address_id")
    email = None
    for entry in emails:
        if entry.get("id") == primary_id:
            email = entry.get("email_address")
            break
    if email is None and emails:
        email = emails[0].get("email_address")

    first_name = user.get("first_name")
    last_name = user.get("last_name")
    return AgentIdentity(
        user_id=str(user["id"]),
        email=email,
        avatar_url=user.get("image_url"),
        first_name=first_name,
        last_name=last_name,
    )


class IdentityDirectory(BaseHTTPClient):
    """Lists users so agent profiles can be mirrored from the identity provider."""

    service_name = "identity"

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        super().__init__(
            base_url=base_url or settings.clerk_api_url,
            timeout=timeout if timeout is not None else settings.http_timeout,
            max_retries=max_retries if max_retries is not None else settings.http_max_retries,
        )
        if secret_key is None and settings.clerk_secret_key is not None:
            secret_key = settings.clerk_secret_key.get_secret_value()
        self._secret_key = secret_key

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        if self._secret_key:
            headers["Authorization"] = f"Bearer {self._secret_key}"
        return headers

    async def list_users(self, page_size: int = 100) -> list[AgentIdentity]:
        """All users, fetched page by page."""
        if not self._secret_key:
            raise UpstreamUnavailable("Identity provider key is not configured", retryable=False)

        identities: list[AgentIdentity] = []
        offset = 0
        while True:
            response = await self._send(
                "GET", "/users", params={"limit": page_size, "offset": offset}
            )
            page = response.json() if response.content else []
            if isinstance(page, dict):
                page = page.get("data") or []
            identities.extend(identity_from_user(user) for user in page)
            if len(page) < page_size:
                break
            offset += page_size

        logger.info("identity_users_listed", count=len(identities))
        return identities
