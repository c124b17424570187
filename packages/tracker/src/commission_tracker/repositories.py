"""Table access for policies, agent profiles, contact attempts and rate notices.

Every read and write of agent-owned rows carries the owning ``user_id``
filter; there is no path that touches another agent's rows by id alone.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

import structlog

from commission_tracker.clients.supabase import SupabaseClient
from commission_tracker.contacts import ContactLog, retention_cutoff
from commission_tracker.dates import parse_date, utc_now
from commission_tracker.errors import NotFound, UpstreamUnavailable
from commission_tracker.models import AgentProfile, ContactAttempt, Policy, PolicyDraft

logger = structlog.get_logger(__name__)

POLICIES_TABLE = "policies"
AGENT_PROFILES_TABLE = "agent_profiles"
CONTACT_ATTEMPTS_TABLE = "contact_attempts"
RATE_NOTIFICATIONS_TABLE = "commission_rate_notifications"

RATE_NOTIFICATION_DEDUPE_DAYS = 30


class PolicyRepository:
    """Policies scoped to the agent who owns them."""

    def __init__(self, db: SupabaseClient):
        self._db = db

    async def list_for_agent(self, user_id: str) -> list[Policy]:
        rows = await self._db.select(
            POLICIES_TABLE, {"user_id": user_id}, order="created_at.desc"
        )
        return [Policy.from_row(row) for row in rows]

    async def get(self, user_id: str, policy_id: int) -> Policy:
        """Fetch one policy owned by ``user_id``.

        Raises:
            NotFound: If the id does not exist or belongs to another agent.
        """
        rows = await self._db.select(
            POLICIES_TABLE, {"id": policy_id, "user_id": user_id}, limit=1
        )
        if not rows:
            raise NotFound(f"Policy {policy_id} not found", details={"policy_id": policy_id})
        return Policy.from_row(rows[0])

    async def create(self, user_id: str, draft: PolicyDraft) -> Policy:
        rows = await self._db.insert(POLICIES_TABLE, {**draft.to_row(), "user_id": user_id})
        if not rows:
            raise UpstreamUnavailable("Policy insert returned no row", retryable=False)
        policy = Policy.from_row(rows[0])
        logger.info("policy_created", policy_id=policy.id, agent_id=user_id)
        return policy

    async def update(self, user_id: str, policy_id: int, values: dict[str, Any]) -> Policy:
        """Apply a partial update to an owned policy and return the stored row."""
        rows = await self._db.update(
            POLICIES_TABLE, values, {"id": policy_id, "user_id": user_id}
        )
        if not rows:
            raise NotFound(f"Policy {policy_id} not found", details={"policy_id": policy_id})
        return Policy.from_row(rows[0])

    async def save(self, user_id: str, policy_id: int, draft: PolicyDraft) -> Policy:
        return await self.update(user_id, policy_id, draft.to_row())

    async def delete(self, user_id: str, policy_id: int) -> None:
        rows = await self._db.delete(POLICIES_TABLE, {"id": policy_id, "user_id": user_id})
        if not rows:
            raise NotFound(f"Policy {policy_id} not found", details={"policy_id": policy_id})
        logger.info("policy_deleted", policy_id=policy_id, agent_id=user_id)

    async def list_at_rate(self, user_id: str, rate: Any) -> list[Policy]:
        rows = await self._db.select(
            POLICIES_TABLE, {"user_id": user_id, "commission_rate": str(rate)}
        )
        return [Policy.from_row(row) for row in rows]

    async def all_policies(self) -> list[Policy]:
        """Every policy across agents; used only by maintenance routines."""
        rows = await self._db.select(POLICIES_TABLE, order="id.asc")
        return [Policy.from_row(row) for row in rows]


class AgentProfileRepository:
    """One profile row per agent, keyed by the unique ``user_id``."""

    def __init__(self, db: SupabaseClient):
        self._db = db

    async def get(self, user_id: str) -> AgentProfile | None:
        rows = await self._db.select(AGENT_PROFILES_TABLE, {"user_id": user_id}, limit=1)
        return AgentProfile.from_row(rows[0]) if rows else None

    async def get_or_blank(self, user_id: str) -> AgentProfile:
        """The stored profile, or a blank one when none exists or the read fails."""
        try:
            profile = await self.get(user_id)
        except UpstreamUnavailable as e:
            logger.warning("agent_profile_read_failed", agent_id=user_id, error=str(e))
            return AgentProfile.blank(user_id)
        return profile or AgentProfile.blank(user_id)

    async def upsert(self, profile: AgentProfile) -> AgentProfile:
        row = {**profile.to_row(), "updated_at": utc_now().isoformat()}
        rows = await self._db.upsert(AGENT_PROFILES_TABLE, row, on_conflict="user_id")
        logger.info("agent_profile_saved", agent_id=profile.user_id)
        return AgentProfile.from_row(rows[0]) if rows else profile

    async def list_all(self) -> list[AgentProfile]:
        rows = await self._db.select(AGENT_PROFILES_TABLE, order="id.asc")
        return [AgentProfile.from_row(row) for row in rows]

    async def replace_specializations(self, user_id: str, specializations: list[str]) -> None:
        await self._db.update(
            AGENT_PROFILES_TABLE, {"specializations": specializations or None}, {"user_id": user_id}
        )

    async def insert_missing(
        self, user_ids: Iterable[str], start_date: date | None = None
    ) -> list[str]:
        """Create profiles for the given agents, skipping existing rows."""
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        rows = await self._db.upsert(
            AGENT_PROFILES_TABLE,
            [AgentProfile(user_id=user_id, start_date=start_date).to_row() for user_id in ids],
            on_conflict="user_id",
            ignore_duplicates=True,
        )
        return [str(row["user_id"]) for row in rows]


class ContactAttemptRepository:
    """Shared store of retention calls, unique per policy, agent and day."""

    def __init__(self, db: SupabaseClient):
        self._db = db

    async def log(self, user_id: str, policy_id: int, contact_date: Any) -> ContactAttempt:
        """Record a call; logging the same call twice on one day is a no-op."""
        attempt = ContactAttempt(
            policy_id=policy_id, user_id=user_id, contact_date=parse_date(contact_date)
        )
        await self._db.upsert(
            CONTACT_ATTEMPTS_TABLE,
            attempt.to_row(),
            on_conflict="policy_id,user_id,contact_date",
            ignore_duplicates=True,
        )
        logger.info(
            "contact_logged",
            policy_id=policy_id,
            agent_id=user_id,
            contact_date=attempt.contact_date.isoformat(),
        )
        return attempt

    async def load_log(self, user_id: str, today: Any) -> ContactLog:
        """Snapshot of the agent's attempts inside the retention window."""
        rows = await self._db.select(
            CONTACT_ATTEMPTS_TABLE,
            {
                "user_id": user_id,
                "contact_date": ("gte", retention_cutoff(today).isoformat()),
            },
        )
        return ContactLog(ContactAttempt.from_row(row) for row in rows)

    async def trim(self, today: Any) -> int:
        """Delete attempts older than the retention window."""
        rows = await self._db.delete(
            CONTACT_ATTEMPTS_TABLE,
            {"contact_date": ("lt", retention_cutoff(today).isoformat())},
        )
        if rows:
            logger.info("contact_attempts_trimmed", count=len(rows))
        return len(rows)


class RateNotificationRepository:
    """Record of tenure rate-change messages, used to avoid repeats."""

    def __init__(self, db: SupabaseClient):
        self._db = db

    async def notified_recently(self, user_id: str, today: date) -> bool:
        since = today - timedelta(days=RATE_NOTIFICATION_DEDUPE_DAYS)
        rows = await self._db.select(
            RATE_NOTIFICATIONS_TABLE,
            {"user_id": user_id, "notified_at": ("gte", since.isoformat())},
            columns="id",
            limit=1,
        )
        return bool(rows)

    async def record(self, user_id: str, old_rate: Any, new_rate: Any) -> None:
        await self._db.insert(
            RATE_NOTIFICATIONS_TABLE,
            {
                "user_id": user_id,
                "old_rate": str(old_rate),
                "new_rate": str(new_rate),
                "notified_at": utc_now().isoformat(),
            },
        )
