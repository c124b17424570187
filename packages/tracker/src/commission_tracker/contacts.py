"""In-memory view of an agent's logged client calls."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

from commission_tracker.dates import parse_date
from commission_tracker.models import ContactAttempt

CONTACT_RETENTION_DAYS = 30


def retention_cutoff(today: Any) -> date:
    """Oldest contact date kept by the retention trim."""
    return parse_date(today) - timedelta(days=CONTACT_RETENTION_DAYS)


class ContactLog:
    """Snapshot of contact attempts for one agent, loaded before generating
    notifications so the generator itself never performs I/O."""

    def __init__(self, attempts: Iterable[ContactAttempt] = ()):
        self._by_policy: dict[int, set[date]] = {}
        for attempt in attempts:
            self._by_policy.setdefault(attempt.policy_id, set()).add(attempt.contact_date)

    @classmethod
    def empty(cls) -> ContactLog:
        return cls()

    def contacted_on(self, policy_id: int, day: Any) -> bool:
        return parse_date(day) in self._by_policy.get(policy_id, set())

    def last_contact_date(self, policy_id: int) -> date | None:
        dates = self._by_policy.get(policy_id)
        return max(dates) if dates else None

    def recent_contact_count(self, policy_id: int, today: Any, days: int = 7) -> int:
        """Number of days with a contact within the last ``days`` days."""
        cutoff = parse_date(today) - timedelta(days=days)
        return sum(1 for day in self._by_policy.get(policy_id, set()) if day >= cutoff)

    def __len__(self) -> int:
        return sum(len(days) for days in self._by_policy.values())
