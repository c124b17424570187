"""Agent notifications derived from policy records.

Notifications are recomputed on every fetch and never stored. Two kinds
exist:

- payment verification: a Pending policy whose first payment should now be
  visible at the bank (two business days after the first payment date);
- cancellation follow-up: a Cancelled policy in its first three days after
  cancellation, when a retention call is still worthwhile.

The generator is pure: it reads the policies and a contact-log snapshot and
returns a new list. Acting on a notification (marking a policy Active,
logging a call) happens elsewhere.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

import structlog

from commission_tracker.business_days import (
    bank_confirmation_due,
    bank_confirmation_text,
    business_days_overdue,
)
from commission_tracker.cancellation import days_since_cancellation, resolve_cancellation
from commission_tracker.contacts import ContactLog
from commission_tracker.dates import parse_date
from commission_tracker.models import Policy, PolicyStatus

logger = structlog.get_logger(__name__)

FOLLOW_UP_DAYS = 3


class NotificationType(str, Enum):
    PAYMENT_VERIFICATION = "payment_verification"
    CANCELLATION_FOLLOWUP = "cancellation_followup"


class Priority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {
    Priority.URGENT: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


def _notification_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class PaymentVerificationNotification:
    """Pending policy whose first payment should be confirmed with the bank."""

    policy_id: int
    client_name: str
    first_payment_date: date
    business_days_overdue: int
    priority: Priority
    confirmation_text: str
    id: str = field(default_factory=_notification_id, compare=False)

    type = NotificationType.PAYMENT_VERIFICATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "policy_id": self.policy_id,
            "client_name": self.client_name,
            "first_payment_date": self.first_payment_date.isoformat(),
            "business_days_overdue": self.business_days_overdue,
            "priority": self.priority.value,
            "confirmation_text": self.confirmation_text,
        }


@dataclass(frozen=True)
class CancellationFollowUpNotification:
    """Recently cancelled policy that still needs a retention call."""

    policy_id: int
    client_name: str
    cancelled_date: date
    days_since_cancellation: int
    follow_up_day: int
    priority: Priority
    contacted_today: bool = False
    last_contact_date: date | None = None
    cancelled_date_inferred: bool = False
    id: str = field(default_factory=_notification_id, compare=False)

    type = NotificationType.CANCELLATION_FOLLOWUP

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "policy_id": self.policy_id,
            "client_name": self.client_name,
            "cancelled_date": self.cancelled_date.isoformat(),
            "cancelled_date_inferred": self.cancelled_date_inferred,
            "days_since_cancellation": self.days_since_cancellation,
            "follow_up_day": self.follow_up_day,
            "priority": self.priority.value,
            "contacted_today": self.contacted_today,
            "last_contact_date": (
                self.last_contact_date.isoformat() if self.last_contact_date else None
            ),
        }


AgentNotification = PaymentVerificationNotification | CancellationFollowUpNotification


def payment_priority(days_overdue: int) -> Priority:
    """low when just due, medium from 2 business days, high from 5."""
    if days_overdue >= 5:
        return Priority.HIGH
    if days_overdue >= 2:
        return Priority.MEDIUM
    return Priority.LOW


class NotificationGenerator:
    """Builds the notification list for one agent at a point in time."""

    def __init__(self, today: Any, contact_log: ContactLog | None = None):
        self.today = parse_date(today)
        self.contact_log = contact_log or ContactLog.empty()

    def payment_verifications(
        self, policies: Iterable[Policy]
    ) -> list[PaymentVerificationNotification]:
        """Pending policies past their bank confirmation date.

        Sorted by priority (highest first), then business days overdue.
        """
        notifications = []
        for policy in policies:
            if policy.policy_status != PolicyStatus.PENDING or policy.first_payment_date is None:
                continue
            if not bank_confirmation_due(policy.first_payment_date, self.today):
                continue

            overdue = business_days_overdue(policy.first_payment_date, self.today)
            notifications.append(
                PaymentVerificationNotification(
                    policy_id=policy.id,
                    client_name=policy.client,
                    first_payment_date=policy.first_payment_date,
                    business_days_overdue=overdue,
                    priority=payment_priority(overdue),
                    confirmation_text=bank_confirmation_text(
                        policy.first_payment_date, self.today
                    ),
                )
            )

        return sorted(
            notifications,
            key=lambda n: (PRIORITY_RANK[n.priority], n.business_days_overdue),
            reverse=True,
        )

    def cancellation_follow_ups(
        self, policies: Iterable[Policy]
    ) -> list[CancellationFollowUpNotification]:
        """Cancelled policies on day 1 to 3 after cancellation, day 1 first."""
        notifications = []
        for policy in policies:
            lookup = resolve_cancellation(policy, self.today)
            if lookup is None:
                continue

            days = days_since_cancellation(lookup, self.today)
            if not 1 <= days <= FOLLOW_UP_DAYS:
                continue

            notifications.append(
                CancellationFollowUpNotification(
                    policy_id=policy.id,
                    client_name=policy.client,
                    cancelled_date=lookup.cancelled_on,
                    days_since_cancellation=days,
                    follow_up_day=days,
                    priority=Priority.URGENT if days == 1 else Priority.HIGH,
                    contacted_today=self.contact_log.contacted_on(policy.id, self.today),
                    last_contact_date=self.contact_log.last_contact_date(policy.id),
                    cancelled_date_inferred=lookup.inferred,
                )
            )

        return sorted(notifications, key=lambda n: n.follow_up_day)

    def generate(self, policies: Iterable[Policy]) -> list[AgentNotification]:
        """All notifications: follow-ups first, then payment verifications."""
        policy_list = list(policies)
        follow_ups = self.cancellation_follow_ups(policy_list)
        verifications = self.payment_verifications(policy_list)
        logger.debug(
            "notifications_generated",
            follow_ups=len(follow_ups),
            payment_verifications=len(verifications),
        )
        return [*follow_ups, *verifications]


def format_notification_message(notification: AgentNotification) -> str:
    if isinstance(notification, PaymentVerificationNotification):
        return (
            f"Bank confirmation needed for {notification.client_name} - "
            f"{notification.confirmation_text}"
        )
    remaining = FOLLOW_UP_DAYS + 1 - notification.follow_up_day
    return (
        f"Follow-up needed for {notification.client_name} - Day "
        f"{notification.follow_up_day} of cancellation retention "
        f"(you have {remaining} days remaining)"
    )


def notification_actions(notification: AgentNotification) -> list[dict[str, str]]:
    """Operator actions offered for a notification."""
    if isinstance(notification, PaymentVerificationNotification):
        return [
            {"label": "Mark Active", "action": "mark_active", "variant": "primary"},
            {"label": "Mark Cancelled", "action": "mark_cancelled", "variant": "danger"},
            {"label": "View Policy", "action": "view_policy", "variant": "secondary"},
        ]

    if notification.contacted_today:
        call = {"label": "Called Today", "action": "logged_contact", "variant": "secondary"}
    else:
        call = {"label": "Call Client", "action": "logged_contact", "variant": "primary"}
    return [
        call,
        {"label": "Reactivated", "action": "reactivated", "variant": "primary"},
        {"label": "View Policy", "action": "view_policy", "variant": "secondary"},
    ]


def notification_summary(notifications: Iterable[AgentNotification]) -> dict[str, int]:
    summary = {
        "total": 0,
        "payment_verifications": 0,
        "cancellation_follow_ups": 0,
        **{priority.value: 0 for priority in Priority},
    }
    for notification in notifications:
        summary["total"] += 1
        if isinstance(notification, PaymentVerificationNotification):
            summary["payment_verifications"] += 1
        else:
            summary["cancellation_follow_ups"] += 1
        summary[notification.priority.value] += 1
    return summary


def should_show_notifications(now: datetime) -> bool:
    """Business hours only: weekdays, 08:00 through 18:59.

    ``now`` must already be the agent's wall-clock time (see ``dates.local_now``).
    """
    if now.weekday() >= 5:
        return False
    return 8 <= now.hour <= 18
