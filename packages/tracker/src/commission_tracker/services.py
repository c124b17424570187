"""Use cases that combine the repositories, domain rules and chat delivery.

Data changes are authoritative: once a write succeeds, a failed chat post
is logged and the call still succeeds.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

import structlog

from commission_tracker.chat import (
    ChatNotifier,
    cancellation_alert_message,
    commission_rate_change_message,
    new_policy_message,
    quick_post_message,
    reconciliation_alert_message,
    reconciliation_group_message,
)
from commission_tracker.commission import (
    STARTING_RATE,
    calculate_commission_rate,
    should_update_commission_rate,
)
from commission_tracker.dates import parse_date, parse_optional_date, utc_now
from commission_tracker.errors import TrackerError, ValidationFailed
from commission_tracker.models import (
    AgentIdentity,
    AgentProfile,
    Policy,
    PolicyDraft,
    PolicyStatus,
    compute_commission_due,
    parse_specializations,
)
from commission_tracker.notifications import AgentNotification, NotificationGenerator
from commission_tracker.payroll import PayrollCalendar
from commission_tracker.reconciliation import (
    NotificationGroup,
    PeriodBreakdown,
    PolicyReconciliationState,
    ReconciliationSummary,
    build_notification_groups,
    index_states,
    period_breakdown,
    policies_to_verify,
    summarize,
    validate_submission,
)
from commission_tracker.repositories import (
    AgentProfileRepository,
    ContactAttemptRepository,
    PolicyRepository,
    RateNotificationRepository,
)

logger = structlog.get_logger(__name__)


def _today(today: Any = None) -> date:
    return parse_date(today) if today is not None else utc_now().date()


class PolicyService:
    """Create and edit an agent's policies."""

    def __init__(self, policies: PolicyRepository, notifier: ChatNotifier):
        self.policies = policies
        self.notifier = notifier

    async def list_policies(self, agent: AgentIdentity) -> list[Policy]:
        return await self.policies.list_for_agent(agent.user_id)

    async def create(self, agent: AgentIdentity, payload: dict[str, Any]) -> Policy:
        """Validate and store a new policy, then announce it."""
        draft = PolicyDraft.from_payload(payload)
        if draft.policy_status == PolicyStatus.CANCELLED and draft.cancelled_date is None:
            draft = draft.with_changes(cancelled_date=_today())
        policy = await self.policies.create(agent.user_id, draft)
        await self.notifier.send(new_policy_message(policy, agent))
        return policy

    async def post_sale(self, agent: AgentIdentity, policy_id: int, acronym: str = "OCC") -> bool:
        policy = await self.policies.get(agent.user_id, policy_id)
        return await self.notifier.send(quick_post_message(policy, acronym, agent))

    async def update(
        self, agent: AgentIdentity, policy_id: int, payload: dict[str, Any], today: Any = None
    ) -> Policy:
        """Apply edits, keeping status, cancellation date and commission consistent.

        - Setting a verification date for the first time makes the policy Active.
        - Moving into Cancelled stamps ``cancelled_date``; moving out clears it.
        - ``commission_due`` is recomputed from premium and rate.
        """
        existing = await self.policies.get(agent.user_id, policy_id)
        merged = {**PolicyDraft.from_policy(existing).to_row(), **payload}
        merged.pop("commission_due", None)
        draft = PolicyDraft.from_payload(merged)

        if draft.date_policy_verified is not None and existing.date_policy_verified is None:
            draft = draft.with_changes(policy_status=PolicyStatus.ACTIVE)

        cancelling = (
            draft.policy_status == PolicyStatus.CANCELLED
            and existing.policy_status != PolicyStatus.CANCELLED
        )
        if cancelling:
            draft = draft.with_changes(cancelled_date=draft.cancelled_date or _today(today))
        elif draft.policy_status != PolicyStatus.CANCELLED:
            draft = draft.with_changes(cancelled_date=None)

        policy = await self.policies.save(agent.user_id, policy_id, draft)
        logger.info(
            "policy_updated",
            policy_id=policy_id,
            agent_id=agent.user_id,
            status=policy.policy_status.value,
        )
        if cancelling:
            await self.notifier.send(
                cancellation_alert_message(policy, policy.cancelled_date or _today(today), agent)
            )
        return policy

    async def mark_active(self, agent: AgentIdentity, policy_id: int) -> Policy:
        return await self.update(
            agent,
            policy_id,
            {"policy_status": PolicyStatus.ACTIVE.value, "date_commission_paid": None},
        )

    async def mark_cancelled(self, agent: AgentIdentity, policy_id: int, today: Any = None) -> Policy:
        return await self.update(
            agent, policy_id, {"policy_status": PolicyStatus.CANCELLED.value}, today=today
        )

    async def reactivate(self, agent: AgentIdentity, policy_id: int) -> Policy:
        return await self.update(agent, policy_id, {"policy_status": PolicyStatus.ACTIVE.value})

    async def mark_paid(self, agent: AgentIdentity, policy_id: int) -> Policy:
        return await self.policies.update(
            agent.user_id, policy_id, {"date_commission_paid": utc_now().isoformat()}
        )

    async def delete(self, agent: AgentIdentity, policy_id: int) -> None:
        await self.policies.delete(agent.user_id, policy_id)


class NotificationService:
    """Loads an agent's policies and contact log and runs the generator."""

    def __init__(self, policies: PolicyRepository, contacts: ContactAttemptRepository):
        self.policies = policies
        self.contacts = contacts

    async def for_agent(self, agent: AgentIdentity, today: Any = None) -> list[AgentNotification]:
        day = _today(today)
        policies = await self.policies.list_for_agent(agent.user_id)
        contact_log = await self.contacts.load_log(agent.user_id, day)
        return NotificationGenerator(day, contact_log).generate(policies)

    async def log_contact(self, agent: AgentIdentity, policy_id: int, today: Any = None) -> date:
        """Record a retention call on an owned policy."""
        await self.policies.get(agent.user_id, policy_id)
        attempt = await self.contacts.log(agent.user_id, policy_id, _today(today))
        return attempt.contact_date


@dataclass(frozen=True)
class ReconciliationResult:
    period_end: date
    payment_date: date
    summary: ReconciliationSummary
    verified_ids: tuple[int, ...]
    groups: tuple[NotificationGroup, ...]
    notifications_delivered: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_end": self.period_end.isoformat(),
            "payment_date": self.payment_date.isoformat(),
            "summary": self.summary.to_dict(),
            "verified_ids": list(self.verified_ids),
            "groups": [group.to_dict() for group in self.groups],
            "notifications_delivered": self.notifications_delivered,
        }


class ReconciliationService:
    """Apply an operator's reconciliation of one payroll period."""

    def __init__(
        self,
        policies: PolicyRepository,
        notifier: ChatNotifier,
        calendar: PayrollCalendar | None = None,
    ):
        self.policies = policies
        self.notifier = notifier
        self.calendar = calendar or PayrollCalendar.default()

    async def period_policies(self, agent: AgentIdentity, period_end: Any) -> list[Policy]:
        policies = await self.policies.list_for_agent(agent.user_id)
        return self.calendar.policies_in_period(policies, period_end)

    async def breakdown(
        self, agent: AgentIdentity, period_end: Any, today: Any = None
    ) -> PeriodBreakdown:
        policies = await self.policies.list_for_agent(agent.user_id)
        return period_breakdown(policies, period_end, self.calendar, _today(today))

    async def submit(
        self,
        agent: AgentIdentity,
        period_end: Any,
        states: Iterable[PolicyReconciliationState],
        send_completion: bool = False,
    ) -> ReconciliationResult:
        """Validate every choice, write verification times, then post batches.

        Nothing is written unless every policy in the period is actioned.
        Writes are applied one at a time; if one fails, the error propagates
        and the ids already written are logged.
        """
        period = self.calendar.period_ending(period_end)
        policies = await self.period_policies(agent, period.end)
        state_map = index_states(states)
        validate_submission(policies, state_map)

        verified_at = utc_now().isoformat()
        applied: list[int] = []
        for policy in policies_to_verify(policies, state_map):
            values: dict[str, Any] = {"date_policy_verified": verified_at}
            if policy.policy_status == PolicyStatus.PENDING:
                values["policy_status"] = PolicyStatus.ACTIVE.value
            try:
                await self.policies.update(agent.user_id, policy.id, values)
            except TrackerError:
                logger.error(
                    "reconciliation_partially_applied",
                    agent_id=agent.user_id,
                    period_end=period.end.isoformat(),
                    applied_ids=applied,
                    failed_id=policy.id,
                )
                raise
            applied.append(policy.id)

        groups = build_notification_groups(policies, state_map, send_completion)
        delivered = 0
        for group in groups:
            message = reconciliation_group_message(group, period.payment.date, agent)
            if await self.notifier.send(message):
                delivered += 1

        summary = summarize(policies, state_map)
        logger.info(
            "reconciliation_submitted",
            agent_id=agent.user_id,
            period_end=period.end.isoformat(),
            verified=len(applied),
            groups=len(groups),
            delivered=delivered,
        )
        return ReconciliationResult(
            period_end=period.end,
            payment_date=period.payment.date,
            summary=summary,
            verified_ids=tuple(applied),
            groups=tuple(groups),
            notifications_delivered=delivered,
        )

    async def send_reminder(self, agent: AgentIdentity, today: Any = None) -> bool:
        """Post the pre-payday reminder when today is in the reconciliation window."""
        day = _today(today)
        if not self.calendar.is_reconciliation_window(day):
            return False
        payment = self.calendar.next_payment_date(day)
        if payment is None:
            return False
        policies = await self.policies.list_for_agent(agent.user_id)
        expectation = self.calendar.expected_commission_for_period(policies, payment.period_end)
        message = reconciliation_alert_message(
            payment.date, payment.period_end, expectation.expected_amount, expectation.policy_count
        )
        return await self.notifier.send(message)


class AgentProfileService:
    """Read and save the caller's own profile."""

    def __init__(self, profiles: AgentProfileRepository):
        self.profiles = profiles

    async def get(self, agent: AgentIdentity) -> AgentProfile:
        return await self.profiles.get_or_blank(agent.user_id)

    async def save(self, agent: AgentIdentity, payload: dict[str, Any]) -> AgentProfile:
        current = await self.profiles.get_or_blank(agent.user_id)
        specializations = payload.get("specializations", current.specializations)
        profile = AgentProfile(
            id=current.id,
            user_id=agent.user_id,
            start_date=(
                parse_optional_date(payload["start_date"])
                if "start_date" in payload
                else current.start_date
            ),
            license_number=payload.get("license_number", current.license_number) or None,
            specializations=parse_specializations(specializations),
            notes=payload.get("notes", current.notes) or None,
            created_at=current.created_at,
        )
        return await self.profiles.upsert(profile)


@dataclass(frozen=True)
class RateUpdate:
    user_id: str
    old_rate: Decimal
    new_rate: Decimal
    policies_updated: int
    notification_sent: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "old_rate": str(self.old_rate),
            "new_rate": str(self.new_rate),
            "policies_updated": self.policies_updated,
            "notification_sent": self.notification_sent,
        }


class CommissionRateUpdater:
    """Moves agents from the starting rate to the tenured rate."""

    def __init__(
        self,
        profiles: AgentProfileRepository,
        policies: PolicyRepository,
        rate_notifications: RateNotificationRepository,
        notifier: ChatNotifier,
    ):
        self.profiles = profiles
        self.policies = policies
        self.rate_notifications = rate_notifications
        self.notifier = notifier

    async def run(self, today: Any = None) -> list[RateUpdate]:
        day = _today(today)
        profiles = await self.profiles.list_all()
        logger.info("commission_rate_check_started", profiles=len(profiles))

        updates = []
        for profile in profiles:
            if not should_update_commission_rate(profile.start_date, day):
                continue
            try:
                updates.append(await self._update_agent(profile, day))
            except TrackerError as e:
                logger.error("commission_rate_update_failed", agent_id=profile.user_id, error=str(e))

        logger.info("commission_rate_check_completed", agents_updated=len(updates))
        return updates

    async def _update_agent(self, profile: AgentProfile, day: date) -> RateUpdate:
        new_rate = calculate_commission_rate(profile.start_date, day)
        updated = 0
        for policy in await self.policies.list_at_rate(profile.user_id, STARTING_RATE):
            await self.policies.update(
                profile.user_id,
                policy.id,
                {
                    "commission_rate": str(new_rate),
                    "commission_due": str(
                        compute_commission_due(policy.commissionable_annual_premium, new_rate)
                    ),
                },
            )
            updated += 1

        sent = False
        if await self.rate_notifications.notified_recently(profile.user_id, day):
            logger.info("commission_rate_notification_skipped", agent_id=profile.user_id)
        else:
            sent = await self.notifier.send(
                commission_rate_change_message(STARTING_RATE, new_rate)
            )
            if sent:
                await self.rate_notifications.record(profile.user_id, STARTING_RATE, new_rate)

        logger.info(
            "commission_rate_updated",
            agent_id=profile.user_id,
            new_rate=str(new_rate),
            policies_updated=updated,
            notification_sent=sent,
        )
        return RateUpdate(
            user_id=profile.user_id,
            old_rate=STARTING_RATE,
            new_rate=new_rate,
            policies_updated=updated,
            notification_sent=sent,
        )


def parse_states(entries: Iterable[dict[str, Any]]) -> list[PolicyReconciliationState]:
    """Reconciliation entries from a request body."""
    try:
        return [PolicyReconciliationState.from_payload(entry) for entry in entries]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationFailed(
            "Invalid reconciliation entries", problems=[f"malformed entry: {exc}"]
        ) from exc
