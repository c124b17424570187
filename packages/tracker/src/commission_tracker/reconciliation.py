"""Payroll reconciliation: checking in-app policies against the payout spreadsheet.

For a selected payroll period the operator gives every policy exactly one
action. This module validates those choices, summarizes them, groups them
into outbound chat batches and works out which policies get a verification
timestamp. It holds no state and performs no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from commission_tracker.chargeback import detect_chargeback
from commission_tracker.dates import parse_date
from commission_tracker.errors import ValidationFailed
from commission_tracker.models import Policy, PolicyStatus
from commission_tracker.payroll import PayrollCalendar


class ReconciliationAction(str, Enum):
    ON_SPREADSHEET = "on_spreadsheet"
    MISSING_COMMISSION = "missing_commission"
    REQUEST_REMOVAL = "request_removal"


class ReconciliationPriority(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"


class NotificationGroupType(str, Enum):
    MISSING_COMMISSION = "missing_commission"
    REMOVAL_REQUEST = "removal_request"
    RECONCILIATION_COMPLETE = "reconciliation_complete"


@dataclass(frozen=True)
class PolicyReconciliationState:
    """The operator's choice for one policy."""

    policy_id: int
    action: ReconciliationAction | None = None
    priority: ReconciliationPriority = ReconciliationPriority.NORMAL
    removal_reason: str = ""
    notes: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> PolicyReconciliationState:
        raw_action = payload.get("action")
        try:
            action = ReconciliationAction(raw_action) if raw_action else None
            priority = ReconciliationPriority(payload.get("priority") or "normal")
        except ValueError as exc:
            raise ValidationFailed(
                "Invalid reconciliation entry",
                problems=[f"policy {payload.get('policy_id')}: {exc}"],
            ) from exc
        return cls(
            policy_id=int(payload["policy_id"]),
            action=action,
            priority=priority,
            removal_reason=str(payload.get("removal_reason") or ""),
            notes=str(payload.get("notes") or ""),
        )


@dataclass(frozen=True)
class ReconciliationSummary:
    on_spreadsheet: int
    missing_commission: int
    request_removal: int
    total_policies: int
    total_commission: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "on_spreadsheet": self.on_spreadsheet,
            "missing_commission": self.missing_commission,
            "request_removal": self.request_removal,
            "total_policies": self.total_policies,
            "total_commission": str(self.total_commission),
        }


@dataclass(frozen=True)
class NotificationGroupEntry:
    policy_id: int
    client: str
    policy_number: str
    carrier: str
    product: str
    commission: Decimal
    priority: ReconciliationPriority | None = None
    reason: str | None = None
    status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "policy_id": self.policy_id,
            "client": self.client,
            "policy_number": self.policy_number,
            "carrier": self.carrier,
            "product": self.product,
            "commission": str(self.commission),
        }
        if self.priority is not None:
            data["priority"] = self.priority.value
        if self.reason is not None:
            data["reason"] = self.reason
        if self.status is not None:
            data["status"] = self.status
        return data


@dataclass(frozen=True)
class NotificationGroup:
    """One outbound chat batch."""

    type: NotificationGroupType
    policies: tuple[NotificationGroupEntry, ...]
    total_amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "policies": [entry.to_dict() for entry in self.policies],
            "total_amount": str(self.total_amount),
        }


StateMap = Mapping[int, PolicyReconciliationState]


def index_states(states: Iterable[PolicyReconciliationState]) -> dict[int, PolicyReconciliationState]:
    """Key states by policy id; a policy listed twice is a validation error."""
    indexed: dict[int, PolicyReconciliationState] = {}
    duplicates = []
    for state in states:
        if state.policy_id in indexed:
            duplicates.append(state.policy_id)
        indexed[state.policy_id] = state
    if duplicates:
        raise ValidationFailed(
            "Policies listed more than once",
            problems=[f"policy {policy_id}: listed more than once" for policy_id in duplicates],
        )
    return indexed


def submission_problems(policies: Sequence[Policy], states: StateMap) -> list[str]:
    """Every reason the submission cannot be applied yet."""
    problems = []
    period_ids = {policy.id for policy in policies}
    for policy in policies:
        state = states.get(policy.id)
        if state is None or state.action is None:
            problems.append(f"policy {policy.id} ({policy.client}): no action selected")
        elif (
            state.action == ReconciliationAction.REQUEST_REMOVAL
            and not state.removal_reason.strip()
        ):
            problems.append(f"policy {policy.id} ({policy.client}): removal reason is required")
    for policy_id in sorted(set(states) - period_ids):
        problems.append(f"policy {policy_id}: not part of this payroll period")
    return problems


def validate_submission(policies: Sequence[Policy], states: StateMap) -> None:
    """Reject the whole submission unless every policy is validly actioned.

    Raises:
        ValidationFailed: Listing each unactioned policy and each removal
            request without a reason. Nothing is applied in that case.
    """
    problems = submission_problems(policies, states)
    if problems:
        raise ValidationFailed(
            f"Reconciliation incomplete: {len(problems)} problem(s)", problems=problems
        )


def summarize(policies: Sequence[Policy], states: StateMap) -> ReconciliationSummary:
    counts = {action: 0 for action in ReconciliationAction}
    for policy in policies:
        state = states.get(policy.id)
        if state is not None and state.action is not None:
            counts[state.action] += 1
    return ReconciliationSummary(
        on_spreadsheet=counts[ReconciliationAction.ON_SPREADSHEET],
        missing_commission=counts[ReconciliationAction.MISSING_COMMISSION],
        request_removal=counts[ReconciliationAction.REQUEST_REMOVAL],
        total_policies=len(policies),
        total_commission=sum((policy.commission_due for policy in policies), Decimal("0")),
    )


def _entry(policy: Policy, **extra: Any) -> NotificationGroupEntry:
    return NotificationGroupEntry(
        policy_id=policy.id,
        client=policy.client,
        policy_number=policy.policy_number,
        carrier=policy.carrier,
        product=policy.product,
        commission=policy.commission_due,
        **extra,
    )


def _group(type_: NotificationGroupType, entries: list[NotificationGroupEntry]) -> NotificationGroup:
    return NotificationGroup(
        type=type_,
        policies=tuple(entries),
        total_amount=sum((entry.commission for entry in entries), Decimal("0")),
    )


def build_notification_groups(
    policies: Sequence[Policy], states: StateMap, send_completion: bool = False
) -> list[NotificationGroup]:
    """Group actioned policies into chat batches.

    Empty batches are omitted. The completion batch is only built when
    requested and at least one policy was confirmed on the spreadsheet.
    """
    missing: list[NotificationGroupEntry] = []
    removals: list[NotificationGroupEntry] = []
    confirmed: list[NotificationGroupEntry] = []

    for policy in policies:
        state = states.get(policy.id)
        if state is None or state.action is None:
            continue
        if state.action == ReconciliationAction.MISSING_COMMISSION:
            missing.append(_entry(policy, priority=state.priority))
        elif state.action == ReconciliationAction.REQUEST_REMOVAL:
            removals.append(_entry(policy, reason=state.removal_reason.strip()))
        else:
            confirmed.append(_entry(policy, status=policy.policy_status.value))

    groups = []
    if missing:
        groups.append(_group(NotificationGroupType.MISSING_COMMISSION, missing))
    if removals:
        groups.append(_group(NotificationGroupType.REMOVAL_REQUEST, removals))
    if send_completion and confirmed:
        groups.append(_group(NotificationGroupType.RECONCILIATION_COMPLETE, confirmed))
    return groups


def policies_to_verify(policies: Sequence[Policy], states: StateMap) -> list[Policy]:
    """Policies confirmed on the spreadsheet that still lack a verification time."""
    return [
        policy
        for policy in policies
        if (state := states.get(policy.id)) is not None
        and state.action == ReconciliationAction.ON_SPREADSHEET
        and not policy.is_verified
    ]


@dataclass(frozen=True)
class PeriodBreakdown:
    """Verified, unverified and chargeback totals for one payroll period."""

    period_start: date
    period_end: date
    payment_date: date
    verified_count: int
    verified_amount: Decimal
    unverified_count: int
    unverified_amount: Decimal
    chargeback_count: int
    chargeback_amount: Decimal
    policies: tuple[Policy, ...] = field(default=(), compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "payment_date": self.payment_date.isoformat(),
            "verified_count": self.verified_count,
            "verified_amount": str(self.verified_amount),
            "unverified_count": self.unverified_count,
            "unverified_amount": str(self.unverified_amount),
            "chargeback_count": self.chargeback_count,
            "chargeback_amount": str(self.chargeback_amount),
            "policy_ids": [policy.id for policy in self.policies],
        }


def period_breakdown(
    policies: Iterable[Policy], period_end: Any, calendar: PayrollCalendar, today: Any
) -> PeriodBreakdown:
    """Split a period's policies into verified, unverified and chargebacks.

    Cancelled policies count only toward chargebacks.
    """
    period = calendar.period_ending(period_end)
    members = calendar.policies_in_period(policies, period_end)
    zero = Decimal("0")

    live = [policy for policy in members if policy.policy_status != PolicyStatus.CANCELLED]
    verified = [policy for policy in live if policy.is_verified]
    unverified = [policy for policy in live if not policy.is_verified]
    chargebacks = [detect_chargeback(policy, today) for policy in members]
    chargebacks = [info for info in chargebacks if info.is_chargeback]

    return PeriodBreakdown(
        period_start=period.start,
        period_end=period.end,
        payment_date=period.payment.date,
        verified_count=len(verified),
        verified_amount=sum((policy.commission_due for policy in verified), zero),
        unverified_count=len(unverified),
        unverified_amount=sum((policy.commission_due for policy in unverified), zero),
        chargeback_count=len(chargebacks),
        chargeback_amount=sum((info.chargeback_amount for info in chargebacks), zero),
        policies=tuple(members),
    )


# Spreadsheet follow-up heuristics for policies outside a reconciliation run.
VERIFIED_FOLLOW_UP_DAYS = 30
UNVERIFIED_FOLLOW_UP_DAYS = 45

IssueType = Literal["verified_missing", "payment_delay"]
Severity = Literal["low", "medium", "high"]
_SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class ReconciliationIssue:
    type: IssueType
    policy: Policy
    message: str
    severity: Severity
    days_overdue: int
    suggested_action: str

    @property
    def id(self) -> str:
        return f"{self.type}_{self.policy.id}"

    def formatted(self) -> str:
        info = f"{self.policy.client} ({self.policy.policy_number})"
        amount = f"${self.policy.commission_due:.2f}"
        if self.type == "verified_missing":
            days = self.days_overdue + VERIFIED_FOLLOW_UP_DAYS
            return f"{info}: Verified {days} days ago ({amount}) - confirm on spreadsheet"
        days = self.days_overdue + UNVERIFIED_FOLLOW_UP_DAYS
        return f"{info}: {days} days old, unverified ({amount}) - check payment status"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "policy_id": self.policy.id,
            "message": self.message,
            "severity": self.severity,
            "days_overdue": self.days_overdue,
            "suggested_action": self.suggested_action,
        }


def find_reconciliation_issues(
    policies: Iterable[Policy], today: Any
) -> list[ReconciliationIssue]:
    """Active policies that look stale relative to the payout spreadsheet."""
    current = parse_date(today)
    issues = []
    for policy in policies:
        if policy.policy_status != PolicyStatus.ACTIVE:
            continue

        if policy.date_policy_verified is not None:
            days = (current - policy.date_policy_verified.date()).days
            if days > VERIFIED_FOLLOW_UP_DAYS:
                issues.append(
                    ReconciliationIssue(
                        type="verified_missing",
                        policy=policy,
                        message=f"Policy verified {days} days ago but may need spreadsheet reconciliation",
                        severity="high" if days > 60 else "medium",
                        days_overdue=days - VERIFIED_FOLLOW_UP_DAYS,
                        suggested_action="Confirm policy appears on latest commission spreadsheet",
                    )
                )
        else:
            days = (current - policy.created_at.date()).days
            if days > UNVERIFIED_FOLLOW_UP_DAYS:
                issues.append(
                    ReconciliationIssue(
                        type="payment_delay",
                        policy=policy,
                        message=f"Policy created {days} days ago but never verified",
                        severity="high" if days > 90 else "medium",
                        days_overdue=days - UNVERIFIED_FOLLOW_UP_DAYS,
                        suggested_action="Check carrier portal and verify commission status",
                    )
                )

    return sorted(
        issues,
        key=lambda issue: (_SEVERITY_RANK[issue.severity], issue.days_overdue),
        reverse=True,
    )


def reconciliation_overview(policies: Sequence[Policy], today: Any) -> dict[str, Any]:
    """Verified/unverified totals across non-cancelled policies, with advice."""
    live = [policy for policy in policies if policy.policy_status != PolicyStatus.CANCELLED]
    verified = [policy for policy in live if policy.is_verified]
    unverified = [policy for policy in live if not policy.is_verified]
    issues = find_reconciliation_issues(live, today)

    recommendations = []
    if len(unverified) > len(verified):
        recommendations.append(
            "Consider increasing verification frequency to stay current with commission payments"
        )
    if any(issue.severity == "high" for issue in issues):
        recommendations.append("Prioritize resolving high-severity reconciliation issues immediately")
    if sum(1 for issue in issues if issue.type == "verified_missing") > 3:
        recommendations.append("Review commission spreadsheet reconciliation process with your team")

    return {
        "total_verified": len(verified),
        "total_unverified": len(unverified),
        "verified_amount": str(sum((p.commission_due for p in verified), Decimal("0"))),
        "unverified_amount": str(sum((p.commission_due for p in unverified), Decimal("0"))),
        "issues": [issue.to_dict() for issue in issues],
        "recommendations": recommendations,
    }
