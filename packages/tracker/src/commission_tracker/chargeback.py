"""Chargeback detection: commission clawed back after an early cancellation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from commission_tracker.cancellation import resolve_cancellation
from commission_tracker.models import Policy

CHARGEBACK_WINDOW_DAYS = 30

AlertLevel = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class ChargebackInfo:
    is_chargeback: bool
    days_to_cancel: int
    chargeback_amount: Decimal


@dataclass(frozen=True)
class ChargebackTotals:
    total_chargebacks: int
    chargeback_amount: Decimal
    chargeback_policies: tuple[Policy, ...]


@dataclass(frozen=True)
class ChargebackAlert:
    level: AlertLevel
    message: str
    chargeback_rate: float


_NOT_A_CHARGEBACK = ChargebackInfo(
    is_chargeback=False, days_to_cancel=0, chargeback_amount=Decimal("0")
)


def detect_chargeback(policy: Policy, today: Any) -> ChargebackInfo:
    """Classify a policy as a chargeback if cancelled within 30 days of creation.

    Uses the same cancellation-date rule as the follow-up notifications: a
    legacy row without ``cancelled_date`` counts only while it is recent
    enough for its creation date to stand in.
    """
    lookup = resolve_cancellation(policy, today)
    if lookup is None:
        return _NOT_A_CHARGEBACK

    days_to_cancel = (lookup.cancelled_on - policy.created_at.date()).days
    is_chargeback = days_to_cancel <= CHARGEBACK_WINDOW_DAYS
    return ChargebackInfo(
        is_chargeback=is_chargeback,
        days_to_cancel=days_to_cancel,
        chargeback_amount=policy.commission_due if is_chargeback else Decimal("0"),
    )


def calculate_chargebacks(policies: Iterable[Policy], today: Any) -> ChargebackTotals:
    members = tuple(
        policy for policy in policies if detect_chargeback(policy, today).is_chargeback
    )
    return ChargebackTotals(
        total_chargebacks=len(members),
        chargeback_amount=sum((policy.commission_due for policy in members), Decimal("0")),
        chargeback_policies=members,
    )


def chargeback_alert_level(policies: Sequence[Policy], today: Any) -> ChargebackAlert:
    """Grade the share of policies that became chargebacks."""
    if not policies:
        return ChargebackAlert(level="low", message="No policies to analyze", chargeback_rate=0.0)

    totals = calculate_chargebacks(policies, today)
    rate = totals.total_chargebacks / len(policies) * 100

    if rate >= 15:
        return ChargebackAlert(
            level="high",
            message=f"High chargeback rate ({rate:.1f}%). Consider improving client screening process.",
            chargeback_rate=rate,
        )
    if rate >= 8:
        return ChargebackAlert(
            level="medium",
            message=f"Moderate chargeback rate ({rate:.1f}%). Monitor client follow-up process.",
            chargeback_rate=rate,
        )
    return ChargebackAlert(
        level="low",
        message=f"Low chargeback rate ({rate:.1f}%). Good client retention.",
        chargeback_rate=rate,
    )
