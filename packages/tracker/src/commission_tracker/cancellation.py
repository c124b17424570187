"""How long ago a cancelled policy was cancelled.

Rows written before ``cancelled_date`` existed carry no cancellation date.
For those, the creation date stands in, but only while the row is recent
enough that the inference is meaningful. The two cases are distinct types so
callers can see which one they are handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from commission_tracker.dates import parse_date
from commission_tracker.models import Policy, PolicyStatus

# Legacy rows older than this are treated as having no usable cancellation date.
LEGACY_INFERENCE_WINDOW_DAYS = 7


@dataclass(frozen=True)
class HasCancelledDate:
    """The row records when it was cancelled."""

    cancelled_on: date
    inferred = False


@dataclass(frozen=True)
class LegacyInferredFromCreation:
    """Legacy row: cancellation date inferred from created_at."""

    cancelled_on: date
    inferred = True


CancellationLookup = HasCancelledDate | LegacyInferredFromCreation


def resolve_cancellation(policy: Policy, today: Any) -> CancellationLookup | None:
    """Cancellation date for a cancelled policy, or None when unknown.

    Returns None for policies that are not Cancelled, and for legacy rows
    created more than LEGACY_INFERENCE_WINDOW_DAYS before ``today``.
    """
    if policy.policy_status != PolicyStatus.CANCELLED:
        return None
    if policy.cancelled_date is not None:
        return HasCancelledDate(cancelled_on=policy.cancelled_date)

    created_on = policy.created_at.date()
    if (parse_date(today) - created_on).days > LEGACY_INFERENCE_WINDOW_DAYS:
        return None
    return LegacyInferredFromCreation(cancelled_on=created_on)


def days_since_cancellation(lookup: CancellationLookup, today: Any) -> int:
    return (parse_date(today) - lookup.cancelled_on).days
