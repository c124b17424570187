"""Commission rate tiers based on agent tenure."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from commission_tracker.dates import parse_date, parse_optional_date

STARTING_RATE = Decimal("0.05")
TENURED_RATE = Decimal("0.20")
TENURE_MONTHS = 6


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start`` to ``end`` (never negative)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def calculate_commission_rate(start_date: Any, today: Any) -> Decimal:
    """5% for the first six months of tenure (or without a start date), then 20%."""
    start = parse_optional_date(start_date)
    if start is None:
        return STARTING_RATE
    if months_between(start, parse_date(today)) >= TENURE_MONTHS:
        return TENURED_RATE
    return STARTING_RATE


def should_update_commission_rate(start_date: Any, today: Any) -> bool:
    """True during the month in which the agent completes six months."""
    start = parse_optional_date(start_date)
    if start is None:
        return False
    return months_between(start, parse_date(today)) == TENURE_MONTHS
