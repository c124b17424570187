"""Business-day arithmetic for bank confirmation windows.

Weekends (Saturday and Sunday) are skipped; holidays are not modeled.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from commission_tracker.dates import parse_date

# Days after the first premium payment before the bank can confirm it.
BANK_CONFIRMATION_BUSINESS_DAYS = 2


def is_weekend(day: date) -> bool:
    """Return True for Saturday and Sunday."""
    return day.weekday() >= 5


def add_business_days(start: Any, business_days: int) -> date:
    """Advance a date by the given number of weekdays.

    Args:
        start: Starting date (date, datetime or ISO string).
        business_days: Number of weekdays to add; values <= 0 return the start.

    Returns:
        The resulting date. For a positive count it is always a weekday.
    """
    current = parse_date(start)
    added = 0
    while added < business_days:
        current += timedelta(days=1)
        if not is_weekend(current):
            added += 1
    return current


def business_days_between(start: Any, end: Any) -> int:
    """Count weekdays after ``start`` up to and including ``end``."""
    current = parse_date(start)
    last = parse_date(end)
    count = 0
    while current < last:
        current += timedelta(days=1)
        if not is_weekend(current):
            count += 1
    return count


def bank_confirmation_date(first_payment_date: Any) -> date:
    """Date on which the first premium payment should be verifiable."""
    return add_business_days(first_payment_date, BANK_CONFIRMATION_BUSINESS_DAYS)


def bank_confirmation_due(first_payment_date: Any, today: Any) -> bool:
    """True once two business days have passed since the first payment."""
    return parse_date(today) >= bank_confirmation_date(first_payment_date)


def business_days_overdue(first_payment_date: Any, today: Any) -> int:
    """Business days elapsed since confirmation became due (0 if not yet due)."""
    if not bank_confirmation_due(first_payment_date, today):
        return 0
    return business_days_between(bank_confirmation_date(first_payment_date), today)


def bank_confirmation_text(first_payment_date: Any, today: Any) -> str:
    """Human-readable status of the bank confirmation window."""
    current = parse_date(today)
    confirmation_day = bank_confirmation_date(first_payment_date)

    if current < confirmation_day:
        days_until = business_days_between(current, confirmation_day)
        if days_until == 1:
            return "Bank confirmation due tomorrow"
        return f"Bank confirmation due in {days_until} business days"

    if current == confirmation_day:
        return "Bank confirmation due today"

    overdue = business_days_overdue(first_payment_date, current)
    if overdue == 1:
        return "Bank confirmation overdue by 1 business day"
    return f"Bank confirmation overdue by {overdue} business days"
