"""Payroll calendar loader.

Payment dates are operational data decided upstream, so they live in YAML
(``payroll_calendar.yaml``) keyed by year rather than being computed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from commission_tracker.config.settings import get_settings

DEFAULT_CALENDAR_PATH = Path(__file__).resolve().parent / "payroll_calendar.yaml"

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


@dataclass(frozen=True)
class PayrollPaymentDate:
    """One payroll cycle: the pay date and the last creation date it covers."""

    date: date
    day_of_week: str
    payment_type: str
    period_end: date

    def to_dict(self) -> dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "day_of_week": self.day_of_week,
            "payment_type": self.payment_type,
            "period_end": self.period_end.isoformat(),
        }


@dataclass(frozen=True)
class PayrollTable:
    """Parsed calendar file: a version tag and the entries for each year."""

    version: int
    years: dict[int, tuple[PayrollPaymentDate, ...]]


def _parse_day(value: Any, label: str) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"{label} must be YYYY-MM-DD, got {value!r}") from exc
    raise ValueError(f"{label} must be a date, got {value!r}")


def _parse_entry(year: int, idx: int, item: Any) -> PayrollPaymentDate:
    label = f"years[{year}][{idx}]"
    if not isinstance(item, dict):
        raise ValueError(f"{label} must be a mapping")

    pay_date = _parse_day(item.get("date"), f"{label}.date")
    period_end = _parse_day(item.get("period_end"), f"{label}.period_end")
    if pay_date.year != year:
        raise ValueError(f"{label}.date {pay_date} is not in {year}")
    if period_end > pay_date:
        raise ValueError(f"{label}.period_end {period_end} is after the pay date {pay_date}")

    weekday = WEEKDAY_NAMES[pay_date.weekday()]
    day_of_week = str(item.get("day_of_week") or weekday)
    if day_of_week.strip().lower() != weekday.lower():
        raise ValueError(f"{label}.day_of_week {day_of_week!r} does not match {pay_date} ({weekday})")

    return PayrollPaymentDate(
        date=pay_date,
        day_of_week=weekday,
        payment_type=str(item.get("payment_type") or "Commissions Pay Date"),
        period_end=period_end,
    )


def parse_payroll_table(data: Any) -> PayrollTable:
    """Validate raw YAML data and build a PayrollTable."""
    if not isinstance(data, dict):
        raise ValueError("payroll calendar must be a mapping with 'years'")

    raw_years = data.get("years")
    if not isinstance(raw_years, dict) or not raw_years:
        raise ValueError("payroll calendar 'years' must be a non-empty mapping")

    years: dict[int, tuple[PayrollPaymentDate, ...]] = {}
    for raw_year, items in raw_years.items():
        try:
            year = int(raw_year)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid payroll year {raw_year!r}") from exc
        if not isinstance(items, list) or not items:
            raise ValueError(f"years[{year}] must be a non-empty list")

        entries = sorted(
            (_parse_entry(year, idx, item) for idx, item in enumerate(items)),
            key=lambda entry: entry.date,
        )
        for previous, current in zip(entries, entries[1:]):
            if current.date == previous.date:
                raise ValueError(f"years[{year}] lists {current.date} twice")
            if current.period_end <= previous.period_end:
                raise ValueError(f"years[{year}] period ends are not increasing at {current.date}")
        years[year] = tuple(entries)

    return PayrollTable(version=int(data.get("version", 1)), years=dict(sorted(years.items())))


def load_payroll_table(path: Path | None = None) -> PayrollTable:
    """Read and parse a payroll calendar YAML file."""
    calendar_path = path or get_settings().payroll_calendar_path or DEFAULT_CALENDAR_PATH
    raw = Path(calendar_path).read_text(encoding="utf-8")
    return parse_payroll_table(yaml.safe_load(raw))


@lru_cache
def get_payroll_table() -> PayrollTable:
    """Payroll table loaded once at startup."""
    return load_payroll_table()
