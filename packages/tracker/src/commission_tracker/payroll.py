"""Commission payroll calendar lookups and per-period expectations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from commission_tracker.config.payroll_calendar import (
    PayrollPaymentDate,
    PayrollTable,
    get_payroll_table,
)
from commission_tracker.dates import parse_date
from commission_tracker.errors import UnknownPeriod
from commission_tracker.models import Policy


@dataclass(frozen=True)
class PayrollPeriod:
    """A payment entry together with the creation-date window it pays for.

    ``start`` is exclusive (the previous period end), except for the first
    period of the table which starts on January 1 inclusive.
    """

    payment: PayrollPaymentDate
    start: date
    start_inclusive: bool = False

    @property
    def end(self) -> date:
        return self.payment.period_end

    def contains(self, day: date) -> bool:
        after_start = day >= self.start if self.start_inclusive else day > self.start
        return after_start and day <= self.end


@dataclass(frozen=True)
class PeriodExpectation:
    """Unpaid commission expected for one payroll period."""

    period: PayrollPeriod
    expected_amount: Decimal
    policy_count: int
    policies: tuple[Policy, ...]


@dataclass(frozen=True)
class PipelineEntry:
    """One upcoming payment in the commission pipeline view."""

    payment_date: date
    period_end: date
    expected_commission: Decimal
    policy_count: int
    days_until_payment: int
    policies: tuple[Policy, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment_date": self.payment_date.isoformat(),
            "period_end": self.period_end.isoformat(),
            "expected_commission": str(self.expected_commission),
            "policy_count": self.policy_count,
            "days_until_payment": self.days_until_payment,
            "policy_ids": [policy.id for policy in self.policies],
        }


class PayrollCalendar:
    """Immutable view over a year-keyed payroll table.

    Every lookup first checks that the requested date falls inside a
    tabulated year; anything else raises UnknownPeriod instead of silently
    reusing a neighbouring year.
    """

    def __init__(self, table: PayrollTable):
        self._table = table
        self._entries: tuple[PayrollPaymentDate, ...] = tuple(
            entry for year in sorted(table.years) for entry in table.years[year]
        )
        self._periods: tuple[PayrollPeriod, ...] = self._build_periods()

    @classmethod
    def default(cls) -> PayrollCalendar:
        """Calendar built from the configured YAML table."""
        return cls(get_payroll_table())

    @property
    def version(self) -> int:
        return self._table.version

    @property
    def years(self) -> tuple[int, ...]:
        return tuple(self._table.years)

    @property
    def entries(self) -> tuple[PayrollPaymentDate, ...]:
        return self._entries

    def _build_periods(self) -> tuple[PayrollPeriod, ...]:
        periods: list[PayrollPeriod] = []
        previous: PayrollPaymentDate | None = None
        for entry in self._entries:
            contiguous = previous is not None and previous.date.year >= entry.date.year - 1
            if previous is not None and contiguous:
                periods.append(PayrollPeriod(payment=entry, start=previous.period_end))
            else:
                periods.append(
                    PayrollPeriod(
                        payment=entry,
                        start=date(entry.date.year, 1, 1),
                        start_inclusive=True,
                    )
                )
            previous = entry
        return tuple(periods)

    def _require_covered(self, day: date) -> None:
        if day.year not in self._table.years:
            covered = ", ".join(str(year) for year in self.years)
            raise UnknownPeriod(
                f"No payroll calendar for {day.year} (tabulated: {covered})",
                details={"date": day.isoformat(), "years": list(self.years)},
            )

    def next_payment_date(self, from_date: Any) -> PayrollPaymentDate | None:
        """First payment on or after ``from_date`` (None past the final entry)."""
        day = parse_date(from_date)
        self._require_covered(day)
        for entry in self._entries:
            if entry.date >= day:
                return entry
        return None

    def previous_payment_date(self, from_date: Any) -> PayrollPaymentDate | None:
        """Last payment strictly before ``from_date``."""
        day = parse_date(from_date)
        self._require_covered(day)
        for entry in reversed(self._entries):
            if entry.date < day:
                return entry
        return None

    def payment_dates_for_month(self, year: int, month: int) -> list[PayrollPaymentDate]:
        self._require_covered(date(year, month, 1))
        return [
            entry
            for entry in self._table.years[year]
            if entry.date.month == month
        ]

    def period_for_date(self, day: Any) -> PayrollPeriod:
        """Payroll period whose window contains ``day``.

        Raises:
            UnknownPeriod: If the date precedes the table or follows the last
                tabulated period end.
        """
        target = parse_date(day)
        self._require_covered(target)
        for period in self._periods:
            if period.contains(target):
                return period
        raise UnknownPeriod(
            f"{target.isoformat()} is after the last tabulated period end",
            details={"date": target.isoformat()},
        )

    def period_ending(self, period_end: Any) -> PayrollPeriod:
        """The period with exactly this period-end date."""
        end = parse_date(period_end)
        for period in self._periods:
            if period.end == end:
                return period
        raise UnknownPeriod(
            f"No payroll period ends on {end.isoformat()}",
            details={"period_end": end.isoformat()},
        )

    def period_start_for(self, period_end: Any) -> date:
        return self.period_ending(period_end).start

    def upcoming_payment_periods(self, today: Any, count: int = 3) -> list[PayrollPaymentDate]:
        """The next ``count`` payments on or after ``today``."""
        day = parse_date(today)
        self._require_covered(day)
        return [entry for entry in self._entries if entry.date >= day][: max(count, 0)]

    def expected_commission_for_period(
        self, policies: Iterable[Policy], period_end: Any
    ) -> PeriodExpectation:
        """Unpaid commission for policies created within the period.

        The upper bound is inclusive. Membership ends when payment is
        recorded, not when the period closes.
        """
        period = self.period_ending(period_end)
        members = tuple(
            policy
            for policy in policies
            if period.contains(policy.created_at.date()) and not policy.is_paid
        )
        return PeriodExpectation(
            period=period,
            expected_amount=sum((policy.commission_due for policy in members), Decimal("0")),
            policy_count=len(members),
            policies=members,
        )

    def policies_in_period(self, policies: Iterable[Policy], period_end: Any) -> list[Policy]:
        """All policies created within the period, paid or not."""
        period = self.period_ending(period_end)
        return [policy for policy in policies if period.contains(policy.created_at.date())]

    def commission_pipeline(
        self, policies: Sequence[Policy], today: Any, count: int = 6
    ) -> list[PipelineEntry]:
        """Expected unpaid commission for each of the next ``count`` payments."""
        day = parse_date(today)
        pipeline = []
        for payment in self.upcoming_payment_periods(day, count):
            expectation = self.expected_commission_for_period(policies, payment.period_end)
            pipeline.append(
                PipelineEntry(
                    payment_date=payment.date,
                    period_end=payment.period_end,
                    expected_commission=expectation.expected_amount,
                    policy_count=expectation.policy_count,
                    days_until_payment=max(0, (payment.date - day).days),
                    policies=expectation.policies,
                )
            )
        return pipeline

    def is_reconciliation_window(self, today: Any) -> bool:
        """True on the two days before the next payment (Wed/Thu before a Friday)."""
        day = parse_date(today)
        upcoming = self.next_payment_date(day)
        if upcoming is None:
            return False
        return day in (upcoming.date - timedelta(days=2), upcoming.date - timedelta(days=1))
