"""Tests for tenure-based commission rates."""

from datetime import date
from decimal import Decimal

import pytest

from commission_tracker.commission import (
    STARTING_RATE,
    TENURED_RATE,
    calculate_commission_rate,
    months_between,
    should_update_commission_rate,
)


class TestMonthsBetween:
    def test_whole_months(self):
        assert months_between(date(2025, 1, 15), date(2025, 7, 15)) == 6

    def test_partial_month_not_counted(self):
        assert months_between(date(2025, 1, 15), date(2025, 7, 14)) == 5

    def test_never_negative(self):
        assert months_between(date(2025, 7, 1), date(2025, 1, 1)) == 0


class TestCalculateCommissionRate:
    """Tests for calculate_commission_rate."""

    def test_no_start_date_is_starting_rate(self):
        assert calculate_commission_rate(None, "2025-08-01") == STARTING_RATE

    def test_new_agent(self):
        assert calculate_commission_rate("2025-05-01", "2025-08-01") == Decimal("0.05")

    def test_tenured_agent(self):
        assert calculate_commission_rate("2025-01-01", "2025-08-01") == TENURED_RATE

    def test_exactly_six_months(self):
        assert calculate_commission_rate("2025-02-01", "2025-08-01") == Decimal("0.20")


class TestShouldUpdateCommissionRate:
    """Tests for the month in which the rate switches."""

    @pytest.mark.parametrize(
        "start,today,expected",
        [
            ("2025-02-01", "2025-08-01", True),
            ("2025-02-01", "2025-08-31", True),
            ("2025-02-01", "2025-07-31", False),
            ("2025-01-01", "2025-08-01", False),
            (None, "2025-08-01", False),
        ],
    )
    def test_update_window(self, start, today, expected):
        assert should_update_commission_rate(start, today) is expected
