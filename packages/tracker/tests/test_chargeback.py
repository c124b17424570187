"""Tests for cancellation lookup and chargeback detection."""

from datetime import date
from decimal import Decimal

import pytest

from commission_tracker.cancellation import (
    HasCancelledDate,
    LegacyInferredFromCreation,
    days_since_cancellation,
    resolve_cancellation,
)
from commission_tracker.chargeback import (
    calculate_chargebacks,
    chargeback_alert_level,
    detect_chargeback,
)

TODAY = date(2024, 3, 1)


class TestResolveCancellation:
    """Tests for the shared cancellation-date rule."""

    def test_not_cancelled_is_none(self, make_policy):
        assert resolve_cancellation(make_policy(policy_status="Active"), TODAY) is None

    def test_recorded_date_wins(self, make_policy):
        policy = make_policy(
            policy_status="Cancelled",
            created_at="2024-01-01T09:00:00+00:00",
            cancelled_date="2024-01-20",
        )
        lookup = resolve_cancellation(policy, TODAY)
        assert isinstance(lookup, HasCancelledDate)
        assert lookup.cancelled_on == date(2024, 1, 20)
        assert lookup.inferred is False

    def test_recent_legacy_row_inferred_from_creation(self, make_policy):
        policy = make_policy(policy_status="Cancelled", created_at="2024-02-26T09:00:00+00:00")
        lookup = resolve_cancellation(policy, TODAY)
        assert isinstance(lookup, LegacyInferredFromCreation)
        assert lookup.cancelled_on == date(2024, 2, 26)
        assert days_since_cancellation(lookup, TODAY) == 4

    def test_old_legacy_row_is_unknown(self, make_policy):
        policy = make_policy(policy_status="Cancelled", created_at="2024-01-15T09:00:00+00:00")
        assert resolve_cancellation(policy, TODAY) is None


class TestDetectChargeback:
    """Tests for detect_chargeback."""

    def test_cancelled_within_thirty_days(self, make_policy):
        policy = make_policy(
            policy_status="Cancelled",
            created_at="2024-01-01T09:00:00+00:00",
            cancelled_date="2024-01-20",
        )
        info = detect_chargeback(policy, TODAY)
        assert info.is_chargeback is True
        assert info.days_to_cancel == 19
        assert info.chargeback_amount == Decimal("240.00")

    def test_exactly_thirty_days_is_chargeback(self, make_policy):
        policy = make_policy(
            policy_status="Cancelled",
            created_at="2024-01-01T09:00:00+00:00",
            cancelled_date="2024-01-31",
        )
        assert detect_chargeback(policy, TODAY).is_chargeback is True

    def test_cancelled_after_thirty_days(self, make_policy):
        policy = make_policy(
            policy_status="Cancelled",
            created_at="2024-01-01T09:00:00+00:00",
            cancelled_date="2024-02-15",
        )
        info = detect_chargeback(policy, TODAY)
        assert info.is_chargeback is False
        assert info.days_to_cancel == 45
        assert info.chargeback_amount == Decimal("0")

    def test_active_policy_is_not_chargeback(self, make_policy):
        assert detect_chargeback(make_policy(policy_status="Active"), TODAY).is_chargeback is False

    def test_recent_legacy_row_counts(self, make_policy):
        policy = make_policy(policy_status="Cancelled", created_at="2024-02-28T09:00:00+00:00")
        info = detect_chargeback(policy, TODAY)
        assert info.is_chargeback is True
        assert info.days_to_cancel == 0

    def test_old_legacy_row_does_not_count(self, make_policy):
        policy = make_policy(policy_status="Cancelled", created_at="2024-01-02T09:00:00+00:00")
        assert detect_chargeback(policy, TODAY).is_chargeback is False


class TestChargebackTotals:
    """Tests for aggregation and alert grading."""

    def _portfolio(self, make_policy, chargebacks: int, total: int):
        policies = [
            make_policy(
                id=i + 1,
                policy_status="Cancelled",
                created_at="2024-01-01T09:00:00+00:00",
                cancelled_date="2024-01-10",
            )
            for i in range(chargebacks)
        ]
        policies.extend(
            make_policy(id=chargebacks + i + 1, policy_status="Active")
            for i in range(total - chargebacks)
        )
        return policies

    def test_calculate_chargebacks(self, make_policy):
        policies = self._portfolio(make_policy, chargebacks=2, total=5)
        totals = calculate_chargebacks(policies, TODAY)
        assert totals.total_chargebacks == 2
        assert totals.chargeback_amount == Decimal("480.00")
        assert [policy.id for policy in totals.chargeback_policies] == [1, 2]

    def test_no_policies_is_low(self):
        alert = chargeback_alert_level([], TODAY)
        assert alert.level == "low"
        assert alert.chargeback_rate == 0.0

    def test_low_rate(self, make_policy):
        alert = chargeback_alert_level(self._portfolio(make_policy, 1, 20), TODAY)
        assert alert.level == "low"
        assert "5.0%" in alert.message

    def test_medium_rate(self, make_policy):
        alert = chargeback_alert_level(self._portfolio(make_policy, 1, 10), TODAY)
        assert alert.level == "medium"

    def test_high_rate(self, make_policy):
        alert = chargeback_alert_level(self._portfolio(make_policy, 4, 20), TODAY)
        assert alert.level == "high"
        assert alert.chargeback_rate == pytest.approx(20.0)
