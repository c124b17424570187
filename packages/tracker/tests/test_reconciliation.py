"""Tests for reconciliation validation, grouping and period reporting."""

from decimal import Decimal

import pytest

from commission_tracker.errors import UnknownPeriod, ValidationFailed
from commission_tracker.payroll import PayrollCalendar
from commission_tracker.reconciliation import (
    NotificationGroupType,
    PolicyReconciliationState,
    ReconciliationAction,
    ReconciliationPriority,
    build_notification_groups,
    find_reconciliation_issues,
    index_states,
    period_breakdown,
    policies_to_verify,
    reconciliation_overview,
    summarize,
    validate_submission,
)


def state(policy_id, action, **kwargs):
    return PolicyReconciliationState(
        policy_id=policy_id, action=ReconciliationAction(action) if action else None, **kwargs
    )


@pytest.fixture
def period_policies(make_policy):
    return [
        make_policy(id=1, client="Alpha", policy_number="POL-1"),
        make_policy(
            id=2,
            client="Bravo",
            policy_number="POL-2",
            commissionable_annual_premium="1000",
            commission_rate="0.10",
        ),
        make_policy(
            id=3,
            client="Charlie",
            policy_number="POL-3",
            policy_status="Active",
            date_policy_verified="2025-07-30T10:00:00+00:00",
        ),
    ]


class TestStateParsing:
    """Tests for PolicyReconciliationState.from_payload and index_states."""

    def test_from_payload(self):
        parsed = PolicyReconciliationState.from_payload(
            {"policy_id": "7", "action": "missing_commission", "priority": "urgent"}
        )
        assert parsed.policy_id == 7
        assert parsed.action is ReconciliationAction.MISSING_COMMISSION
        assert parsed.priority is ReconciliationPriority.URGENT

    def test_no_action_is_none(self):
        assert PolicyReconciliationState.from_payload({"policy_id": 1}).action is None

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationFailed):
            PolicyReconciliationState.from_payload({"policy_id": 1, "action": "ignore"})

    def test_duplicates_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            index_states([state(1, "on_spreadsheet"), state(1, "missing_commission")])
        assert exc_info.value.problems == ["policy 1: listed more than once"]


class TestValidateSubmission:
    """Tests for the all-or-nothing submission gate."""

    def test_unactioned_policy_blocks_submission(self, period_policies):
        states = index_states([state(1, "on_spreadsheet"), state(2, "missing_commission")])
        with pytest.raises(ValidationFailed) as exc_info:
            validate_submission(period_policies, states)
        assert exc_info.value.problems == ["policy 3 (Charlie): no action selected"]

    def test_removal_requires_reason(self, period_policies):
        states = index_states(
            [
                state(1, "on_spreadsheet"),
                state(2, "request_removal", removal_reason="   "),
                state(3, "on_spreadsheet"),
            ]
        )
        with pytest.raises(ValidationFailed) as exc_info:
            validate_submission(period_policies, states)
        assert exc_info.value.problems == ["policy 2 (Bravo): removal reason is required"]

    def test_foreign_policy_rejected(self, period_policies):
        states = index_states(
            [
                state(1, "on_spreadsheet"),
                state(2, "on_spreadsheet"),
                state(3, "on_spreadsheet"),
                state(99, "on_spreadsheet"),
            ]
        )
        with pytest.raises(ValidationFailed) as exc_info:
            validate_submission(period_policies, states)
        assert exc_info.value.problems == ["policy 99: not part of this payroll period"]

    def test_complete_submission_passes(self, period_policies):
        states = index_states(
            [
                state(1, "on_spreadsheet"),
                state(2, "request_removal", removal_reason="Duplicate entry"),
                state(3, "missing_commission"),
            ]
        )
        validate_submission(period_policies, states)


class TestSummaryAndGroups:
    """Tests for summarize, build_notification_groups and policies_to_verify."""

    @pytest.fixture
    def states(self):
        return index_states(
            [
                state(1, "on_spreadsheet"),
                state(2, "missing_commission", priority=ReconciliationPriority.URGENT),
                state(3, "request_removal", removal_reason=" Client never paid "),
            ]
        )

    def test_summarize(self, period_policies, states):
        summary = summarize(period_policies, states)
        assert summary.on_spreadsheet == 1
        assert summary.missing_commission == 1
        assert summary.request_removal == 1
        assert summary.total_policies == 3
        assert summary.total_commission == Decimal("580.00")

    def test_groups_without_completion(self, period_policies, states):
        groups = build_notification_groups(period_policies, states)
        assert [group.type for group in groups] == [
            NotificationGroupType.MISSING_COMMISSION,
            NotificationGroupType.REMOVAL_REQUEST,
        ]
        missing, removal = groups
        assert missing.total_amount == Decimal("100.00")
        assert missing.policies[0].priority is ReconciliationPriority.URGENT
        assert removal.policies[0].reason == "Client never paid"

    def test_completion_group_when_requested(self, period_policies, states):
        groups = build_notification_groups(period_policies, states, send_completion=True)
        completion = groups[-1]
        assert completion.type is NotificationGroupType.RECONCILIATION_COMPLETE
        assert completion.policies[0].status == "Pending"
        assert completion.to_dict()["total_amount"] == "240.00"

    def test_no_completion_without_confirmed_policies(self, period_policies):
        states = index_states(
            [
                state(1, "missing_commission"),
                state(2, "missing_commission"),
                state(3, "missing_commission"),
            ]
        )
        groups = build_notification_groups(period_policies, states, send_completion=True)
        assert [group.type for group in groups] == [NotificationGroupType.MISSING_COMMISSION]

    def test_policies_to_verify_skips_already_verified(self, period_policies):
        states = index_states(
            [state(1, "on_spreadsheet"), state(2, "missing_commission"), state(3, "on_spreadsheet")]
        )
        assert [policy.id for policy in policies_to_verify(period_policies, states)] == [1]


class TestPeriodBreakdown:
    """Tests for period_breakdown."""

    def test_breakdown(self, make_policy):
        calendar = PayrollCalendar.default()
        policies = [
            make_policy(id=1, policy_status="Active", date_policy_verified="2025-08-06T10:00:00+00:00"),
            make_policy(id=2),
            make_policy(
                id=3,
                policy_status="Cancelled",
                created_at="2025-07-25T10:00:00+00:00",
                cancelled_date="2025-08-05",
            ),
            make_policy(id=4, created_at="2025-06-01T10:00:00+00:00"),
        ]
        breakdown = period_breakdown(policies, "2025-08-01", calendar, "2025-08-06")
        assert breakdown.verified_count == 1
        assert breakdown.unverified_count == 1
        assert breakdown.unverified_amount == Decimal("240.00")
        assert breakdown.chargeback_count == 1
        assert breakdown.chargeback_amount == Decimal("240.00")
        assert breakdown.to_dict()["policy_ids"] == [1, 2, 3]
        assert breakdown.payment_date.isoformat() == "2025-08-08"

    def test_unknown_period_end(self, make_policy):
        with pytest.raises(UnknownPeriod):
            period_breakdown([make_policy()], "2025-08-02", PayrollCalendar.default(), "2025-08-06")


class TestReconciliationIssues:
    """Tests for stale-policy heuristics."""

    def test_verified_long_ago(self, make_policy):
        policy = make_policy(
            policy_status="Active", date_policy_verified="2025-06-01T10:00:00+00:00"
        )
        (issue,) = find_reconciliation_issues([policy], "2025-08-15")
        assert issue.type == "verified_missing"
        assert issue.severity == "high"
        assert issue.days_overdue == 45
        assert issue.formatted().startswith("Jane Client (POL-001): Verified 75 days ago")

    def test_unverified_old_policy(self, make_policy):
        policy = make_policy(policy_status="Active", created_at="2025-06-15T10:00:00+00:00")
        (issue,) = find_reconciliation_issues([policy], "2025-08-15")
        assert issue.type == "payment_delay"
        assert issue.severity == "medium"
        assert issue.id == "payment_delay_1"

    def test_pending_and_recent_policies_ignored(self, make_policy):
        policies = [
            make_policy(id=1, created_at="2025-01-01T10:00:00+00:00"),
            make_policy(id=2, policy_status="Active", created_at="2025-08-01T10:00:00+00:00"),
        ]
        assert find_reconciliation_issues(policies, "2025-08-15") == []

    def test_overview(self, make_policy):
        policies = [
            make_policy(id=1, policy_status="Active", created_at="2025-01-01T10:00:00+00:00"),
            make_policy(id=2),
            make_policy(id=3, policy_status="Cancelled", cancelled_date="2025-08-01"),
        ]
        overview = reconciliation_overview(policies, "2025-08-15")
        assert overview["total_verified"] == 0
        assert overview["total_unverified"] == 2
        assert overview["unverified_amount"] == "480.00"
        assert len(overview["issues"]) == 1
        assert len(overview["recommendations"]) == 2
