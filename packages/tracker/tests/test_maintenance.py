"""Tests for the operator maintenance routines."""

from unittest.mock import AsyncMock

import pytest

from commission_tracker.errors import UpstreamUnavailable
from commission_tracker.maintenance import (
    check_cancelled_date_column,
    check_schema,
    fix_commission_rounding,
    normalize_specializations,
    sync_identity_users,
    trim_contact_attempts,
)
from commission_tracker.models import AgentIdentity

from fakes import AGENT_ID


def policy_row(policy_id, commission_due):
    return {
        "id": policy_id,
        "user_id": AGENT_ID,
        "client": "Jane Client",
        "carrier": "Acme Life",
        "policy_number": f"POL-{policy_id:03d}",
        "product": "Term Life",
        "policy_status": "Active",
        "commissionable_annual_premium": "1234.56",
        "commission_rate": "0.20",
        "commission_due": commission_due,
        "created_at": "2025-07-20T15:00:00+00:00",
    }


@pytest.fixture
def db():
    client = AsyncMock()
    client.select = AsyncMock(return_value=[])
    client.update = AsyncMock(return_value=[])
    client.upsert = AsyncMock(return_value=[])
    client.delete = AsyncMock(return_value=[])
    return client


class TestCheckSchema:
    @pytest.mark.asyncio
    async def test_all_tables_accessible(self, db):
        report = await check_schema(db)
        assert report.ok is True
        assert db.select.await_count == 4

    @pytest.mark.asyncio
    async def test_missing_table_reported(self, db):
        async def select(table, *args, **kwargs):
            if table == "contact_attempts":
                raise UpstreamUnavailable("relation does not exist", status_code=404, retryable=False)
            return []

        db.select.side_effect = select
        report = await check_schema(db)

        assert report.ok is False
        assert report.details["contact_attempts"]["accessible"] is False
        assert report.details["policies"] == {"accessible": True}


class TestFixCommissionRounding:
    """Tests for repairing drifted commission_due values."""

    @pytest.mark.asyncio
    async def test_dry_run_reports_only(self, db):
        db.select.return_value = [policy_row(1, "246.912"), policy_row(2, "246.91")]
        report = await fix_commission_rounding(db, dry_run=True)

        assert report.changed == 1
        assert report.details["fixes"][0] == {
            "policy_id": 1,
            "policy_number": "POL-001",
            "current": "246.912",
            "expected": "246.91",
        }
        db.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repairs_drift(self, db):
        db.select.return_value = [policy_row(1, "246.912")]
        db.update.return_value = [policy_row(1, "246.91")]
        report = await fix_commission_rounding(db)

        assert report.changed == 1
        args = db.update.call_args.args
        assert args[1] == {"commission_due": "246.91"}
        assert args[2] == {"id": 1, "user_id": AGENT_ID}

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, db):
        db.select.return_value = [policy_row(1, "246.91")]
        report = await fix_commission_rounding(db)
        assert report.changed == 0


class TestCheckCancelledDateColumn:
    @pytest.mark.asyncio
    async def test_counts_legacy_rows(self, db):
        db.select.return_value = [{"id": 4, "user_id": AGENT_ID, "created_at": "2025-01-01"}]
        report = await check_cancelled_date_column(db)

        assert report.details == {
            "column_present": True,
            "legacy_cancelled_rows": 1,
            "policy_ids": [4],
        }
        filters = db.select.call_args.args[1]
        assert filters["cancelled_date"] == ("is", None)

    @pytest.mark.asyncio
    async def test_missing_column(self, db):
        db.select.side_effect = UpstreamUnavailable(
            "data_store rejected request: 400", status_code=400, retryable=False
        )
        report = await check_cancelled_date_column(db)
        assert report.ok is False
        assert report.details["column_present"] is False


class TestNormalizeSpecializations:
    @pytest.mark.asyncio
    async def test_rewrites_string_encodings(self, db):
        db.select.return_value = [
            {"user_id": "u1", "specializations": '["Life", "Health"]'},
            {"user_id": "u2", "specializations": ["Annuities"]},
            {"user_id": "u3", "specializations": None},
        ]
        report = await normalize_specializations(db)

        assert report.changed == 1
        assert report.details["profiles"][0]["after"] == ["Life", "Health"]
        db.update.assert_awaited_once()
        assert db.update.call_args.args[1] == {"specializations": ["Life", "Health"]}

    @pytest.mark.asyncio
    async def test_dry_run(self, db):
        db.select.return_value = [{"user_id": "u1", "specializations": "Life"}]
        report = await normalize_specializations(db, dry_run=True)
        assert report.changed == 1
        db.update.assert_not_awaited()


class TestSyncIdentityUsers:
    @pytest.mark.asyncio
    async def test_creates_missing_profiles(self, db):
        directory = AsyncMock()
        directory.list_users = AsyncMock(
            return_value=[AgentIdentity(user_id="u1"), AgentIdentity(user_id="u2")]
        )
        db.select.return_value = [{"id": 1, "user_id": "u1"}]
        db.upsert.return_value = [{"user_id": "u2"}]

        report = await sync_identity_users(db, directory)

        assert report.changed == 1
        assert report.details == {"directory_users": 2, "created": ["u2"]}
        rows = db.upsert.call_args.args[1]
        assert [row["user_id"] for row in rows] == ["u2"]
        assert rows[0]["start_date"] is not None

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, db):
        directory = AsyncMock()
        directory.list_users = AsyncMock(return_value=[AgentIdentity(user_id="u9")])
        report = await sync_identity_users(db, directory, dry_run=True)
        assert report.details["created"] == ["u9"]
        db.upsert.assert_not_awaited()


class TestTrimContactAttempts:
    @pytest.mark.asyncio
    async def test_dry_run_counts(self, db):
        db.select.return_value = [{"policy_id": 1}, {"policy_id": 2}]
        report = await trim_contact_attempts(db, dry_run=True)
        assert report.changed == 2
        db.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deletes_old_attempts(self, db):
        db.delete.return_value = [{"policy_id": 1}]
        report = await trim_contact_attempts(db)
        assert report.changed == 1
        assert db.delete.call_args.args[1]["contact_date"][0] == "lt"
