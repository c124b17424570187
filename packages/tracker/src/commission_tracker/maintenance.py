"""Operator maintenance routines.

Each routine is safe to run repeatedly: a second run over unchanged data
reports nothing left to do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from commission_tracker.clients.identity import IdentityDirectory
from commission_tracker.clients.supabase import SupabaseClient
from commission_tracker.contacts import retention_cutoff
from commission_tracker.dates import utc_now
from commission_tracker.errors import UpstreamUnavailable
from commission_tracker.models import PolicyStatus, parse_specializations
from commission_tracker.repositories import (
    AGENT_PROFILES_TABLE,
    CONTACT_ATTEMPTS_TABLE,
    POLICIES_TABLE,
    RATE_NOTIFICATIONS_TABLE,
    AgentProfileRepository,
    ContactAttemptRepository,
    PolicyRepository,
)

logger = structlog.get_logger(__name__)

REQUIRED_TABLES = (
    POLICIES_TABLE,
    AGENT_PROFILES_TABLE,
    CONTACT_ATTEMPTS_TABLE,
    RATE_NOTIFICATIONS_TABLE,
)


@dataclass
class MaintenanceReport:
    name: str
    ok: bool = True
    changed: int = 0
    dry_run: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "changed": self.changed,
            "dry_run": self.dry_run,
            "details": self.details,
        }


async def check_schema(db: SupabaseClient) -> MaintenanceReport:
    """Probe each table the tracker relies on with a one-row read."""
    report = MaintenanceReport(name="check_schema")
    for table in REQUIRED_TABLES:
        try:
            await db.select(table, limit=1)
        except UpstreamUnavailable as e:
            report.ok = False
            report.details[table] = {"accessible": False, "error": str(e)}
            logger.warning("schema_table_unavailable", table=table, error=str(e))
        else:
            report.details[table] = {"accessible": True}
    return report


async def fix_commission_rounding(db: SupabaseClient, dry_run: bool = False) -> MaintenanceReport:
    """Rewrite stored commission_due values that drift from premium x rate."""
    repo = PolicyRepository(db)
    report = MaintenanceReport(name="fix_commission_rounding", dry_run=dry_run)
    fixes = []
    for policy in await repo.all_policies():
        if not policy.has_rounding_drift:
            continue
        fixes.append(
            {
                "policy_id": policy.id,
                "policy_number": policy.policy_number,
                "current": str(policy.commission_due),
                "expected": str(policy.expected_commission_due),
            }
        )
        if not dry_run:
            await repo.update(
                policy.user_id,
                policy.id,
                {"commission_due": str(policy.expected_commission_due)},
            )
            logger.info(
                "commission_due_repaired",
                policy_id=policy.id,
                old=str(policy.commission_due),
                new=str(policy.expected_commission_due),
            )
    report.changed = len(fixes)
    report.details["fixes"] = fixes
    return report


async def check_cancelled_date_column(db: SupabaseClient) -> MaintenanceReport:
    """Confirm ``cancelled_date`` exists and count cancelled rows without one.

    Those legacy rows only produce follow-ups and chargebacks while they are
    recent enough for the creation date to stand in.
    """
    report = MaintenanceReport(name="check_cancelled_date_column")
    try:
        rows = await db.select(
            POLICIES_TABLE,
            {"policy_status": PolicyStatus.CANCELLED.value, "cancelled_date": ("is", None)},
            columns="id,user_id,created_at",
        )
    except UpstreamUnavailable as e:
        report.ok = False
        report.details = {"column_present": False, "error": str(e)}
        return report

    report.details = {
        "column_present": True,
        "legacy_cancelled_rows": len(rows),
        "policy_ids": [row["id"] for row in rows],
    }
    if rows:
        logger.info("legacy_cancelled_rows_found", count=len(rows))
    return report


async def normalize_specializations(db: SupabaseClient, dry_run: bool = False) -> MaintenanceReport:
    """Rewrite string-encoded specializations as plain lists."""
    repo = AgentProfileRepository(db)
    report = MaintenanceReport(name="normalize_specializations", dry_run=dry_run)
    rows = await db.select(AGENT_PROFILES_TABLE, columns="user_id,specializations")
    normalized = []
    for row in rows:
        raw = row.get("specializations")
        values = parse_specializations(raw)
        canonical = values or None
        if raw == canonical:
            continue
        normalized.append({"user_id": row["user_id"], "before": raw, "after": canonical})
        if not dry_run:
            await repo.replace_specializations(str(row["user_id"]), values)
    report.changed = len(normalized)
    report.details["profiles"] = normalized
    return report


async def sync_identity_users(
    db: SupabaseClient, directory: IdentityDirectory, dry_run: bool = False
) -> MaintenanceReport:
    """Create a profile (start date today) for every directory user without one."""
    repo = AgentProfileRepository(db)
    report = MaintenanceReport(name="sync_identity_users", dry_run=dry_run)

    users = await directory.list_users()
    existing = {profile.user_id for profile in await repo.list_all()}
    missing = [user.user_id for user in users if user.user_id not in existing]

    created = missing
    if missing and not dry_run:
        created = await repo.insert_missing(missing, start_date=utc_now().date())
        logger.info("agent_profiles_created", count=len(created))

    report.changed = len(created)
    report.details = {"directory_users": len(users), "created": created}
    return report


async def trim_contact_attempts(db: SupabaseClient, dry_run: bool = False) -> MaintenanceReport:
    """Delete logged calls older than the retention window."""
    report = MaintenanceReport(name="trim_contact_attempts", dry_run=dry_run)
    today = utc_now().date()
    cutoff = retention_cutoff(today)
    if dry_run:
        rows = await db.select(
            CONTACT_ATTEMPTS_TABLE,
            {"contact_date": ("lt", cutoff.isoformat())},
            columns="policy_id",
        )
        report.changed = len(rows)
    else:
        report.changed = await ContactAttemptRepository(db).trim(today)
    report.details = {"cutoff": cutoff.isoformat()}
    return report
