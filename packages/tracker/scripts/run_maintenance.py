#!/usr/bin/env python3
"""Run commission tracker maintenance routines against the data store.

Every routine is idempotent; use --dry-run to see what would change.

Usage:
    python packages/tracker/scripts/run_maintenance.py check-schema
    python packages/tracker/scripts/run_maintenance.py fix-commission-rounding --dry-run
    python packages/tracker/scripts/run_maintenance.py all

Routines:
    check-schema               check every table the tracker uses is reachable
    fix-commission-rounding    rewrite commission_due values that drift from premium x rate
    check-cancelled-date       report cancelled rows without a cancelled_date
    normalize-specializations  store agent specializations as plain lists
    sync-identity-users        create profiles for identity-provider users without one
    trim-contact-attempts      delete logged calls older than the retention window
    update-commission-rates    move six-month agents to the tenured rate
"""

import argparse
import asyncio
import json
import sys

from commission_tracker.chat import ChatNotifier
from commission_tracker.clients import IdentityDirectory, SupabaseClient
from commission_tracker.config import configure_logging
from commission_tracker.errors import TrackerError
from commission_tracker.maintenance import (
    MaintenanceReport,
    check_cancelled_date_column,
    check_schema,
    fix_commission_rounding,
    normalize_specializations,
    sync_identity_users,
    trim_contact_attempts,
)
from commission_tracker.repositories import (
    AgentProfileRepository,
    PolicyRepository,
    RateNotificationRepository,
)
from commission_tracker.services import CommissionRateUpdater

CHOICES = [
    "check-schema",
    "fix-commission-rounding",
    "check-cancelled-date",
    "normalize-specializations",
    "sync-identity-users",
    "trim-contact-attempts",
    "update-commission-rates",
    "all",
]


async def run(routine: str, dry_run: bool) -> list[MaintenanceReport]:
    reports: list[MaintenanceReport] = []
    async with SupabaseClient() as db:
        if routine in ("check-schema", "all"):
            reports.append(await check_schema(db))
        if routine in ("fix-commission-rounding", "all"):
            reports.append(await fix_commission_rounding(db, dry_run=dry_run))
        if routine in ("check-cancelled-date", "all"):
            reports.append(await check_cancelled_date_column(db))
        if routine in ("normalize-specializations", "all"):
            reports.append(await normalize_specializations(db, dry_run=dry_run))
        if routine in ("sync-identity-users", "all"):
            async with IdentityDirectory() as directory:
                reports.append(await sync_identity_users(db, directory, dry_run=dry_run))
        if routine in ("trim-contact-attempts", "all"):
            reports.append(await trim_contact_attempts(db, dry_run=dry_run))
        if routine == "update-commission-rates":
            notifier = ChatNotifier()
            try:
                updater = CommissionRateUpdater(
                    AgentProfileRepository(db),
                    PolicyRepository(db),
                    RateNotificationRepository(db),
                    notifier,
                )
                updates = await updater.run()
            finally:
                await notifier.close()
            reports.append(
                MaintenanceReport(
                    name="update_commission_rates",
                    changed=len(updates),
                    details={"updates": [update.to_dict() for update in updates]},
                )
            )
    return reports


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run commission tracker maintenance routines",
    )
    parser.add_argument("routine", choices=CHOICES, help="Routine to run (or 'all')")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args()
    configure_logging(level=args.log_level)

    try:
        reports = asyncio.run(run(args.routine, args.dry_run))
    except TrackerError as e:
        print(json.dumps(e.to_dict(), indent=2, default=str))
        sys.exit(1)

    print(json.dumps([report.to_dict() for report in reports], indent=2, default=str))
    if not all(report.ok for report in reports):
        sys.exit(1)


if __name__ == "__main__":
    main()
