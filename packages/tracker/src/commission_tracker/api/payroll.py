from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Path, Query

from commission_tracker.api.dependencies import current_agent, get_calendar, get_policy_repository
from commission_tracker.chargeback import calculate_chargebacks, chargeback_alert_level
from commission_tracker.dates import parse_date, utc_now
from commission_tracker.models import AgentIdentity
from commission_tracker.payroll import PayrollCalendar
from commission_tracker.repositories import PolicyRepository

router = APIRouter(prefix="/api/payroll", tags=["Payroll"])


def _day(today: str | None) -> date:
    return parse_date(today) if today else utc_now().date()


@router.get("/upcoming")
async def upcoming_payments(
    today: str | None = None,
    count: int = Query(default=3, ge=1, le=26),
    calendar: PayrollCalendar = Depends(get_calendar),
) -> dict[str, Any]:
    day = _day(today)
    return {
        "payments": [entry.to_dict() for entry in calendar.upcoming_payment_periods(day, count)],
        "reconciliation_window": calendar.is_reconciliation_window(day),
    }


@router.get("/months/{year}/{month}")
async def payments_for_month(
    year: int,
    month: int = Path(ge=1, le=12),
    calendar: PayrollCalendar = Depends(get_calendar),
) -> dict[str, Any]:
    return {"payments": [entry.to_dict() for entry in calendar.payment_dates_for_month(year, month)]}


@router.get("/pipeline")
async def commission_pipeline(
    today: str | None = None,
    count: int = Query(default=6, ge=1, le=26),
    agent: AgentIdentity = Depends(current_agent),
    policies: PolicyRepository = Depends(get_policy_repository),
    calendar: PayrollCalendar = Depends(get_calendar),
) -> dict[str, Any]:
    rows = await policies.list_for_agent(agent.user_id)
    pipeline = calendar.commission_pipeline(rows, _day(today), count)
    return {"pipeline": [entry.to_dict() for entry in pipeline]}


@router.get("/chargebacks")
async def chargebacks(
    today: str | None = None,
    agent: AgentIdentity = Depends(current_agent),
    policies: PolicyRepository = Depends(get_policy_repository),
) -> dict[str, Any]:
    day = _day(today)
    rows = await policies.list_for_agent(agent.user_id)
    totals = calculate_chargebacks(rows, day)
    alert = chargeback_alert_level(rows, day)
    return {
        "total_chargebacks": totals.total_chargebacks,
        "chargeback_amount": str(totals.chargeback_amount),
        "policy_ids": [policy.id for policy in totals.chargeback_policies],
        "alert": {
            "level": alert.level,
            "message": alert.message,
            "chargeback_rate": alert.chargeback_rate,
        },
    }
