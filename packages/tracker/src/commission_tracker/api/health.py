from typing import Any

from fastapi import APIRouter, Depends

from commission_tracker import __version__
from commission_tracker.api.dependencies import get_calendar, get_db
from commission_tracker.clients.supabase import SupabaseClient
from commission_tracker.payroll import PayrollCalendar
from commission_tracker.repositories import POLICIES_TABLE

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz() -> dict[str, Any]:
    return {"status": "ok", "service": "commission-tracker", "version": __version__}


@router.get("/readyz")
async def readyz(
    db: SupabaseClient = Depends(get_db),
    calendar: PayrollCalendar = Depends(get_calendar),
) -> dict[str, Any]:
    # Data store failures surface as 503 through the error handler.
    await db.select(POLICIES_TABLE, columns="id", limit=1)
    return {
        "status": "ok",
        "data_store": "ok",
        "payroll_calendar": {"version": calendar.version, "years": list(calendar.years)},
    }
