from typing import Any

from fastapi import APIRouter, Depends

from commission_tracker.api.dependencies import (
    current_agent,
    get_policy_repository,
    get_reconciliation_service,
)
from commission_tracker.api.schemas import ReconciliationSubmissionIn
from commission_tracker.dates import utc_now
from commission_tracker.models import AgentIdentity
from commission_tracker.reconciliation import reconciliation_overview
from commission_tracker.repositories import PolicyRepository
from commission_tracker.services import ReconciliationService, parse_states

router = APIRouter(prefix="/api/reconciliation", tags=["Reconciliation"])


@router.get("/overview")
async def overview(
    today: str | None = None,
    agent: AgentIdentity = Depends(current_agent),
    policies: PolicyRepository = Depends(get_policy_repository),
) -> dict[str, Any]:
    rows = await policies.list_for_agent(agent.user_id)
    return reconciliation_overview(rows, today or utc_now().date())


@router.get("/periods/{period_end}")
async def period(
    period_end: str,
    today: str | None = None,
    agent: AgentIdentity = Depends(current_agent),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> dict[str, Any]:
    breakdown = await service.breakdown(agent, period_end, today)
    return {
        **breakdown.to_dict(),
        "policies": [policy.to_dict() for policy in breakdown.policies],
    }


@router.post("/submit")
async def submit(
    body: ReconciliationSubmissionIn,
    agent: AgentIdentity = Depends(current_agent),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> dict[str, Any]:
    states = parse_states(entry.model_dump() for entry in body.entries)
    result = await service.submit(agent, body.period_end, states, body.send_completion)
    return result.to_dict()


@router.post("/reminder")
async def reminder(
    today: str | None = None,
    agent: AgentIdentity = Depends(current_agent),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> dict[str, Any]:
    return {"delivered": await service.send_reminder(agent, today)}
