from typing import Any

from fastapi import APIRouter, Depends

from commission_tracker.api.dependencies import current_agent, get_profile_service
from commission_tracker.api.schemas import AgentProfileIn
from commission_tracker.commission import calculate_commission_rate
from commission_tracker.dates import utc_now
from commission_tracker.models import AgentIdentity, AgentProfile
from commission_tracker.services import AgentProfileService

router = APIRouter(prefix="/api/agent-profile", tags=["Agent profile"])


def _view(agent: AgentIdentity, profile: AgentProfile) -> dict[str, Any]:
    return {
        **profile.to_dict(),
        "display_name": agent.best_display_name(),
        "commission_rate": str(calculate_commission_rate(profile.start_date, utc_now().date())),
    }


@router.get("")
async def get_profile(
    agent: AgentIdentity = Depends(current_agent),
    service: AgentProfileService = Depends(get_profile_service),
) -> dict[str, Any]:
    return _view(agent, await service.get(agent))


@router.put("")
async def save_profile(
    body: AgentProfileIn,
    agent: AgentIdentity = Depends(current_agent),
    service: AgentProfileService = Depends(get_profile_service),
) -> dict[str, Any]:
    return _view(agent, await service.save(agent, body.payload()))
