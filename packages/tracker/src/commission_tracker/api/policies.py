from typing import Any, Literal

from fastapi import APIRouter, Depends, Response

from commission_tracker.api.dependencies import current_agent, get_policy_service
from commission_tracker.api.schemas import PolicyIn, QuickPostIn
from commission_tracker.models import AgentIdentity
from commission_tracker.services import PolicyService

router = APIRouter(prefix="/api/policies", tags=["Policies"])

PolicyAction = Literal["mark_active", "mark_cancelled", "reactivated", "mark_paid"]


@router.get("")
async def list_policies(
    agent: AgentIdentity = Depends(current_agent),
    service: PolicyService = Depends(get_policy_service),
) -> dict[str, Any]:
    policies = await service.list_policies(agent)
    return {"policies": [policy.to_dict() for policy in policies]}


@router.post("", status_code=201)
async def create_policy(
    body: PolicyIn,
    agent: AgentIdentity = Depends(current_agent),
    service: PolicyService = Depends(get_policy_service),
) -> dict[str, Any]:
    policy = await service.create(agent, body.payload())
    return policy.to_dict()


@router.patch("/{policy_id}")
async def update_policy(
    policy_id: int,
    body: PolicyIn,
    agent: AgentIdentity = Depends(current_agent),
    service: PolicyService = Depends(get_policy_service),
) -> dict[str, Any]:
    policy = await service.update(agent, policy_id, body.payload())
    return policy.to_dict()


@router.delete("/{policy_id}", status_code=204)
async def delete_policy(
    policy_id: int,
    agent: AgentIdentity = Depends(current_agent),
    service: PolicyService = Depends(get_policy_service),
) -> Response:
    await service.delete(agent, policy_id)
    return Response(status_code=204)


@router.post("/{policy_id}/actions/{action}")
async def apply_action(
    policy_id: int,
    action: PolicyAction,
    agent: AgentIdentity = Depends(current_agent),
    service: PolicyService = Depends(get_policy_service),
) -> dict[str, Any]:
    """Notification shortcuts: mark active, mark cancelled, reactivate, mark paid."""
    handlers = {
        "mark_active": service.mark_active,
        "mark_cancelled": service.mark_cancelled,
        "reactivated": service.reactivate,
        "mark_paid": service.mark_paid,
    }
    policy = await handlers[action](agent, policy_id)
    return policy.to_dict()


@router.post("/{policy_id}/quick-post")
async def quick_post(
    policy_id: int,
    body: QuickPostIn,
    agent: AgentIdentity = Depends(current_agent),
    service: PolicyService = Depends(get_policy_service),
) -> dict[str, Any]:
    delivered = await service.post_sale(agent, policy_id, body.acronym)
    return {"delivered": delivered}
