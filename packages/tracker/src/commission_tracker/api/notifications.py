from typing import Any

from fastapi import APIRouter, Depends, Header

from commission_tracker.api.dependencies import current_agent, get_notification_service
from commission_tracker.config import get_settings
from commission_tracker.dates import local_now, utc_now
from commission_tracker.models import AgentIdentity
from commission_tracker.notifications import (
    format_notification_message,
    notification_actions,
    notification_summary,
    should_show_notifications,
)
from commission_tracker.services import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    today: str | None = None,
    x_agent_timezone: str | None = Header(default=None),
    agent: AgentIdentity = Depends(current_agent),
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    notifications = await service.for_agent(agent, today)
    return {
        "notifications": [
            {
                **notification.to_dict(),
                "message": format_notification_message(notification),
                "actions": notification_actions(notification),
            }
            for notification in notifications
        ],
        "summary": notification_summary(notifications),
        "show": should_show_notifications(
            local_now(x_agent_timezone or get_settings().business_timezone, utc_now())
        ),
    }


@router.post("/{policy_id}/contact")
async def log_contact(
    policy_id: int,
    today: str | None = None,
    agent: AgentIdentity = Depends(current_agent),
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    contact_date = await service.log_contact(agent, policy_id, today)
    return {"policy_id": policy_id, "contact_date": contact_date.isoformat()}
