from typing import Any

from fastapi import APIRouter, Depends

from commission_tracker.api.dependencies import get_notifier, get_rate_updater
from commission_tracker.chat import ChatNotifier
from commission_tracker.services import CommissionRateUpdater

router = APIRouter(prefix="/api", tags=["Maintenance"])


@router.post("/maintenance/update-commission-rates")
async def update_commission_rates(
    today: str | None = None,
    updater: CommissionRateUpdater = Depends(get_rate_updater),
) -> dict[str, Any]:
    updates = await updater.run(today)
    return {
        "message": "Commission rate update check completed",
        "updates": [update.to_dict() for update in updates],
    }


@router.get("/chat/diagnose")
async def diagnose_chat(notifier: ChatNotifier = Depends(get_notifier)) -> dict[str, Any]:
    return await notifier.diagnose()
