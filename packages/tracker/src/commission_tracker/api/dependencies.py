"""FastAPI dependency providers.

Outbound clients live on ``app.state`` for the lifetime of the app; the
repository and notifier providers are the seams tests override.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request

from commission_tracker.chat import ChatNotifier
from commission_tracker.clients.supabase import SupabaseClient
from commission_tracker.errors import ValidationFailed
from commission_tracker.models import AgentIdentity
from commission_tracker.payroll import PayrollCalendar
from commission_tracker.repositories import (
    AgentProfileRepository,
    ContactAttemptRepository,
    PolicyRepository,
    RateNotificationRepository,
)
from commission_tracker.services import (
    AgentProfileService,
    CommissionRateUpdater,
    NotificationService,
    PolicyService,
    ReconciliationService,
)


def current_agent(
    x_agent_id: str | None = Header(default=None),
    x_agent_name: str | None = Header(default=None),
    x_agent_email: str | None = Header(default=None),
    x_agent_avatar: str | None = Header(default=None),
) -> AgentIdentity:
    """Identity asserted by the authenticating proxy in front of the app."""
    if not x_agent_id or not x_agent_id.strip():
        raise ValidationFailed("Missing agent identity", problems=["X-Agent-Id header is required"])
    return AgentIdentity(
        user_id=x_agent_id.strip(),
        name=x_agent_name or None,
        email=x_agent_email or None,
        avatar_url=x_agent_avatar or None,
    )


def get_db(request: Request) -> SupabaseClient:
    return request.app.state.db


def get_notifier(request: Request) -> ChatNotifier:
    return request.app.state.notifier


def get_calendar() -> PayrollCalendar:
    return PayrollCalendar.default()


def get_policy_repository(db: SupabaseClient = Depends(get_db)) -> PolicyRepository:
    return PolicyRepository(db)


def get_profile_repository(db: SupabaseClient = Depends(get_db)) -> AgentProfileRepository:
    return AgentProfileRepository(db)


def get_contact_repository(db: SupabaseClient = Depends(get_db)) -> ContactAttemptRepository:
    return ContactAttemptRepository(db)


def get_rate_notification_repository(
    db: SupabaseClient = Depends(get_db),
) -> RateNotificationRepository:
    return RateNotificationRepository(db)


def get_policy_service(
    policies: PolicyRepository = Depends(get_policy_repository),
    notifier: ChatNotifier = Depends(get_notifier),
) -> PolicyService:
    return PolicyService(policies, notifier)


def get_notification_service(
    policies: PolicyRepository = Depends(get_policy_repository),
    contacts: ContactAttemptRepository = Depends(get_contact_repository),
) -> NotificationService:
    return NotificationService(policies, contacts)


def get_reconciliation_service(
    policies: PolicyRepository = Depends(get_policy_repository),
    notifier: ChatNotifier = Depends(get_notifier),
    calendar: PayrollCalendar = Depends(get_calendar),
) -> ReconciliationService:
    return ReconciliationService(policies, notifier, calendar)


def get_profile_service(
    profiles: AgentProfileRepository = Depends(get_profile_repository),
) -> AgentProfileService:
    return AgentProfileService(profiles)


def get_rate_updater(
    profiles: AgentProfileRepository = Depends(get_profile_repository),
    policies: PolicyRepository = Depends(get_policy_repository),
    rate_notifications: RateNotificationRepository = Depends(get_rate_notification_repository),
    notifier: ChatNotifier = Depends(get_notifier),
) -> CommissionRateUpdater:
    return CommissionRateUpdater(profiles, policies, rate_notifications, notifier)
