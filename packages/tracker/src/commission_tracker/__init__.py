"""Commission Tracker - policy, payroll and reconciliation engine for insurance agents."""

__version__ = "0.1.0"

from commission_tracker.cancellation import resolve_cancellation
from commission_tracker.chargeback import (
    calculate_chargebacks,
    chargeback_alert_level,
    detect_chargeback,
)
from commission_tracker.chat import ChatMessage, ChatNotifier, MessageKind
from commission_tracker.clients import IdentityDirectory, SlackClient, SupabaseClient
from commission_tracker.commission import calculate_commission_rate, should_update_commission_rate
from commission_tracker.config import configure_logging, get_settings
from commission_tracker.errors import (
    InvalidDate,
    NotFound,
    TrackerError,
    UnknownPeriod,
    UpstreamUnavailable,
    ValidationFailed,
)
from commission_tracker.models import AgentIdentity, AgentProfile, Policy, PolicyDraft, PolicyStatus
from commission_tracker.notifications import NotificationGenerator
from commission_tracker.payroll import PayrollCalendar
from commission_tracker.services import (
    AgentProfileService,
    CommissionRateUpdater,
    NotificationService,
    PolicyService,
    ReconciliationService,
)

__all__ = [
    # Version
    "__version__",
    # Records
    "Policy",
    "PolicyDraft",
    "PolicyStatus",
    "AgentProfile",
    "AgentIdentity",
    # Domain rules
    "PayrollCalendar",
    "NotificationGenerator",
    "resolve_cancellation",
    "detect_chargeback",
    "calculate_chargebacks",
    "chargeback_alert_level",
    "calculate_commission_rate",
    "should_update_commission_rate",
    # Services
    "PolicyService",
    "NotificationService",
    "ReconciliationService",
    "AgentProfileService",
    "CommissionRateUpdater",
    # Chat
    "ChatMessage",
    "ChatNotifier",
    "MessageKind",
    # Clients
    "SupabaseClient",
    "SlackClient",
    "IdentityDirectory",
    # Errors
    "TrackerError",
    "InvalidDate",
    "UnknownPeriod",
    "ValidationFailed",
    "NotFound",
    "UpstreamUnavailable",
    # Config
    "get_settings",
    "configure_logging",
]
