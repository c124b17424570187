"""Settings, logging and reference data for the commission tracker."""

from commission_tracker.config.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from commission_tracker.config.settings import TrackerSettings, get_settings

__all__ = [
    "TrackerSettings",
    "get_settings",
    "configure_logging",
    "bind_request_context",
    "clear_request_context",
]
