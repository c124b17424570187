"""HTTP surface over the tracker services."""

from commission_tracker.api.app import create_app

__all__ = ["create_app"]
