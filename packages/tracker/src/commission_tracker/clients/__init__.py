"""Clients for the external collaborators: data store, chat service, identity provider."""

from commission_tracker.clients.base import BaseHTTPClient
from commission_tracker.clients.identity import IdentityDirectory, identity_from_user
from commission_tracker.clients.slack import SlackAPIError, SlackClient
from commission_tracker.clients.supabase import SupabaseClient, encode_filter

__all__ = [
    "BaseHTTPClient",
    "SupabaseClient",
    "encode_filter",
    "SlackClient",
    "SlackAPIError",
    "IdentityDirectory",
    "identity_from_user",
]
