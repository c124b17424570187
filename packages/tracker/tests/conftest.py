"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key-test")
os.environ.setdefault("SLACK_BOT_TOKEN", "xoxb-test")
os.environ.setdefault("SLACK_CHANNEL_ID", "C-GENERAL")
os.environ.setdefault("SLACK_RECONCILIATION_CHANNEL_ID", "C-RECON")
os.environ.setdefault("CLERK_SECRET_KEY", "sk_test_clerk")

from commission_tracker.models import AgentIdentity  # noqa: E402
from fakes import AGENT_ID, FakeContactRepository, FakeNotifier, build_policy  # noqa: E402


@pytest.fixture
def make_policy():
    """Factory for Policy records."""
    return build_policy


@pytest.fixture
def agent():
    return AgentIdentity(
        user_id=AGENT_ID,
        name="Jane Agent",
        email="jane.agent@example.com",
        avatar_url="https://img.example.com/jane.png",
    )


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def contacts():
    return FakeContactRepository()
