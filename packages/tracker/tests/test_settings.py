"""Tests for configuration settings."""

from commission_tracker.config.settings import get_settings


def test_settings_loads_from_env():
    """Test that settings loads from environment variables."""
    # Env vars are set in conftest before import
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.supabase_service_key.get_secret_value() == "service-key-test"
    assert settings.slack_bot_token.get_secret_value() == "xoxb-test"
    assert settings.slack_channel_id == "C-GENERAL"
    assert settings.clerk_secret_key.get_secret_value() == "sk_test_clerk"


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    get_settings.cache_clear()
    settings = get_settings()

    assert settings.slack_api_url == "https://slack.com/api"
    assert settings.http_timeout == 10.0
    assert settings.http_max_retries == 1
    assert settings.payroll_calendar_path is None
    assert settings.api_port == 8080
    assert settings.business_timezone == "America/New_York"


def test_reconciliation_channel_falls_back(monkeypatch):
    """Without a dedicated channel, reconciliation traffic uses the general one."""
    monkeypatch.delenv("SLACK_RECONCILIATION_CHANNEL_ID", raising=False)
    get_settings.cache_clear()
    try:
        assert get_settings().reconciliation_channel == "C-GENERAL"
    finally:
        get_settings.cache_clear()


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    get_settings.cache_clear()

    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
