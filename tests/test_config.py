"""Tests for settings loading and validation."""

import pytest

from calendar_sync.config import Settings, get_settings
from calendar_sync.errors import ConfigError


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.calendar_id == "primary"
        assert settings.poll_interval_seconds == 30
        assert settings.stale_after_seconds == 10
        assert settings.refresh_margin_seconds == 300
        assert settings.max_transient_retries == 3
        assert "https://www.googleapis.com/auth/calendar.readonly" in settings.google_scopes

    def test_loaded_from_environment(self, monkeypatch):
        monkeypatch.setenv("BACKEND_URL", "http://example.test:9000/")
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "5")

        settings = get_settings()

        assert settings.backend_url == "http://example.test:9000"
        assert settings.poll_interval_seconds == 5

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_google_credentials_present(self):
        settings = get_settings()
        assert settings.google_oauth_configured is True
        settings.require_google_credentials(include_webhook=True)


class TestRequireGoogleCredentials:
    """Tests for failing fast on missing credentials."""

    def test_lists_every_missing_variable(self, monkeypatch):
        for name in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REDIRECT_URI"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        with pytest.raises(ConfigError) as exc_info:
            settings.require_google_credentials()
        assert str(exc_info.value) == (
            "Missing required environment variables: "
            "GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI"
        )

    def test_webhook_only_when_asked(self, monkeypatch):
        monkeypatch.delenv("WEBHOOK_URL", raising=False)
        settings = Settings(_env_file=None)

        settings.require_google_credentials()
        with pytest.raises(ConfigError, match="WEBHOOK_URL"):
            settings.require_google_credentials(include_webhook=True)
