"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from coder_workspaces_provider.config import Settings, get_settings

ENV_VARS = (
    "POLL_INTERVAL_SECONDS",
    "CODER_REQUEST_TIMEOUT_SECONDS",
    "RETRY_DELAY_SECONDS",
    "METRICS_PORT",
    "MAX_WORKERS",
    "LOG_LEVEL",
    "OTEL_TRACES_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Test cases for Settings.from_env."""

    def test_defaults(self):
        settings = Settings.from_env()

        assert settings.poll_interval == 60.0
        assert settings.request_timeout == 30.0
        assert settings.retry_delay == 30.0
        assert settings.metrics_port == 8080
        assert settings.max_workers == 4
        assert settings.log_level == "INFO"
        assert settings.tracing_enabled is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "15")
        monkeypatch.setenv("CODER_REQUEST_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("METRICS_PORT", "9090")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("OTEL_TRACES_ENABLED", "true")

        settings = Settings.from_env()

        assert settings.poll_interval == 15.0
        assert settings.request_timeout == 2.5
        assert settings.metrics_port == 9090
        assert settings.log_level == "DEBUG"
        assert settings.tracing_enabled is True

    @pytest.mark.parametrize("name", ["POLL_INTERVAL_SECONDS", "RETRY_DELAY_SECONDS", "MAX_WORKERS"])
    def test_non_positive_rejected(self, monkeypatch, name):
        monkeypatch.setenv(name, "0")

        with pytest.raises(ValueError, match="must be positive"):
            Settings.from_env()

    def test_unparseable_rejected(self, monkeypatch):
        monkeypatch.setenv("CODER_REQUEST_TIMEOUT_SECONDS", "soon")

        with pytest.raises(ValueError):
            Settings.from_env()

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "5")

        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings().poll_interval == 5.0
