"""Environment configuration for the Coder Workspaces Provider."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Operator settings loaded from environment variables."""

    poll_interval: float = 60.0
    request_timeout: float = 30.0
    retry_delay: float = 30.0
    metrics_port: int = 8080
    max_workers: int = 4
    log_level: str = "INFO"
    tracing_enabled: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the process environment.

        Environment Variables:
            POLL_INTERVAL_SECONDS: Interval between Workspace polls (default: 60)
            CODER_REQUEST_TIMEOUT_SECONDS: Per-request timeout for Coder API calls (default: 30)
            RETRY_DELAY_SECONDS: Delay before retrying a failed reconcile (default: 30)
            METRICS_PORT: Port for metrics and health endpoints (default: 8080)
            MAX_WORKERS: kopf executor size for sync work (default: 4)
            LOG_LEVEL: Root log level (default: INFO)
            OTEL_TRACES_ENABLED: Enable OpenTelemetry export (default: false)

        Raises:
            ValueError: If a numeric variable cannot be parsed or is not positive
        """
        settings = cls(
            poll_interval=float(os.getenv("POLL_INTERVAL_SECONDS", "60")),
            request_timeout=float(os.getenv("CODER_REQUEST_TIMEOUT_SECONDS", "30")),
            retry_delay=float(os.getenv("RETRY_DELAY_SECONDS", "30")),
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
            max_workers=int(os.getenv("MAX_WORKERS", "4")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            tracing_enabled=_env_bool("OTEL_TRACES_ENABLED", False),
        )
        for field_name in ("poll_interval", "request_timeout", "retry_delay", "max_workers"):
            if getattr(settings, field_name) <= 0:
                raise ValueError(f"{field_name} must be positive")
        return settings


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings."""
    return Settings.from_env()
