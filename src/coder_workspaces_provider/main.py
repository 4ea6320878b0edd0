"""Main entry point for the Coder Workspaces Provider."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .config import get_settings
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    provider_settings = get_settings()

    # Set up structured JSON logging
    structured_logging.setup_structured_logging(provider_settings.log_level)

    if provider_settings.tracing_enabled:
        initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = provider_settings.request_timeout
    settings.execution.max_workers = provider_settings.max_workers

    health.start_metrics_server(provider_settings.metrics_port)
    health.mark_ready()
    logger.info(
        f"Provider started: poll_interval={provider_settings.poll_interval}s "
        f"metrics_port={provider_settings.metrics_port}"
    )


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop reporting readiness while the operator shuts down."""
    health.mark_not_ready()
