"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CONNECTION_PUBLISHED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_VALIDATE_SUCCEEDED,
    EVENT_REASON_WORKSPACE_CREATED,
    EVENT_REASON_WORKSPACE_DELETED,
    EVENT_REASON_WORKSPACE_UPDATED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event attached to a resource.

    Args:
        body: Resource body (apiVersion, kind and metadata are used for the reference)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_succeeded(body: dict[str, Any]) -> None:
    """Emit validation succeeded event."""
    emit_event(body, EVENT_REASON_VALIDATE_SUCCEEDED, "Validation succeeded")


def emit_validate_failed(body: dict[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_workspace_created(body: dict[str, Any], key: str) -> None:
    """Emit workspace created event."""
    emit_event(body, EVENT_REASON_WORKSPACE_CREATED, f"Workspace {key} created")


def emit_workspace_updated(body: dict[str, Any], key: str, fields: list[str]) -> None:
    """Emit workspace updated event."""
    changed = ", ".join(fields) if fields else "no fields"
    emit_event(body, EVENT_REASON_WORKSPACE_UPDATED, f"Workspace {key} updated ({changed})")


def emit_workspace_deleted(body: dict[str, Any], key: str) -> None:
    """Emit workspace deletion requested event."""
    emit_event(body, EVENT_REASON_WORKSPACE_DELETED, f"Workspace {key} deletion requested")


def emit_connection_published(body: dict[str, Any], secret_name: str) -> None:
    """Emit connection details published event."""
    emit_event(body, EVENT_REASON_CONNECTION_PUBLISHED, f"Connection details written to secret {secret_name}")
