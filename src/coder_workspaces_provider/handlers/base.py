"""Base handler class with common functionality for all CRD handlers."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

import kopf

from .. import metrics
from ..constants import CONTROLLER_NAME, FINALIZER
from ..logging import log_resource_event
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started, emit_validate_failed


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Workspace", "ProviderConfig")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata."""
        return {
            "name": meta.get("name", "unknown"),
            # Both managed kinds are cluster scoped
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def handle_validation_error(
        self,
        body: dict[str, Any],
        error_msg: str,
        status: dict[str, Any] | None = None,
        patch: kopf.Patch | None = None,
        condition_fn: Callable[[list[dict[str, Any]], str], list[dict[str, Any]]] | None = None,
    ) -> None:
        """Handle validation error consistently.

        Invalid specs do not heal by retrying, so the handler stops here until
        the resource changes. When a patch is given, the failure is recorded on
        the status so the degraded conditions persist until then.

        Raises:
            kopf.PermanentError: Always
        """
        meta = body.get("metadata", {})
        self.log_error(meta, error_msg, reason="ValidationFailed")
        emit_validate_failed(body, error_msg)
        emit_reconcile_failed(body, f"Validation failed: {error_msg}")
        metrics.error_total.labels(kind=self.kind, error_type="ValidationError").inc()

        if patch is not None:
            status_update: dict[str, Any] = {"observedGeneration": meta.get("generation", 0)}
            if condition_fn is not None:
                status_update["conditions"] = condition_fn((status or {}).get("conditions", []), error_msg)
            patch.status.update(status_update)

        raise kopf.PermanentError(error_msg)

    def handle_reconciliation_error(
        self,
        body: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error: BaseException,
        condition_fn: Callable[[list[dict[str, Any]], str], list[dict[str, Any]]] | None = None,
        condition_msg: str | None = None,
    ) -> None:
        """Record a failed reconcile on the resource status.

        Args:
            body: Resource body
            status: Resource status
            patch: Kopf patch object
            error: Exception that occurred
            condition_fn: Optional function to set condition (takes conditions list and message, returns updated list)
            condition_msg: Optional message for condition (if condition_fn is provided)
        """
        meta = body.get("metadata", {})
        sanitized_error = sanitize_exception(error)

        self.log_error(meta, f"Reconciliation failed: {sanitized_error}", error=error, reason="ReconciliationFailed")
        emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")

        status_update: dict[str, Any] = {
            "observedGeneration": meta.get("generation", 0),
        }
        if condition_fn is not None and condition_msg is not None:
            conditions = status.get("conditions", [])
            status_update["conditions"] = condition_fn(conditions, condition_msg)

        patch.status.update(status_update)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Ensure finalizer is present in metadata."""
        finalizers = list(meta.get("finalizers", []))
        if FINALIZER not in finalizers:
            finalizers.append(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers", []))
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    async def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], Awaitable[None]],
    ) -> None:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: Resource body
            reconcile_fn: Coroutine function to execute for reconciliation
        """
        meta = body.get("metadata", {})
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            await reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        except kopf.TemporaryError as e:
            # Retries are expected during creation and deletion; not an error
            self.log_info(meta, f"Reconcile will be retried: {e}", event="retry", reason="Requeued")
            metrics.reconcile_total.labels(kind=self.kind, result="requeued").inc()
            raise
        except Exception as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Update resource status with common fields.

        Args:
            patch: Kopf patch object
            meta: Kubernetes resource metadata
            ready: Whether the resource is ready
            status_data: Additional status data to include
        """
        status_update = {
            "observedGeneration": meta.get("generation", 0),
            **(status_data or {}),
        }

        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()
        patch.status.update(status_update)
