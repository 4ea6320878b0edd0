"""Handler for Workspace CRD."""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any, Callable

import kopf

from .. import metrics
from ..builders.connector import WorkspaceConnector
from ..builders.workspace import create_workspace_from_body, validate_workspace_spec
from ..config import get_settings
from ..constants import ANNOTATION_EXTERNAL_NAME, API_GROUP_VERSION, KIND_WORKSPACE
from ..exceptions import (
    RemoteCreateError,
    RemoteDeleteError,
    RemoteUpdateError,
    UnsupportedResourceError,
)
from ..models import Workspace
from ..reconciler import Action, ConnectionPublisher, Connector, Reconciler, ReconcileResult
from ..tracing import trace_span
from ..utils.conditions import (
    set_creating_condition,
    set_deleting_condition,
    set_ready_condition,
    set_synced_condition,
)
from ..utils.errors import sanitize_exception
from ..utils.events import (
    emit_connection_published,
    emit_validate_succeeded,
    emit_workspace_created,
    emit_workspace_deleted,
    emit_workspace_updated,
)
from ..utils.secrets import delete_secret, publish_connection_secret
from .base import BaseHandler
from .shared import get_core_v1_client, get_k8s_client


def default_connector() -> WorkspaceConnector:
    """Connector backed by the in-cluster Kubernetes API."""
    return WorkspaceConnector(get_k8s_client(), get_core_v1_client())


def _failed_operation(error: BaseException) -> str | None:
    if isinstance(error, RemoteCreateError):
        return "create"
    if isinstance(error, RemoteUpdateError):
        return "update"
    if isinstance(error, RemoteDeleteError):
        return "delete"
    return None


class WorkspaceHandler(BaseHandler):
    """Handler for Workspace resources."""

    def __init__(
        self,
        connector_factory: Callable[[], Connector] = default_connector,
        core_api_factory: Callable[[], Any] = get_core_v1_client,
    ):
        """Initialize workspace handler.

        Args:
            connector_factory: Builds the connector used for each reconcile
            core_api_factory: Builds the CoreV1Api used for connection secrets
        """
        super().__init__(KIND_WORKSPACE)
        self.connector_factory = connector_factory
        self.core_api_factory = core_api_factory

    def _publisher(self) -> ConnectionPublisher:
        async def publish(workspace: Workspace, details: dict[str, str]) -> None:
            ref = workspace.connection_secret_ref
            if not ref:
                return
            await asyncio.to_thread(
                publish_connection_secret,
                self.core_api_factory(),
                ref["namespace"],
                ref["name"],
                details,
                workspace.name,
            )

        return publish

    def _raise_for_error(
        self,
        body: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error: BaseException,
    ) -> None:
        """Record the failure and hand kopf the matching retry decision.

        Raises:
            kopf.TemporaryError: If the next attempt may succeed
            kopf.PermanentError: If only a change to the resource can help
        """
        meta = body.get("metadata", {})
        generation = meta.get("generation")
        message = f"Reconciliation failed: {sanitize_exception(error)}"

        operation = _failed_operation(error)
        if operation is not None:
            metrics.workspace_operations_total.labels(operation=operation, result="failed").inc()

        self.handle_reconciliation_error(
            body,
            status,
            patch,
            error,
            condition_fn=lambda conditions, msg: set_synced_condition(conditions, False, msg, generation),
            condition_msg=message,
        )

        if getattr(error, "retryable", True):
            raise kopf.TemporaryError(message, delay=get_settings().retry_delay) from error
        raise kopf.PermanentError(message) from error

    async def reconcile(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> ReconcileResult:
        """Reconcile Workspace resource."""
        name = meta.get("name", "unknown")

        with trace_span("reconcile_workspace", kind=KIND_WORKSPACE, attributes={"workspace.name": name}):
            error_msg = validate_workspace_spec(spec)
            if error_msg:
                generation = meta.get("generation")
                self.handle_validation_error(
                    body,
                    error_msg,
                    status,
                    patch,
                    condition_fn=lambda conditions, msg: set_synced_condition(conditions, False, msg, generation),
                )

            try:
                workspace = create_workspace_from_body(body)
            except UnsupportedResourceError as e:
                self._raise_for_error(body, status, patch, e)
                raise
            emit_validate_succeeded(body)

            annotations = meta.get("annotations") or {}
            if ANNOTATION_EXTERNAL_NAME not in annotations:
                patch.metadata.annotations[ANNOTATION_EXTERNAL_NAME] = workspace.external_name

            reconciler = Reconciler(self.connector_factory(), publisher=self._publisher())
            try:
                result = await reconciler.reconcile(workspace)
            except Exception as e:
                self._raise_for_error(body, status, patch, e)
                raise

            self._record_success(body, status, patch, workspace, result)
            return result

    def _record_success(
        self,
        body: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        workspace: Workspace,
        result: ReconcileResult,
    ) -> None:
        meta = body.get("metadata", {})
        generation = meta.get("generation")
        conditions = status.get("conditions", [])

        if result.action is Action.CREATE:
            metrics.workspace_operations_total.labels(operation="create", result="success").inc()
            emit_workspace_created(body, workspace.key)
            self.log_info(meta, f"Workspace {workspace.key} created", event="create", reason="Created")
            conditions = set_creating_condition(conditions, "Workspace is being created", generation)
            ready = False
        elif result.action is Action.UPDATE:
            fields = result.observation.diff.fields()
            metrics.workspace_operations_total.labels(operation="update", result="success").inc()
            emit_workspace_updated(body, workspace.key, fields)
            self.log_info(meta, f"Workspace {workspace.key} updated", event="update", reason="Updated", fields=fields)
            conditions = set_ready_condition(conditions, True, "Workspace is available", generation)
            ready = True
        else:
            ready = result.observation.exists
            conditions = set_ready_condition(
                conditions,
                ready,
                "Workspace is available" if ready else "Workspace does not exist",
                generation,
            )

        if result.connection_details and workspace.connection_secret_ref and result.action is not Action.NONE:
            emit_connection_published(body, workspace.connection_secret_ref["name"])

        conditions = set_synced_condition(conditions, True, "Workspace is in sync", generation)
        status_data: dict[str, Any] = {"conditions": conditions}
        if result.observation.at_provider:
            status_data["atProvider"] = result.observation.at_provider
        self.update_resource_status(patch, meta, ready, status_data)

    async def delete(
        self,
        body: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle Workspace resource deletion.

        The finalizer is released only once the workspace is gone from
        Coder, or immediately under the Orphan deletion policy.

        Raises:
            kopf.TemporaryError: While the workspace still exists
        """
        name = meta.get("name", "unknown")
        self.log_info(meta, "Workspace is being deleted", event="deletion", reason="Deletion")

        with trace_span("delete_workspace", kind=KIND_WORKSPACE, attributes={"workspace.name": name}):
            workspace = dataclasses.replace(create_workspace_from_body(body), deleting=True)
            reconciler = Reconciler(self.connector_factory())
            try:
                result = await reconciler.reconcile(workspace)
            except Exception as e:
                message = f"Deletion failed: {sanitize_exception(e)}"
                operation = _failed_operation(e)
                if operation is not None:
                    metrics.workspace_operations_total.labels(operation=operation, result="failed").inc()
                self.handle_reconciliation_error(body, status, patch, e)
                # An undeleted workspace keeps the finalizer regardless of the error kind
                raise kopf.TemporaryError(message, delay=get_settings().retry_delay) from e

            if not result.gone:
                generation = meta.get("generation")
                conditions = set_deleting_condition(
                    status.get("conditions", []), "Workspace is being deleted", generation
                )
                patch.status.update({"conditions": conditions})
                if result.action is Action.DELETE:
                    metrics.workspace_operations_total.labels(operation="delete", result="success").inc()
                    emit_workspace_deleted(body, workspace.key)
                raise kopf.TemporaryError(
                    f"Waiting for workspace {workspace.key} to be deleted",
                    delay=get_settings().retry_delay,
                )

            ref = workspace.connection_secret_ref
            if ref:
                await asyncio.to_thread(delete_secret, self.core_api_factory(), ref["namespace"], ref["name"])

            self.log_info(meta, f"Workspace {workspace.key} released", event="deletion", reason="Deleted")
            self.remove_finalizer(meta, patch)


# Global handler instance
_handler = WorkspaceHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_WORKSPACE)
@kopf.on.update(API_GROUP_VERSION, KIND_WORKSPACE)
@kopf.on.resume(API_GROUP_VERSION, KIND_WORKSPACE)
@kopf.timer(API_GROUP_VERSION, KIND_WORKSPACE, interval=get_settings().poll_interval)
async def handle_workspace(
    body: kopf.Body,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Workspace resource reconciliation."""
    if meta.get("deletionTimestamp"):
        return
    _handler.ensure_finalizer(meta, patch)

    async def run() -> None:
        await _handler.reconcile(body, spec, meta, status, patch)

    await _handler.reconcile_with_metrics(body, run)


@kopf.on.delete(API_GROUP_VERSION, KIND_WORKSPACE)
async def handle_workspace_delete(
    body: kopf.Body,
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Workspace resource deletion."""
    await _handler.delete(body, meta, status, patch)
