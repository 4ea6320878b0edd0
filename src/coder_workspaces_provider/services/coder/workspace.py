"""Observe, create, update and delete Coder workspaces."""

from __future__ import annotations

import logging
from typing import Any

from ... import metrics
from ...constants import DEFAULT_AUTOSTART_SCHEDULE, KIND_WORKSPACE
from ...exceptions import (
    ReferenceResolutionError,
    RemoteDeleteError,
    RemoteUpdateError,
    WorkspaceConflictError,
)
from ...models import ExternalObservation, Workspace, WorkspaceDiff, WorkspaceParameters
from .client import CoderClient
from .models import CoderUser, CoderWorkspace

logger = logging.getLogger(__name__)


def desired_autostart_schedule(params: WorkspaceParameters) -> str | None:
    """Autostart schedule the workspace should carry, None when disabled."""
    if not params.autostart_enabled:
        return None
    return params.autostart_schedule or DEFAULT_AUTOSTART_SCHEDULE


class ExternalWorkspace:
    """External client for one Workspace reconcile.

    Wraps a CoderClient bound to freshly resolved credentials. Use as an
    async context manager so the underlying HTTP client is always closed,
    including when the reconcile is cancelled.
    """

    def __init__(self, client: CoderClient) -> None:
        self.client = client

    async def __aenter__(self) -> ExternalWorkspace:
        await self.client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.client.close()

    # -------------------------------------------------------------------------
    # Observe
    # -------------------------------------------------------------------------

    async def observe(self, workspace: Workspace) -> ExternalObservation:
        """Report whether the workspace exists and matches the desired state.

        Read-only: issues GET requests only.
        """
        remote = await self.client.get_workspace(workspace.owner, workspace.external_name)
        if remote is None or remote.is_deleted:
            return ExternalObservation(exists=False)

        diff = await self._diff(workspace, remote)
        for field_name in diff.fields():
            resource_type = "autostart" if field_name == "autostart" else "parameters"
            metrics.drift_detected_total.labels(kind=KIND_WORKSPACE, resource_type=resource_type).inc()

        return ExternalObservation(
            exists=True,
            up_to_date=not diff,
            connection_details=self._connection_details(workspace, remote),
            at_provider=self._at_provider(remote),
            diff=diff,
        )

    async def _diff(self, workspace: Workspace, remote: CoderWorkspace) -> WorkspaceDiff:
        diff = WorkspaceDiff()
        # A workspace on its way out is left alone.
        if remote.is_deleting:
            return diff

        params = workspace.parameters
        desired = params.rich_parameter_values()
        if desired and remote.latest_build is not None:
            current = await self.client.get_build_parameters(remote.latest_build.id)
            diff.parameters = {
                name: value for name, value in desired.items() if current.get(name) != value
            }

        if params.autostart_enabled is not None:
            schedule = desired_autostart_schedule(params)
            if schedule is None:
                changed = remote.autostart_schedule is not None
            elif params.autostart_schedule:
                changed = remote.autostart_schedule != schedule
            else:
                changed = remote.autostart_schedule is None
            diff.autostart_changed = changed
            diff.autostart_schedule = schedule

        return diff

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create(self, workspace: Workspace) -> dict[str, str]:
        """Create the workspace, resolving its user, organization and template.

        Succeeds without a second workspace when one with the same name
        already exists for the owner.

        Raises:
            ReferenceResolutionError: If the user, organization or template is not found
            RemoteCreateError: If Coder rejects the creation request
        """
        existing = await self.client.get_workspace(workspace.owner, workspace.external_name)
        if existing is not None and not existing.is_deleted:
            logger.info(f"Workspace {workspace.key} already exists, skipping create")
            return self._connection_details(workspace, existing)

        params = workspace.parameters
        user = await self._resolve_user(params)
        org_id = self._resolve_organization(user, params)
        template_id = await self._resolve_template(org_id, params)

        payload: dict[str, Any] = {
            "name": workspace.external_name,
            "template_id": template_id,
        }
        rich_parameters = params.rich_parameter_values()
        if rich_parameters:
            payload["rich_parameter_values"] = [
                {"name": name, "value": value} for name, value in sorted(rich_parameters.items())
            ]
        schedule = desired_autostart_schedule(params)
        if schedule:
            payload["autostart_schedule"] = schedule

        try:
            remote = await self.client.create_workspace(org_id, user.id, payload)
        except WorkspaceConflictError:
            logger.info(f"Workspace {workspace.key} was created concurrently, treating as created")
            remote = await self.client.get_workspace(workspace.owner, workspace.external_name)
            if remote is None:
                return {}
        return self._connection_details(workspace, remote)

    async def _resolve_user(self, params: WorkspaceParameters) -> CoderUser:
        user = await self.client.get_user(params.owner)
        if user is None:
            raise ReferenceResolutionError("User", params.owner)
        return user

    @staticmethod
    def _resolve_organization(user: CoderUser, params: WorkspaceParameters) -> str:
        if params.org_id:
            if user.organization_ids and params.org_id not in user.organization_ids:
                raise ReferenceResolutionError(
                    "Organization",
                    params.org_id,
                    detail=f"user {user.username} is not a member",
                )
            return params.org_id

        if len(user.organization_ids) == 1:
            return user.organization_ids[0]
        raise ReferenceResolutionError(
            "Organization",
            "(unset)",
            detail=f"user {user.username} belongs to {len(user.organization_ids)} organizations, set org_id",
        )

    async def _resolve_template(self, org_id: str, params: WorkspaceParameters) -> str:
        if params.template_id:
            return params.template_id
        if not params.template:
            raise ReferenceResolutionError("Template", "(unset)", detail="set template or template_id")

        templates = await self.client.list_templates(org_id)
        matches = [template for template in templates if template.name == params.template]
        if not matches:
            raise ReferenceResolutionError("Template", params.template, detail=f"organization {org_id}")
        if len(matches) > 1:
            raise ReferenceResolutionError(
                "Template",
                params.template,
                detail=f"{len(matches)} templates share this name in organization {org_id}",
            )
        return matches[0].id

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    async def update(self, workspace: Workspace) -> dict[str, str]:
        """Apply only the fields that diverge from the desired state.

        Raises:
            RemoteUpdateError: If the workspace is gone or Coder rejects the change
        """
        remote = await self.client.get_workspace(workspace.owner, workspace.external_name)
        if remote is None or remote.is_deleted:
            raise RemoteUpdateError(f"Workspace {workspace.key} does not exist", status_code=404)

        diff = await self._diff(workspace, remote)
        if diff.parameters:
            await self.client.create_build(remote.id, "start", diff.parameters)
            logger.info(f"Updated parameters {sorted(diff.parameters)} of workspace {workspace.key}")
        if diff.autostart_changed:
            await self.client.update_autostart(remote.id, diff.autostart_schedule)
            logger.info(f"Updated autostart of workspace {workspace.key}")
        return self._connection_details(workspace, remote)

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    async def delete(self, workspace: Workspace) -> None:
        """Delete the workspace. Deleting an absent workspace succeeds.

        Raises:
            RemoteDeleteError: If Coder rejects the delete build
        """
        remote = await self.client.get_workspace(workspace.owner, workspace.external_name)
        if remote is None or remote.is_deleted:
            logger.info(f"Workspace {workspace.key} not found - already deleted")
            return
        if remote.is_deleting:
            logger.info(f"Workspace {workspace.key} is already being deleted")
            return

        try:
            await self.client.delete_workspace(remote.id)
        except RemoteDeleteError as e:
            # 410 Gone: deleted between the lookup and the delete build
            if e.status_code in (404, 410):
                logger.info(f"Workspace {workspace.key} vanished before delete")
                return
            raise
        logger.info(f"Delete build started for workspace {workspace.key}")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _connection_details(self, workspace: Workspace, remote: CoderWorkspace) -> dict[str, str]:
        owner = remote.owner_name or workspace.owner
        name = remote.name or workspace.external_name
        return {
            "workspaceId": remote.id,
            "owner": owner,
            "name": name,
            "url": self.client.workspace_url(owner, name),
        }

    @staticmethod
    def _at_provider(remote: CoderWorkspace) -> dict[str, Any]:
        build = remote.latest_build
        return {
            "workspaceId": remote.id,
            "ownerName": remote.owner_name,
            "templateName": remote.template_name,
            "latestStat": build.status if build else None,
            "latestTransition": build.transition if build else None,
            "lastUsedAt": remote.last_used_at,
            "autostartSchedule": remote.autostart_schedule,
        }
