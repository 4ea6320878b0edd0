"""Desired and observed state models for Workspace resources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import DEFAULT_OWNER, DELETION_POLICY_DELETE

# Workspace parameters forwarded to the template as rich parameter values.
RICH_PARAMETER_FIELDS = (
    "image_id",
    "image_tag",
    "cpu_cores",
    "memory_gb",
    "disk_gb",
    "gpus",
    "use_container_vm",
    "resource_pool_id",
    "namespace",
)


def normalize_username(username: str) -> str:
    """Normalize a user name the way Coder stores it (no dots, lower case)."""
    return username.strip().replace(".", "").lower()


def _parameter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class WorkspaceParameters:
    """Configurable fields of a Workspace (``spec.forProvider``)."""

    image_id: str | None = None
    org_id: str | None = None
    image_tag: str | None = None
    cpu_cores: str | None = None
    memory_gb: str | None = None
    disk_gb: int | None = None
    gpus: int | None = None
    use_container_vm: bool | None = None
    resource_pool_id: str | None = None
    namespace: str | None = None
    autostart_enabled: bool | None = None
    autostart_schedule: str | None = None
    user_name: str | None = None
    # Create the workspace for another user. Only admins and site managers may do this.
    for_user_id: str | None = None
    template_id: str | None = None
    template: str | None = None

    @property
    def owner(self) -> str:
        """Owner segment used in Coder paths."""
        if self.for_user_id:
            return self.for_user_id
        if self.user_name:
            return normalize_username(self.user_name)
        return DEFAULT_OWNER

    def rich_parameter_values(self) -> dict[str, str]:
        """Return the template parameters managed by this resource."""
        values = {}
        for name in RICH_PARAMETER_FIELDS:
            value = getattr(self, name)
            if value is None or value == "":
                continue
            values[name] = _parameter_value(value)
        return values


@dataclass(frozen=True)
class Workspace:
    """Snapshot of a Workspace custom resource for one reconcile."""

    name: str
    uid: str
    generation: int
    external_name: str
    parameters: WorkspaceParameters
    provider_config_name: str
    connection_secret_ref: dict[str, str] | None = None
    deletion_policy: str = DELETION_POLICY_DELETE
    deleting: bool = False

    @property
    def owner(self) -> str:
        return self.parameters.owner

    @property
    def key(self) -> str:
        """Composite external key, unique per owner and workspace name."""
        return f"{self.owner}/{self.external_name}"


@dataclass(frozen=True)
class Credentials:
    """Resolved Coder endpoint and session token."""

    endpoint: str
    token: str = field(repr=False)


@dataclass
class WorkspaceDiff:
    """Fields where the remote workspace diverges from the desired state."""

    parameters: dict[str, str] = field(default_factory=dict)
    autostart_schedule: str | None = None
    autostart_changed: bool = False

    def __bool__(self) -> bool:
        return bool(self.parameters) or self.autostart_changed

    def fields(self) -> list[str]:
        """Names of the diverging fields."""
        names = sorted(self.parameters)
        if self.autostart_changed:
            names.append("autostart")
        return names


@dataclass
class ExternalObservation:
    """Result of observing the external resource."""

    exists: bool
    up_to_date: bool = False
    connection_details: dict[str, str] = field(default_factory=dict)
    at_provider: dict[str, Any] = field(default_factory=dict)
    diff: WorkspaceDiff = field(default_factory=WorkspaceDiff)
