"""Models for Coder API payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Build statuses in which a delete transition has finished.
_DELETED_BUILD_STATUSES = {"deleted", "succeeded"}
# Build statuses in which a delete transition is still running.
_DELETING_BUILD_STATUSES = {"pending", "running", "deleting"}


@dataclass
class CoderUser:
    """A Coder user."""

    id: str
    username: str
    organization_ids: list[str] = field(default_factory=list)
    email: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CoderUser:
        return cls(
            id=data["id"],
            username=data.get("username", ""),
            organization_ids=list(data.get("organization_ids") or []),
            email=data.get("email"),
        )


@dataclass
class CoderTemplate:
    """A workspace template within an organization."""

    id: str
    name: str
    organization_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CoderTemplate:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            organization_id=data.get("organization_id"),
        )


@dataclass
class CoderBuild:
    """The latest build of a workspace."""

    id: str
    status: str | None = None
    transition: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CoderBuild:
        return cls(
            id=data.get("id", ""),
            status=data.get("status"),
            transition=data.get("transition"),
        )


@dataclass
class CoderWorkspace:
    """A Coder workspace."""

    id: str
    name: str
    owner_id: str | None = None
    owner_name: str | None = None
    organization_id: str | None = None
    template_id: str | None = None
    template_name: str | None = None
    autostart_schedule: str | None = None
    last_used_at: str | None = None
    deleted: bool = False
    latest_build: CoderBuild | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CoderWorkspace:
        latest_build = data.get("latest_build")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            owner_id=data.get("owner_id"),
            owner_name=data.get("owner_name"),
            organization_id=data.get("organization_id"),
            template_id=data.get("template_id"),
            template_name=data.get("template_name"),
            autostart_schedule=data.get("autostart_schedule") or None,
            last_used_at=data.get("last_used_at"),
            deleted=bool(data.get("deleted", False)),
            latest_build=CoderBuild.from_api(latest_build) if latest_build else None,
        )

    @property
    def is_deleted(self) -> bool:
        """Whether the workspace is gone for all practical purposes."""
        if self.deleted:
            return True
        build = self.latest_build
        return (
            build is not None
            and build.transition == "delete"
            and build.status in _DELETED_BUILD_STATUSES
        )

    @property
    def is_deleting(self) -> bool:
        """Whether a delete build is in flight."""
        build = self.latest_build
        return (
            build is not None
            and build.transition == "delete"
            and build.status in _DELETING_BUILD_STATUSES
        )
