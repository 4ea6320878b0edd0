"""Reconcile-and-converge loop for externally owned resources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Protocol

from .constants import DELETION_POLICY_ORPHAN
from .models import ExternalObservation, Workspace
from .tracing import trace_span

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """What one reconcile did to the external resource."""

    NONE = "none"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ExternalClient(Protocol):
    """Operations against one external resource."""

    async def __aenter__(self) -> ExternalClient:
        ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        ...

    async def observe(self, resource: Workspace) -> ExternalObservation:
        """Observe the external resource. Must not mutate it."""
        ...

    async def create(self, resource: Workspace) -> dict[str, str]:
        """Create the external resource and return connection details."""
        ...

    async def update(self, resource: Workspace) -> dict[str, str]:
        """Update the external resource and return connection details."""
        ...

    async def delete(self, resource: Workspace) -> None:
        """Delete the external resource. Deleting an absent resource succeeds."""
        ...


class Connector(Protocol):
    """Produces an ExternalClient bound to freshly resolved credentials."""

    async def connect(self, resource: Workspace) -> ExternalClient:
        ...


ConnectionPublisher = Callable[[Workspace, dict[str, str]], Awaitable[None]]


def next_action(observation: ExternalObservation, deleting: bool) -> Action:
    """Choose the single action that moves the resource toward its desired state."""
    if deleting:
        return Action.DELETE if observation.exists else Action.NONE
    if not observation.exists:
        return Action.CREATE
    if not observation.up_to_date:
        return Action.UPDATE
    return Action.NONE


@dataclass
class ReconcileResult:
    """Outcome of one reconcile."""

    action: Action
    observation: ExternalObservation
    connection_details: dict[str, str] = field(default_factory=dict)

    @property
    def gone(self) -> bool:
        """Whether a deleting resource no longer exists externally."""
        return self.action is Action.NONE and not self.observation.exists


class Reconciler:
    """Drives an external resource toward the desired state, one action per call.

    Holds no state between calls: every reconcile connects anew, observes,
    then performs at most one of create, update or delete. Errors propagate
    to the caller, which decides whether and when to retry.
    """

    def __init__(
        self,
        connector: Connector,
        publisher: ConnectionPublisher | None = None,
    ) -> None:
        self.connector = connector
        self.publisher = publisher

    async def reconcile(self, resource: Workspace) -> ReconcileResult:
        """Run one observe-and-converge pass for the resource."""
        if resource.deleting and resource.deletion_policy == DELETION_POLICY_ORPHAN:
            logger.info(f"Orphaning external resource {resource.key}")
            return ReconcileResult(Action.NONE, ExternalObservation(exists=False))

        external = await self.connector.connect(resource)
        async with external:
            with trace_span("observe", attributes={"external.key": resource.key}):
                observation = await external.observe(resource)

            action = next_action(observation, resource.deleting)
            details = observation.connection_details

            if action is not Action.NONE:
                with trace_span(action.value, attributes={"external.key": resource.key}):
                    if action is Action.CREATE:
                        details = await external.create(resource)
                    elif action is Action.UPDATE:
                        details = await external.update(resource)
                    else:
                        await external.delete(resource)
                        details = {}

        if details and self.publisher is not None and not resource.deleting:
            await self.publisher(resource, details)

        return ReconcileResult(action, observation, details)
