"""Exceptions raised while reconciling Coder workspaces."""

from __future__ import annotations

from typing import Any


class ProviderError(Exception):
    """Base exception for provider errors."""

    #: Whether the next poll may succeed without the desired state changing.
    retryable: bool = True

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class UnsupportedResourceError(ProviderError):
    """Raised when a handle is not a Workspace."""

    retryable = False


class CredentialResolutionError(ProviderError):
    """Raised when ProviderConfig credentials cannot be resolved."""


class ClientConstructionError(ProviderError):
    """Raised when a Coder client cannot be built from valid credentials."""


class ReferenceResolutionError(ProviderError):
    """Raised when a referenced user, organization or template cannot be found."""

    retryable = False

    def __init__(self, resource_type: str, identifier: str, detail: str | None = None) -> None:
        super().__init__(f"{resource_type} not found: {identifier}", detail)
        self.resource_type = resource_type
        self.identifier = identifier


class TransientNetworkError(ProviderError):
    """Raised on timeouts, connection failures, throttling and 5xx responses."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail)
        self.status_code = status_code


class RemoteAPIError(ProviderError):
    """Raised when the Coder API returns a non-success response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
        response_data: Any = None,
    ) -> None:
        super().__init__(message, detail)
        self.status_code = status_code
        self.response_data = response_data


class RemoteCreateError(RemoteAPIError):
    """Raised when workspace creation is rejected."""


class WorkspaceConflictError(RemoteCreateError):
    """Raised when a workspace with the same name already exists."""


class RemoteUpdateError(RemoteAPIError):
    """Raised when a workspace update is rejected."""


class RemoteDeleteError(RemoteAPIError):
    """Raised when a workspace deletion is rejected."""
