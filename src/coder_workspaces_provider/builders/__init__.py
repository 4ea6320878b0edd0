"""Builders for Kubernetes resources."""

from .connector import WorkspaceConnector, new_coder_client
from .workspace import create_workspace_from_body, validate_workspace_spec

__all__ = [
    "WorkspaceConnector",
    "new_coder_client",
    "create_workspace_from_body",
    "validate_workspace_spec",
]
