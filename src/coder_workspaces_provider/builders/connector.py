"""Connector that builds Coder clients from ProviderConfig credentials."""

from __future__ import annotations

import asyncio
import os
from typing import Any, Callable

from kubernetes import client

from ..config import get_settings
from ..constants import (
    API_GROUP,
    API_VERSION,
    CREDENTIALS_SOURCE_ENVIRONMENT,
    CREDENTIALS_SOURCE_SECRET,
    DEFAULT_CREDENTIALS_KEY,
    KIND_WORKSPACE,
    PLURAL_PROVIDER_CONFIGS,
)
from ..exceptions import (
    ClientConstructionError,
    CredentialResolutionError,
    UnsupportedResourceError,
)
from ..models import Credentials, Workspace
from ..services.coder.client import CoderClient
from ..services.coder.workspace import ExternalWorkspace
from ..utils.errors import sanitize_exception
from ..utils.secrets import get_secret_value

ClientFactory = Callable[[Credentials], CoderClient]


def new_coder_client(credentials: Credentials) -> CoderClient:
    """Default client factory."""
    return CoderClient(
        url=credentials.endpoint,
        token=credentials.token,
        timeout=get_settings().request_timeout,
    )


def get_provider_config(api: client.CustomObjectsApi, name: str) -> dict[str, Any]:
    """Read a cluster-scoped ProviderConfig.

    Raises:
        CredentialResolutionError: If the ProviderConfig cannot be read
    """
    try:
        return api.get_cluster_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            plural=PLURAL_PROVIDER_CONFIGS,
            name=name,
        )
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise CredentialResolutionError(f"ProviderConfig {name} not found") from e
        raise CredentialResolutionError(
            f"cannot get ProviderConfig {name}", detail=f"status {e.status}"
        ) from e


def validate_provider_config_spec(spec: dict[str, Any]) -> str | None:
    """Validate a ProviderConfig spec.

    Returns:
        An error message, or None when the spec is valid
    """
    coder_url = spec.get("coderUrl")
    if not coder_url:
        return "spec.coderUrl is required"
    if not str(coder_url).startswith(("http://", "https://")):
        return "spec.coderUrl must be an http or https URL"

    credentials = spec.get("credentials") or {}
    source = credentials.get("source", CREDENTIALS_SOURCE_SECRET)
    if source == CREDENTIALS_SOURCE_SECRET:
        secret_ref = credentials.get("secretRef") or {}
        if not secret_ref.get("name") or not secret_ref.get("namespace"):
            return "spec.credentials.secretRef requires name and namespace"
    elif source == CREDENTIALS_SOURCE_ENVIRONMENT:
        if not (credentials.get("env") or {}).get("name"):
            return "spec.credentials.env.name is required"
    else:
        return f"spec.credentials.source must be {CREDENTIALS_SOURCE_SECRET} or {CREDENTIALS_SOURCE_ENVIRONMENT}"
    return None


def credentials_from_spec(spec: dict[str, Any], core_api: client.CoreV1Api) -> Credentials:
    """Extract credentials from a ProviderConfig spec.

    Supported sources are ``Secret`` (``secretRef``) and ``Environment``
    (``env.name``).

    Raises:
        CredentialResolutionError: If the spec is incomplete or the credentials cannot be read
    """
    coder_url = spec.get("coderUrl")
    if not coder_url:
        raise CredentialResolutionError("ProviderConfig spec.coderUrl is required")

    credentials = spec.get("credentials") or {}
    source = credentials.get("source", CREDENTIALS_SOURCE_SECRET)

    if source == CREDENTIALS_SOURCE_SECRET:
        secret_ref = credentials.get("secretRef") or {}
        secret_name = secret_ref.get("name")
        secret_ns = secret_ref.get("namespace")
        if not secret_name or not secret_ns:
            raise CredentialResolutionError("credentials.secretRef requires name and namespace")
        key = secret_ref.get("key", DEFAULT_CREDENTIALS_KEY)
        try:
            token = get_secret_value(core_api, secret_ns, secret_name, key)
        except ValueError as e:
            raise CredentialResolutionError("cannot read session token", detail=str(e)) from e
        except client.exceptions.ApiException as e:
            raise CredentialResolutionError(
                "cannot read session token", detail=f"reading secret {secret_ns}/{secret_name} failed with status {e.status}"
            ) from e
    elif source == CREDENTIALS_SOURCE_ENVIRONMENT:
        env_name = (credentials.get("env") or {}).get("name")
        if not env_name:
            raise CredentialResolutionError("credentials.env.name is required")
        token = os.environ.get(env_name, "")
        if not token:
            raise CredentialResolutionError(f"environment variable {env_name} is not set")
    else:
        raise CredentialResolutionError(f"unsupported credentials source: {source}")

    token = token.strip()
    if not token:
        raise CredentialResolutionError("session token is empty")
    return Credentials(endpoint=coder_url, token=token)


def resolve_credentials(
    custom_api: client.CustomObjectsApi,
    core_api: client.CoreV1Api,
    provider_config_name: str,
) -> Credentials:
    """Resolve the credentials referenced by a ProviderConfig name."""
    provider_config = get_provider_config(custom_api, provider_config_name)
    return credentials_from_spec(provider_config.get("spec", {}), core_api)


class WorkspaceConnector:
    """Produces an ExternalWorkspace for a Workspace.

    Credentials are resolved on every call; nothing is cached between
    reconciles. The client factory is injected so tests can supply doubles.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        core_api: client.CoreV1Api,
        new_client_fn: ClientFactory = new_coder_client,
    ) -> None:
        self.custom_api = custom_api
        self.core_api = core_api
        self.new_client_fn = new_client_fn

    async def connect(self, workspace: Workspace) -> ExternalWorkspace:
        """Resolve credentials and bind a Coder client to them.

        Raises:
            UnsupportedResourceError: If the handle is not a Workspace
            CredentialResolutionError: If credentials cannot be resolved
            ClientConstructionError: If the client cannot be built
        """
        if not isinstance(workspace, Workspace):
            raise UnsupportedResourceError(
                f"managed resource is not a {KIND_WORKSPACE} custom resource",
                detail=type(workspace).__name__,
            )

        # The kubernetes client is blocking; keep it off the event loop.
        credentials = await asyncio.to_thread(
            resolve_credentials,
            self.custom_api,
            self.core_api,
            workspace.provider_config_name,
        )

        try:
            coder_client = self.new_client_fn(credentials)
        except Exception as e:
            raise ClientConstructionError(
                "cannot create Coder client", detail=sanitize_exception(e)
            ) from e
        return ExternalWorkspace(coder_client)
