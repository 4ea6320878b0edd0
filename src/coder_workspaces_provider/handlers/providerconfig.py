"""Handler for ProviderConfig CRD."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable

import kopf

from .. import metrics
from ..builders.connector import ClientFactory, credentials_from_spec, new_coder_client, validate_provider_config_spec
from ..config import get_settings
from ..constants import API_GROUP_VERSION, KIND_PROVIDER_CONFIG
from ..exceptions import CredentialResolutionError, ProviderError, RemoteAPIError
from ..tracing import trace_span
from ..utils.conditions import (
    set_auth_valid_condition,
    set_endpoint_reachable_condition,
    set_ready_condition,
    set_synced_condition,
)
from ..utils.errors import sanitize_exception
from ..utils.events import emit_validate_succeeded
from .base import BaseHandler
from .shared import get_core_v1_client


class ProviderConfigHandler(BaseHandler):
    """Handler for ProviderConfig resources."""

    def __init__(
        self,
        client_factory: ClientFactory = new_coder_client,
        core_api_factory: Callable[[], Any] = get_core_v1_client,
    ):
        """Initialize provider config handler."""
        super().__init__(KIND_PROVIDER_CONFIG)
        self.client_factory = client_factory
        self.core_api_factory = core_api_factory

    async def reconcile(
        self,
        body: dict[str, Any],
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile ProviderConfig resource."""
        name = meta.get("name", "unknown")

        with trace_span("reconcile_providerconfig", kind=KIND_PROVIDER_CONFIG, attributes={"providerconfig.name": name}):
            error_msg = validate_provider_config_spec(spec)
            if error_msg:
                generation = meta.get("generation")
                self.handle_validation_error(
                    body,
                    error_msg,
                    status,
                    patch,
                    condition_fn=lambda conditions, msg: set_synced_condition(
                        set_ready_condition(conditions, False, msg, generation), False, msg, generation
                    ),
                )

            emit_validate_succeeded(body)
            conditions = status.get("conditions", [])
            generation = meta.get("generation")

            with trace_span("resolve_credentials", kind=KIND_PROVIDER_CONFIG):
                try:
                    credentials = await asyncio.to_thread(
                        credentials_from_spec, dict(spec), self.core_api_factory()
                    )
                    auth_valid = True
                    auth_message = "Credentials resolved"
                except CredentialResolutionError as e:
                    credentials = None
                    auth_valid = False
                    auth_message = f"Credential resolution failed: {sanitize_exception(e)}"
                    metrics.error_total.labels(kind=KIND_PROVIDER_CONFIG, error_type=type(e).__name__).inc()
                    self.log_error(meta, auth_message, error=e, reason="AuthFailed")

            connected = False
            version = None
            if credentials is not None:
                with trace_span("test_connectivity", kind=KIND_PROVIDER_CONFIG):
                    try:
                        async with self.client_factory(credentials) as coder:
                            version = await coder.check_health()
                        connected = True
                        endpoint_message = "Coder API is reachable"
                        auth_message = "Session token accepted"
                        metrics.provider_connectivity_total.labels(provider=name, status="connected").inc()
                    except RemoteAPIError as e:
                        # The server answered, so the endpoint itself is fine
                        connected = e.status_code in (401, 403)
                        if connected:
                            auth_valid = False
                            auth_message = "Session token was rejected"
                            endpoint_message = "Coder API is reachable"
                        else:
                            endpoint_message = f"Health check failed: {sanitize_exception(e)}"
                        metrics.error_total.labels(kind=KIND_PROVIDER_CONFIG, error_type=type(e).__name__).inc()
                        metrics.provider_connectivity_total.labels(provider=name, status="error").inc()
                        self.log_error(meta, f"Health check failed: {sanitize_exception(e)}", error=e, reason="ConnectivityFailed")
                    except ProviderError as e:
                        endpoint_message = f"Connectivity test failed: {sanitize_exception(e)}"
                        metrics.error_total.labels(kind=KIND_PROVIDER_CONFIG, error_type=type(e).__name__).inc()
                        metrics.provider_connectivity_total.labels(provider=name, status="disconnected").inc()
                        self.log_error(meta, endpoint_message, error=e, reason="ConnectivityFailed")
            else:
                endpoint_message = "Cannot test connectivity due to auth failure"

            conditions = set_auth_valid_condition(conditions, auth_valid, auth_message, generation)
            conditions = set_endpoint_reachable_condition(conditions, connected, endpoint_message, generation)

            ready = auth_valid and connected
            ready_message = "ProviderConfig is ready" if ready else "ProviderConfig is not ready"
            conditions = set_ready_condition(conditions, ready, ready_message, generation)

            status_data = {
                "connected": connected,
                "lastConnectTime": datetime.now(timezone.utc).isoformat() if connected else None,
                "coderVersion": version,
                "conditions": conditions,
            }
            self.update_resource_status(patch, meta, ready, status_data)

    def delete(
        self,
        meta: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle ProviderConfig resource deletion."""
        self.log_info(meta, "ProviderConfig is being deleted", event="deletion", reason="Deletion")
        # Nothing external to clean up
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = ProviderConfigHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.update(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
@kopf.timer(API_GROUP_VERSION, KIND_PROVIDER_CONFIG, interval=get_settings().poll_interval)
async def handle_providerconfig(
    body: kopf.Body,
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle ProviderConfig resource reconciliation."""
    if meta.get("deletionTimestamp"):
        return
    _handler.ensure_finalizer(meta, patch)

    async def run() -> None:
        await _handler.reconcile(body, spec, meta, status, patch)

    await _handler.reconcile_with_metrics(body, run)


@kopf.on.delete(API_GROUP_VERSION, KIND_PROVIDER_CONFIG)
def handle_providerconfig_delete(
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle ProviderConfig resource deletion."""
    _handler.delete(meta, patch)
