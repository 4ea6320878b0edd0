"""Async HTTP client for the Coder API."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from ... import metrics
from ...constants import CODER_API_PREFIX, CODER_SESSION_HEADER
from ...exceptions import (
    ReferenceResolutionError,
    RemoteAPIError,
    RemoteCreateError,
    RemoteDeleteError,
    RemoteUpdateError,
    TransientNetworkError,
    WorkspaceConflictError,
)
from .models import CoderBuild, CoderTemplate, CoderUser, CoderWorkspace

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


class CoderClient:
    """
    Async client for the Coder API, bound to one endpoint and session token.

    Every call is a single HTTP request with a bounded timeout. Timeouts,
    connection failures, throttling and 5xx responses raise
    TransientNetworkError; other failures raise the error class of the
    operation being performed.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Coder client.

        Args:
            url: Coder deployment URL, e.g. https://coder.example.com
            token: Coder session token or API key
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used to inject test doubles)
        """
        if not url:
            raise ValueError("Coder URL is required")
        if not token:
            raise ValueError("Coder session token is required")
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> CoderClient:
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.url,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "Accept": "application/json",
                    CODER_SESSION_HEADER: self._token,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def _safe_json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request and map transport failures.

        Raises:
            TransientNetworkError: On timeout, connection failure, 429 or 5xx
        """
        client = self._ensure_client()
        start_time = time.time()
        try:
            resp = await client.request(method, f"{CODER_API_PREFIX}{path}", **kwargs)
        except httpx.TimeoutException as e:
            metrics.api_call_total.labels(api_type="coder", operation=operation, result="timeout").inc()
            raise TransientNetworkError(
                f"Coder API {operation} timed out after {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            metrics.api_call_total.labels(api_type="coder", operation=operation, result="error").inc()
            raise TransientNetworkError(
                f"Failed to reach Coder API during {operation}", detail=str(e)
            ) from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="coder", operation=operation).observe(duration)

        result = "success" if resp.is_success else "error"
        metrics.api_call_total.labels(api_type="coder", operation=operation, result=result).inc()

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientNetworkError(
                f"Coder API {operation} returned {resp.status_code}",
                status_code=resp.status_code,
                detail=resp.text,
            )
        return resp

    def _raise_for_status(
        self,
        resp: httpx.Response,
        error_cls: type[RemoteAPIError],
        message: str,
    ) -> None:
        if resp.is_success:
            return
        logger.error(f"{message}: status={resp.status_code}, response={resp.text}")
        raise error_cls(
            message,
            status_code=resp.status_code,
            detail=resp.text,
            response_data=self._safe_json(resp),
        )

    # -------------------------------------------------------------------------
    # Users and templates
    # -------------------------------------------------------------------------

    async def get_user(self, user: str) -> CoderUser | None:
        """
        Get a user by username, ID or "me".

        Returns:
            CoderUser, or None if no such user exists
        """
        resp = await self._request("GET", f"/users/{_segment(user)}", "get_user")
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, RemoteAPIError, f"Failed to get user '{user}'")
        return CoderUser.from_api(resp.json())

    async def list_templates(self, org_id: str) -> list[CoderTemplate]:
        """
        List the templates of an organization.

        Raises:
            ReferenceResolutionError: If the organization does not exist
        """
        resp = await self._request(
            "GET", f"/organizations/{_segment(org_id)}/templates", "list_templates"
        )
        if resp.status_code == 404:
            raise ReferenceResolutionError("Organization", org_id)
        self._raise_for_status(resp, RemoteAPIError, f"Failed to list templates of organization '{org_id}'")
        return [CoderTemplate.from_api(item) for item in resp.json() or []]

    # -------------------------------------------------------------------------
    # Workspaces
    # -------------------------------------------------------------------------

    async def get_workspace(self, owner: str, name: str) -> CoderWorkspace | None:
        """
        Get a workspace by owner and name.

        Returns:
            CoderWorkspace, or None if it does not exist
        """
        resp = await self._request(
            "GET",
            f"/users/{_segment(owner)}/workspace/{_segment(name)}",
            "get_workspace",
        )
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, RemoteAPIError, f"Failed to get workspace '{owner}/{name}'")
        return CoderWorkspace.from_api(resp.json())

    async def get_build_parameters(self, build_id: str) -> dict[str, str]:
        """Get the rich parameter values a workspace build ran with."""
        resp = await self._request(
            "GET", f"/workspacebuilds/{_segment(build_id)}/parameters", "get_build_parameters"
        )
        self._raise_for_status(resp, RemoteAPIError, f"Failed to get parameters of build '{build_id}'")
        return {item["name"]: str(item.get("value", "")) for item in resp.json() or []}

    async def create_workspace(
        self,
        org_id: str,
        user_id: str,
        payload: dict[str, Any],
    ) -> CoderWorkspace:
        """
        Create a workspace for a member of an organization.

        Raises:
            WorkspaceConflictError: If a workspace with that name already exists
            RemoteCreateError: If creation fails
        """
        resp = await self._request(
            "POST",
            f"/organizations/{_segment(org_id)}/members/{_segment(user_id)}/workspaces",
            "create_workspace",
            json=payload,
        )
        name = payload.get("name")
        if resp.status_code == 409:
            raise WorkspaceConflictError(
                f"Workspace '{name}' already exists",
                status_code=resp.status_code,
                detail=resp.text,
            )
        self._raise_for_status(resp, RemoteCreateError, f"Failed to create workspace '{name}'")
        logger.info(f"Created workspace: {name} for user {user_id}")
        return CoderWorkspace.from_api(resp.json())

    async def create_build(
        self,
        workspace_id: str,
        transition: str,
        rich_parameter_values: dict[str, str] | None = None,
        error_cls: type[RemoteAPIError] = RemoteUpdateError,
    ) -> CoderBuild:
        """
        Start a build transition ("start", "stop" or "delete") on a workspace.

        Coder deletes workspaces by creating a build with transition="delete".
        """
        payload: dict[str, Any] = {"transition": transition}
        if rich_parameter_values:
            payload["rich_parameter_values"] = [
                {"name": name, "value": value} for name, value in sorted(rich_parameter_values.items())
            ]
        resp = await self._request(
            "POST",
            f"/workspaces/{_segment(workspace_id)}/builds",
            f"{transition}_build",
            json=payload,
        )
        self._raise_for_status(
            resp, error_cls, f"Failed to start {transition} build for workspace '{workspace_id}'"
        )
        return CoderBuild.from_api(resp.json())

    async def delete_workspace(self, workspace_id: str) -> CoderBuild:
        """Start a delete build for a workspace."""
        return await self.create_build(workspace_id, "delete", error_cls=RemoteDeleteError)

    async def update_autostart(self, workspace_id: str, schedule: str | None) -> None:
        """Set or clear (schedule=None) the autostart schedule of a workspace."""
        resp = await self._request(
            "PUT",
            f"/workspaces/{_segment(workspace_id)}/autostart",
            "update_autostart",
            json={"schedule": schedule},
        )
        self._raise_for_status(
            resp, RemoteUpdateError, f"Failed to update autostart for workspace '{workspace_id}'"
        )

    def workspace_url(self, owner: str, name: str) -> str:
        """Dashboard URL of a workspace."""
        return f"{self.url}/@{owner}/{name}"

    async def check_health(self) -> str:
        """
        Check that the deployment is reachable and the token is accepted.

        Returns:
            Coder server version
        """
        resp = await self._request("GET", "/buildinfo", "buildinfo")
        self._raise_for_status(resp, RemoteAPIError, "Coder health check failed")
        version = (self._safe_json(resp) or {}).get("version", "unknown")

        resp = await self._request("GET", "/users/me", "get_user")
        self._raise_for_status(resp, RemoteAPIError, "Coder session token was rejected")
        return version
