"""Shared fixtures: an in-memory Coder API served through httpx.MockTransport."""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import pytest

from coder_workspaces_provider.models import Workspace, WorkspaceParameters
from coder_workspaces_provider.services.coder.client import CoderClient

CODER_URL = "https://coder.example.com"
CODER_TOKEN = "test-session-token"


class FakeCoder:
    """Minimal stateful stand-in for the Coder API endpoints the provider uses."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.templates: dict[str, list[dict[str, Any]]] = {}
        self.workspaces: dict[tuple[str, str], dict[str, Any]] = {}
        self.build_parameters: dict[str, list[dict[str, str]]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self.rejections: list[tuple[str, str, int]] = []
        self._ids = 0

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}-{self._ids}"

    # Seeding

    def add_user(self, username: str, user_id: str, organization_ids: list[str], me: bool = False) -> dict[str, Any]:
        record = {"id": user_id, "username": username, "organization_ids": organization_ids}
        self.users[username] = record
        self.users[user_id] = record
        if me:
            self.users["me"] = record
        return record

    def add_template(self, org_id: str, name: str, template_id: str) -> None:
        self.templates.setdefault(org_id, []).append(
            {"id": template_id, "name": name, "organization_id": org_id}
        )

    def add_workspace(
        self,
        owner: str,
        name: str,
        parameters: dict[str, str] | None = None,
        autostart_schedule: str | None = None,
        transition: str = "start",
        status: str = "running",
    ) -> dict[str, Any]:
        build_id = self._next_id("build")
        workspace = {
            "id": self._next_id("ws"),
            "name": name,
            "owner_id": self.users.get(owner, {}).get("id"),
            "owner_name": owner,
            "template_name": "base-image",
            "autostart_schedule": autostart_schedule,
            "last_used_at": "2024-01-01T00:00:00Z",
            "latest_build": {"id": build_id, "status": status, "transition": transition},
        }
        self.workspaces[(owner, name)] = workspace
        self.build_parameters[build_id] = [
            {"name": key, "value": value} for key, value in (parameters or {}).items()
        ]
        return workspace

    def reject(self, method: str, path_pattern: str, status: int) -> None:
        """Answer matching requests with the given status instead of routing them."""
        self.rejections.append((method, path_pattern, status))

    # Inspection

    @property
    def writes(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.method != "GET"]

    def _find_by_id(self, workspace_id: str) -> dict[str, Any] | None:
        for workspace in self.workspaces.values():
            if workspace["id"] == workspace_id:
                return workspace
        return None

    def _owner_name(self, owner: str) -> str:
        return self.users[owner]["username"] if owner in self.users else owner

    # Transport

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "injected failure"})

        path = request.url.path
        for method, pattern, status in self.rejections:
            if request.method == method and re.fullmatch(pattern, path):
                return httpx.Response(status, json={"message": "rejected"})
        body = json.loads(request.content) if request.content else None

        if request.method == "GET" and path == "/api/v2/buildinfo":
            return httpx.Response(200, json={"version": "v2.10.0"})

        match = re.fullmatch(r"/api/v2/users/([^/]+)/workspace/([^/]+)", path)
        if match and request.method == "GET":
            workspace = self.workspaces.get((self._owner_name(match[1]), match[2]))
            if workspace is None:
                return httpx.Response(404, json={"message": "workspace not found"})
            return httpx.Response(200, json=workspace)

        match = re.fullmatch(r"/api/v2/users/([^/]+)", path)
        if match and request.method == "GET":
            user = self.users.get(match[1])
            if user is None:
                return httpx.Response(404, json={"message": "user not found"})
            return httpx.Response(200, json=user)

        match = re.fullmatch(r"/api/v2/organizations/([^/]+)/templates", path)
        if match and request.method == "GET":
            if match[1] not in self.templates:
                return httpx.Response(404, json={"message": "organization not found"})
            return httpx.Response(200, json=self.templates[match[1]])

        match = re.fullmatch(r"/api/v2/organizations/([^/]+)/members/([^/]+)/workspaces", path)
        if match and request.method == "POST":
            owner = self.users[match[2]]["username"]
            if (owner, body["name"]) in self.workspaces:
                return httpx.Response(409, json={"message": "workspace already exists"})
            workspace = self.add_workspace(
                owner,
                body["name"],
                parameters={p["name"]: p["value"] for p in body.get("rich_parameter_values", [])},
                autostart_schedule=body.get("autostart_schedule"),
                status="pending",
            )
            workspace["template_id"] = body["template_id"]
            workspace["organization_id"] = match[1]
            return httpx.Response(201, json=workspace)

        match = re.fullmatch(r"/api/v2/workspacebuilds/([^/]+)/parameters", path)
        if match and request.method == "GET":
            return httpx.Response(200, json=self.build_parameters.get(match[1], []))

        match = re.fullmatch(r"/api/v2/workspaces/([^/]+)/builds", path)
        if match and request.method == "POST":
            workspace = self._find_by_id(match[1])
            if workspace is None:
                return httpx.Response(404, json={"message": "workspace not found"})
            build_id = self._next_id("build")
            build = {"id": build_id, "status": "pending", "transition": body["transition"]}
            previous = self.build_parameters.get(workspace["latest_build"]["id"], [])
            merged = {p["name"]: p["value"] for p in previous}
            merged.update({p["name"]: p["value"] for p in body.get("rich_parameter_values", [])})
            self.build_parameters[build_id] = [{"name": k, "value": v} for k, v in merged.items()]
            workspace["latest_build"] = build
            return httpx.Response(201, json=build)

        match = re.fullmatch(r"/api/v2/workspaces/([^/]+)/autostart", path)
        if match and request.method == "PUT":
            workspace = self._find_by_id(match[1])
            if workspace is None:
                return httpx.Response(404, json={"message": "workspace not found"})
            workspace["autostart_schedule"] = body["schedule"]
            return httpx.Response(204)

        return httpx.Response(404, json={"message": f"no route for {request.method} {path}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> CoderClient:
        return CoderClient(CODER_URL, CODER_TOKEN, timeout=5.0, transport=self.transport())


@pytest.fixture
def coder() -> FakeCoder:
    """Coder API seeded with user jane.doe in org1 and template base-image."""
    fake = FakeCoder()
    fake.add_user("janedoe", "user-1", ["org1"], me=True)
    fake.add_template("org1", "base-image", "tmpl-1")
    fake.add_template("org1", "gpu-image", "tmpl-2")
    return fake


def make_workspace(
    name: str = "dev",
    deleting: bool = False,
    deletion_policy: str = "Delete",
    connection_secret_ref: dict[str, str] | None = None,
    **parameters: Any,
) -> Workspace:
    """Build a Workspace snapshot; parameters default to jane.doe on base-image in org1."""
    values = {"user_name": "jane.doe", "template": "base-image", "org_id": "org1"}
    values.update(parameters)
    return Workspace(
        name=name,
        uid=f"uid-{name}",
        generation=1,
        external_name=name,
        parameters=WorkspaceParameters(**values),
        provider_config_name="default",
        connection_secret_ref=connection_secret_ref,
        deletion_policy=deletion_policy,
        deleting=deleting,
    )


def make_body(name: str = "dev", **spec_overrides: Any) -> dict[str, Any]:
    """Build a Workspace resource body as kopf delivers it."""
    spec = {
        "forProvider": {"user_name": "jane.doe", "template": "base-image", "org_id": "org1"},
        "providerConfigRef": {"name": "default"},
    }
    spec.update(spec_overrides)
    return {
        "apiVersion": "coder.crossplane.io/v1alpha1",
        "kind": "Workspace",
        "metadata": {"name": name, "uid": f"uid-{name}", "generation": 1},
        "spec": spec,
    }
