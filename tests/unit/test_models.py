"""Tests for Workspace models."""

from __future__ import annotations

import pytest

from coder_workspaces_provider.models import WorkspaceDiff, WorkspaceParameters, normalize_username


@pytest.mark.parametrize(
    "username,expected",
    [("jane.doe", "janedoe"), ("Jane.Doe", "janedoe"), (" bob ", "bob"), ("a.b.c", "abc")],
)
def test_normalize_username(username, expected):
    assert normalize_username(username) == expected


class TestWorkspaceParameters:
    """Test cases for WorkspaceParameters."""

    def test_owner_prefers_for_user_id(self):
        params = WorkspaceParameters(user_name="jane.doe", for_user_id="user-9")
        assert params.owner == "user-9"

    def test_owner_from_user_name(self):
        assert WorkspaceParameters(user_name="Jane.Doe").owner == "janedoe"

    def test_owner_defaults_to_me(self):
        assert WorkspaceParameters().owner == "me"

    def test_rich_parameter_values(self):
        params = WorkspaceParameters(
            image_tag="v1",
            disk_gb=20,
            use_container_vm=False,
            namespace="",
            template="base-image",
            autostart_enabled=True,
        )

        assert params.rich_parameter_values() == {
            "image_tag": "v1",
            "disk_gb": "20",
            "use_container_vm": "false",
        }


class TestWorkspaceDiff:
    """Test cases for WorkspaceDiff."""

    def test_empty_is_falsy(self):
        assert not WorkspaceDiff()

    def test_fields(self):
        diff = WorkspaceDiff(parameters={"gpus": "1", "cpu_cores": "4"}, autostart_changed=True)

        assert diff
        assert diff.fields() == ["cpu_cores", "gpus", "autostart"]
