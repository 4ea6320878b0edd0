"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import kopf
import pytest

from coder_workspaces_provider.constants import FINALIZER
from coder_workspaces_provider.handlers.base import BaseHandler

BODY = {
    "apiVersion": "coder.crossplane.io/v1alpha1",
    "kind": "Workspace",
    "metadata": {"name": "dev", "uid": "uid-dev", "generation": 4},
}


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="TestKind")
        assert handler.kind == "TestKind"
        assert handler.logger is not None

    def test_ensure_finalizer_adds_when_missing(self):
        """Test that finalizer is added when not present."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.ensure_finalizer({"finalizers": []}, patch_obj)

        assert FINALIZER in patch_obj.metadata["finalizers"]

    def test_ensure_finalizer_no_patch_when_present(self):
        """Test that no patch is made when the finalizer is already present."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.ensure_finalizer({"finalizers": [FINALIZER]}, patch_obj)

        assert "finalizers" not in patch_obj.metadata

    def test_ensure_finalizer_does_not_mutate_meta(self):
        """Test that the incoming metadata is left untouched."""
        handler = BaseHandler(kind="TestKind")
        meta = {"finalizers": ["other"]}

        handler.ensure_finalizer(meta, kopf.Patch())

        assert meta["finalizers"] == ["other"]

    def test_remove_finalizer(self):
        """Test that only our finalizer is removed."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.remove_finalizer({"finalizers": [FINALIZER, "other-finalizer"]}, patch_obj)

        assert patch_obj.metadata["finalizers"] == ["other-finalizer"]

    def test_remove_finalizer_sets_none_when_empty(self):
        """Test that finalizers is set to None when last finalizer is removed."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.remove_finalizer({"finalizers": [FINALIZER]}, patch_obj)

        assert patch_obj.metadata["finalizers"] is None

    @patch("coder_workspaces_provider.handlers.base.emit_reconcile_failed")
    @patch("coder_workspaces_provider.handlers.base.emit_validate_failed")
    @patch("coder_workspaces_provider.handlers.base.metrics")
    def test_handle_validation_error_is_permanent(self, mock_metrics, mock_emit, mock_emit_failed):
        """Test that validation errors stop retries."""
        handler = BaseHandler(kind="Workspace")

        with pytest.raises(kopf.PermanentError, match="template is required"):
            handler.handle_validation_error(BODY, "template is required")

        mock_emit.assert_called_once_with(BODY, "template is required")
        mock_emit_failed.assert_called_once()
        mock_metrics.error_total.labels.assert_called_with(kind="Workspace", error_type="ValidationError")

    @patch("coder_workspaces_provider.handlers.base.emit_reconcile_failed")
    @patch("coder_workspaces_provider.handlers.base.emit_validate_failed")
    def test_handle_validation_error_records_status(self, mock_emit, mock_emit_failed):
        """Test that the validation failure is written to the status before stopping."""
        handler = BaseHandler(kind="Workspace")
        patch_obj = kopf.Patch()
        status = {"conditions": [{"type": "Synced", "status": "True", "reason": "ReconcileSuccess"}]}

        def condition_fn(conditions, message):
            return [dict(c, status="False", message=message) for c in conditions]

        with pytest.raises(kopf.PermanentError):
            handler.handle_validation_error(
                BODY, "template is required", status, patch_obj, condition_fn=condition_fn
            )

        assert patch_obj.status["observedGeneration"] == 4
        assert patch_obj.status["conditions"][0]["status"] == "False"
        assert patch_obj.status["conditions"][0]["message"] == "template is required"
        assert status["conditions"][0]["status"] == "True"

    @patch("coder_workspaces_provider.handlers.base.emit_reconcile_failed")
    def test_handle_reconciliation_error(self, mock_emit):
        """Test that failures are recorded on the status with the condition callback."""
        handler = BaseHandler(kind="Workspace")
        patch_obj = kopf.Patch()

        def condition_fn(conditions, message):
            return conditions + [{"type": "Synced", "status": "False", "message": message}]

        handler.handle_reconciliation_error(
            BODY, {}, patch_obj, ValueError("token=abc"), condition_fn=condition_fn, condition_msg="failed"
        )

        assert patch_obj.status["observedGeneration"] == 4
        assert patch_obj.status["conditions"][0]["message"] == "failed"
        assert "abc" not in mock_emit.call_args[0][1]

    @pytest.mark.asyncio
    @patch("coder_workspaces_provider.handlers.base.emit_reconcile_started")
    @patch("coder_workspaces_provider.handlers.base.metrics")
    async def test_reconcile_with_metrics_success(self, mock_metrics, mock_emit_started):
        """Test successful reconciliation with metrics."""
        handler = BaseHandler(kind="TestKind")
        reconcile_fn = AsyncMock()

        await handler.reconcile_with_metrics(BODY, reconcile_fn)

        reconcile_fn.assert_awaited_once()
        mock_emit_started.assert_called_once_with(BODY)
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="started")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="success")
        assert mock_metrics.reconcile_duration_seconds.labels.called

    @pytest.mark.asyncio
    @patch("coder_workspaces_provider.handlers.base.emit_reconcile_started")
    @patch("coder_workspaces_provider.handlers.base.metrics")
    async def test_reconcile_with_metrics_failure(self, mock_metrics, mock_emit_started):
        """Test failed reconciliation with metrics."""
        handler = BaseHandler(kind="TestKind")
        reconcile_fn = AsyncMock(side_effect=ValueError("Test error"))

        with pytest.raises(ValueError):
            await handler.reconcile_with_metrics(BODY, reconcile_fn)

        mock_metrics.error_total.labels.assert_called_with(kind="TestKind", error_type="ValueError")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="error")

    @pytest.mark.asyncio
    @patch("coder_workspaces_provider.handlers.base.emit_reconcile_started")
    @patch("coder_workspaces_provider.handlers.base.metrics")
    async def test_reconcile_with_metrics_requeue(self, mock_metrics, mock_emit_started):
        """Test that a requested retry is counted as requeued, not as an error."""
        handler = BaseHandler(kind="TestKind")
        reconcile_fn = AsyncMock(side_effect=kopf.TemporaryError("waiting", delay=1))

        with pytest.raises(kopf.TemporaryError):
            await handler.reconcile_with_metrics(BODY, reconcile_fn)

        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="requeued")
        mock_metrics.error_total.labels.assert_not_called()

    @patch("coder_workspaces_provider.handlers.base.metrics")
    def test_update_resource_status_ready(self, mock_metrics):
        """Test updating resource status to ready."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.update_resource_status(patch_obj, {"generation": 5}, ready=True, status_data={"atProvider": {"workspaceId": "ws-1"}})

        assert patch_obj.status["observedGeneration"] == 5
        assert patch_obj.status["atProvider"] == {"workspaceId": "ws-1"}
        mock_metrics.resource_status_total.labels.assert_called_with(kind="TestKind", status="ready")

    @patch("coder_workspaces_provider.handlers.base.metrics")
    def test_update_resource_status_not_ready(self, mock_metrics):
        """Test updating resource status to not ready."""
        handler = BaseHandler(kind="TestKind")
        patch_obj = kopf.Patch()

        handler.update_resource_status(patch_obj, {}, ready=False)

        assert patch_obj.status["observedGeneration"] == 0
        mock_metrics.resource_status_total.labels.assert_called_with(kind="TestKind", status="not_ready")
