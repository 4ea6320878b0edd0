"""Tests for health check endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from coder_workspaces_provider import health
from coder_workspaces_provider import metrics  # noqa: F401


def _environ(path: str) -> dict:
    return {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": path,
        "SCRIPT_NAME": "",
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8080",
        "wsgi.url_scheme": "http",
    }


@pytest.fixture(autouse=True)
def reset_readiness():
    health.mark_not_ready()
    yield
    health.mark_not_ready()


class TestCombinedWsgiApp:
    """Test cases for the combined metrics and health app."""

    def test_healthz(self):
        """Test that /healthz is always ok."""
        app = health.create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/healthz"), start_response))

        assert b'"status":"ok"' in body
        assert "200" in start_response.call_args[0][0]

    def test_readyz_before_startup(self):
        """Test that /readyz is 503 until startup completes."""
        app = health.create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/readyz"), start_response))

        assert b'"status":"starting"' in body
        assert "503" in start_response.call_args[0][0]

    def test_readyz_after_startup(self):
        """Test that /readyz is 200 once marked ready."""
        health.mark_ready()
        app = health.create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/readyz"), start_response))

        assert b'"status":"ready"' in body
        assert "200" in start_response.call_args[0][0]

    def test_metrics_delegated_to_prometheus(self):
        """Test that /metrics serves the Prometheus exposition."""
        app = health.create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/metrics"), start_response))

        assert b"coder_workspaces_provider_reconcile" in body

    def test_content_type_is_json(self):
        """Test that health responses are JSON."""
        app = health.create_combined_wsgi_app()
        start_response = MagicMock()

        app(_environ("/healthz"), start_response)

        headers = start_response.call_args[0][1]
        content_type = [h[1] for h in headers if h[0].lower() == "content-type"]
        assert "application/json" in content_type[0]
