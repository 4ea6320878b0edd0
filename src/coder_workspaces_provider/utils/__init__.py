"""Utility functions for the Coder Workspaces Provider."""

from .conditions import (
    get_condition,
    set_ready_condition,
    set_synced_condition,
    update_condition,
)
from .errors import sanitize_dict, sanitize_error_message, sanitize_exception
from .events import emit_event
from .secrets import delete_secret, get_secret_value, publish_connection_secret

__all__ = [
    "update_condition",
    "get_condition",
    "set_ready_condition",
    "set_synced_condition",
    "emit_event",
    "get_secret_value",
    "publish_connection_secret",
    "delete_secret",
    "sanitize_error_message",
    "sanitize_exception",
    "sanitize_dict",
]
