"""Redaction of Coder session tokens and other secrets from error text."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

# The secret value is always the last group.
_TOKEN_PATTERNS = [
    re.compile(r"(coder[_\-\s]?session[_\-\s]?token\s*[:=]\s*)([A-Za-z0-9\-_]+)", re.IGNORECASE),
    re.compile(r"(session[_\s]?token\s*[:=]\s*)([A-Za-z0-9\-_]+)", re.IGNORECASE),
    re.compile(r"(api[_\s]?key\s*[:=]\s*)([A-Za-z0-9\-_]+)", re.IGNORECASE),
    re.compile(r"(bearer\s+)([A-Za-z0-9\-_\.=]+)", re.IGNORECASE),
]

SENSITIVE_FIELDS = frozenset({"session_token", "password", "secret", "credentials", "token"})

# "token: x", "token=x" and query strings like "?token=x&..."; skips values already redacted
_FIELD_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(SENSITIVE_FIELDS, key=len, reverse=True)) + r")(\s*[:=]\s*)(?!\[REDACTED\])[^\s,;\)&]+",
    re.IGNORECASE,
)


def sanitize_error_message(message: str) -> str:
    """Return the message with token values replaced by ``[REDACTED]``.

    Prose that merely mentions a token ("session token was rejected") is
    left as is; only ``name: value`` and ``name=value`` pairs are redacted.
    """
    for pattern in _TOKEN_PATTERNS:
        message = pattern.sub(lambda m: m.group(1) + REDACTED, message)
    return _FIELD_PATTERN.sub(lambda m: m.group(1) + m.group(2) + REDACTED, message)


def sanitize_exception(error: BaseException) -> str:
    """Sanitized ``str(error)``, including a ProviderError's detail."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Copy of ``data`` with sensitive keys redacted, recursing into nested dicts.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional key fragments to redact

    Returns:
        Sanitized copy; string values are also passed through sanitize_error_message
    """
    fragments = SENSITIVE_FIELDS | set(sensitive_keys or ())

    def clean(key: str, value: Any) -> Any:
        if any(fragment in key.lower() for fragment in fragments):
            return REDACTED
        if isinstance(value, dict):
            return sanitize_dict(value, sensitive_keys)
        if isinstance(value, str):
            return sanitize_error_message(value)
        return value

    return {key: clean(key, value) for key, value in data.items()}
