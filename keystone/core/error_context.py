"""Sensitive data sanitization for error logging and responses.

Error context frequently carries request payloads (a failed ``create`` logs
the data it tried to insert), so anything that looks like a credential is
redacted before it reaches a log sink. Sensitive fields are detected by a
default name pattern plus the ``log_config.sensitive_fields`` setting.

Sanitization only ever produces copies; the original error context is left
untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from functools import lru_cache
from re import Pattern
from typing import Any, Final

from keystone.core.config import get_settings
from keystone.core.constants import REDACTED

SanitizableValue = (
    str | int | float | bool | None | dict[str, Any] | list[Any] | tuple[Any, ...]
)

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "x-api-key",
    "x-auth-token",
    "x-csrf-token",
    "set-cookie",
    "proxy-authorization",
}

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|authorization|"
    r"credential|private[_-]?key|access[_-]?key|session|"
    r"ssn|cvv|cvc|card[_-]?number|connection[_-]?string)",
    re.IGNORECASE,
)

MAX_DEPTH: Final[int] = 10


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> tuple[str, ...]:
    """Get the configured sensitive field names, lower-cased."""
    settings = get_settings()
    return tuple(field.lower() for field in settings.log_config.sensitive_fields)


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check.

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True

    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in _get_sensitive_fields())


def is_sensitive_header(header_name: str) -> bool:
    """Check if a header name is sensitive (case-insensitive)."""
    return header_name.lower() in SENSITIVE_HEADERS


def sanitize_value(
    value: SanitizableValue, field_name: str = "", depth: int = 0
) -> SanitizableValue:
    """Sanitize a value if it appears to be sensitive.

    Nested dicts, lists and tuples are walked up to MAX_DEPTH levels.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.

    Returns:
        SanitizableValue: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if isinstance(value, Mapping):
        return {k: sanitize_value(v, str(k), depth + 1) for k, v in value.items()}

    if isinstance(value, list):
        return [sanitize_value(item, "", depth + 1) for item in value]

    if isinstance(value, tuple):
        return tuple(sanitize_value(item, "", depth + 1) for item in value)

    return value


def sanitize_dict(data: Mapping[str, Any]) -> dict[str, Any]:
    """Sanitize a mapping by redacting sensitive fields.

    Args:
        data: Mapping to sanitize.

    Returns:
        dict[str, Any]: New dictionary with sensitive values redacted.
    """
    return {key: sanitize_value(value, key) for key, value in data.items()}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Sanitize HTTP headers."""
    return {k: REDACTED if is_sensitive_header(k) else v for k, v in headers.items()}


def sanitize_error_context(
    error: Exception, context: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Create sanitized error context for logging.

    Args:
        error: The exception to create context for.
        context: Additional context to include (will be sanitized).

    Returns:
        dict[str, Any]: Sanitized error context safe for logging.
    """
    error_context: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if context:
        error_context.update(sanitize_dict(context))

    return error_context
