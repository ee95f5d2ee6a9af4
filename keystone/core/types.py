"""Type aliases for dynamic data structures throughout the application.

Values behind these aliases should stay JSON-serializable so they can be
logged and returned in API responses without extra conversion.
"""

from typing import Any

# JSON-compatible type that represents any valid JSON value
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Context dictionary for logging additional information
type LogContext = dict[str, Any]

# Context dictionary for error details and debugging information
type ErrorContext = dict[str, Any]

# A plain record as produced from an entity before it crosses the API boundary
type Record = dict[str, Any]

# ASGI scope type for middleware implementations
type AsgiScope = dict[str, Any]
