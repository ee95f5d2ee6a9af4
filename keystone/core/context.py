"""Request context management for correlation and request IDs."""

import uuid
from contextvars import ContextVar

# Context variables survive across await points within one request
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestContext:
    """Async-safe storage for request-scoped identifiers.

    The correlation ID may be supplied by an upstream service and spans
    several services, while the request ID identifies a single request.
    """

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        """Set the correlation ID for the current context."""
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        """Get the correlation ID from the current context."""
        return _correlation_id_var.get()

    @staticmethod
    def set_request_id(request_id: str) -> None:
        """Set the request ID for the current context."""
        _request_id_var.set(request_id)

    @staticmethod
    def get_request_id() -> str | None:
        """Get the request ID from the current context."""
        return _request_id_var.get()

    @staticmethod
    def clear() -> None:
        """Clear all context variables."""
        _correlation_id_var.set(None)
        _request_id_var.set(None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracking.

    Returns:
        str: A string representation of a UUID4.

    Examples:
        >>> len(generate_correlation_id())
        36
    """
    return str(uuid.uuid4())


def generate_request_id() -> str:
    """Generate a unique request ID for individual request tracking.

    Returns:
        str: A prefixed UUID4 string in format 'req-<uuid4>'.

    Examples:
        >>> generate_request_id().startswith("req-")
        True
    """
    return f"req-{uuid.uuid4()}"
