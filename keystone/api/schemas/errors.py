"""Error response envelope.

Every failed request answers with ``ErrorResponse``: the body produced by
``KeystoneError.to_response()`` plus the identifiers needed to find the
matching log lines.
"""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standardized error response model for API errors.

    ``message`` and ``context`` are only present for errors that may be
    shown to the client.
    """

    success: Literal[False] = False

    error: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["VALIDATION_ERROR", "NOT_FOUND_ERROR", "DATABASE_ERROR"],
    )

    message: str | None = Field(
        default=None,
        description="Human-readable error message",
        examples=["User not found", "Email already exists"],
    )

    context: dict[str, Any] | None = Field(
        default=None,
        description="Structured error details",
        examples=[{"resource": "User", "identifier": 42}],
    )

    request_id: str | None = Field(
        default=None,
        description="Unique request identifier",
        examples=["req-550e8400-e29b-41d4-a716-446655440000"],
    )

    correlation_id: str | None = Field(
        default=None,
        description="Correlation ID spanning services",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the error response was produced",
    )

    debug_info: dict[str, Any] | None = Field(
        default=None,
        description="Full error details, only populated in development",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": False,
                    "error": "NOT_FOUND_ERROR",
                    "message": "User not found",
                    "context": {"resource": "User", "identifier": 42},
                    "request_id": "req-660e8400-e29b-41d4-a716-446655440000",
                    "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2024-06-14T12:00:00+00:00",
                },
                {
                    "success": False,
                    "error": "DATABASE_ERROR",
                    "request_id": "req-660e8400-e29b-41d4-a716-446655440001",
                    "correlation_id": "550e8400-e29b-41d4-a716-446655440001",
                    "timestamp": "2024-06-14T12:00:01+00:00",
                },
            ]
        }
    }
