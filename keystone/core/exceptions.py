"""Structured error taxonomy for consistent error handling.

Every failure that crosses a layer boundary is a ``KeystoneError``: one
concrete exception type tagged with an ``ErrorKind`` from a closed set. The
kind picks the defaults (error code, HTTP status, severity and exposure
policy) from ``ERROR_KIND_DEFAULTS``; any default can be overridden per
instance.

Key components:
- **ErrorKind**: The closed set of error categories
- **ErrorCode**: Stable machine-readable codes sent to clients
- **Severity**: Error classification for logging and alerting
- **KeystoneError**: Immutable error value with two serializations,
  ``to_log_dict()`` for log sinks and ``to_response()`` for clients

Only errors whose ``expose`` flag is set reveal their message and context
to clients. Everything else answers with the bare code while the full
detail is kept for the logs.

Values raised from outside the taxonomy are normalized at the outermost
boundary with ``to_keystone_error``.
"""

import hashlib
import traceback
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple, Self

from keystone.core.constants import (
    FINGERPRINT_LENGTH,
    FINGERPRINT_MAX_FRAMES,
    UNKNOWN_ERROR_MESSAGE,
)
from keystone.core.types import ErrorContext


class ErrorCode(Enum):
    """Standardized error codes returned to clients."""

    DATABASE_ERROR = "DATABASE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    CONFLICT_ERROR = "CONFLICT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """A native exception normalized at the error boundary."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """A raised value that was not an exception at all."""


class Severity(Enum):
    """Severity levels used to pick log levels and alerting."""

    LOW = "low"
    """Client-caused errors that are part of normal operation."""

    MEDIUM = "medium"
    """Errors that may affect some features but not critical operations."""

    HIGH = "high"
    """Errors impacting critical functionality or data integrity."""

    CRITICAL = "critical"
    """Errors requiring immediate attention, such as broken configuration."""


class ErrorKind(Enum):
    """Closed set of error categories."""

    DATABASE = "database"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"
    EXTERNAL_SERVICE = "external_service"
    CONFIGURATION = "configuration"


class ErrorKindDefaults(NamedTuple):
    """Per-kind defaults applied when a ``KeystoneError`` is constructed."""

    name: str
    code: ErrorCode
    status_code: int
    severity: Severity
    expose: bool


ERROR_KIND_DEFAULTS: Mapping[ErrorKind, ErrorKindDefaults] = MappingProxyType(
    {
        ErrorKind.DATABASE: ErrorKindDefaults(
            "DatabaseError", ErrorCode.DATABASE_ERROR, 500, Severity.HIGH, False
        ),
        ErrorKind.VALIDATION: ErrorKindDefaults(
            "ValidationError", ErrorCode.VALIDATION_ERROR, 400, Severity.LOW, True
        ),
        ErrorKind.AUTHENTICATION: ErrorKindDefaults(
            "AuthenticationError",
            ErrorCode.AUTHENTICATION_ERROR,
            401,
            Severity.MEDIUM,
            True,
        ),
        ErrorKind.AUTHORIZATION: ErrorKindDefaults(
            "AuthorizationError",
            ErrorCode.AUTHORIZATION_ERROR,
            403,
            Severity.MEDIUM,
            True,
        ),
        ErrorKind.NOT_FOUND: ErrorKindDefaults(
            "NotFoundError", ErrorCode.NOT_FOUND_ERROR, 404, Severity.LOW, True
        ),
        ErrorKind.CONFLICT: ErrorKindDefaults(
            "ConflictError", ErrorCode.CONFLICT_ERROR, 409, Severity.LOW, True
        ),
        ErrorKind.RATE_LIMIT: ErrorKindDefaults(
            "RateLimitError", ErrorCode.RATE_LIMIT_ERROR, 429, Severity.LOW, True
        ),
        ErrorKind.EXTERNAL_SERVICE: ErrorKindDefaults(
            "ExternalServiceError",
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            502,
            Severity.HIGH,
            False,
        ),
        ErrorKind.CONFIGURATION: ErrorKindDefaults(
            "ConfigurationError",
            ErrorCode.CONFIGURATION_ERROR,
            500,
            Severity.CRITICAL,
            False,
        ),
    }
)

# Defaults for errors constructed without a kind
DEFAULT_STATUS_CODE = 500
DEFAULT_SEVERITY = Severity.MEDIUM
DEFAULT_EXPOSE = False

_FROZEN_FIELDS = frozenset(
    {
        "kind",
        "code",
        "message",
        "status_code",
        "severity",
        "expose",
        "context",
        "cause",
        "timestamp",
        "stack_trace",
        "fingerprint",
    }
)


class KeystoneError(Exception):
    """Structured application error.

    The error is immutable once constructed: every field listed above is
    read-only and ``context`` is exposed as a read-only mapping.

    Args:
        message: Human-readable error message
        kind: Error category; supplies the defaults below
        code: Machine-readable code (required when ``kind`` is omitted)
        status_code: HTTP status, overrides the kind default
        severity: Severity, overrides the kind default
        expose: Whether message and context may reach the client
        context: Structured diagnostic data
        cause: The lower-level exception that caused this error

    Raises:
        TypeError: If neither ``kind`` nor ``code`` is given.
    """

    kind: ErrorKind | None
    code: str
    message: str
    status_code: int
    severity: Severity
    expose: bool
    context: Mapping[str, Any]
    cause: BaseException | None
    timestamp: datetime
    stack_trace: list[str]
    fingerprint: str

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        code: str | ErrorCode | None = None,
        status_code: int | None = None,
        severity: Severity | None = None,
        expose: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        defaults = ERROR_KIND_DEFAULTS[kind] if kind is not None else None
        if code is None:
            if defaults is None:
                msg = "KeystoneError without a kind requires an explicit code"
                raise TypeError(msg)
            code = defaults.code

        fields: dict[str, Any] = {
            "kind": kind,
            "code": code.value if isinstance(code, ErrorCode) else code,
            "message": message,
            "status_code": _pick(status_code, defaults, "status_code"),
            "severity": _pick(severity, defaults, "severity"),
            "expose": _pick(expose, defaults, "expose"),
            "context": MappingProxyType(dict(context or {})),
            "cause": cause,
            "timestamp": datetime.now(UTC),
            # Capture stack trace at creation time, excluding this frame
            "stack_trace": traceback.format_stack()[:-1],
        }
        for field, value in fields.items():
            object.__setattr__(self, field, value)
        object.__setattr__(self, "fingerprint", self._generate_fingerprint())

        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __setattr__(self, name: str, value: object) -> None:
        if name in _FROZEN_FIELDS:
            msg = f"{type(self).__name__}.{name} is read-only"
            raise AttributeError(msg)
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if name in _FROZEN_FIELDS:
            msg = f"{type(self).__name__}.{name} is read-only"
            raise AttributeError(msg)
        super().__delattr__(name)

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Creates a hash based on the error code and the application frames
        where it was raised, so repeated failures from the same place group
        together in monitoring systems.
        """
        relevant_frames = self.stack_trace[-FINGERPRINT_MAX_FRAMES:]

        fingerprint_data = f"{self.name}:{self.code}"
        for frame in relevant_frames:
            if "site-packages" not in frame and "keystone" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[
            :FINGERPRINT_LENGTH
        ]

    @property
    def name(self) -> str:
        """Error name derived from the kind, e.g. ``NotFoundError``."""
        if self.kind is None:
            return type(self).__name__
        return ERROR_KIND_DEFAULTS[self.kind].name

    @property
    def is_expected(self) -> bool:
        """Whether this error is part of normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """Whether this error should trigger alerts (HIGH or CRITICAL)."""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def to_log_dict(self) -> dict[str, Any]:
        """Serialize every detail of the error for structured logging.

        Returns:
            dict[str, Any]: name, code, message, status code, severity,
                context, ISO-8601 timestamp, cause details and stack.
        """
        cause = None
        if self.cause is not None:
            cause = {
                "name": type(self.cause).__name__,
                "message": get_error_message(self.cause),
                "stack": get_error_stack(self.cause),
            }
        return {
            "name": self.name,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "severity": self.severity.value,
            "context": dict(self.context),
            "timestamp": self.timestamp.isoformat(),
            "cause": cause,
            "stack": "".join(self.stack_trace),
        }

    def to_response(self, *, include_details: bool = False) -> dict[str, Any]:
        """Serialize the error into a client-safe response body.

        Args:
            include_details: Include message and context even when the
                error is not exposed.

        Returns:
            dict[str, Any]: ``{"success": False, "error": code}`` plus
                ``message`` and ``context`` when exposed or forced.
        """
        body: dict[str, Any] = {"success": False, "error": self.code}
        if self.expose or include_details:
            body["message"] = self.message
            if self.context:
                body["context"] = dict(self.context)
        return body

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        context_str = f", context={dict(self.context)}" if self.context else ""
        return (
            f"{self.name}(code='{self.code}', message='{self.message}', "
            f"status_code={self.status_code}, "
            f"severity={self.severity.value}{context_str})"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return (_rebuild_error, (self.message, self._constructor_kwargs()))

    def _constructor_kwargs(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "status_code": self.status_code,
            "severity": self.severity,
            "expose": self.expose,
            "context": dict(self.context),
            "cause": self.cause,
        }

    # Kind constructors

    @classmethod
    def database(
        cls,
        message: str,
        cause: BaseException | None = None,
        context: ErrorContext | None = None,
    ) -> Self:
        """Storage failure."""
        return cls(message, kind=ErrorKind.DATABASE, cause=cause, context=context)

    @classmethod
    def validation(cls, message: str, context: ErrorContext | None = None) -> Self:
        """Invalid client input."""
        return cls(message, kind=ErrorKind.VALIDATION, context=context)

    @classmethod
    def authentication(
        cls,
        message: str = "Authentication required",
        context: ErrorContext | None = None,
    ) -> Self:
        """Missing or invalid credentials."""
        return cls(message, kind=ErrorKind.AUTHENTICATION, context=context)

    @classmethod
    def authorization(
        cls,
        message: str = "Insufficient permissions",
        context: ErrorContext | None = None,
    ) -> Self:
        """Authenticated caller lacking the required permissions."""
        return cls(message, kind=ErrorKind.AUTHORIZATION, context=context)

    @classmethod
    def not_found(cls, resource: str, identifier: object = None) -> Self:
        """A resource that does not exist.

        The context always carries the resource name and, when supplied,
        the identifier that was looked up.
        """
        context: ErrorContext = {"resource": resource}
        if identifier is not None:
            context["identifier"] = identifier
        return cls(f"{resource} not found", kind=ErrorKind.NOT_FOUND, context=context)

    @classmethod
    def conflict(cls, message: str, context: ErrorContext | None = None) -> Self:
        """A write that clashes with existing state."""
        return cls(message, kind=ErrorKind.CONFLICT, context=context)

    @classmethod
    def rate_limit(
        cls,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        context: ErrorContext | None = None,
    ) -> Self:
        """Too many requests from one client."""
        merged: ErrorContext = dict(context or {})
        if retry_after is not None:
            merged["retry_after"] = retry_after
        return cls(message, kind=ErrorKind.RATE_LIMIT, context=merged)

    @classmethod
    def external_service(
        cls,
        service: str,
        message: str,
        cause: BaseException | None = None,
    ) -> Self:
        """A failing upstream dependency."""
        return cls(
            message,
            kind=ErrorKind.EXTERNAL_SERVICE,
            context={"service": service},
            cause=cause,
        )

    @classmethod
    def configuration(
        cls, message: str, context: ErrorContext | None = None
    ) -> Self:
        """Broken or missing configuration."""
        return cls(message, kind=ErrorKind.CONFIGURATION, context=context)


def _pick(
    override: object, defaults: ErrorKindDefaults | None, field: str
) -> Any:
    if override is not None:
        return override
    if defaults is not None:
        return getattr(defaults, field)
    return {
        "status_code": DEFAULT_STATUS_CODE,
        "severity": DEFAULT_SEVERITY,
        "expose": DEFAULT_EXPOSE,
    }[field]


def _rebuild_error(message: str, kwargs: dict[str, Any]) -> KeystoneError:
    return KeystoneError(message, **kwargs)


def is_keystone_error(error: object) -> bool:
    """Check whether a value is a structured ``KeystoneError``."""
    return isinstance(error, KeystoneError)


def get_error_message(error: object) -> str:
    """Extract a human-readable message from any raised value.

    Structured errors and values carrying a string ``message`` attribute
    yield that message, exceptions yield ``str(error)``, strings are
    returned as-is, anything else gets a fixed fallback text.
    """
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    return UNKNOWN_ERROR_MESSAGE


def get_error_stack(error: object) -> str | None:
    """Return the formatted stack of an error, if it has one."""
    if isinstance(error, KeystoneError):
        return "".join(error.stack_trace)
    if isinstance(error, BaseException):
        return "".join(traceback.format_exception(error))
    return None


def to_keystone_error(error: object) -> KeystoneError:
    """Normalize any raised value into a ``KeystoneError``.

    Args:
        error: The caught value.

    Returns:
        KeystoneError: The error itself when already structured, an
            ``INTERNAL_ERROR`` wrapping native exceptions as ``cause``, or
            an ``UNKNOWN_ERROR`` for anything else.
    """
    if isinstance(error, KeystoneError):
        return error

    if isinstance(error, BaseException):
        return KeystoneError(
            get_error_message(error),
            code=ErrorCode.INTERNAL_ERROR,
            status_code=500,
            severity=Severity.HIGH,
            expose=False,
            cause=error,
        )

    return KeystoneError(
        get_error_message(error),
        code=ErrorCode.UNKNOWN_ERROR,
        status_code=500,
        severity=Severity.HIGH,
        expose=False,
    )


def format_error_for_logging(
    error: object, request_id: str | None = None
) -> dict[str, Any]:
    """Build the structured log payload for any raised value."""
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "request_id": request_id,
        "error": to_keystone_error(error).to_log_dict(),
    }
