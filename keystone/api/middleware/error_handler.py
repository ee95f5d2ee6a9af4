"""Global exception handlers for the FastAPI application.

Every failure leaving a route is turned into a ``KeystoneError`` and
answered with the same ``ErrorResponse`` envelope:

- ``KeystoneError`` is answered with its own status code
- ``RequestValidationError`` becomes a validation error (400)
- ``HTTPException`` (including unknown routes) is mapped onto the taxonomy
  by status code
- ``RateLimitExceeded`` from slowapi becomes a rate-limit error (429)
- anything else is normalized with ``to_keystone_error`` (500)

Message and context only reach the client for exposed errors. The full
error, sanitized, is always logged.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from keystone.api.constants import REQUEST_ID_HEADER, RETRY_AFTER_HEADER
from keystone.api.schemas.errors import ErrorResponse
from keystone.api.utils.responses import ORJSONResponse
from keystone.core.config import get_settings
from keystone.core.context import RequestContext, generate_request_id
from keystone.core.error_context import sanitize_dict, sanitize_error_context
from keystone.core.exceptions import (
    ErrorCode,
    ErrorKind,
    KeystoneError,
    format_error_for_logging,
    to_keystone_error,
)

HTTP_STATUS_KINDS: dict[int, ErrorKind] = {
    status.HTTP_400_BAD_REQUEST: ErrorKind.VALIDATION,
    status.HTTP_401_UNAUTHORIZED: ErrorKind.AUTHENTICATION,
    status.HTTP_403_FORBIDDEN: ErrorKind.AUTHORIZATION,
    status.HTTP_404_NOT_FOUND: ErrorKind.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorKind.CONFLICT,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorKind.RATE_LIMIT,
    status.HTTP_502_BAD_GATEWAY: ErrorKind.EXTERNAL_SERVICE,
}


def _request_id() -> str:
    return RequestContext.get_request_id() or generate_request_id()


def _debug_info(error: KeystoneError) -> dict[str, Any] | None:
    """Full sanitized error details, only in development."""
    if get_settings().environment != "development":
        return None
    log_dict = error.to_log_dict()
    log_dict["context"] = sanitize_dict(log_dict["context"])
    return log_dict


def _log_error(request: Request, error: KeystoneError) -> None:
    error_context = sanitize_error_context(
        error,
        {
            "request_method": request.method,
            "request_path": str(request.url.path),
            "error_code": error.code,
            "status_code": error.status_code,
            "severity": error.severity.value,
            "fingerprint": error.fingerprint,
            "context": dict(error.context),
        },
    )
    log = logger.error if error.should_alert else logger.warning
    log(
        "Handling {error_name}: {message}",
        error_name=error.name,
        message=error.message,
        correlation_id=RequestContext.get_correlation_id(),
        **error_context,
    )


def build_error_response(
    error: KeystoneError, headers: dict[str, str] | None = None
) -> Response:
    """Render ``error`` as an ``ErrorResponse`` with its status code."""
    request_id = _request_id()
    error_response = ErrorResponse(
        **error.to_response(),
        request_id=request_id,
        correlation_id=RequestContext.get_correlation_id(),
        debug_info=_debug_info(error),
    )
    response_headers = {REQUEST_ID_HEADER: request_id, **(headers or {})}
    return ORJSONResponse(
        status_code=error.status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
        headers=response_headers,
    )


async def keystone_error_handler(request: Request, exc: Exception) -> Response:
    """Handle KeystoneError exceptions.

    Args:
        request: The request that caused the exception
        exc: The KeystoneError to handle

    Returns:
        Response: ORJSONResponse with the client-safe error body

    Raises:
        TypeError: If exc is not a KeystoneError instance
    """
    if not isinstance(exc, KeystoneError):
        raise TypeError(f"Expected KeystoneError, got {type(exc).__name__}")

    _log_error(request, exc)
    return build_error_response(exc)


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI RequestValidationError exceptions.

    Field errors are grouped by dotted field path so clients can map them
    back onto their input.

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # ['body', 'email'] -> 'email'
        field_path = error.get("loc", ())
        field_name = ".".join(str(loc) for loc in field_path[1:] if loc != "__root__")
        field_errors.setdefault(field_name or "root", []).append(
            error.get("msg", "Invalid value")
        )

    error = KeystoneError.validation(
        "Request validation failed", context={"validation_errors": field_errors}
    )
    _log_error(request, error)
    return build_error_response(error)


def http_exception_to_error(exc: HTTPException) -> KeystoneError:
    """Map a Starlette HTTPException onto the error taxonomy."""
    message = str(exc.detail)
    kind = HTTP_STATUS_KINDS.get(exc.status_code)
    if kind is not None:
        return KeystoneError(message, kind=kind, status_code=exc.status_code)

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return KeystoneError(
            message, code=ErrorCode.INTERNAL_ERROR, status_code=exc.status_code
        )
    # Remaining client errors (405, 413, ...) keep their status
    return KeystoneError(
        message, kind=ErrorKind.VALIDATION, status_code=exc.status_code
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException, including unmatched routes.

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    error = http_exception_to_error(exc)
    _log_error(request, error)
    return build_error_response(error, headers=exc.headers)


def rate_limit_exceeded_handler(request: Request, exc: Exception) -> Response:
    """Handle slowapi RateLimitExceeded.

    The response carries ``Retry-After`` and, when enabled, the
    ``X-RateLimit-*`` headers computed by the application's limiter.

    Raises:
        TypeError: If exc is not a RateLimitExceeded instance
    """
    if not isinstance(exc, RateLimitExceeded):
        raise TypeError(f"Expected RateLimitExceeded, got {type(exc).__name__}")

    retry_after = exc.limit.limit.get_expiry()
    error = KeystoneError.rate_limit(
        retry_after=retry_after, context={"limit": str(exc.limit.limit)}
    )
    _log_error(request, error)
    response = build_error_response(
        error, headers={RETRY_AFTER_HEADER: str(retry_after)}
    )

    limiter = getattr(request.app.state, "limiter", None)
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if limiter is not None and view_rate_limit is not None:
        response = limiter._inject_headers(response, view_rate_limit)  # noqa: SLF001
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle any exception no other handler claimed.

    The exception is normalized into an unexposed ``INTERNAL_ERROR``, so
    the client only ever sees the code while the logs keep the traceback.
    """
    error = to_keystone_error(exc)
    payload = format_error_for_logging(exc, _request_id())
    payload["error"]["context"] = sanitize_dict(payload["error"]["context"])

    logger.opt(exception=exc).error(
        "Unhandled exception: {exception_type}",
        exception_type=type(exc).__name__,
        request_method=request.method,
        request_path=str(request.url.path),
        correlation_id=RequestContext.get_correlation_id(),
        fingerprint=error.fingerprint,
        error_payload=payload,
    )
    return build_error_response(error)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(KeystoneError, keystone_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
