"""HTTP request/response logging with timing.

Each request produces a ``Request started`` and a ``Request completed``
(or ``Request failed``) record carrying method, path, client address,
status and duration. Requests slower than the configured threshold also
produce a warning. Configured paths, such as the health check, are not
logged at all.

Request and correlation IDs are bound by ``RequestContextMiddleware``, so
this middleware must run inside it.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from keystone.api.constants import UNKNOWN_CLIENT
from keystone.api.middleware.rate_limit import client_identifier
from keystone.core.config import LogConfig
from keystone.core.constants import MILLISECONDS_PER_SECOND
from keystone.core.error_context import sanitize_dict

USER_AGENT_MAX_LENGTH = 200


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
    """

    def __init__(self, app: ASGIApp, *, log_config: LogConfig) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)

    @staticmethod
    def _get_user_agent(request: Request) -> str:
        # Truncate extremely long user agents to prevent log pollution
        ua = request.headers.get("user-agent", "")
        return ua[:USER_AGENT_MAX_LENGTH] if ua else UNKNOWN_CLIENT

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log details.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        with logger.contextualize(
            method=request.method,
            path=request.url.path,
            client_host=client_identifier(request),
            user_agent=self._get_user_agent(request),
        ):
            logger.info(
                "Request started",
                query_params=(
                    sanitize_dict(request.query_params)
                    if request.query_params
                    else None
                ),
            )
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                duration_ms = _elapsed_ms(start_time)
                logger.error(
                    "Request failed",
                    duration_ms=round(duration_ms, 2),
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                raise

            duration_ms = _elapsed_ms(start_time)
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            if duration_ms > self.log_config.slow_request_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    duration_ms=round(duration_ms, 2),
                    threshold_ms=self.log_config.slow_request_threshold_ms,
                )

            return response
