"""Request context middleware for correlation and request identifiers.

Each request gets two identifiers:

- a **correlation ID**, taken from ``X-Correlation-ID`` when an upstream
  service supplied one, spanning every service a call passes through
- a **request ID**, taken from ``X-Request-ID`` or generated, naming this
  single request

Both are stored in ``RequestContext`` for the rest of the request, bound
to every log record emitted while it is processed, and echoed back in the
response headers.
"""

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from keystone.api.constants import CORRELATION_ID_HEADER, REQUEST_ID_HEADER
from keystone.core.context import (
    RequestContext,
    generate_correlation_id,
    generate_request_id,
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to manage request context and correlation IDs."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = (
            request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        )
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()

        RequestContext.set_correlation_id(correlation_id)
        RequestContext.set_request_id(request_id)

        # contextualize cleans up the bound IDs when the request ends
        with logger.contextualize(
            correlation_id=correlation_id, request_id=request_id
        ):
            response = await call_next(request)

            response.headers[CORRELATION_ID_HEADER] = correlation_id
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
