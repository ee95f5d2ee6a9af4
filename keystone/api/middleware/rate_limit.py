"""Per-client request rate limiting with slowapi.

Clients are identified by the first trusted address header present
(``CF-Connecting-IP``, then the first hop of ``X-Forwarded-For``), then by
the peer address. Clients with none of these share the ``unknown`` bucket.

Limits are enforced by the ``enforce_rate_limit`` dependency, attached to
the routers that should be throttled. Routes outside those routers, such as
the health and info endpoints, are never limited. Each request path is
counted in its own bucket.

The limiter fails open: if the counter storage is unreachable the request
is let through and the failure is logged by slowapi.
"""

from fastapi import FastAPI, Response
from loguru import logger
from slowapi import Limiter
from starlette.requests import Request

from keystone.api.constants import CLIENT_IP_HEADERS, UNKNOWN_CLIENT
from keystone.core.config import RateLimitConfig


def client_identifier(request: Request) -> str:
    """Rate-limit key for ``request``.

    Examples:
        A request with ``X-Forwarded-For: 203.0.113.7, 10.0.0.1`` is
        counted against ``203.0.113.7``.
    """
    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip() or UNKNOWN_CLIENT
    if request.client:
        return request.client.host
    return UNKNOWN_CLIENT


def create_limiter(config: RateLimitConfig) -> Limiter:
    """Build a limiter applying ``config.default_limit`` to every route."""
    return Limiter(
        key_func=client_identifier,
        default_limits=[config.default_limit],
        storage_uri=config.storage_uri,
        headers_enabled=config.headers_enabled,
        enabled=config.enabled,
        swallow_errors=True,
    )


def add_rate_limiting(app: FastAPI, config: RateLimitConfig) -> Limiter:
    """Attach a limiter to ``app``.

    The limiter is stored on ``app.state`` where ``enforce_rate_limit`` and
    the 429 handler look it up.
    """
    limiter = create_limiter(config)
    app.state.limiter = limiter

    logger.info(
        "Rate limiting {} - default limit: {}",
        "enabled" if config.enabled else "disabled",
        config.default_limit,
    )
    return limiter


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """Count ``request`` against the default limit of its client.

    Raises:
        RateLimitExceeded: When the client has used up its limit; the
            registered handler turns it into a 429 response.
    """
    limiter: Limiter | None = getattr(request.app.state, "limiter", None)
    if limiter is None or not limiter.enabled:
        return

    # in_middleware=True applies the limiter's default limits
    limiter._check_request_limit(request, None, True)  # noqa: SLF001

    current_limit = getattr(request.state, "view_rate_limit", None)
    if current_limit is not None:
        limiter._inject_headers(response, current_limit)  # noqa: SLF001
