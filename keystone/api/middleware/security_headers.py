"""Security headers middleware for adding common security headers to responses."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from keystone.api.constants import DEFAULT_HSTS_MAX_AGE
from keystone.core.config import SecurityConfig


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Always sent:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: the configured frame policy
    - X-XSS-Protection: 1; mode=block
    - Referrer-Policy

    Sent when configured: Content-Security-Policy, Permissions-Policy and
    Strict-Transport-Security.

    Args:
        app: The ASGI application to wrap.
        security_config: Header values and toggles.
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        security_config: SecurityConfig,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
    ) -> None:
        super().__init__(app)
        self.config = security_config
        self.hsts_max_age = hsts_max_age
        self.headers = self._build_headers()

    def _build_hsts_header(self) -> str:
        parts = [f"max-age={self.hsts_max_age}"]
        if self.config.hsts_include_subdomains:
            parts.append("includeSubDomains")
        if self.config.hsts_preload:
            parts.append("preload")
        return "; ".join(parts)

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": self.config.frame_options,
            "X-XSS-Protection": "1; mode=block",
            "Referrer-Policy": self.config.referrer_policy,
        }
        if self.config.content_security_policy:
            headers["Content-Security-Policy"] = self.config.content_security_policy
        if self.config.permissions_policy:
            headers["Permissions-Policy"] = self.config.permissions_policy
        if self.config.hsts_enabled:
            headers["Strict-Transport-Security"] = self._build_hsts_header()
        return headers

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        response.headers.update(self.headers)
        return response
