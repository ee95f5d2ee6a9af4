"""FastAPI middleware package for cross-cutting request/response concerns.

- **CORSMiddleware**: Cross-origin policy and preflight answers
- **SecurityHeadersMiddleware**: Adds security headers (HSTS, CSP, etc.)
- **RequestContextMiddleware**: Manages correlation and request IDs
- **RequestLoggingMiddleware**: Structured logging with timing
- **rate_limit**: Per-client rate limiting, applied as a router dependency
- **error_handler**: Centralized exception handling with consistent responses

Middleware run in this order on the way in:
1. CORS (outermost)
2. Security headers
3. Request context
4. Request logging (innermost)

Rate limits are checked after routing, so throttled requests are still
logged.
"""
