"""Core package for cross-cutting application functionality.

- **config**: Centralized configuration management with environment support
- **context**: Request context with correlation and request IDs
- **exceptions**: The closed error taxonomy built around ``KeystoneError``
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Structured logging with loguru
- **observability**: Distributed tracing with OpenTelemetry
- **types**: Type aliases for dynamic data structures
"""
