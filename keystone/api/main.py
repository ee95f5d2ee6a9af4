"""FastAPI application initialization and configuration module.

Builds the Keystone API application:
- Application lifecycle management (database check on startup, engine
  disposal on shutdown)
- Exception handler registration
- Middleware registration in the correct order
- Health and info endpoints plus the entity routes
- OpenTelemetry instrumentation

Middleware are executed in reverse order of registration, so the last one
added is the first to see a request.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI
from loguru import logger

from keystone.api.middleware.cors import add_cors_middleware
from keystone.api.middleware.error_handler import register_exception_handlers
from keystone.api.middleware.rate_limit import add_rate_limiting
from keystone.api.middleware.request_context import RequestContextMiddleware
from keystone.api.middleware.request_logging import RequestLoggingMiddleware
from keystone.api.middleware.security_headers import SecurityHeadersMiddleware
from keystone.api.routes import users_router
from keystone.api.utils.responses import ORJSONResponse
from keystone.core.config import Settings, get_settings
from keystone.core.logging import setup_logging
from keystone.core.observability import instrument_app, setup_tracing
from keystone.infrastructure.database.session import (
    check_database_connection,
    close_database,
)


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Raises:
        RuntimeError: If database connection fails during startup.
    """
    is_healthy, error_msg = await check_database_connection()
    if not is_healthy:
        logger.error("Database connection failed during startup: {}", error_msg)
        msg = f"Database connection failed: {error_msg}"
        raise RuntimeError(msg)
    logger.info("Database connection successful")

    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown initiated")
    await close_database()
    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)
    setup_tracing(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Register exception handlers BEFORE middleware
    register_exception_handlers(application)

    # Rate limiter; enforced per router by enforce_rate_limit
    add_rate_limiting(application, settings.rate_limit_config)

    # 4. Request logging (innermost)
    application.add_middleware(RequestLoggingMiddleware, log_config=settings.log_config)

    # 3. Request context (correlation and request IDs)
    application.add_middleware(RequestContextMiddleware)

    # 2. Security headers
    application.add_middleware(
        SecurityHeadersMiddleware, security_config=settings.security_config
    )

    # 1. CORS (outermost, answers preflight requests)
    add_cors_middleware(application, settings.cors_config)

    @application.get("/health")
    async def health() -> dict[str, object]:
        """Health check for container orchestration and load balancers.

        A failing database reports the service as degraded rather than
        failing the check outright.
        """
        is_healthy, error_msg = await check_database_connection()
        if not is_healthy:
            logger.warning("Database health check failed: {}", error_msg)

        return {
            "status": "healthy" if is_healthy else "degraded",
            "database": is_healthy,
        }

    @application.get("/info")
    async def info(
        app_settings: Annotated[Settings, Depends(get_settings)],
    ) -> dict[str, Any]:
        return {
            "app_name": app_settings.app_name,
            "version": app_settings.app_version,
            "environment": app_settings.environment,
            "debug": app_settings.debug,
        }

    application.include_router(users_router)

    instrument_app(application, settings)

    return application


app = create_app()
