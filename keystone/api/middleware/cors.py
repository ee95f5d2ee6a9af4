"""Cross-origin resource sharing setup."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from keystone.core.config import CorsConfig


def add_cors_middleware(app: FastAPI, cors_config: CorsConfig) -> None:
    """Install Starlette's ``CORSMiddleware`` configured from settings.

    Must be registered last so it is the outermost middleware and answers
    preflight requests before rate limiting or logging see them.
    """
    origins = cors_config.allow_origins or []
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=cors_config.allow_credentials,
        allow_methods=cors_config.allow_methods,
        allow_headers=cors_config.allow_headers,
        expose_headers=cors_config.expose_headers,
        max_age=cors_config.max_age,
    )
    logger.info("CORS configured for {} origin(s)", len(origins))
