"""Main entry point for running the Keystone API with uvicorn."""

import os

import uvicorn
from loguru import logger

from keystone.api.main import app
from keystone.core.config import get_settings
from keystone.core.logging import setup_logging


def main() -> None:
    """Run the API server, reloading on code changes in debug mode."""
    settings = get_settings()
    setup_logging(settings)

    # Container platforms pass the listening port through PORT
    port = int(os.environ.get("PORT", settings.api_port))

    # Route uvicorn's own loggers through loguru
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {"class": "keystone.core.logging.InterceptHandler"},
        },
        "loggers": {
            name: {"handlers": ["default"], "level": "INFO", "propagate": False}
            for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
        },
    }

    if settings.debug:
        logger.info(
            "Starting Uvicorn on http://{}:{} (development mode with auto-reload)",
            settings.api_host,
            port,
        )
        # Reload requires the app as an import string
        uvicorn.run(
            "keystone.api.main:app",
            host=settings.api_host,
            port=port,
            reload=True,
            log_config=log_config,
        )
    else:
        logger.info(
            "Starting Uvicorn on http://{}:{} (production mode)",
            settings.api_host,
            port,
        )
        uvicorn.run(
            app,
            host=settings.api_host,
            port=port,
            reload=False,
            log_config=log_config,
        )


if __name__ == "__main__":
    main()
