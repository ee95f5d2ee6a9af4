"""Root conftest.py for the Keystone test suite.

Project-wide fixtures and pytest configuration. The test environment
itself (development settings, tracing disabled, SQLite store) is set in
``[tool.pytest.ini_options].env``.
"""

from collections.abc import Generator
from typing import Any

import pytest
from loguru import logger

from keystone.core.config import get_settings
from keystone.core.context import RequestContext
from keystone.core.error_context import _get_sensitive_fields
from keystone.core.logging import _state


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None]:
    """Give every test fresh settings read from the current environment."""
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()

    yield

    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_request_context() -> Generator[None]:
    """Prevent correlation and request IDs from leaking between tests."""
    RequestContext.clear()

    yield

    RequestContext.clear()


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None]:
    """Keep app creation from installing stdout sinks during tests.

    Tests that assert on log output add their own sink with
    ``log_records``.
    """
    logger.remove()
    _state.configured = True

    yield

    logger.remove()


@pytest.fixture
def log_records() -> Generator[list[dict[str, Any]]]:
    """Capture Loguru records emitted during the test."""
    records: list[dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: records.append(message.record), level="DEBUG"
    )

    yield records

    logger.remove(handler_id)
