"""Unit tests for keystone/core/logging.py."""

import json
import logging
from typing import Any

import pytest
from loguru import logger
from pytest_mock import MockerFixture

from keystone.core.config import Settings
from keystone.core.logging import (
    InterceptHandler,
    _state,
    bind_context,
    format_console_with_context,
    serialize_for_json,
    setup_logging,
)


@pytest.mark.unit
class TestFormatters:
    def test_console_format_shows_priority_fields_first(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        logger.bind(
            zeta="last", correlation_id="0123456789abcdef", status_code=404
        ).info("Request completed")

        line = format_console_with_context(log_records[-1])

        assert line.endswith("\n")
        assert line.index("01234567") < line.index("zeta=last")
        assert "<red>404</red>" in line
        assert "Request completed" in line

    def test_console_format_redacts_sensitive_fields(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        logger.bind(password="hunter2").info("Login")

        line = format_console_with_context(log_records[-1])

        assert "hunter2" not in line
        assert "password=[REDACTED]" in line

    def test_console_format_escapes_braces(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        logger.info("payload {}", "{not a field}")

        line = format_console_with_context(log_records[-1])

        assert "{{not a field}}" in line

    def test_json_serialization(self, log_records: list[dict[str, Any]]) -> None:
        logger.bind(request_id="req-1", _internal="hidden").warning("Slow request")

        entry = json.loads(serialize_for_json(log_records[-1]))

        assert entry["level"] == "WARNING"
        assert entry["message"] == "Slow request"
        assert entry["request_id"] == "req-1"
        assert "_internal" not in entry

    def test_json_serialization_includes_exception(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        try:
            raise ValueError("broken")
        except ValueError:
            logger.exception("Failure")

        entry = json.loads(serialize_for_json(log_records[-1]))

        assert entry["exception"] == {"type": "ValueError", "value": "broken"}


@pytest.mark.unit
class TestSetup:
    def test_setup_logging_runs_once(self, mocker: MockerFixture) -> None:
        _state.configured = False
        add = mocker.patch("keystone.core.logging.logger.add")
        mocker.patch("keystone.core.logging.logging.basicConfig")

        settings = Settings(log_config={"log_formatter_type": "json"})
        setup_logging(settings)
        setup_logging(settings)

        add.assert_called_once()
        assert _state.configured is True

    def test_intercept_handler_forwards_records(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        std_logger = logging.getLogger("keystone.tests.intercept")
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
        std_logger.setLevel(logging.INFO)

        std_logger.info("from stdlib %s", "logging")

        assert log_records[-1]["message"] == "from stdlib logging"
        assert log_records[-1]["level"].name == "INFO"

    def test_bind_context_adds_process_fields(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        bind_context(service_name="keystone-api")
        try:
            logger.info("hello")
            assert log_records[-1]["extra"]["service_name"] == "keystone-api"
        finally:
            logger.configure(extra={})
