"""Structured logging built on Loguru.

Two output formats are supported:

- **console**: Human-readable lines with request context shown inline
  (development)
- **json**: One JSON document per line for log aggregation

Request-scoped fields (correlation ID, request ID, method, path) are attached
by the request context middleware through ``logger.contextualize`` and show
up in both formats. Standard library logging (uvicorn, SQLAlchemy) is routed
through an ``InterceptHandler`` so every line goes through the same sink.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Final, Protocol, cast

from loguru import logger

from keystone.core.config import get_settings
from keystone.core.constants import REDACTED


class _LoggingState:
    """Tracks whether logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str: ...

    @property
    def log_formatter_type(self) -> str | None: ...


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool: ...

    @property
    def log_config(self) -> LogConfigProtocol: ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
CORRELATION_ID_DISPLAY_LENGTH: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Shown first and highlighted in console output
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "error_code",
)

# LogRecord attributes that are not forwarded as extra fields
_SKIP_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "stack_info",
        "exc_text",
        "color_message",
        "taskName",
    }
)


def _escape(value: object) -> str:
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_priority_field(field: str, value: object) -> str:
    if field == "correlation_id" and len(str(value)) > CORRELATION_ID_DISPLAY_LENGTH:
        value = str(value)[:CORRELATION_ID_DISPLAY_LENGTH]
    elif field == "duration_ms":
        value = f"{value}ms"
    elif field == "status_code":
        status = str(value)
        if status.startswith("2"):
            value = f"<green>{value}</green>"
        elif status.startswith("3"):
            value = f"<yellow>{value}</yellow>"
        else:
            value = f"<red>{value}</red>"
    return _escape(value)


def _format_extra_field(key: str, value: object) -> str:
    str_value = str(value)
    if key in get_settings().log_config.sensitive_fields:
        str_value = REDACTED
    elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
        str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(str_value)}"


def _format_context_fields(extra: dict[str, Any]) -> list[str]:
    """Format context fields, priority fields first.

    Args:
        extra: Extra fields from the log record.

    Returns:
        list[str]: Formatted context parts with color markup.
    """
    parts = [
        f"<yellow>{_format_priority_field(field, extra[field])}</yellow>"
        for field in PRIORITY_FIELDS
        if extra.get(field) is not None
    ]
    parts.extend(
        f"<dim>{_format_extra_field(key, value)}</dim>"
        for key, value in extra.items()
        if key not in PRIORITY_FIELDS
        and not key.startswith("_")
        and value is not None
    )
    return parts


def format_console_with_context(record: dict[str, Any]) -> str:
    """Format a log record for the console with all context fields visible.

    Args:
        record: Loguru record to format.

    Returns:
        str: Loguru format string for this record.
    """
    try:
        parts = [
            f"<green>{record['time'].strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]}</green>",
            f"<level>{record['level'].name: <8}</level>",
            f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
        ]

        context_parts = _format_context_fields(record.get("extra", {}))
        if context_parts:
            parts.append(" ".join(f"[{part}]" for part in context_parts))

        parts.append(_escape(record.get("message", "")))
        if record.get("exception"):
            parts.append("\n{{exception}}")

        return " | ".join(parts) + "\n"
    except (AttributeError, TypeError, ValueError, KeyError):
        return DEFAULT_LOG_FORMAT + "\n"


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format a log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if extra := record.get("extra", {}):
        log_entry.update({k: v for k, v in extra.items() if not k.startswith("_")})

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


class InterceptHandler(logging.Handler):
    """Redirect standard library logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Forward a log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        frame, depth = sys._getframe(1), 1
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in logging.LogRecord.__dict__
            and key not in _SKIP_RECORD_FIELDS
            and not key.startswith("_")
        }

        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=depth, exception=record.exc_info).bind(**extra).log(
            level, record.getMessage()
        )


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru once for the whole process.

    Args:
        settings: Application settings containing log configuration.
    """
    if _state.configured:
        return

    logger.remove()

    formatter_type = settings.log_config.log_formatter_type or "console"
    level = settings.log_config.log_level

    if formatter_type == "json":

        def structured_sink(message: Any) -> None:  # noqa: ANN401 - loguru Message
            sys.stdout.write(serialize_for_json(message.record))
            sys.stdout.flush()

        logger.add(
            structured_sink,
            level=level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_with_context),
            level=level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=level,
    )
    _state.configured = True


def bind_context(**kwargs: object) -> None:
    """Bind process-wide context fields to every log line.

    For request-scoped context, use ``logger.contextualize()`` instead.

    Example:
        >>> bind_context(service_name="keystone-api", version="0.1.0")
    """
    logger.configure(extra=kwargs)
