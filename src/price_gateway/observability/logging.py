"""Logging configuration using Loguru.

This module provides:
- Structured JSON logging outside development
- Human-readable colorized output for development
- Request ID correlation via context
- Redaction of credential-bearing fields before any sink sees them
- Interception of standard library logging
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING

import orjson
from loguru import logger


if TYPE_CHECKING:
    from typing import Any


# Context variable for request-scoped data (request_id, client_ip, ...)
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Extra-field names whose values must never reach a sink
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "authorization",
        "client_secret",
        "kroger_client_secret",
        "password",
        "secret",
        "token",
    }
)
REDACTED = "[REDACTED]"


class InterceptHandler(logging.Handler):
    """Forward standard library log records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record by forwarding to Loguru."""
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _redact(record: dict[str, Any]) -> None:
    """Loguru patcher masking sensitive extra fields in place."""
    extra = record["extra"]
    for key in list(extra):
        if key.lower() in SENSITIVE_KEYS:
            extra[key] = REDACTED


def _format_record(record: dict[str, Any]) -> str:
    """Serialize a record with the bound context as one JSON line."""
    record["extra"].update(_log_context.get())
    _redact(record)

    serialize_fields = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["extra"].get("name", record["name"]),
        "function": record["function"],
        "line": record["line"],
        **record["extra"],
    }

    if record["exception"]:
        exc = record["exception"]
        serialize_fields["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    # Loguru treats the returned string as a template, so the payload is
    # stashed on the record and referenced by name.
    record["extra"]["_json"] = orjson.dumps(serialize_fields, default=str).decode()
    return "{extra[_json]}\n"


def _format_record_dev(record: dict[str, Any]) -> str:
    """Human-readable format with the bound context appended."""
    _redact(record)
    context = _log_context.get()

    context_str = ""
    if context:
        context_str = " | " + " ".join(f"{k}={v}" for k, v in context.items())

    fields = {k: v for k, v in record["extra"].items() if k != "name"}
    fields_str = ""
    if fields:
        fields_str = " | " + " ".join(f"{k}={v}" for k, v in fields.items())
    # Braces in values would be read as format placeholders
    tail = (context_str + fields_str).replace("{", "{{").replace("}", "}}")

    fmt = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        f"<level>{{message}}</level>{tail}\n"
    )

    if record["exception"]:
        fmt += "{exception}\n"

    return fmt


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    *,
    is_development: bool = False,
) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "text")
        is_development: Force the human-readable format
    """
    logger.remove()
    logger.configure(extra={"name": "root"})

    if log_format == "json" and not is_development:
        logger.add(
            sys.stdout,
            format=_format_record,
            level=log_level.upper(),
            colorize=False,
            backtrace=True,
            diagnose=False,  # locals could include credentials
        )
    else:
        logger.add(
            sys.stdout,
            format=_format_record_dev,
            level=log_level.upper(),
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # httpx logs full request lines at INFO, which would include ?token=
    for logger_name in [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpx",
        "httpcore",
        "asyncio",
    ]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> "logger":  # type: ignore[valid-type]
    """Get a logger instance bound to a name."""
    return logger.bind(name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in every log entry of this task.

    Example:
        bind_context(request_id="abc-123", client_ip="10.0.0.1")
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def clear_context() -> None:
    """Clear all context variables."""
    _log_context.set({})


def unbind_context(*keys: str) -> None:
    """Remove specific context variables."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


def get_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


__all__ = [
    "REDACTED",
    "SENSITIVE_KEYS",
    "bind_context",
    "clear_context",
    "get_context",
    "get_logger",
    "logger",
    "setup_logging",
    "unbind_context",
]
