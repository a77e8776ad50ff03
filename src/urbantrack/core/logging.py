"""Logging setup: text or JSON lines, email redaction, per-connection correlation ids."""

from __future__ import annotations

import json
import logging
import re
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

REDACTED = "***REDACTED***"

# Rider emails show up in login and registration messages
EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)*")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s]: %(message)s"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(value: str) -> None:
    """Tag log records from the current HTTP request or WebSocket connection."""
    _correlation_id.set(value)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def redact_emails(text: str) -> str:
    return EMAIL_PATTERN.sub(REDACTED, text)


class CorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_emails(record.getMessage()),
        }
        correlation_id = getattr(record, "correlation_id", "-")
        if correlation_id != "-":
            entry["correlation_id"] = correlation_id
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


class RedactingFormatter(logging.Formatter):
    """Plain text with emails masked, tracebacks included."""

    def __init__(self) -> None:
        super().__init__(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return redact_emails(super().format(record))


def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """Install a single stream handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_format: "json" for JSON lines, anything else for text.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else RedactingFormatter())
    handler.addFilter(CorrelationFilter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
