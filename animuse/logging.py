"""Structured logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping


class StructuredFormatter(logging.Formatter):
    """Formatter producing `timestamp | LEVEL | module | [source] message` lines.

    Records logged through a `SourceLogger` carry a `source_id` attribute,
    rendered as a bracketed prefix so one catalog's lines can be grepped out.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
        level = record.levelname.ljust(8)
        message = record.getMessage()

        source_id = getattr(record, "source_id", None)
        if source_id:
            message = f"[{source_id}] {message}"

        log_line = f"{timestamp} | {level} | {record.name} | {message}"

        if record.exc_info:
            log_line += "\n" + self.formatException(record.exc_info)

        return log_line


class SourceLogger(logging.LoggerAdapter):
    """Logger bound to one catalog source."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("source_id", self.extra["source_id"])
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging for the service.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(console_handler)

    # Quiet chatty libraries
    for name in ("uvicorn.access", "httpx", "httpcore", "apscheduler", "aiosqlite"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def get_source_logger(name: str, source_id: str) -> SourceLogger:
    """Get a logger whose records are tagged with a catalog source id.

    Args:
        name: Logger name, typically __name__ of the calling module
        source_id: Catalog partition the messages are about

    Returns:
        Adapter adding `source_id` to every record
    """
    return SourceLogger(logging.getLogger(name), {"source_id": source_id})
