# ruff: noqa: PLR6301
"""Logging helpers for sqlchain.

All loggers hang off the ``sqlchain`` logger. A session publishes its id as the
correlation ID while it runs a statement, and every record emitted meanwhile carries
it, so output from concurrent sessions can be told apart.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from sqlchain._serialization import encode_json

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable
    from logging import LogRecord

__all__ = (
    "CorrelationIDFilter",
    "StructuredFormatter",
    "configure_logging",
    "correlation_id_var",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
)

ROOT_LOGGER_NAME = "sqlchain"
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

correlation_id_var: ContextVar[str | None] = ContextVar("sqlchain_correlation_id", default=None)


def set_correlation_id(correlation_id: str | None) -> None:
    """Replace the correlation ID of the running context; ``None`` clears it."""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


@contextmanager
def correlation_scope(correlation_id: str | None) -> Generator[None, None, None]:
    """Publish ``correlation_id`` for the duration of the block, then restore the previous one."""
    token = correlation_id_var.set(correlation_id)
    try:
        yield
    finally:
        correlation_id_var.reset(token)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Structured payloads passed as ``extra={"extra_fields": {...}}`` are merged into the
    top level of the object.
    """

    def format(self, record: LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        correlation_id = getattr(record, "correlation_id", None) or get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            entry.update(extra_fields)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return encode_json(entry)


class CorrelationIDFilter(logging.Filter):
    """Copies the current correlation ID onto each record; never drops a record."""

    def filter(self, record: LogRecord) -> bool:
        correlation_id = get_correlation_id()
        if correlation_id:
            record.correlation_id = correlation_id  # type: ignore[attr-defined]
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger under the ``sqlchain`` namespace.

    Args:
        name: Dotted name relative to ``sqlchain`` (``"plugin.guard"``) or already
            prefixed (``"sqlchain.session"``). ``None`` returns the root sqlchain logger.

    Returns:
        Logger with a ``CorrelationIDFilter`` attached.
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIDFilter) for f in logger.filters):
        logger.addFilter(CorrelationIDFilter())
    return logger


def configure_logging(
    level: str | int = "INFO",
    format_style: str = "structured",
    log_to_file: str | None = None,
    extra_handlers: Iterable[logging.Handler] | None = None,
) -> logging.Logger:
    """Install handlers on the ``sqlchain`` logger and stop propagation to the root logger.

    Args:
        level: Level name or number.
        format_style: ``"structured"`` for JSON lines, anything else for plain text.
        log_to_file: Optional file that receives structured records.
        extra_handlers: Additional handlers, attached as given.

    Returns:
        The configured ``sqlchain`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter() if format_style == "structured" else logging.Formatter(SIMPLE_FORMAT))
    handlers: list[logging.Handler] = [console]
    if log_to_file:
        file_handler = logging.FileHandler(log_to_file)
        file_handler.setFormatter(StructuredFormatter())
        handlers.append(file_handler)
    handlers.extend(extra_handlers or ())
    for handler in handlers:
        logger.addHandler(handler)
    logger.propagate = False

    logger.info(
        "sqlchain logging configured",
        extra={"extra_fields": {"level": logging.getLevelName(logger.level), "format_style": format_style}},
    )
    return logger
