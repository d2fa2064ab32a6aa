"""Observation payloads emitted by the built-in interceptors."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from time import time
from typing import Any, Optional, Union

from sqlchain.utils.logging import get_correlation_id, get_logger

__all__ = (
    "EventSink",
    "PipelineEvent",
    "SqlCostEvent",
    "create_cost_event",
    "default_event_sink",
    "format_event",
)


logger = get_logger("observability")


@dataclass(slots=True)
class SqlCostEvent:
    """Wall-clock cost of one statement execution."""

    statement_id: str
    sql: str
    duration_ms: float
    threshold_ms: int
    slow: bool
    started_at: float
    correlation_id: "str | None"

    def as_dict(self) -> "dict[str, Any]":
        return {
            "statement_id": self.statement_id,
            "sql": self.sql,
            "duration_ms": self.duration_ms,
            "threshold_ms": self.threshold_ms,
            "slow": self.slow,
            "started_at": self.started_at,
            "correlation_id": self.correlation_id,
        }


@dataclass(slots=True)
class PipelineEvent:
    """One observed pipeline stage call."""

    role: str
    method: str
    statement_id: "str | None"
    detail: "dict[str, Any]"
    correlation_id: "str | None"

    def as_dict(self) -> "dict[str, Any]":
        return {
            "role": self.role,
            "method": self.method,
            "statement_id": self.statement_id,
            "detail": dict(self.detail),
            "correlation_id": self.correlation_id,
        }


Event = Union[SqlCostEvent, PipelineEvent]
EventSink = Callable[[Any], None]


def create_cost_event(
    *, statement_id: str, sql: str, duration_ms: float, threshold_ms: int, started_at: Optional[float] = None
) -> SqlCostEvent:
    """Build a cost event; ``slow`` is set when ``duration_ms >= threshold_ms``."""

    return SqlCostEvent(
        statement_id=statement_id,
        sql=sql,
        duration_ms=duration_ms,
        threshold_ms=threshold_ms,
        slow=duration_ms >= threshold_ms,
        started_at=started_at if started_at is not None else time(),
        correlation_id=get_correlation_id(),
    )


def format_event(event: "Event") -> str:
    """Create a concise human-readable representation of an event."""

    if isinstance(event, SqlCostEvent):
        label = "[slow] " if event.slow else ""
        return f"{label}{event.statement_id} cost={event.duration_ms:.3f}ms sql={event.sql}"
    target = f" -> {event.statement_id}" if event.statement_id else ""
    details = ", ".join(f"{key}={value}" for key, value in event.detail.items())
    return f"{event.role}#{event.method}{target}" + (f" ({details})" if details else "")


def default_event_sink(event: "Event") -> None:
    """Log events when no custom sink is supplied; slow statements log at WARNING."""

    level = logging.WARNING if isinstance(event, SqlCostEvent) and event.slow else logging.INFO
    logger.log(level, format_event(event), extra={"extra_fields": event.as_dict()})
