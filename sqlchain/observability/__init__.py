"""Public observability exports."""

from sqlchain.observability._observer import (
    EventSink,
    PipelineEvent,
    SqlCostEvent,
    create_cost_event,
    default_event_sink,
    format_event,
)

__all__ = (
    "EventSink",
    "PipelineEvent",
    "SqlCostEvent",
    "create_cost_event",
    "default_event_sink",
    "format_event",
)
