"""Interceptor chain and the built-in interceptors."""

from typing import TYPE_CHECKING, Optional

from sqlchain.plugin._base import Interceptor, InterceptorChain, Invocation, PipelineNode, Plugin, Signature, TargetRole
from sqlchain.plugin._guard import FullTableMutationGuard, is_full_table_mutation, normalize_sql
from sqlchain.plugin._sql_cost import SqlCostInterceptor
from sqlchain.plugin._trace import ExecutionTraceInterceptor

if TYPE_CHECKING:
    from sqlchain.config import SQLChainConfig
    from sqlchain.observability import EventSink

__all__ = (
    "ExecutionTraceInterceptor",
    "FullTableMutationGuard",
    "Interceptor",
    "InterceptorChain",
    "Invocation",
    "PipelineNode",
    "Plugin",
    "Signature",
    "SqlCostInterceptor",
    "TargetRole",
    "default_interceptors",
    "is_full_table_mutation",
    "normalize_sql",
)


def default_interceptors(settings: "SQLChainConfig", sink: "Optional[EventSink]" = None) -> "list[Interceptor]":
    """Build the enabled built-in interceptors in registration order.

    The guard comes first so a rejected write is never timed.
    """
    interceptors: list[Interceptor] = []
    if settings.plugins.full_table_mutation_guard:
        interceptors.append(FullTableMutationGuard())
    if settings.plugins.sql_cost:
        interceptors.append(SqlCostInterceptor(settings.slow_sql_threshold_ms, sink))
    if settings.plugins.execution_trace:
        interceptors.append(ExecutionTraceInterceptor(sink))
    return interceptors
