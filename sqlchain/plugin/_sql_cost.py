"""Statement execution timing."""

import time
from collections.abc import Mapping
from typing import Any, Optional

from sqlchain.config import DEFAULT_SLOW_SQL_THRESHOLD_MS, parse_int
from sqlchain.core.statement import MappedStatement
from sqlchain.executor._handlers import PreparedStatement
from sqlchain.observability import EventSink, create_cost_event, default_event_sink
from sqlchain.plugin._base import Interceptor, Invocation, Signature, TargetRole
from sqlchain.typing import DBAPIConnection
from sqlchain.utils.logging import get_logger

__all__ = ("SqlCostInterceptor",)

logger = get_logger("plugin.sql_cost")


class SqlCostInterceptor(Interceptor):
    """Times each database round trip and reports slow statements.

    The span starts when the concrete statement handler prepares the statement and ends
    when its ``query`` or ``update`` returns, so it covers parameter binding, execution and
    row mapping. Reads served from the session or namespace cache never prepare a
    statement and are not reported. The routing handler layer is passed through.

    Args:
        slow_sql_threshold_ms: Executions lasting at least this long are flagged slow.
        sink: Receives one ``SqlCostEvent`` per execution.
    """

    signatures = (
        Signature(TargetRole.STATEMENT_HANDLER, "prepare", (DBAPIConnection, int)),
        Signature(TargetRole.STATEMENT_HANDLER, "query", (PreparedStatement,)),
        Signature(TargetRole.STATEMENT_HANDLER, "update", (PreparedStatement,)),
    )

    def __init__(
        self, slow_sql_threshold_ms: int = DEFAULT_SLOW_SQL_THRESHOLD_MS, sink: Optional[EventSink] = None
    ) -> None:
        self.slow_sql_threshold_ms = slow_sql_threshold_ms
        self.sink = sink or default_event_sink

    def set_properties(self, properties: "Mapping[str, Any]") -> None:
        threshold = properties.get("slowSqlThresholdMs")
        if threshold is None:
            return
        try:
            self.slow_sql_threshold_ms = parse_int(threshold)
        except (TypeError, ValueError):
            logger.warning(
                "Ignoring invalid slowSqlThresholdMs %r, keeping %d", threshold, self.slow_sql_threshold_ms
            )

    def intercept(self, invocation: Invocation) -> Any:
        if invocation.target.is_decorator:
            return invocation.proceed()
        if invocation.method == "prepare":
            return self._prepare(invocation)

        prepared: PreparedStatement = invocation.args[0]
        start = prepared.prepared_at if prepared.prepared_at is not None else time.perf_counter()
        try:
            return invocation.proceed()
        finally:
            self._report(invocation.target.mapped_statement, start)

    def _prepare(self, invocation: Invocation) -> Any:
        start = time.perf_counter()
        try:
            prepared: PreparedStatement = invocation.proceed()
        except Exception:
            self._report(invocation.target.mapped_statement, start)
            raise
        prepared.prepared_at = start
        return prepared

    def _report(self, mapped_statement: MappedStatement, start: float) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        self.sink(
            create_cost_event(
                statement_id=mapped_statement.id,
                sql=mapped_statement.executable_sql,
                duration_ms=duration_ms,
                threshold_ms=self.slow_sql_threshold_ms,
                started_at=time.time() - duration_ms / 1000,
            )
        )
