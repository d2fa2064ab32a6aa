"""Whole-pipeline trace observer."""

from typing import Any, Optional

from sqlchain.core.cache import CacheKey
from sqlchain.core.statement import BoundSql, MappedStatement, RowBounds
from sqlchain.executor._handlers import PreparedStatement
from sqlchain.observability import EventSink, PipelineEvent, default_event_sink
from sqlchain.plugin._base import Interceptor, Invocation, Signature, TargetRole
from sqlchain.typing import DBAPIConnection
from sqlchain.utils.logging import get_correlation_id

__all__ = ("ExecutionTraceInterceptor",)

_EXECUTOR_STATEMENT_METHODS = frozenset({"query", "update"})


class ExecutionTraceInterceptor(Interceptor):
    """Reports every stage a statement passes through.

    * executor ``query``/``update``: statement id, command type and SQL, then the row
      count or affected rows. The caching decorator only reports a light entry event and
      leaves the details to the raw executor.
    * executor housekeeping (commit, rollback, cache key, cache probe, close)
    * statement handler prepare/parameterize/query/update (the routing layer is skipped)
    * parameter binding and result-set mapping

    Args:
        sink: Receives one ``PipelineEvent`` per observed call.
    """

    signatures = (
        Signature(TargetRole.EXECUTOR, "query", (MappedStatement, object, RowBounds)),
        Signature(TargetRole.EXECUTOR, "update", (MappedStatement, object)),
        Signature(TargetRole.EXECUTOR, "create_cache_key", (MappedStatement, object, RowBounds, BoundSql)),
        Signature(TargetRole.EXECUTOR, "is_cached", (MappedStatement, CacheKey)),
        Signature(TargetRole.EXECUTOR, "clear_local_cache", ()),
        Signature(TargetRole.EXECUTOR, "commit", (bool,)),
        Signature(TargetRole.EXECUTOR, "rollback", (bool,)),
        Signature(TargetRole.EXECUTOR, "close", (bool,)),
        Signature(TargetRole.STATEMENT_HANDLER, "prepare", (DBAPIConnection, int)),
        Signature(TargetRole.STATEMENT_HANDLER, "parameterize", (PreparedStatement,)),
        Signature(TargetRole.STATEMENT_HANDLER, "query", (PreparedStatement,)),
        Signature(TargetRole.STATEMENT_HANDLER, "update", (PreparedStatement,)),
        Signature(TargetRole.PARAMETER_HANDLER, "set_parameters", (PreparedStatement,)),
        Signature(TargetRole.PARAMETER_HANDLER, "get_parameter_object", ()),
        Signature(TargetRole.RESULT_SET_HANDLER, "handle_result_sets", (PreparedStatement,)),
    )

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self.sink = sink or default_event_sink

    def intercept(self, invocation: Invocation) -> Any:
        role = invocation.role
        if role is TargetRole.EXECUTOR:
            return self._trace_executor(invocation)
        if role is TargetRole.STATEMENT_HANDLER:
            return self._trace_statement_handler(invocation)
        if role is TargetRole.PARAMETER_HANDLER:
            return self._trace_parameter_handler(invocation)
        return self._trace_result_set_handler(invocation)

    def _emit(self, invocation: Invocation, statement_id: "str | None", **detail: Any) -> None:
        self.sink(
            PipelineEvent(
                role=invocation.role.value,
                method=invocation.method,
                statement_id=statement_id,
                detail=detail,
                correlation_id=get_correlation_id(),
            )
        )

    def _trace_executor(self, invocation: Invocation) -> Any:
        method = invocation.method
        args = invocation.args
        if invocation.target.is_decorator:
            if method in _EXECUTOR_STATEMENT_METHODS:
                self._emit(invocation, args[0].id, layer="caching")
            return invocation.proceed()

        if method == "update":
            mapped_statement: MappedStatement = args[0]
            self._emit(
                invocation,
                mapped_statement.id,
                type=mapped_statement.command_type.value,
                sql=mapped_statement.executable_sql,
            )
            result = invocation.proceed()
            self._emit(invocation, mapped_statement.id, rows_affected=result)
            return result
        if method == "query":
            mapped_statement = args[0]
            self._emit(invocation, mapped_statement.id, sql=mapped_statement.executable_sql)
            result = invocation.proceed()
            self._emit(invocation, mapped_statement.id, **_describe_rows(result))
            return result
        if method == "create_cache_key":
            key = invocation.proceed()
            self._emit(invocation, args[0].id, key=repr(key))
            return key
        if method == "is_cached":
            hit = invocation.proceed()
            self._emit(invocation, args[0].id, hit=hit)
            return hit
        if method in {"commit", "rollback"}:
            self._emit(invocation, None, required=args[0])
        elif method == "close":
            self._emit(invocation, None, force_rollback=args[0])
        else:
            self._emit(invocation, None)
        return invocation.proceed()

    def _trace_statement_handler(self, invocation: Invocation) -> Any:
        target = invocation.target
        if target.is_decorator:
            return invocation.proceed()
        statement_id = target.mapped_statement.id
        if invocation.method == "prepare":
            self._emit(invocation, statement_id, sql=target.bound_sql.sql)
        else:
            self._emit(invocation, statement_id)
        return invocation.proceed()

    def _trace_parameter_handler(self, invocation: Invocation) -> Any:
        statement_id = invocation.target.mapped_statement.id
        if invocation.method == "set_parameters":
            parameter = invocation.target.get_parameter_object()
            self._emit(invocation, statement_id, parameter_type=_type_name(parameter))
            return invocation.proceed()
        result = invocation.proceed()
        self._emit(invocation, statement_id, parameter_type=_type_name(result))
        return result

    def _trace_result_set_handler(self, invocation: Invocation) -> Any:
        result = invocation.proceed()
        self._emit(invocation, invocation.target.mapped_statement.id, **_describe_rows(result))
        return result


def _type_name(value: Any) -> str:
    return "<null>" if value is None else type(value).__name__


def _describe_rows(result: Any) -> "dict[str, Any]":
    if isinstance(result, list):
        detail: dict[str, Any] = {"rows": len(result)}
        if result:
            detail["element_type"] = type(result[0]).__name__
        return detail
    return {"result_type": _type_name(result)}
