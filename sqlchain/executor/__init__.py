"""Executor layers and statement pipeline handlers."""

from sqlchain.executor._base import BaseExecutor, Executor, SimpleExecutor
from sqlchain.executor._caching import CachingExecutor
from sqlchain.executor._handlers import (
    DefaultParameterHandler,
    DefaultResultSetHandler,
    ParameterHandler,
    PreparedStatement,
    PreparedStatementHandler,
    ResultSetHandler,
    RoutingStatementHandler,
    StatementHandler,
)

__all__ = (
    "BaseExecutor",
    "CachingExecutor",
    "DefaultParameterHandler",
    "DefaultResultSetHandler",
    "Executor",
    "ParameterHandler",
    "PreparedStatement",
    "PreparedStatementHandler",
    "ResultSetHandler",
    "RoutingStatementHandler",
    "SimpleExecutor",
    "StatementHandler",
)
