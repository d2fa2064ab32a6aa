"""Statement registry and pipeline factory."""

import sqlite3
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional, Union

from sqlchain.config import SQLChainConfig
from sqlchain.core.cache import NamespaceCacheRegistry
from sqlchain.core.statement import BoundSql, MappedStatement, RowBounds
from sqlchain.exceptions import ImproperConfigurationError, StatementNotFoundError
from sqlchain.executor import (
    CachingExecutor,
    DefaultParameterHandler,
    DefaultResultSetHandler,
    ParameterHandler,
    PreparedStatementHandler,
    ResultSetHandler,
    RoutingStatementHandler,
    SimpleExecutor,
    StatementHandler,
)
from sqlchain.plugin import Interceptor, InterceptorChain, default_interceptors
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.executor import Executor
    from sqlchain.mapper import Mapper, MapperDefinition
    from sqlchain.observability import EventSink
    from sqlchain.typing import DBAPIConnection

__all__ = ("Configuration",)

logger = get_logger("configuration")


class Configuration:
    """Holds mapped statements, namespace caches and the interceptor chain.

    Statements, mappers and interceptors are registered at startup. The first session
    opened from a ``SqlSessionFactory`` freezes the interceptor chain.

    Args:
        settings: Runtime settings; defaults apply when omitted.
        event_sink: Sink handed to the built-in observers.
        driver_errors: Exception types raised by the DB-API driver.
        register_default_plugins: Register the built-in interceptors enabled in ``settings``.
    """

    def __init__(
        self,
        settings: "Optional[SQLChainConfig]" = None,
        *,
        event_sink: "Optional[EventSink]" = None,
        driver_errors: "tuple[type[BaseException], ...]" = (sqlite3.Error,),
        register_default_plugins: bool = True,
    ) -> None:
        self.settings = settings or SQLChainConfig()
        self.driver_errors = driver_errors
        self.interceptor_chain = InterceptorChain()
        self.namespace_caches = NamespaceCacheRegistry()
        self._statements: dict[str, MappedStatement] = {}
        if register_default_plugins:
            for interceptor in default_interceptors(self.settings, event_sink):
                self.add_interceptor(interceptor)

    @classmethod
    def from_properties(
        cls, properties: "Optional[Mapping[str, Any]]" = None, **kwargs: Any
    ) -> "Configuration":
        return cls(SQLChainConfig.from_properties(properties), **kwargs)

    # -- registration --
    def add_interceptor(self, interceptor: Interceptor, properties: "Optional[Mapping[str, Any]]" = None) -> None:
        if properties:
            interceptor.set_properties(properties)
        self.interceptor_chain.add_interceptor(interceptor)

    def add_statement(self, mapped_statement: MappedStatement) -> None:
        if mapped_statement.id in self._statements:
            msg = f"Mapped statement {mapped_statement.id!r} is already registered"
            raise ImproperConfigurationError(msg)
        self._statements[mapped_statement.id] = mapped_statement

    def add_mapper(self, mapper: "Union[MapperDefinition, type[Mapper]]") -> None:
        """Register every statement of a mapper and, if enabled, its namespace cache."""
        definition: MapperDefinition = getattr(mapper, "definition", mapper)
        if definition.use_namespace_cache:
            self.namespace_caches.register(definition.namespace, definition.cache or self.settings.namespace_cache)
        for mapped_statement in definition.statements:
            self.add_statement(mapped_statement)
        logger.debug("Registered mapper %s with %d statements", definition.namespace, len(definition.statements))

    def get_mapped_statement(self, statement_id: str) -> MappedStatement:
        try:
            return self._statements[statement_id]
        except KeyError:
            raise StatementNotFoundError(statement_id) from None

    def has_statement(self, statement_id: str) -> bool:
        return statement_id in self._statements

    @property
    def mapped_statements(self) -> "tuple[MappedStatement, ...]":
        return tuple(self._statements.values())

    def freeze(self) -> None:
        self.interceptor_chain.freeze()

    # -- pipeline construction --
    def new_executor(self, connection: "DBAPIConnection") -> "Executor":
        """Build the raw executor and its caching decorator, each offered to the chain."""
        raw = self.interceptor_chain.plugin_all(SimpleExecutor(self, connection))
        caching = self.interceptor_chain.plugin_all(CachingExecutor(raw, self.namespace_caches))
        return caching  # type: ignore[no-any-return]

    def new_statement_handler(
        self, mapped_statement: MappedStatement, row_bounds: RowBounds, bound_sql: BoundSql
    ) -> StatementHandler:
        concrete = self.interceptor_chain.plugin_all(
            PreparedStatementHandler(self, mapped_statement, row_bounds, bound_sql)
        )
        return self.interceptor_chain.plugin_all(RoutingStatementHandler(concrete))  # type: ignore[no-any-return]

    def new_parameter_handler(self, mapped_statement: MappedStatement, bound_sql: BoundSql) -> ParameterHandler:
        handler = self.interceptor_chain.plugin_all(DefaultParameterHandler(mapped_statement, bound_sql))
        return handler  # type: ignore[no-any-return]

    def new_result_set_handler(self, mapped_statement: MappedStatement, row_bounds: RowBounds) -> ResultSetHandler:
        handler = self.interceptor_chain.plugin_all(DefaultResultSetHandler(mapped_statement, row_bounds))
        return handler  # type: ignore[no-any-return]
