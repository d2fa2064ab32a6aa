"""Executor interface and the raw executor layer."""

from abc import abstractmethod
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ClassVar

from sqlchain.config import LocalCacheScope
from sqlchain.core.cache import CacheKey, PerpetualCache, create_cache_key
from sqlchain.core.statement import BoundSql, MappedStatement, RowBounds
from sqlchain.exceptions import ExecutionError, SessionClosedError
from sqlchain.plugin._base import PipelineNode, TargetRole
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlchain.base import Configuration
    from sqlchain.executor._handlers import StatementHandler
    from sqlchain.typing import DBAPIConnection

__all__ = ("BaseExecutor", "Executor", "SimpleExecutor")

logger = get_logger("executor")


class Executor(PipelineNode):
    """Executes mapped statements for one session."""

    role = TargetRole.EXECUTOR
    METHOD_SIGNATURES: ClassVar["Mapping[str, tuple[type, ...]]"] = {
        "query": (MappedStatement, object, RowBounds),
        "update": (MappedStatement, object),
        "create_cache_key": (MappedStatement, object, RowBounds, BoundSql),
        "is_cached": (MappedStatement, CacheKey),
        "clear_local_cache": (),
        "commit": (bool,),
        "rollback": (bool,),
        "close": (bool,),
    }

    @abstractmethod
    def query(self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds) -> "list[Any]": ...

    @abstractmethod
    def update(self, mapped_statement: MappedStatement, parameter: Any) -> int: ...

    @abstractmethod
    def create_cache_key(
        self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds, bound_sql: BoundSql
    ) -> CacheKey: ...

    @abstractmethod
    def is_cached(self, mapped_statement: MappedStatement, key: CacheKey) -> bool: ...

    @abstractmethod
    def populate_local_cache(self, key: CacheKey, result: "list[Any]") -> None: ...

    @abstractmethod
    def clear_local_cache(self) -> None: ...

    @abstractmethod
    def commit(self, required: bool) -> None: ...

    @abstractmethod
    def rollback(self, required: bool) -> None: ...

    @abstractmethod
    def close(self, force_rollback: bool) -> None: ...

    @property
    @abstractmethod
    def is_closed(self) -> bool: ...


class BaseExecutor(Executor):
    """Raw executor owning the session cache and the connection.

    Reads are served from the session cache when an equal key was already fetched in this
    session; writes, commits and rollbacks clear it.
    """

    def __init__(self, configuration: "Configuration", connection: "DBAPIConnection") -> None:
        self.configuration = configuration
        self.connection = connection
        self.local_cache = PerpetualCache("LocalCache")
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def query(self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds) -> "list[Any]":
        self._ensure_open()
        bound_sql = mapped_statement.get_bound_sql(parameter)
        key = self.create_cache_key(mapped_statement, parameter, row_bounds, bound_sql)
        if mapped_statement.flush_cache:
            self.local_cache.clear()
        if key in self.local_cache:
            logger.debug("Session cache hit for %s", mapped_statement.id)
            return self.local_cache.get(key)  # type: ignore[no-any-return]
        result = self._do_query(mapped_statement, parameter, row_bounds, bound_sql)
        self.populate_local_cache(key, result)
        return result

    def update(self, mapped_statement: MappedStatement, parameter: Any) -> int:
        self._ensure_open()
        self.local_cache.clear()
        return self._do_update(mapped_statement, parameter)

    def create_cache_key(
        self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds, bound_sql: BoundSql
    ) -> CacheKey:
        self._ensure_open()
        return create_cache_key(mapped_statement, bound_sql, row_bounds)

    def is_cached(self, mapped_statement: MappedStatement, key: CacheKey) -> bool:
        return key in self.local_cache

    def populate_local_cache(self, key: CacheKey, result: "list[Any]") -> None:
        if self.configuration.settings.local_cache_scope is LocalCacheScope.STATEMENT:
            return
        self.local_cache.put(key, result)

    def clear_local_cache(self) -> None:
        if not self._closed:
            self.local_cache.clear()

    def commit(self, required: bool) -> None:
        if self._closed:
            msg = "Cannot commit, executor already closed"
            raise SessionClosedError(msg)
        self.clear_local_cache()
        if required:
            with self._wrap_driver_errors(None):
                self.connection.commit()

    def rollback(self, required: bool) -> None:
        if self._closed:
            return
        self.clear_local_cache()
        if required:
            with self._wrap_driver_errors(None):
                self.connection.rollback()

    def close(self, force_rollback: bool) -> None:
        if self._closed:
            return
        try:
            self.rollback(force_rollback)
        finally:
            self.local_cache.clear()
            self._closed = True
            self.connection.close()

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "Executor was closed"
            raise SessionClosedError(msg)

    @contextmanager
    def _wrap_driver_errors(self, statement_id: "str | None") -> Generator[None, None, None]:
        """Wrap driver exceptions once into ``ExecutionError``."""
        try:
            yield
        except self.configuration.driver_errors as e:
            target = f" for {statement_id}" if statement_id else ""
            msg = f"Database error{target}: {e}"
            raise ExecutionError(msg, statement_id) from e

    @abstractmethod
    def _do_query(
        self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds, bound_sql: BoundSql
    ) -> "list[Any]": ...

    @abstractmethod
    def _do_update(self, mapped_statement: MappedStatement, parameter: Any) -> int: ...


class SimpleExecutor(BaseExecutor):
    """Runs every statement through a fresh statement handler and cursor."""

    def _do_query(
        self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds, bound_sql: BoundSql
    ) -> "list[Any]":
        handler = self.configuration.new_statement_handler(mapped_statement, row_bounds, bound_sql)
        with self._wrap_driver_errors(mapped_statement.id):
            prepared = handler.prepare(self.connection, mapped_statement.timeout)
            try:
                handler.parameterize(prepared)
                return handler.query(prepared)
            finally:
                prepared.close()

    def _do_update(self, mapped_statement: MappedStatement, parameter: Any) -> int:
        bound_sql = mapped_statement.get_bound_sql(parameter)
        handler: StatementHandler = self.configuration.new_statement_handler(
            mapped_statement, RowBounds.DEFAULT, bound_sql
        )
        with self._wrap_driver_errors(mapped_statement.id):
            prepared = handler.prepare(self.connection, mapped_statement.timeout)
            try:
                handler.parameterize(prepared)
                return handler.update(prepared)
            finally:
                prepared.close()
