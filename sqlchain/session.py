"""Sessions: one unit of work over one connection and one executor chain."""

import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from typing_extensions import Self

from sqlchain.core.statement import RowBounds
from sqlchain.exceptions import ImproperConfigurationError, MultipleResultsFoundError, SessionClosedError
from sqlchain.utils.logging import correlation_scope, get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from sqlchain.base import Configuration
    from sqlchain.executor import Executor
    from sqlchain.mapper import Mapper
    from sqlchain.typing import ConnectionFactory, DBAPIConnection

__all__ = ("SqlSession", "SqlSessionFactory")

logger = get_logger("session")

MapperT = TypeVar("MapperT", bound="Mapper")


class SqlSession:
    """Runs mapped statements through the intercepted executor chain.

    A session is confined to one thread. Without ``autocommit`` writes stay in an open
    transaction until ``commit``; closing a session with uncommitted writes rolls them back.

    Args:
        configuration: Frozen configuration holding statements and interceptors.
        executor: Outermost executor of this session's chain.
        autocommit: Commit after every write.
    """

    def __init__(self, configuration: "Configuration", executor: "Executor", autocommit: bool = False) -> None:
        self.configuration = configuration
        self.executor = executor
        self.autocommit = autocommit
        self.id = uuid.uuid4().hex
        self.dirty = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def select_one(self, statement_id: str, parameter: Any = None) -> Any:
        """Return the single matching row, or ``None``.

        Raises:
            MultipleResultsFoundError: More than one row matched.
        """
        rows = self.select_list(statement_id, parameter)
        if not rows:
            return None
        if len(rows) > 1:
            msg = f"Expected one row from {statement_id!r}, got {len(rows)}"
            raise MultipleResultsFoundError(msg)
        return rows[0]

    def select_list(
        self, statement_id: str, parameter: Any = None, row_bounds: RowBounds = RowBounds.DEFAULT
    ) -> "list[Any]":
        mapped_statement = self.configuration.get_mapped_statement(statement_id)
        with self._unit_of_work():
            return self.executor.query(mapped_statement, parameter, row_bounds)

    def update(self, statement_id: str, parameter: Any = None) -> int:
        mapped_statement = self.configuration.get_mapped_statement(statement_id)
        with self._unit_of_work():
            self.dirty = True
            rows_affected = self.executor.update(mapped_statement, parameter)
            if self.autocommit:
                self._commit(force=True)
            return rows_affected

    def insert(self, statement_id: str, parameter: Any = None) -> int:
        return self.update(statement_id, parameter)

    def delete(self, statement_id: str, parameter: Any = None) -> int:
        return self.update(statement_id, parameter)

    def commit(self, force: bool = False) -> None:
        with self._unit_of_work():
            self._commit(force)

    def rollback(self, force: bool = False) -> None:
        with self._unit_of_work():
            self.executor.rollback(self._commit_or_rollback_required(force))
            self.dirty = False

    def clear_cache(self) -> None:
        with self._unit_of_work():
            self.executor.clear_local_cache()

    def close(self) -> None:
        if self._closed:
            return
        with correlation_scope(self.id):
            try:
                self.executor.close(self._commit_or_rollback_required(False))
            finally:
                self._closed = True
                self.dirty = False
        logger.debug("Closed session %s", self.id)

    def get_mapper(self, mapper_type: "type[MapperT]") -> MapperT:
        definition = mapper_type.definition
        missing = [s.id for s in definition.statements if not self.configuration.has_statement(s.id)]
        if missing:
            msg = f"Mapper {definition.namespace!r} is not registered, missing statements: {missing}"
            raise ImproperConfigurationError(msg)
        return mapper_type(self)

    def _commit(self, force: bool) -> None:
        self.executor.commit(self._commit_or_rollback_required(force))
        self.dirty = False

    def _commit_or_rollback_required(self, force: bool) -> bool:
        return (not self.autocommit and self.dirty) or force

    @contextmanager
    def _unit_of_work(self) -> Generator[None, None, None]:
        if self._closed:
            msg = f"Session {self.id} is closed"
            raise SessionClosedError(msg)
        with correlation_scope(self.id):
            yield

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SqlSession(id={self.id!r}, dirty={self.dirty}, closed={self._closed})"


class SqlSessionFactory:
    """Opens sessions, each on a fresh connection from ``connection_factory``.

    Opening the first session freezes the configuration's interceptor chain.
    """

    def __init__(self, configuration: "Configuration", connection_factory: "ConnectionFactory") -> None:
        self.configuration = configuration
        self.connection_factory = connection_factory

    def open_session(self, autocommit: bool = False, connection: "Optional[DBAPIConnection]" = None) -> SqlSession:
        self.configuration.freeze()
        executor = self.configuration.new_executor(connection or self.connection_factory())
        session = SqlSession(self.configuration, executor, autocommit=autocommit)
        logger.debug("Opened session %s", session.id)
        return session
