"""Statement, parameter and result-set handlers.

One ``PreparedStatementHandler`` is created per database round trip. It is wrapped by a
``RoutingStatementHandler`` decorator, and each of the two layers (and the parameter and
result-set handlers it creates) is offered to the interceptor chain.
"""

import datetime
from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Final, Optional

import msgspec

from sqlchain._serialization import encode_json
from sqlchain.core.statement import BoundSql, MappedStatement, RowBounds
from sqlchain.plugin._base import PipelineNode, TargetRole
from sqlchain.typing import DBAPIConnection

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlchain.base import Configuration
    from sqlchain.typing import DBAPICursor

__all__ = (
    "DefaultParameterHandler",
    "DefaultResultSetHandler",
    "ParameterHandler",
    "PreparedStatement",
    "PreparedStatementHandler",
    "ResultSetHandler",
    "RoutingStatementHandler",
    "StatementHandler",
)


TYPE_COERCION_MAP: "Final[dict[type, Callable[[Any], Any]]]" = {
    datetime.datetime: lambda v: v.isoformat(),
    datetime.date: lambda v: v.isoformat(),
    Decimal: str,
    dict: encode_json,
    list: encode_json,
    tuple: lambda v: encode_json(list(v)),
}


def coerce_parameter(value: Any) -> Any:
    converter = TYPE_COERCION_MAP.get(type(value))
    return converter(value) if converter is not None else value


class PreparedStatement:
    """A cursor paired with the SQL text and bound values it will execute."""

    __slots__ = ("cursor", "parameters", "prepared_at", "sql", "timeout")

    def __init__(self, cursor: "DBAPICursor", sql: str, timeout: Optional[int] = None) -> None:
        self.cursor = cursor
        self.sql = sql
        self.timeout = timeout
        self.parameters: tuple[Any, ...] = ()
        self.prepared_at: Optional[float] = None

    def execute(self) -> None:
        self.cursor.execute(self.sql, self.parameters)

    def close(self) -> None:
        self.cursor.close()


class ParameterHandler(PipelineNode):
    role = TargetRole.PARAMETER_HANDLER
    METHOD_SIGNATURES: ClassVar["Mapping[str, tuple[type, ...]]"] = {
        "set_parameters": (PreparedStatement,),
        "get_parameter_object": (),
    }

    @abstractmethod
    def set_parameters(self, prepared: PreparedStatement) -> None: ...

    @abstractmethod
    def get_parameter_object(self) -> Any: ...


class DefaultParameterHandler(ParameterHandler):
    """Binds the ordered values of a ``BoundSql`` onto a prepared statement."""

    def __init__(self, mapped_statement: MappedStatement, bound_sql: BoundSql) -> None:
        self.mapped_statement = mapped_statement
        self.bound_sql = bound_sql

    def set_parameters(self, prepared: PreparedStatement) -> None:
        prepared.parameters = tuple(coerce_parameter(value) for value in self.bound_sql.parameters)

    def get_parameter_object(self) -> Any:
        return self.bound_sql.parameter_object


class ResultSetHandler(PipelineNode):
    role = TargetRole.RESULT_SET_HANDLER
    METHOD_SIGNATURES: ClassVar["Mapping[str, tuple[type, ...]]"] = {
        "handle_result_sets": (PreparedStatement,),
    }

    @abstractmethod
    def handle_result_sets(self, prepared: PreparedStatement) -> "list[Any]": ...


class DefaultResultSetHandler(ResultSetHandler):
    """Maps fetched rows to dicts or to the statement's ``result_type``.

    Row bounds are applied in memory after fetching.
    """

    def __init__(self, mapped_statement: MappedStatement, row_bounds: RowBounds) -> None:
        self.mapped_statement = mapped_statement
        self.row_bounds = row_bounds

    def handle_result_sets(self, prepared: PreparedStatement) -> "list[Any]":
        cursor = prepared.cursor
        column_names = [column[0] for column in cursor.description or []]
        rows = cursor.fetchall()
        if not self.row_bounds.is_default:
            end = None if self.row_bounds.limit is None else self.row_bounds.offset + self.row_bounds.limit
            rows = rows[self.row_bounds.offset : end]
        records = [dict(zip(column_names, row)) for row in rows]
        result_type = self.mapped_statement.result_type
        if result_type is None or result_type is dict:
            return records
        return [msgspec.convert(record, type=result_type) for record in records]


class StatementHandler(PipelineNode):
    role = TargetRole.STATEMENT_HANDLER
    METHOD_SIGNATURES: ClassVar["Mapping[str, tuple[type, ...]]"] = {
        "prepare": (DBAPIConnection, int),
        "parameterize": (PreparedStatement,),
        "query": (PreparedStatement,),
        "update": (PreparedStatement,),
    }

    @property
    @abstractmethod
    def mapped_statement(self) -> MappedStatement: ...

    @property
    @abstractmethod
    def bound_sql(self) -> BoundSql: ...

    @abstractmethod
    def prepare(self, connection: DBAPIConnection, timeout: Optional[int]) -> PreparedStatement: ...

    @abstractmethod
    def parameterize(self, prepared: PreparedStatement) -> None: ...

    @abstractmethod
    def query(self, prepared: PreparedStatement) -> "list[Any]": ...

    @abstractmethod
    def update(self, prepared: PreparedStatement) -> int: ...


class PreparedStatementHandler(StatementHandler):
    """Executes one statement through a DB-API cursor."""

    def __init__(
        self,
        configuration: "Configuration",
        mapped_statement: MappedStatement,
        row_bounds: RowBounds,
        bound_sql: BoundSql,
    ) -> None:
        self._mapped_statement = mapped_statement
        self._bound_sql = bound_sql
        self.parameter_handler = configuration.new_parameter_handler(mapped_statement, bound_sql)
        self.result_set_handler = configuration.new_result_set_handler(mapped_statement, row_bounds)

    @property
    def mapped_statement(self) -> MappedStatement:
        return self._mapped_statement

    @property
    def bound_sql(self) -> BoundSql:
        return self._bound_sql

    def prepare(self, connection: DBAPIConnection, timeout: Optional[int]) -> PreparedStatement:
        return PreparedStatement(connection.cursor(), self._bound_sql.sql, timeout)

    def parameterize(self, prepared: PreparedStatement) -> None:
        self.parameter_handler.set_parameters(prepared)

    def query(self, prepared: PreparedStatement) -> "list[Any]":
        prepared.execute()
        return self.result_set_handler.handle_result_sets(prepared)

    def update(self, prepared: PreparedStatement) -> int:
        prepared.execute()
        rowcount = prepared.cursor.rowcount
        return rowcount if rowcount is not None and rowcount >= 0 else 0


class RoutingStatementHandler(StatementHandler):
    """Decorator layer delegating every call to the concrete statement handler."""

    is_decorator = True

    def __init__(self, delegate: StatementHandler) -> None:
        self.delegate = delegate

    @property
    def mapped_statement(self) -> MappedStatement:
        return self.delegate.mapped_statement

    @property
    def bound_sql(self) -> BoundSql:
        return self.delegate.bound_sql

    def prepare(self, connection: DBAPIConnection, timeout: Optional[int]) -> PreparedStatement:
        return self.delegate.prepare(connection, timeout)

    def parameterize(self, prepared: PreparedStatement) -> None:
        self.delegate.parameterize(prepared)

    def query(self, prepared: PreparedStatement) -> "list[Any]":
        return self.delegate.query(prepared)

    def update(self, prepared: PreparedStatement) -> int:
        return self.delegate.update(prepared)
