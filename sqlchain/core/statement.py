"""Mapped statements and their per-invocation bound form.

A ``MappedStatement`` is registered once per mapper operation and never changes.
``MappedStatement.get_bound_sql`` resolves its ``:name`` placeholders against a
parameter object and yields a ``BoundSql`` ready for a DB-API cursor.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Final, Optional

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from sqlchain.exceptions import MissingParameterError
from sqlchain.utils.logging import get_logger

__all__ = (
    "BoundSql",
    "CommandKind",
    "MappedStatement",
    "RowBounds",
    "SqlCommandType",
    "detect_command_type",
)

logger = get_logger("core.statement")

# ``:name`` placeholders; ``::type`` casts are left alone
NAMED_PLACEHOLDER_PATTERN: Final = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")
DEFAULT_DIALECT: Final = "sqlite"

_SCALAR_TYPES: Final = (str, bytes, int, float, bool)


class CommandKind(str, Enum):
    """Whether a statement reads or writes."""

    READ = "read"
    WRITE = "write"


class SqlCommandType(str, Enum):
    """Operation type of the SQL text."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    UNKNOWN = "UNKNOWN"


_LEADING_KEYWORDS: Final = {
    "select": SqlCommandType.SELECT,
    "with": SqlCommandType.SELECT,
    "insert": SqlCommandType.INSERT,
    "replace": SqlCommandType.INSERT,
    "update": SqlCommandType.UPDATE,
    "delete": SqlCommandType.DELETE,
}


def detect_command_type(sql: str, dialect: str = DEFAULT_DIALECT) -> SqlCommandType:
    """AST-based operation type detection.

    Falls back to the leading keyword when sqlglot cannot parse the statement.

    Args:
        sql: SQL text with ``?`` or ``:name`` placeholders.
        dialect: sqlglot dialect used for parsing.

    Returns:
        The detected command type.
    """
    try:
        expression = sqlglot.parse_one(sql, dialect=dialect)
    except SqlglotError:
        logger.debug("sqlglot could not parse statement, using keyword detection: %s", sql)
        words = sql.strip().split(None, 1)
        return _LEADING_KEYWORDS.get(words[0].lower(), SqlCommandType.UNKNOWN) if words else SqlCommandType.UNKNOWN

    if isinstance(expression, (exp.Select, exp.Union)):
        return SqlCommandType.SELECT
    if isinstance(expression, exp.Insert):
        return SqlCommandType.INSERT
    if isinstance(expression, exp.Update):
        return SqlCommandType.UPDATE
    if isinstance(expression, exp.Delete):
        return SqlCommandType.DELETE
    return SqlCommandType.UNKNOWN


@dataclass(frozen=True)
class RowBounds:
    """Paging bounds applied to a query's rows."""

    offset: int = 0
    limit: Optional[int] = None

    DEFAULT: ClassVar["RowBounds"]

    @property
    def is_default(self) -> bool:
        return self.offset == 0 and self.limit is None


RowBounds.DEFAULT = RowBounds()


@dataclass(frozen=True)
class BoundSql:
    """A statement resolved against concrete parameter values."""

    sql: str
    parameters: "tuple[Any, ...]"
    parameter_names: "tuple[str, ...]"
    parameter_object: Any = None


@dataclass(frozen=True)
class MappedStatement:
    """A named, parameterizable database operation.

    Attributes:
        namespace: Group of statements sharing a second-level cache, e.g. ``"UserMapper"``.
        name: Operation name inside the namespace.
        sql: Query template using ``:name`` placeholders.
            Placeholders are found textually, so a ``:name`` inside a string literal such
            as ``'x :y'`` is also treated as a parameter and must be supplied.
        kind: READ or WRITE.
        use_cache: Whether READ results may be stored in the namespace cache.
        flush_cache: Whether executing the statement flushes the caches first.
        result_type: Optional row type (msgspec Struct, dataclass, or any callable taking kwargs).
        timeout: Optional statement timeout in seconds handed to ``prepare``.
    """

    namespace: str
    name: str
    sql: str
    kind: CommandKind
    use_cache: bool = True
    flush_cache: bool = False
    result_type: Any = None
    timeout: Optional[int] = None
    dialect: str = DEFAULT_DIALECT
    command_type: SqlCommandType = field(init=False)
    parameter_names: "tuple[str, ...]" = field(init=False)
    executable_sql: str = field(init=False)

    def __post_init__(self) -> None:
        names = tuple(NAMED_PLACEHOLDER_PATTERN.findall(self.sql))
        executable_sql = NAMED_PLACEHOLDER_PATTERN.sub("?", self.sql)
        object.__setattr__(self, "parameter_names", names)
        object.__setattr__(self, "executable_sql", executable_sql)
        object.__setattr__(self, "command_type", detect_command_type(executable_sql, self.dialect))

    @classmethod
    def select(cls, namespace: str, name: str, sql: str, **kwargs: Any) -> "MappedStatement":
        kwargs.setdefault("use_cache", True)
        kwargs.setdefault("flush_cache", False)
        return cls(namespace=namespace, name=name, sql=sql, kind=CommandKind.READ, **kwargs)

    @classmethod
    def write(cls, namespace: str, name: str, sql: str, **kwargs: Any) -> "MappedStatement":
        kwargs.setdefault("use_cache", False)
        kwargs.setdefault("flush_cache", True)
        return cls(namespace=namespace, name=name, sql=sql, kind=CommandKind.WRITE, **kwargs)

    @property
    def id(self) -> str:
        return f"{self.namespace}.{self.name}"

    @property
    def is_read(self) -> bool:
        return self.kind is CommandKind.READ

    def get_bound_sql(self, parameter: Any = None) -> BoundSql:
        """Resolve placeholders against ``parameter``.

        ``parameter`` may be a mapping, an object exposing the placeholder names as
        attributes, or a single scalar when the template names exactly one parameter.

        Raises:
            MissingParameterError: A placeholder has no value in ``parameter``.
        """
        if not self.parameter_names:
            return BoundSql(self.executable_sql, (), (), parameter)
        values = tuple(self._resolve(name, parameter) for name in self.parameter_names)
        return BoundSql(self.executable_sql, values, self.parameter_names, parameter)

    def _resolve(self, name: str, parameter: Any) -> Any:
        if isinstance(parameter, Mapping):
            if name in parameter:
                return parameter[name]
        elif isinstance(parameter, _SCALAR_TYPES) and len(set(self.parameter_names)) == 1:
            return parameter
        elif parameter is not None and hasattr(parameter, name):
            return getattr(parameter, name)
        elif parameter is not None and len(set(self.parameter_names)) == 1:
            return parameter
        msg = f"Parameter {name!r} not found for statement {self.id!r}"
        raise MissingParameterError(msg, self.sql)
