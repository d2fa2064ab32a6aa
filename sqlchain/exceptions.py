from enum import Enum
from typing import Any, Optional

__all__ = (
    "ExecutionError",
    "ImproperConfigurationError",
    "MissingParameterError",
    "MultipleResultsFoundError",
    "ParameterError",
    "PolicyViolationError",
    "RiskLevel",
    "SQLChainError",
    "SQLFileNotFoundError",
    "SQLFileParseError",
    "SQLParsingError",
    "SQLValidationError",
    "SessionClosedError",
    "StatementNotFoundError",
)


def _with_sql(message: str, sql: Optional[str]) -> str:
    return f"{message}\nSQL: {sql}" if sql else message


class SQLChainError(Exception):
    """Root of every error raised by sqlchain.

    The first truthy positional argument becomes ``detail`` unless ``detail`` is given
    explicitly; the remaining arguments stay in ``args``.
    """

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        messages = [str(arg) for arg in args if arg]
        if not detail and messages:
            detail = messages.pop(0)
        self.detail = detail or getattr(self, "detail", "")
        super().__init__(*messages)

    def __repr__(self) -> str:
        name = type(self).__name__
        return f"{name} - {self.detail}" if self.detail else name

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(SQLChainError):
    """Statements, mappers or interceptors were registered in a way the configuration rejects."""


class SQLParsingError(SQLChainError):
    """Issues parsing SQL statements."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "Issues parsing SQL statement.")


class SQLFileNotFoundError(SQLChainError):
    """Referenced SQL file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"SQL file not found: {path}")
        self.path = path


class SQLFileParseError(SQLChainError):
    """A SQL file could not be split into named statements."""

    def __init__(self, name: str, path: str, message: str) -> None:
        super().__init__(f"Failed to parse SQL file {name!r} at {path}: {message}")
        self.name = name
        self.path = path


class RiskLevel(str, Enum):
    """How dangerous a rejected statement would have been."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


class SQLValidationError(SQLChainError):
    """A statement was refused before execution."""

    def __init__(self, message: str, sql: Optional[str] = None, risk_level: RiskLevel = RiskLevel.MEDIUM) -> None:
        super().__init__(detail=_with_sql(message, sql))
        self.sql = sql
        self.risk_level = risk_level


class PolicyViolationError(SQLValidationError):
    """Raised when a statement is blocked by a policy interceptor.

    The request is rejected before it reaches the database and must not be retried.
    """

    def __init__(self, message: str, statement_id: str, sql: Optional[str] = None) -> None:
        super().__init__(f"{message} (statement: {statement_id})", sql, RiskLevel.HIGH)
        self.statement_id = statement_id


class ExecutionError(SQLChainError):
    """The underlying driver failed to execute a statement.

    Raised once by the raw executor layer with the driver exception as ``__cause__``;
    interceptors and decorating executors propagate it unchanged.
    """

    def __init__(self, message: str, statement_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.statement_id = statement_id


class StatementNotFoundError(SQLChainError):
    """A statement id was used that no mapper registered."""

    def __init__(self, statement_id: str) -> None:
        super().__init__(f"Mapped statement {statement_id!r} is not registered")
        self.statement_id = statement_id


class SessionClosedError(SQLChainError):
    """An operation was attempted on a closed session."""


class MultipleResultsFoundError(SQLChainError):
    """A single database result was required but more than one were found."""


class ParameterError(SQLChainError):
    """A statement could not be bound to the parameter it was given."""

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        super().__init__(detail=_with_sql(message, sql))
        self.sql = sql


class MissingParameterError(ParameterError):
    """A named placeholder has no value in the parameter object."""
