from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

__all__ = ("ConnectionFactory", "DBAPIConnection", "DBAPICursor")


@runtime_checkable
class DBAPICursor(Protocol):
    """The subset of a PEP 249 cursor the statement pipeline uses."""

    description: Any
    rowcount: int

    def execute(self, sql: str, parameters: "Sequence[Any]" = ...) -> Any: ...

    def fetchall(self) -> "list[Any]": ...

    def close(self) -> Any: ...


@runtime_checkable
class DBAPIConnection(Protocol):
    """The subset of a PEP 249 connection the executors use."""

    def cursor(self) -> Any: ...

    def commit(self) -> Any: ...

    def rollback(self) -> Any: ...

    def close(self) -> Any: ...


class ConnectionFactory(Protocol):
    def __call__(self) -> DBAPIConnection: ...
