"""The ``t_user`` table and its mapper."""

from typing import TYPE_CHECKING, Final, Optional

import msgspec

from sqlchain.config import NamespaceCacheConfig
from sqlchain.core.cache import DEFAULT_NAMESPACE_CAPACITY, EvictionPolicy
from sqlchain.core.statement import MappedStatement
from sqlchain.mapper import Mapper, MapperDefinition

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlchain.adapters.sqlite import SqliteConnectionFactory

__all__ = ("USER_MAPPER", "USER_NAMESPACE", "USER_SCHEMA", "User", "UserMapper", "create_user_schema")

USER_NAMESPACE: Final = "UserMapper"

USER_SCHEMA: Final = """
CREATE TABLE IF NOT EXISTS t_user (
    id INTEGER PRIMARY KEY,
    username TEXT NOT NULL,
    email TEXT
);
"""

DEFAULT_USERS: Final = (
    (1, "alice", "alice@example.com"),
    (2, "bob", "bob@example.com"),
    (3, "carol", "carol@example.com"),
)


class User(msgspec.Struct):
    id: int
    username: str
    email: Optional[str] = None


USER_MAPPER: Final = MapperDefinition(
    namespace=USER_NAMESPACE,
    statements=(
        MappedStatement.select(
            USER_NAMESPACE, "find_by_id", "select id, username, email from t_user where id = :id", result_type=User
        ),
        MappedStatement.select(
            USER_NAMESPACE, "find_all", "select id, username, email from t_user order by id", result_type=User
        ),
        MappedStatement.write(USER_NAMESPACE, "update_all", "update t_user set username = 'kubo'"),
        MappedStatement.write(USER_NAMESPACE, "update_one", "update t_user set username = 'kubo' where id = 1"),
        MappedStatement.write(USER_NAMESPACE, "delete_all", "delete from t_user"),
    ),
    cache=NamespaceCacheConfig(
        capacity=DEFAULT_NAMESPACE_CAPACITY, eviction_policy=EvictionPolicy.LRU, read_write=True
    ),
)


class UserMapper(Mapper):
    """Typed access to ``t_user``."""

    definition = USER_MAPPER

    def find_by_id(self, id: int) -> Optional[User]:  # noqa: A002
        return self._select_one("find_by_id", {"id": id})  # type: ignore[no-any-return]

    def find_all(self) -> "list[User]":
        return self._select_list("find_all")

    def update_all(self) -> int:
        """Rename every user; rejected by the full-table mutation guard."""
        return self._update("update_all")

    def update_one(self) -> int:
        return self._update("update_one")

    def delete_all(self) -> int:
        """Delete every user; rejected by the full-table mutation guard."""
        return self._delete("delete_all")


def create_user_schema(
    connection_factory: "SqliteConnectionFactory", users: "Optional[Iterable[tuple[int, str, Optional[str]]]]" = None
) -> None:
    """Create ``t_user`` and replace its rows with ``users`` (three sample users by default)."""
    connection = connection_factory.create_connection()
    try:
        connection.executescript(USER_SCHEMA)
        connection.execute("delete from t_user")
        connection.executemany(
            "insert into t_user (id, username, email) values (?, ?, ?)",
            list(DEFAULT_USERS if users is None else users),
        )
        connection.commit()
    finally:
        connection.close()
