"""SQLite connection factory."""

import sqlite3
import threading
import uuid
from typing import Any, Optional, TypedDict, cast

from typing_extensions import NotRequired

from sqlchain.utils.logging import get_logger

__all__ = ("SqliteConnectionFactory", "SqliteConnectionParams")

logger = get_logger("adapters.sqlite")


class SqliteConnectionParams(TypedDict, total=False):
    """SQLite connection parameters."""

    database: NotRequired[str]
    timeout: NotRequired[float]
    detect_types: NotRequired[int]
    isolation_level: "NotRequired[Optional[str]]"
    check_same_thread: NotRequired[bool]
    cached_statements: NotRequired[int]
    uri: NotRequired[bool]


class SqliteConnectionFactory:
    """Opens one new ``sqlite3`` connection per session.

    An in-memory database is shared between the factory's connections through a
    ``cache=shared`` URI; the factory holds an anchor connection so the database
    outlives individual sessions until ``close`` is called.

    Args:
        connection_config: Keyword arguments for ``sqlite3.connect``.
    """

    def __init__(self, connection_config: "Optional[SqliteConnectionParams | dict[str, Any]]" = None) -> None:
        config: dict[str, Any] = dict(connection_config or {})
        self._anchor: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        if "database" not in config or config["database"] == ":memory:":
            config["database"] = f"file:memory_{uuid.uuid4().hex}?mode=memory&cache=shared"
            config["uri"] = True
            self._anchor = sqlite3.connect(**config)
        elif str(config["database"]).startswith("file:") and not config.get("uri"):
            logger.debug("Database URI detected (%s), enabling uri mode", config["database"])
            config["uri"] = True
        self.connection_config = cast("SqliteConnectionParams", config)

    @property
    def is_memory(self) -> bool:
        return self._anchor is not None

    def __call__(self) -> sqlite3.Connection:
        return self.create_connection()

    def create_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(**self.connection_config)

    def close(self) -> None:
        with self._lock:
            if self._anchor is not None:
                self._anchor.close()
                self._anchor = None
