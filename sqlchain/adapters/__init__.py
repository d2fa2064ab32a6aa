from sqlchain.adapters.sqlite import SqliteConnectionFactory, SqliteConnectionParams

__all__ = ("SqliteConnectionFactory", "SqliteConnectionParams")
