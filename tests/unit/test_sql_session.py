"""Unit tests for sessions, session factories and mapper registration."""

from typing import Any, Callable

import pytest

from sqlchain.base import Configuration
from sqlchain.core.statement import MappedStatement
from sqlchain.exceptions import (
    ImproperConfigurationError,
    MultipleResultsFoundError,
    SessionClosedError,
    StatementNotFoundError,
)
from sqlchain.mapper import Mapper, MapperDefinition
from sqlchain.plugin import SqlCostInterceptor
from sqlchain.session import SqlSessionFactory
from sqlchain.users import USER_MAPPER, User, UserMapper

ADMIN_MAPPER = MapperDefinition(
    namespace="AdminMapper",
    statements=(
        MappedStatement.write(
            "AdminMapper", "add_user", "insert into t_user (id, username, email) values (:id, :username, :email)"
        ),
        MappedStatement.write("AdminMapper", "remove_user", "delete from t_user where id = :id"),
        MappedStatement.select("AdminMapper", "count_users", "select count(*) as total from t_user"),
    ),
)


class AdminMapper(Mapper):
    definition = ADMIN_MAPPER

    def add_user(self, user: User) -> int:
        return self._insert("add_user", user)

    def remove_user(self, user_id: int) -> int:
        return self._delete("remove_user", user_id)

    def count_users(self) -> int:
        return self._select_one("count_users")["total"]  # type: ignore[no-any-return]


def test_select_one_returns_none_when_nothing_matches(session: Any) -> None:
    assert session.get_mapper(UserMapper).find_by_id(99) is None


def test_select_one_rejects_multiple_rows(session: Any) -> None:
    with pytest.raises(MultipleResultsFoundError, match="got 3"):
        session.select_one("UserMapper.find_all")


def test_unknown_statement(session: Any) -> None:
    with pytest.raises(StatementNotFoundError, match="UserMapper.nope"):
        session.select_list("UserMapper.nope")


def test_closed_session_rejects_operations(session_factory: SqlSessionFactory) -> None:
    session = session_factory.open_session()
    session.close()
    session.close()

    assert session.closed
    with pytest.raises(SessionClosedError):
        session.select_list("UserMapper.find_all")
    with pytest.raises(SessionClosedError):
        session.commit()


def test_insert_and_delete_with_commit(configuration: Configuration, connection_factory: Any) -> None:
    configuration.add_mapper(AdminMapper)
    factory = SqlSessionFactory(configuration, connection_factory)

    with factory.open_session() as session:
        admin = session.get_mapper(AdminMapper)
        assert admin.add_user(User(id=4, username="dave", email=None)) == 1
        assert session.dirty
        session.commit()
        assert not session.dirty

    with factory.open_session() as session:
        admin = session.get_mapper(AdminMapper)
        assert admin.count_users() == 4
        assert session.get_mapper(UserMapper).find_by_id(4) == User(id=4, username="dave", email=None)
        assert admin.remove_user(4) == 1
        session.commit()

    with factory.open_session() as session:
        assert session.get_mapper(AdminMapper).count_users() == 3


def test_autocommit_session_commits_each_write(session_factory: SqlSessionFactory) -> None:
    with session_factory.open_session(autocommit=True) as session:
        session.get_mapper(UserMapper).update_one()
        assert not session.dirty

    with session_factory.open_session() as session:
        user = session.get_mapper(UserMapper).find_by_id(1)

    assert user is not None and user.username == "kubo"


def test_get_mapper_requires_registration(session: Any) -> None:
    with pytest.raises(ImproperConfigurationError, match="AdminMapper"):
        session.get_mapper(AdminMapper)


def test_add_mapper_accepts_definition_and_rejects_duplicates(
    make_configuration: "Callable[..., Configuration]",
) -> None:
    configuration = make_configuration()

    assert configuration.has_statement("UserMapper.find_by_id")
    assert len(configuration.mapped_statements) == len(USER_MAPPER.statements)
    with pytest.raises(ImproperConfigurationError, match="already registered"):
        configuration.add_mapper(USER_MAPPER)


def test_mapper_definition_rejects_foreign_statements() -> None:
    with pytest.raises(ImproperConfigurationError, match="does not belong"):
        MapperDefinition(namespace="A", statements=(MappedStatement.select("B", "x", "select 1"),))


def test_opening_a_session_freezes_the_chain(session_factory: SqlSessionFactory, configuration: Configuration) -> None:
    session_factory.open_session().close()

    assert configuration.interceptor_chain.frozen
    with pytest.raises(ImproperConfigurationError):
        configuration.add_interceptor(SqlCostInterceptor())


def test_add_interceptor_applies_properties(make_configuration: "Callable[..., Configuration]") -> None:
    configuration = make_configuration(register_default_plugins=False)
    interceptor = SqlCostInterceptor()

    configuration.add_interceptor(interceptor, {"slowSqlThresholdMs": "7"})

    assert interceptor.slow_sql_threshold_ms == 7
    assert configuration.interceptor_chain.interceptors == (interceptor,)


def test_configuration_from_properties(recorder: Any) -> None:
    configuration = Configuration.from_properties({"slowSqlThresholdMs": "20"}, event_sink=recorder)

    cost = [i for i in configuration.interceptor_chain.interceptors if isinstance(i, SqlCostInterceptor)]
    assert cost[0].slow_sql_threshold_ms == 20


def test_sessions_have_distinct_ids(session_factory: SqlSessionFactory) -> None:
    with session_factory.open_session() as first, session_factory.open_session() as second:
        assert first.id != second.id
        assert "SqlSession" in repr(first)
