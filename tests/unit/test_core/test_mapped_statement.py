"""Unit tests for mapped statements, bound SQL and command type detection."""

from dataclasses import FrozenInstanceError

import msgspec
import pytest

from sqlchain.core.statement import (
    BoundSql,
    CommandKind,
    MappedStatement,
    RowBounds,
    SqlCommandType,
    detect_command_type,
)
from sqlchain.exceptions import MissingParameterError


class Account(msgspec.Struct):
    id: int
    owner: str


@pytest.mark.parametrize(
    ("sql", "expected"),
    [
        ("select id from t_user", SqlCommandType.SELECT),
        ("SELECT id FROM t_user UNION SELECT id FROM t_admin", SqlCommandType.SELECT),
        ("insert into t_user (id) values (?)", SqlCommandType.INSERT),
        ("update t_user set username = 'kubo'", SqlCommandType.UPDATE),
        ("delete from t_user where id = ?", SqlCommandType.DELETE),
        ("create table t (id integer)", SqlCommandType.UNKNOWN),
    ],
)
def test_detect_command_type(sql: str, expected: SqlCommandType) -> None:
    assert detect_command_type(sql) is expected


def test_detect_command_type_falls_back_to_leading_keyword() -> None:
    assert detect_command_type("update t_user set username = 'unterminated") is SqlCommandType.UPDATE
    assert detect_command_type("frobnicate 'unterminated") is SqlCommandType.UNKNOWN


def test_named_placeholders_are_rewritten() -> None:
    statement = MappedStatement.select("Users", "by_name", "select * from t where name = :name and id > :min_id")

    assert statement.executable_sql == "select * from t where name = ? and id > ?"
    assert statement.parameter_names == ("name", "min_id")
    assert statement.command_type is SqlCommandType.SELECT


def test_cast_syntax_is_not_a_placeholder() -> None:
    statement = MappedStatement.select("Users", "cast", "select id::text from t where id = :id")

    assert statement.parameter_names == ("id",)
    assert statement.executable_sql == "select id::text from t where id = ?"


def test_select_and_write_defaults() -> None:
    read = MappedStatement.select("Users", "find", "select 1")
    write = MappedStatement.write("Users", "touch", "update t set a = 1 where id = 1")

    assert read.kind is CommandKind.READ
    assert read.use_cache and not read.flush_cache
    assert read.is_read
    assert write.kind is CommandKind.WRITE
    assert not write.use_cache and write.flush_cache
    assert not write.is_read


def test_statement_id_and_immutability() -> None:
    statement = MappedStatement.select("UserMapper", "find_all", "select 1")

    assert statement.id == "UserMapper.find_all"
    with pytest.raises(FrozenInstanceError):
        statement.sql = "select 2"  # type: ignore[misc]


def test_bound_sql_from_mapping() -> None:
    statement = MappedStatement.select("Users", "find", "select * from t where a = :a and b = :b and c = :a")

    bound = statement.get_bound_sql({"a": 1, "b": "two"})

    assert bound == BoundSql(
        "select * from t where a = ? and b = ? and c = ?", (1, "two", 1), ("a", "b", "a"), {"a": 1, "b": "two"}
    )


def test_bound_sql_from_object_attributes() -> None:
    statement = MappedStatement.select("Accounts", "find", "select * from t where id = :id and owner = :owner")

    bound = statement.get_bound_sql(Account(id=3, owner="kubo"))

    assert bound.parameters == (3, "kubo")


def test_bound_sql_from_scalar_with_single_name() -> None:
    statement = MappedStatement.select("Users", "find", "select * from t where id = :id")

    assert statement.get_bound_sql(7).parameters == (7,)
    assert statement.get_bound_sql("count").parameters == ("count",)


def test_bound_sql_without_placeholders_ignores_parameter() -> None:
    statement = MappedStatement.select("Users", "all", "select * from t")

    bound = statement.get_bound_sql({"unused": 1})

    assert bound.parameters == ()
    assert bound.parameter_object == {"unused": 1}


@pytest.mark.parametrize("parameter", [None, {"other": 1}, 5])
def test_missing_parameter_raises(parameter: object) -> None:
    statement = MappedStatement.select("Users", "find", "select * from t where a = :a and b = :b")

    with pytest.raises(MissingParameterError, match="'a'"):
        statement.get_bound_sql(parameter)



def test_placeholder_inside_string_literal_is_treated_as_parameter() -> None:
    statement = MappedStatement.select("Users", "find", "select * from t where note = 'x :y' and id = :id")

    assert statement.parameter_names == ("y", "id")
    assert statement.executable_sql == "select * from t where note = 'x ?' and id = ?"
    with pytest.raises(MissingParameterError, match="'y'"):
        statement.get_bound_sql({"id": 1})


def test_row_bounds_default() -> None:
    assert RowBounds.DEFAULT.is_default
    assert RowBounds() == RowBounds.DEFAULT
    assert not RowBounds(offset=1).is_default
    assert not RowBounds(limit=10).is_default
