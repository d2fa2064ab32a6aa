"""Unit tests for loading named statements from SQL files and text."""

import logging
from pathlib import Path

import pytest

from sqlchain.core.statement import CommandKind, SqlCommandType
from sqlchain.exceptions import SQLFileNotFoundError, SQLFileParseError, SQLParsingError
from sqlchain.loader import load_mapper, load_statements, parse_statements
from sqlchain.users import User

USER_QUERIES = """
-- name: find-by-id
-- Fetch one user.
select id, username, email from t_user where id = :id;

-- name: find_all$
select id, username, email from t_user order by id

-- name: update_one!
update t_user set username = 'kubo' where id = 1;

-- name: delete_all!
-- dialect: postgres
delete from t_user
"""


def test_parse_statements() -> None:
    statements = parse_statements(USER_QUERIES, "UserMapper")

    assert [s.name for s in statements] == ["find_by_id", "find_all", "update_one", "delete_all"]
    find_by_id = statements[0]
    assert find_by_id.id == "UserMapper.find_by_id"
    assert find_by_id.sql == "select id, username, email from t_user where id = :id"
    assert find_by_id.kind is CommandKind.READ
    assert find_by_id.use_cache
    update_one = statements[2]
    assert update_one.kind is CommandKind.WRITE
    assert update_one.flush_cache
    assert update_one.command_type is SqlCommandType.UPDATE
    assert statements[3].dialect == "postgres"
    assert statements[3].sql == "delete from t_user"


def test_statement_options_are_forwarded() -> None:
    statements = parse_statements(USER_QUERIES, "UserMapper", result_type=User, timeout=5)

    assert all(s.result_type is User for s in statements)
    assert all(s.timeout == 5 for s in statements)


def test_unknown_dialect_falls_back(caplog: pytest.LogCaptureFixture) -> None:
    text = "-- name: find\n-- dialect: notadialect\nselect 1"

    with caplog.at_level(logging.WARNING, logger="sqlchain.loader"):
        statements = parse_statements(text, "ns")

    assert statements[0].dialect == "sqlite"
    assert "notadialect" in caplog.text


@pytest.mark.parametrize(
    "text",
    [
        "select 1",
        "-- name: empty\n\n-- name: only_comment\n-- nothing here\n",
    ],
)
def test_text_without_statements(text: str) -> None:
    with pytest.raises(SQLParsingError):
        parse_statements(text, "ns")


def test_duplicate_names_are_rejected() -> None:
    with pytest.raises(SQLParsingError, match="Duplicate"):
        parse_statements("-- name: a\nselect 1\n-- name: a!\nselect 2", "ns")


def test_load_statements_from_text() -> None:
    assert len(load_statements(USER_QUERIES, "UserMapper")) == 4


def test_load_statements_from_file(tmp_path: Path) -> None:
    sql_file = tmp_path / "users.sql"
    sql_file.write_text(USER_QUERIES)

    from_path = load_statements(sql_file, "UserMapper")
    from_str = load_statements(str(sql_file), "UserMapper")

    assert [s.id for s in from_path] == [s.id for s in from_str]


def test_load_statements_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SQLFileNotFoundError):
        load_statements(tmp_path / "missing.sql", "ns")


def test_load_statements_unparseable_file(tmp_path: Path) -> None:
    sql_file = tmp_path / "plain.sql"
    sql_file.write_text("select 1;\n")

    with pytest.raises(SQLFileParseError, match="plain.sql"):
        load_statements(sql_file, "ns")


def test_load_mapper(tmp_path: Path) -> None:
    sql_file = tmp_path / "users.sql"
    sql_file.write_text(USER_QUERIES)

    definition = load_mapper(sql_file, "UserMapper", use_namespace_cache=False, result_type=User)

    assert definition.namespace == "UserMapper"
    assert not definition.use_namespace_cache
    assert len(definition.statements) == 4
