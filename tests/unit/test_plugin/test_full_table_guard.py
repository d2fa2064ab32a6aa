"""Unit tests for the full-table UPDATE/DELETE guard."""

from typing import Any

import pytest

from sqlchain.core.statement import MappedStatement
from sqlchain.exceptions import PolicyViolationError, RiskLevel
from sqlchain.plugin import FullTableMutationGuard, Invocation, is_full_table_mutation, normalize_sql


class RawTarget:
    is_decorator = False


class DecoratorTarget:
    is_decorator = True


def _invocation(target: Any, statement: MappedStatement, calls: "list[str]") -> Invocation:
    def _call(*args: Any) -> int:
        calls.append(args[0].id)
        return 3

    return Invocation(target, "update", (statement, None), _call)


@pytest.mark.parametrize(
    ("sql", "expected"),
    [
        ("update t_user set username = 'kubo'", True),
        ("delete from t_user", True),
        ("update t_user set username = 'kubo' where id = 1", False),
        ("DELETE FROM t_user\n\tWHERE id = 1", False),
        ("delete from t_user limit 10", False),
        ("update t_user /* where */ set username = 'x'", True),
        ("delete from t_user -- where id = 1", True),
        ("# where\ndelete from t_user", True),
        ("delete from t_user_where", True),
        ("update t_user set x = 1 where", False),
        ("update t_user set note = 'ask where needed'", False),
    ],
)
def test_is_full_table_mutation(sql: str, expected: bool) -> None:
    assert is_full_table_mutation(sql) is expected


def test_normalize_sql() -> None:
    sql = "UPDATE  t_user /* note */\n SET username = 'A' -- trailing\n# hash comment\nWHERE id = 1"

    assert normalize_sql(sql) == "update t_user set username = 'a' where id = 1"


@pytest.mark.parametrize(
    "sql",
    ["update t_user set username = 'kubo'", "delete from t_user"],
)
def test_guard_blocks_full_table_mutations(sql: str) -> None:
    statement = MappedStatement.write("UserMapper", "mutate", sql)
    calls: list[str] = []

    with pytest.raises(PolicyViolationError) as exc_info:
        FullTableMutationGuard().intercept(_invocation(RawTarget(), statement, calls))

    assert calls == []
    assert exc_info.value.statement_id == "UserMapper.mutate"
    assert exc_info.value.sql == sql
    assert exc_info.value.risk_level is RiskLevel.HIGH
    assert "UserMapper.mutate" in str(exc_info.value)


def test_guard_allows_filtered_mutation() -> None:
    statement = MappedStatement.write("UserMapper", "update_one", "update t_user set username = 'kubo' where id = 1")
    calls: list[str] = []

    assert FullTableMutationGuard().intercept(_invocation(RawTarget(), statement, calls)) == 3
    assert calls == ["UserMapper.update_one"]


def test_guard_passes_decorator_layer_through() -> None:
    statement = MappedStatement.write("UserMapper", "delete_all", "delete from t_user")
    calls: list[str] = []

    assert FullTableMutationGuard().intercept(_invocation(DecoratorTarget(), statement, calls)) == 3
    assert calls == ["UserMapper.delete_all"]


@pytest.mark.parametrize(
    "sql",
    ["insert into t_user (id, username) values (9, 'x')", "create table t_other (id integer)"],
)
def test_guard_ignores_other_command_types(sql: str) -> None:
    statement = MappedStatement.write("UserMapper", "other", sql)
    calls: list[str] = []

    FullTableMutationGuard().intercept(_invocation(RawTarget(), statement, calls))

    assert calls == ["UserMapper.other"]
