"""Full-table UPDATE/DELETE guard."""

import re
from typing import Any, Final

from sqlchain.core.statement import MappedStatement, SqlCommandType
from sqlchain.exceptions import PolicyViolationError
from sqlchain.plugin._base import Interceptor, Invocation, Signature, TargetRole
from sqlchain.utils.logging import get_logger

__all__ = ("FullTableMutationGuard", "is_full_table_mutation", "normalize_sql")

logger = get_logger("plugin.guard")

_BLOCK_COMMENT: Final = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT: Final = re.compile(r"--[^\n]*")
_HASH_COMMENT: Final = re.compile(r"^\s*#[^\n]*", re.MULTILINE)
_WHITESPACE: Final = re.compile(r"\s+")

GUARDED_COMMAND_TYPES: Final = frozenset({SqlCommandType.UPDATE, SqlCommandType.DELETE})


def normalize_sql(sql: str) -> str:
    """Strip comments, collapse whitespace and lowercase ``sql``."""
    text = _BLOCK_COMMENT.sub(" ", sql)
    text = _LINE_COMMENT.sub(" ", text)
    text = _HASH_COMMENT.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip().lower()


def is_full_table_mutation(sql: str) -> bool:
    """Return True when the normalized text has neither a WHERE nor a LIMIT clause.

    This is a substring heuristic, not a parser: the words inside string literals or
    subqueries count as clauses.
    """
    padded = f" {normalize_sql(sql)} "
    return " where " not in padded and " limit " not in padded


class FullTableMutationGuard(Interceptor):
    """Rejects UPDATE and DELETE statements that would touch every row of a table.

    Runs on the raw executor only; the caching decorator's ``update`` call is passed
    through so each write is checked once.
    """

    signatures = (Signature(TargetRole.EXECUTOR, "update", (MappedStatement, object)),)

    def intercept(self, invocation: Invocation) -> Any:
        if invocation.target.is_decorator:
            return invocation.proceed()

        mapped_statement: MappedStatement = invocation.args[0]
        parameter = invocation.args[1]
        if mapped_statement.command_type not in GUARDED_COMMAND_TYPES:
            logger.debug("Skipping %s: %s is not guarded", mapped_statement.id, mapped_statement.command_type.value)
            return invocation.proceed()

        sql = mapped_statement.get_bound_sql(parameter).sql
        if is_full_table_mutation(sql):
            logger.warning("Blocked full-table %s: %s", mapped_statement.command_type.value, mapped_statement.id)
            msg = f"Blocked possible full-table {mapped_statement.command_type.value}"
            raise PolicyViolationError(msg, mapped_statement.id, mapped_statement.sql)
        return invocation.proceed()
