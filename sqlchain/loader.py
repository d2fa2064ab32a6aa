"""Named statement loading from SQL files.

Statements are declared aiosql style, one block per ``-- name:`` comment, with an
optional ``-- dialect:`` line directly below it::

    -- name: find-by-id
    select id, username, email from t_user where id = :id

    -- name: update_one!
    update t_user set username = 'kubo' where id = 1

Names are normalized to Python identifiers (aiosql suffixes such as ``!`` or ``$`` are
dropped, hyphens become underscores). A block is registered as READ when its SQL is a
SELECT and as WRITE otherwise.
"""

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Optional, Union

from sqlglot.dialects.dialect import Dialect

from sqlchain.core.statement import DEFAULT_DIALECT, MappedStatement, SqlCommandType, detect_command_type
from sqlchain.exceptions import SQLFileNotFoundError, SQLFileParseError, SQLParsingError
from sqlchain.mapper import MapperDefinition
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.config import NamespaceCacheConfig

__all__ = ("load_mapper", "load_statements", "parse_statements")

logger = get_logger("loader")

QUERY_NAME_PATTERN: Final = re.compile(r"^\s*--\s*name\s*:\s*([\w-]+[^\w\s]*)\s*$", re.MULTILINE | re.IGNORECASE)
DIALECT_PATTERN: Final = re.compile(r"^\s*--\s*dialect\s*:\s*(?P<dialect>[a-zA-Z0-9_]+)\s*$", re.IGNORECASE)
TRIM_SPECIAL_CHARS: Final = re.compile(r"[^\w-]")


def _normalize_query_name(name: str) -> str:
    return TRIM_SPECIAL_CHARS.sub("", name).replace("-", "_")


def _resolve_dialect(declared: str, line: int) -> str:
    dialect = declared.lower()
    try:
        Dialect.get_or_raise(dialect)
    except ValueError:
        logger.warning("Unknown dialect %r at line %d, using %r", declared, line, DEFAULT_DIALECT)
        return DEFAULT_DIALECT
    return dialect


def _strip_leading_comments(sql_text: str) -> str:
    lines = sql_text.strip().split("\n")
    for i, line in enumerate(lines):
        if line.strip() and not line.strip().startswith("--"):
            return "\n".join(lines[i:]).strip()
    return ""


def parse_statements(content: str, namespace: str, **statement_options: Any) -> "list[MappedStatement]":
    """Split ``content`` into mapped statements of ``namespace``.

    Args:
        content: SQL text with ``-- name:`` blocks.
        namespace: Namespace for every parsed statement.
        **statement_options: Extra ``MappedStatement`` fields, e.g. ``result_type``.

    Raises:
        SQLParsingError: No named statement found, or a name is declared twice.

    Returns:
        Statements in declaration order.
    """
    name_matches = list(QUERY_NAME_PATTERN.finditer(content))
    if not name_matches:
        msg = "No named SQL statements found (-- name: statement_name)"
        raise SQLParsingError(msg)

    statements: dict[str, MappedStatement] = {}
    for i, match in enumerate(name_matches):
        raw_name = match.group(1).strip()
        start_line = content[: match.start()].count("\n") + 1
        end_pos = name_matches[i + 1].start() if i + 1 < len(name_matches) else len(content)
        section = content[match.end() : end_pos].strip()
        if not section:
            continue

        dialect = DEFAULT_DIALECT
        lines = [line for line in section.split("\n") if line.strip()]
        dialect_match = DIALECT_PATTERN.match(lines[0])
        if dialect_match:
            dialect = _resolve_dialect(dialect_match.group("dialect"), start_line + 1)
            section = "\n".join(lines[1:])

        sql = _strip_leading_comments(section).rstrip().rstrip(";").rstrip()
        if not sql:
            continue
        name = _normalize_query_name(raw_name)
        if name in statements:
            msg = f"Duplicate statement name {raw_name!r} at line {start_line}"
            raise SQLParsingError(msg)

        if detect_command_type(sql, dialect) is SqlCommandType.SELECT:
            statements[name] = MappedStatement.select(namespace, name, sql, dialect=dialect, **statement_options)
        else:
            statements[name] = MappedStatement.write(namespace, name, sql, dialect=dialect, **statement_options)

    if not statements:
        msg = "No valid SQL statements found after parsing"
        raise SQLParsingError(msg)
    logger.debug("Parsed %d statements for namespace %s", len(statements), namespace)
    return list(statements.values())


def load_statements(
    source: Union[str, Path], namespace: str, *, encoding: str = "utf-8", **statement_options: Any
) -> "list[MappedStatement]":
    """Load mapped statements from a ``.sql`` file or from SQL text.

    A ``str`` containing a ``-- name:`` declaration is parsed as text; any other
    ``str`` or ``Path`` is read as a file.

    Raises:
        SQLFileNotFoundError: The file does not exist.
        SQLFileParseError: The file has no usable named statements.
        SQLParsingError: The text has no usable named statements.
    """
    if isinstance(source, str) and QUERY_NAME_PATTERN.search(source):
        return parse_statements(source, namespace, **statement_options)

    path = Path(source)
    if not path.is_file():
        raise SQLFileNotFoundError(str(path))
    try:
        content = path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as e:
        raise SQLFileParseError(path.name, str(path), str(e)) from e
    try:
        return parse_statements(content, namespace, **statement_options)
    except SQLParsingError as e:
        raise SQLFileParseError(path.name, str(path), str(e)) from e


def load_mapper(
    source: Union[str, Path],
    namespace: str,
    *,
    cache: "Optional[NamespaceCacheConfig]" = None,
    use_namespace_cache: bool = True,
    **statement_options: Any,
) -> MapperDefinition:
    """Build a ``MapperDefinition`` from a ``.sql`` file or SQL text."""
    return MapperDefinition(
        namespace=namespace,
        statements=tuple(load_statements(source, namespace, **statement_options)),
        cache=cache,
        use_namespace_cache=use_namespace_cache,
    )
