"""Mapper definitions and the session-bound mapper base class."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from sqlchain.core.statement import MappedStatement, RowBounds
from sqlchain.exceptions import ImproperConfigurationError

if TYPE_CHECKING:
    from sqlchain.config import NamespaceCacheConfig
    from sqlchain.session import SqlSession

__all__ = ("Mapper", "MapperDefinition")


@dataclass(frozen=True)
class MapperDefinition:
    """Statements of one namespace plus its namespace cache settings.

    Attributes:
        namespace: Namespace shared by every statement.
        statements: Mapped statements; each must belong to ``namespace``.
        cache: Namespace cache settings; the configuration default applies when ``None``.
        use_namespace_cache: Register a namespace cache for this mapper at all.
    """

    namespace: str
    statements: "tuple[MappedStatement, ...]" = field(default_factory=tuple)
    cache: "Optional[NamespaceCacheConfig]" = None
    use_namespace_cache: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "statements", tuple(self.statements))
        for statement in self.statements:
            if statement.namespace != self.namespace:
                msg = f"Statement {statement.id!r} does not belong to namespace {self.namespace!r}"
                raise ImproperConfigurationError(msg)

    @classmethod
    def from_statements(
        cls, namespace: str, statements: "Sequence[MappedStatement]", **kwargs: Any
    ) -> "MapperDefinition":
        return cls(namespace=namespace, statements=tuple(statements), **kwargs)

    def statement_id(self, name: str) -> str:
        return f"{self.namespace}.{name}"


class Mapper:
    """Base class for typed mapper facades bound to one session.

    Subclasses set ``definition`` and expose one method per statement.
    """

    definition: ClassVar[MapperDefinition]

    def __init__(self, session: "SqlSession") -> None:
        self.session = session

    def _select_one(self, name: str, parameter: Any = None) -> Any:
        return self.session.select_one(self.definition.statement_id(name), parameter)

    def _select_list(self, name: str, parameter: Any = None, row_bounds: RowBounds = RowBounds.DEFAULT) -> "list[Any]":
        return self.session.select_list(self.definition.statement_id(name), parameter, row_bounds)

    def _update(self, name: str, parameter: Any = None) -> int:
        return self.session.update(self.definition.statement_id(name), parameter)

    def _insert(self, name: str, parameter: Any = None) -> int:
        return self.session.insert(self.definition.statement_id(name), parameter)

    def _delete(self, name: str, parameter: Any = None) -> int:
        return self.session.delete(self.definition.statement_id(name), parameter)
