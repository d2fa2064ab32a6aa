from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Optional

import pytest

from sqlchain.adapters import SqliteConnectionFactory
from sqlchain.base import Configuration
from sqlchain.config import SQLChainConfig
from sqlchain.observability import PipelineEvent, SqlCostEvent
from sqlchain.session import SqlSession, SqlSessionFactory
from sqlchain.users import UserMapper, create_user_schema

here = Path(__file__).parent
root_path = here.parent


class EventRecorder:
    """Event sink collecting every emitted observation."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    @property
    def cost_events(self) -> "list[SqlCostEvent]":
        return [e for e in self.events if isinstance(e, SqlCostEvent)]

    @property
    def pipeline_events(self) -> "list[PipelineEvent]":
        return [e for e in self.events if isinstance(e, PipelineEvent)]

    def stages(self, role: str, method: str) -> "list[PipelineEvent]":
        return [e for e in self.pipeline_events if e.role == role and e.method == method]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def connection_factory(tmp_path: Path) -> Generator[SqliteConnectionFactory, None, None]:
    factory = SqliteConnectionFactory({"database": str(tmp_path / "users.db")})
    create_user_schema(factory)
    yield factory
    factory.close()


@pytest.fixture
def make_configuration(recorder: EventRecorder) -> "Callable[..., Configuration]":
    def _make(settings: Optional[SQLChainConfig] = None, **kwargs: Any) -> Configuration:
        kwargs.setdefault("event_sink", recorder)
        configuration = Configuration(settings, **kwargs)
        configuration.add_mapper(UserMapper)
        return configuration

    return _make


@pytest.fixture
def configuration(make_configuration: "Callable[..., Configuration]") -> Configuration:
    return make_configuration()


@pytest.fixture
def session_factory(configuration: Configuration, connection_factory: SqliteConnectionFactory) -> SqlSessionFactory:
    return SqlSessionFactory(configuration, connection_factory)


@pytest.fixture
def session(session_factory: SqlSessionFactory) -> Generator[SqlSession, None, None]:
    with session_factory.open_session() as session:
        yield session
