"""sqlchain: an intercepted statement pipeline with a two-tier query cache."""

from sqlchain import adapters, core, exceptions, executor, loader, observability, plugin, utils
from sqlchain.__metadata__ import __version__
from sqlchain.base import Configuration
from sqlchain.config import LocalCacheScope, NamespaceCacheConfig, PluginToggles, SQLChainConfig
from sqlchain.core.cache import EvictionPolicy
from sqlchain.core.statement import CommandKind, MappedStatement, RowBounds
from sqlchain.exceptions import (
    ExecutionError,
    ImproperConfigurationError,
    MissingParameterError,
    MultipleResultsFoundError,
    PolicyViolationError,
    SessionClosedError,
    SQLChainError,
    StatementNotFoundError,
)
from sqlchain.loader import load_mapper, load_statements
from sqlchain.mapper import Mapper, MapperDefinition
from sqlchain.plugin import Interceptor, Invocation, Signature, TargetRole
from sqlchain.session import SqlSession, SqlSessionFactory
from sqlchain.users import User, UserMapper

__all__ = (
    "CommandKind",
    "Configuration",
    "EvictionPolicy",
    "ExecutionError",
    "ImproperConfigurationError",
    "Interceptor",
    "Invocation",
    "LocalCacheScope",
    "MappedStatement",
    "Mapper",
    "MapperDefinition",
    "MissingParameterError",
    "MultipleResultsFoundError",
    "NamespaceCacheConfig",
    "PluginToggles",
    "PolicyViolationError",
    "RowBounds",
    "SQLChainConfig",
    "SQLChainError",
    "SessionClosedError",
    "Signature",
    "SqlSession",
    "SqlSessionFactory",
    "StatementNotFoundError",
    "TargetRole",
    "User",
    "UserMapper",
    "__version__",
    "adapters",
    "core",
    "exceptions",
    "executor",
    "load_mapper",
    "load_statements",
    "observability",
    "plugin",
    "utils",
)
