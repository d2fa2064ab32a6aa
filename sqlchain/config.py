"""Runtime configuration for sessions, caches and interceptors.

Settings can be given directly or parsed from a flat string mapping such as::

    {
        "slowSqlThresholdMs": "50",
        "namespaceCache.capacity": "256",
        "namespaceCache.evictionPolicy": "fifo",
        "plugins.sqlCost": "false",
    }

Malformed values never abort startup: they are logged and replaced by the default.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Final, TypeVar

from sqlchain.core.cache import DEFAULT_NAMESPACE_CAPACITY, EvictionPolicy
from sqlchain.utils.logging import get_logger

__all__ = (
    "DEFAULT_SLOW_SQL_THRESHOLD_MS",
    "LocalCacheScope",
    "NamespaceCacheConfig",
    "PluginToggles",
    "SQLChainConfig",
    "parse_bool",
    "parse_int",
)

logger = get_logger("config")

T = TypeVar("T")

DEFAULT_SLOW_SQL_THRESHOLD_MS: Final = 100

_TRUE_VALUES: Final = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final = frozenset({"0", "false", "no", "off"})


class LocalCacheScope(str, Enum):
    """Lifetime of session cache entries."""

    SESSION = "session"
    STATEMENT = "statement"


def parse_int(value: Any) -> int:
    if isinstance(value, bool):
        msg = f"Expected an integer, got {value!r}"
        raise ValueError(msg)
    return int(str(value).strip())


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    msg = f"Expected a boolean, got {value!r}"
    raise ValueError(msg)


def _parse_option(properties: "Mapping[str, Any]", key: str, parser: "Callable[[Any], T]", default: T) -> T:
    """Parse ``properties[key]``, falling back to ``default`` on absence or malformed input."""
    if key not in properties or properties[key] is None:
        return default
    raw = properties[key]
    try:
        return parser(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid value %r for configuration option %r, using default %r", raw, key, default)
        return default


@dataclass(slots=True)
class NamespaceCacheConfig:
    """Settings of one namespace (second-level) cache."""

    capacity: int = DEFAULT_NAMESPACE_CAPACITY
    eviction_policy: EvictionPolicy = EvictionPolicy.LRU
    read_write: bool = True

    def __post_init__(self) -> None:
        if self.capacity < 1:
            logger.warning(
                "Invalid namespace cache capacity %r, using default %r", self.capacity, DEFAULT_NAMESPACE_CAPACITY
            )
            self.capacity = DEFAULT_NAMESPACE_CAPACITY


@dataclass(slots=True)
class PluginToggles:
    """Enable flags for the built-in interceptors."""

    full_table_mutation_guard: bool = True
    sql_cost: bool = True
    execution_trace: bool = True


@dataclass(slots=True)
class SQLChainConfig:
    """Top-level configuration."""

    slow_sql_threshold_ms: int = DEFAULT_SLOW_SQL_THRESHOLD_MS
    namespace_cache: NamespaceCacheConfig = field(default_factory=NamespaceCacheConfig)
    local_cache_scope: LocalCacheScope = LocalCacheScope.SESSION
    plugins: PluginToggles = field(default_factory=PluginToggles)

    @classmethod
    def from_properties(cls, properties: "Mapping[str, Any] | None" = None) -> "SQLChainConfig":
        """Build a configuration from flat ``camelCase.dotted`` keys.

        Args:
            properties: Raw option mapping; unknown keys are ignored.

        Returns:
            Parsed configuration with defaults for missing or malformed values.
        """
        props: Mapping[str, Any] = properties or {}
        threshold = _parse_option(props, "slowSqlThresholdMs", parse_int, DEFAULT_SLOW_SQL_THRESHOLD_MS)
        if threshold < 0:
            logger.warning("Negative slowSqlThresholdMs %r, using default", threshold)
            threshold = DEFAULT_SLOW_SQL_THRESHOLD_MS
        return cls(
            slow_sql_threshold_ms=threshold,
            namespace_cache=NamespaceCacheConfig(
                capacity=_parse_option(props, "namespaceCache.capacity", parse_int, DEFAULT_NAMESPACE_CAPACITY),
                eviction_policy=_parse_option(
                    props, "namespaceCache.evictionPolicy", _parse_eviction_policy, EvictionPolicy.LRU
                ),
                read_write=_parse_option(props, "namespaceCache.readWrite", parse_bool, True),
            ),
            local_cache_scope=_parse_option(
                props, "localCacheScope", lambda v: LocalCacheScope(str(v).strip().lower()), LocalCacheScope.SESSION
            ),
            plugins=PluginToggles(
                full_table_mutation_guard=_parse_option(props, "plugins.fullTableMutationGuard", parse_bool, True),
                sql_cost=_parse_option(props, "plugins.sqlCost", parse_bool, True),
                execution_trace=_parse_option(props, "plugins.executionTrace", parse_bool, True),
            ),
        )


def _parse_eviction_policy(value: Any) -> EvictionPolicy:
    if isinstance(value, EvictionPolicy):
        return value
    return EvictionPolicy(str(value).strip().lower())
