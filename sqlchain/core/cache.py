"""Two-tier query cache.

``PerpetualCache`` is the per-session first level. ``NamespaceCache`` is the bounded,
shared second level, one per mapper namespace, kept in a ``NamespaceCacheRegistry``.
"""

import copy
import threading
from collections import OrderedDict
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Final, Optional

from mypy_extensions import mypyc_attr

from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.config import NamespaceCacheConfig
    from sqlchain.core.statement import BoundSql, MappedStatement, RowBounds

__all__ = (
    "CacheKey",
    "CacheStats",
    "EvictionPolicy",
    "NamespaceCache",
    "NamespaceCacheRegistry",
    "PerpetualCache",
    "create_cache_key",
)

logger = get_logger("core.cache")

DEFAULT_NAMESPACE_CAPACITY: Final = 512
_MISSING: Final = object()


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheKey:
    """Value-typed key for one query invocation.

    Equal ``parts`` give equal keys, whichever objects they were built from.
    """

    __slots__ = ("_digest", "parts")

    def __init__(self, parts: "tuple[Any, ...]") -> None:
        self.parts = parts
        self._digest = hash(parts)

    def __hash__(self) -> int:
        return self._digest

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CacheKey) and self._digest == other._digest and self.parts == other.parts

    def __repr__(self) -> str:
        return f"CacheKey{self.parts!r}"


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted(map(repr, value)))
    try:
        hash(value)
    except TypeError:
        return (type(value).__name__, repr(value))
    return value


def create_cache_key(statement: "MappedStatement", bound_sql: "BoundSql", row_bounds: "RowBounds") -> CacheKey:
    """Key a query by statement id, paging bounds, effective SQL and ordered parameter values."""
    return CacheKey((
        statement.id,
        row_bounds.offset,
        row_bounds.limit,
        bound_sql.sql,
        _freeze(bound_sql.parameters),
    ))


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheStats:
    """Counters for one namespace cache."""

    __slots__ = ("evictions", "hits", "misses", "puts")

    def __init__(self) -> None:
        self.reset()

    @property
    def hit_rate(self) -> float:
        """Hits as a percentage of lookups, ``0.0`` before the first lookup."""
        lookups = self.hits + self.misses
        return 100.0 * self.hits / lookups if lookups else 0.0

    def reset(self) -> None:
        self.hits = self.misses = self.evictions = self.puts = 0

    def __repr__(self) -> str:
        counters = ", ".join(f"{name}={getattr(self, name)}" for name in self.__slots__)
        return f"CacheStats({counters}, hit_rate={self.hit_rate:.1f}%)"


class PerpetualCache:
    """Session-scoped cache.

    Owned by exactly one session and therefore not synchronized.
    """

    __slots__ = ("_cache", "id")

    def __init__(self, cache_id: str = "LocalCache") -> None:
        self.id = cache_id
        self._cache: dict[CacheKey, Any] = {}

    def get(self, key: CacheKey) -> Optional[Any]:
        return self._cache.get(key)

    def put(self, key: CacheKey, value: Any) -> None:
        self._cache[key] = value

    def remove(self, key: CacheKey) -> Optional[Any]:
        return self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)


class EvictionPolicy(str, Enum):
    """Replacement policy applied when a namespace cache is full."""

    LRU = "lru"
    FIFO = "fifo"


@mypyc_attr(allow_interpreted_subclasses=False)
class NamespaceCache:
    """Bounded, thread-safe cache shared by every session of one namespace.

    Entries live in an ``OrderedDict`` whose last item is the newest. Under
    ``EvictionPolicy.LRU`` a hit moves the entry to the end; under ``EvictionPolicy.FIFO``
    the order only reflects insertion. Inserting past ``capacity`` evicts the first item.

    All reads, writes and flushes happen under one lock, so a flush can never interleave
    with a half-finished insert.

    Args:
        namespace: Namespace this cache belongs to.
        capacity: Maximum number of entries.
        eviction_policy: Which entry to drop when full.
        read_write: Store and return deep copies instead of shared objects.
    """

    __slots__ = ("_capacity", "_entries", "_lock", "_policy", "_read_write", "_stats", "namespace")

    def __init__(
        self,
        namespace: str,
        capacity: int = DEFAULT_NAMESPACE_CAPACITY,
        eviction_policy: EvictionPolicy = EvictionPolicy.LRU,
        read_write: bool = True,
    ) -> None:
        if capacity < 1:
            msg = f"Namespace cache capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self.namespace = namespace
        self._entries: OrderedDict[CacheKey, Any] = OrderedDict()
        self._lock = threading.RLock()
        self._capacity = capacity
        self._policy = eviction_policy
        self._read_write = read_write
        self._stats = CacheStats()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def eviction_policy(self) -> EvictionPolicy:
        return self._policy

    def get(self, key: CacheKey) -> Optional[Any]:
        """Return the cached value for ``key``, or ``None`` on a miss."""
        with self._lock:
            if key not in self._entries:
                self._stats.misses += 1
                return None
            if self._policy is EvictionPolicy.LRU:
                self._entries.move_to_end(key)
            self._stats.hits += 1
            value = self._entries[key]
        return copy.deepcopy(value) if self._read_write else value

    def put(self, key: CacheKey, value: Any) -> None:
        """Store ``value``, evicting the oldest entry when over capacity."""
        stored = copy.deepcopy(value) if self._read_write else value
        with self._lock:
            self._stats.puts += 1
            replacing = key in self._entries
            self._entries[key] = stored
            if replacing and self._policy is EvictionPolicy.FIFO:
                return
            self._entries.move_to_end(key)
            if len(self._entries) > self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug("Evicted entry from namespace cache %s: %r", self.namespace, evicted)

    def remove(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        """Flush every entry."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> "list[CacheKey]":
        """Keys from most to least recently inserted (or used, under LRU)."""
        with self._lock:
            return list(reversed(self._entries))

    def get_stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def __repr__(self) -> str:
        return (
            f"NamespaceCache(namespace={self.namespace!r}, size={len(self)}, "
            f"capacity={self._capacity}, policy={self._policy.value})"
        )


class NamespaceCacheRegistry:
    """Namespace name to ``NamespaceCache`` mapping.

    Populated once at startup from the declared mapper configuration; lookups for a
    namespace without a declared cache return ``None``.
    """

    __slots__ = ("_caches", "_lock")

    def __init__(self) -> None:
        self._caches: dict[str, NamespaceCache] = {}
        self._lock = threading.Lock()

    def register(self, namespace: str, config: "NamespaceCacheConfig") -> NamespaceCache:
        with self._lock:
            existing = self._caches.get(namespace)
            if existing is not None:
                return existing
            cache = NamespaceCache(
                namespace,
                capacity=config.capacity,
                eviction_policy=config.eviction_policy,
                read_write=config.read_write,
            )
            self._caches[namespace] = cache
            logger.debug("Registered namespace cache: %r", cache)
            return cache

    def get(self, namespace: str) -> Optional[NamespaceCache]:
        return self._caches.get(namespace)

    def flush(self, namespace: str) -> None:
        cache = self._caches.get(namespace)
        if cache is not None:
            cache.clear()

    def flush_all(self) -> None:
        for cache in list(self._caches.values()):
            cache.clear()

    def namespaces(self) -> "list[str]":
        return list(self._caches)

    def __contains__(self, namespace: str) -> bool:
        return namespace in self._caches
