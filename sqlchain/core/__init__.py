"""Statement model and the two-tier query cache.

- statement.py: MappedStatement, BoundSql, RowBounds and command type detection
- cache.py: CacheKey, the session cache and the namespace caches
"""

from sqlchain.core.cache import (
    CacheKey,
    CacheStats,
    EvictionPolicy,
    NamespaceCache,
    NamespaceCacheRegistry,
    PerpetualCache,
    create_cache_key,
)
from sqlchain.core.statement import (
    BoundSql,
    CommandKind,
    MappedStatement,
    RowBounds,
    SqlCommandType,
    detect_command_type,
)

__all__ = (
    "BoundSql",
    "CacheKey",
    "CacheStats",
    "CommandKind",
    "EvictionPolicy",
    "MappedStatement",
    "NamespaceCache",
    "NamespaceCacheRegistry",
    "PerpetualCache",
    "RowBounds",
    "SqlCommandType",
    "create_cache_key",
    "detect_command_type",
)
