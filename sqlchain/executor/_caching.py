"""Namespace (second-level) cache decorator over a raw executor."""

from typing import TYPE_CHECKING, Any

from sqlchain.core.cache import CacheKey
from sqlchain.core.statement import BoundSql, CommandKind, MappedStatement, RowBounds
from sqlchain.executor._base import Executor
from sqlchain.utils.logging import get_logger

if TYPE_CHECKING:
    from sqlchain.core.cache import NamespaceCacheRegistry

__all__ = ("CachingExecutor",)

logger = get_logger("executor.caching")


class CachingExecutor(Executor):
    """Consults the session cache, then the namespace cache, before the raw executor.

    A write flushes its namespace once the raw executor has run it, so a write rejected
    below this layer leaves the namespace cache and the pending set untouched. A namespace
    written in the current unit of work is "pending": until commit or rollback this session
    neither reads from nor stores into that namespace's cache, and commit flushes it once
    more so no other session keeps rows cached from before the write became visible.
    """

    is_decorator = True

    def __init__(self, delegate: Executor, caches: "NamespaceCacheRegistry") -> None:
        self.delegate = delegate
        self.caches = caches
        self._pending: set[str] = set()

    @property
    def is_closed(self) -> bool:
        return self.delegate.is_closed

    @property
    def pending_namespaces(self) -> "frozenset[str]":
        return frozenset(self._pending)

    def query(self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds) -> "list[Any]":
        bound_sql = mapped_statement.get_bound_sql(parameter)
        key = self.delegate.create_cache_key(mapped_statement, parameter, row_bounds, bound_sql)
        cache = self.caches.get(mapped_statement.namespace)
        if cache is None:
            return self.delegate.query(mapped_statement, parameter, row_bounds)

        if mapped_statement.flush_cache:
            cache.clear()
        elif self.delegate.is_cached(mapped_statement, key):
            return self.delegate.query(mapped_statement, parameter, row_bounds)

        shared = mapped_statement.use_cache and mapped_statement.namespace not in self._pending
        if shared:
            cached = cache.get(key)
            if cached is not None:
                logger.debug("Namespace cache hit for %s", mapped_statement.id)
                self.delegate.populate_local_cache(key, cached)
                return cached  # type: ignore[no-any-return]

        result = self.delegate.query(mapped_statement, parameter, row_bounds)
        if shared:
            cache.put(key, result)
        return result

    def update(self, mapped_statement: MappedStatement, parameter: Any) -> int:
        rows = self.delegate.update(mapped_statement, parameter)
        if mapped_statement.kind is CommandKind.WRITE or mapped_statement.flush_cache:
            self._flush(mapped_statement.namespace)
        self._pending.add(mapped_statement.namespace)
        return rows

    def create_cache_key(
        self, mapped_statement: MappedStatement, parameter: Any, row_bounds: RowBounds, bound_sql: BoundSql
    ) -> CacheKey:
        return self.delegate.create_cache_key(mapped_statement, parameter, row_bounds, bound_sql)

    def is_cached(self, mapped_statement: MappedStatement, key: CacheKey) -> bool:
        return self.delegate.is_cached(mapped_statement, key)

    def populate_local_cache(self, key: CacheKey, result: "list[Any]") -> None:
        self.delegate.populate_local_cache(key, result)

    def clear_local_cache(self) -> None:
        self.delegate.clear_local_cache()

    def commit(self, required: bool) -> None:
        self.delegate.commit(required)
        for namespace in self._pending:
            self._flush(namespace)
        self._pending.clear()

    def rollback(self, required: bool) -> None:
        try:
            self.delegate.rollback(required)
        finally:
            self._pending.clear()

    def close(self, force_rollback: bool) -> None:
        self._pending.clear()
        self.delegate.close(force_rollback)

    def _flush(self, namespace: str) -> None:
        if namespace in self.caches:
            logger.debug("Flushing namespace cache %s", namespace)
            self.caches.flush(namespace)
