"""Unit tests for the session cache, namespace caches and cache keys."""

import threading

import pytest

from sqlchain.config import NamespaceCacheConfig
from sqlchain.core.cache import (
    CacheKey,
    EvictionPolicy,
    NamespaceCache,
    NamespaceCacheRegistry,
    PerpetualCache,
    create_cache_key,
)
from sqlchain.core.statement import MappedStatement, RowBounds

FIND_BY_ID = MappedStatement.select("UserMapper", "find_by_id", "select * from t_user where id = :id")


def _key(value: int) -> CacheKey:
    return CacheKey(("ns.stmt", value))


def test_cache_key_equality_and_hash() -> None:
    first = create_cache_key(FIND_BY_ID, FIND_BY_ID.get_bound_sql(1), RowBounds.DEFAULT)
    second = create_cache_key(FIND_BY_ID, FIND_BY_ID.get_bound_sql({"id": 1}), RowBounds.DEFAULT)

    assert first == second
    assert hash(first) == hash(second)


@pytest.mark.parametrize(
    ("parameter", "row_bounds"),
    [
        (2, RowBounds.DEFAULT),
        (1, RowBounds(offset=1)),
        (1, RowBounds(limit=5)),
    ],
)
def test_cache_key_differs_on_parameters_and_bounds(parameter: int, row_bounds: RowBounds) -> None:
    base = create_cache_key(FIND_BY_ID, FIND_BY_ID.get_bound_sql(1), RowBounds.DEFAULT)
    other = create_cache_key(FIND_BY_ID, FIND_BY_ID.get_bound_sql(parameter), row_bounds)

    assert base != other


def test_cache_key_differs_on_statement_id() -> None:
    other_statement = MappedStatement.select("OtherMapper", "find_by_id", FIND_BY_ID.sql)
    bound = FIND_BY_ID.get_bound_sql(1)

    assert create_cache_key(FIND_BY_ID, bound, RowBounds.DEFAULT) != create_cache_key(
        other_statement, other_statement.get_bound_sql(1), RowBounds.DEFAULT
    )


def test_cache_key_accepts_unhashable_parameter_values() -> None:
    statement = MappedStatement.select("ns", "tags", "select * from t where tags = :tags")
    key = create_cache_key(statement, statement.get_bound_sql({"tags": ["a", "b"]}), RowBounds.DEFAULT)

    assert isinstance(hash(key), int)


def test_perpetual_cache_operations() -> None:
    cache = PerpetualCache()
    cache.put(_key(1), ["row"])

    assert _key(1) in cache
    assert cache.get(_key(1)) == ["row"]
    assert len(cache) == 1
    assert cache.remove(_key(1)) == ["row"]
    assert cache.get(_key(1)) is None

    cache.put(_key(2), [])
    cache.clear()
    assert len(cache) == 0


def test_namespace_cache_lru_eviction() -> None:
    cache = NamespaceCache("UserMapper", capacity=2, eviction_policy=EvictionPolicy.LRU)
    cache.put(_key(1), "one")
    cache.put(_key(2), "two")

    assert cache.get(_key(1)) == "one"
    cache.put(_key(3), "three")

    assert _key(1) in cache
    assert _key(2) not in cache
    assert _key(3) in cache
    assert cache.get_stats().evictions == 1


def test_namespace_cache_fifo_eviction() -> None:
    cache = NamespaceCache("UserMapper", capacity=2, eviction_policy=EvictionPolicy.FIFO)
    cache.put(_key(1), "one")
    cache.put(_key(2), "two")

    assert cache.get(_key(1)) == "one"
    cache.put(_key(3), "three")

    assert _key(1) not in cache
    assert cache.keys() == [_key(3), _key(2)]


def test_namespace_cache_default_capacity_bound() -> None:
    cache = NamespaceCache("UserMapper")

    for i in range(600):
        cache.put(_key(i), i)

    assert cache.capacity == 512
    assert len(cache) == 512
    assert _key(0) not in cache
    assert _key(599) in cache


def test_namespace_cache_put_existing_key_replaces_value() -> None:
    cache = NamespaceCache("UserMapper", capacity=2)
    cache.put(_key(1), "one")
    cache.put(_key(1), "uno")

    assert len(cache) == 1
    assert cache.get(_key(1)) == "uno"


def test_namespace_cache_read_write_returns_copies() -> None:
    cache = NamespaceCache("UserMapper", read_write=True)
    rows = [{"id": 1, "username": "alice"}]
    cache.put(_key(1), rows)
    rows[0]["username"] = "mutated-before-read"

    first = cache.get(_key(1))
    first[0]["username"] = "mutated-after-read"

    assert cache.get(_key(1)) == [{"id": 1, "username": "alice"}]


def test_namespace_cache_read_only_shares_objects() -> None:
    cache = NamespaceCache("UserMapper", read_write=False)
    rows = [{"id": 1}]
    cache.put(_key(1), rows)

    assert cache.get(_key(1)) is rows


def test_namespace_cache_clear_and_stats() -> None:
    cache = NamespaceCache("UserMapper")
    cache.put(_key(1), "one")
    cache.get(_key(1))
    cache.get(_key(2))
    cache.clear()

    stats = cache.get_stats()
    assert len(cache) == 0
    assert cache.keys() == []
    assert (stats.hits, stats.misses, stats.puts) == (1, 1, 1)
    assert stats.hit_rate == 50.0


def test_namespace_cache_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError, match="capacity"):
        NamespaceCache("UserMapper", capacity=0)


def test_namespace_cache_concurrent_puts_and_flushes_stay_bounded() -> None:
    cache = NamespaceCache("UserMapper", capacity=32)

    def writer(offset: int) -> None:
        for i in range(500):
            cache.put(_key(offset + i), i)

    def flusher() -> None:
        for _ in range(50):
            cache.clear()

    threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
    threads.append(threading.Thread(target=flusher))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(cache) <= 32
    assert len(cache.keys()) == len(cache)


def test_registry_registers_once_and_flushes() -> None:
    registry = NamespaceCacheRegistry()
    cache = registry.register("UserMapper", NamespaceCacheConfig(capacity=8, eviction_policy=EvictionPolicy.FIFO))

    assert registry.register("UserMapper", NamespaceCacheConfig()) is cache
    assert cache.capacity == 8
    assert "UserMapper" in registry
    assert registry.get("Other") is None
    assert registry.namespaces() == ["UserMapper"]

    cache.put(_key(1), "one")
    registry.flush("UserMapper")
    assert len(cache) == 0

    cache.put(_key(1), "one")
    registry.flush_all()
    assert len(cache) == 0
