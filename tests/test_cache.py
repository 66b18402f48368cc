"""
Tests for the LRU memoization store shared by coordinate systems.
"""

from __future__ import annotations

import logging
import threading

import pytest

from chunkmap.core.cache import LRUCache


class TestLRUCache:
    """Eviction, statistics and thread-safety of LRUCache."""

    def test_get_missing_returns_default(self) -> None:
        cache: LRUCache[str, int] = LRUCache(max_size=2)
        assert cache.get("missing") is None
        assert cache.get("missing", -1) == -1

    def test_evicts_least_recently_used(self) -> None:
        cache: LRUCache[str, int] = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        # touch "a" so "b" becomes the eviction candidate
        assert cache.get("a") == 1
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_set_existing_key_refreshes_without_eviction(self) -> None:
        cache: LRUCache[str, int] = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert cache.get("a") == 10
        assert "b" not in cache
        assert cache.cache_info()["evictions"] == 1

    def test_zero_max_size_is_unbounded(self) -> None:
        cache: LRUCache[int, int] = LRUCache(max_size=0)
        for i in range(1000):
            cache.set(i, i * i)
        assert len(cache) == 1000
        assert cache.get(0) == 0
        assert cache.cache_info()["evictions"] == 0

    def test_negative_max_size(self) -> None:
        with pytest.raises(ValueError, match="max_size must be non-negative"):
            LRUCache(max_size=-1)

    def test_cache_info(self) -> None:
        cache: LRUCache[str, int] = LRUCache(max_size=1)
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        cache.set("b", 2)

        assert cache.cache_info() == {
            "max_size": 1,
            "current_size": 1,
            "hits": 1,
            "misses": 1,
            "evictions": 1,
        }

    def test_get_or_create_calls_factory_once(self) -> None:
        cache: LRUCache[str, list[int]] = LRUCache(max_size=4)
        calls = []

        def factory() -> list[int]:
            calls.append(1)
            return [1, 2, 3]

        first = cache.get_or_create("k", factory)
        second = cache.get_or_create("k", factory)

        assert first is second
        assert len(calls) == 1
        info = cache.cache_info()
        assert info["hits"] == 1
        assert info["misses"] == 1

    def test_clear(self) -> None:
        cache: LRUCache[str, int] = LRUCache(max_size=4)
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0
        assert "a" not in cache

    def test_eviction_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        cache: LRUCache[str, int] = LRUCache(max_size=1)
        cache.set("a", 1)
        with caplog.at_level(logging.DEBUG, logger="chunkmap.core.cache"):
            cache.set("b", 2)
        assert "evicted key 'a'" in caplog.text

    def test_concurrent_access(self) -> None:
        cache: LRUCache[int, int] = LRUCache(max_size=50)
        errors: list[BaseException] = []

        def worker(offset: int) -> None:
            try:
                for i in range(500):
                    key = (i + offset) % 100
                    cache.get_or_create(key, lambda key=key: key * 2)
                    value = cache.get(key)
                    assert value is None or value == key * 2
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) <= 50
