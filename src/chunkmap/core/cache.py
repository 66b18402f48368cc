from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """
    A bounded key-value store with least-recently-used eviction.

    Caches are a pure side-table: entries are functions of their keys and are never
    invalidated other than by eviction, so dropping any entry only costs a recomputation.
    All operations take an internal lock, so one instance may be shared between threads.

    Parameters
    ----------
    max_size : int
        Maximum number of entries. When exceeded, the least recently used entry is
        evicted. ``0`` means unbounded.

    Examples
    --------
    >>> cache = LRUCache(max_size=2)
    >>> cache.set("a", 1)
    >>> cache.set("b", 2)
    >>> cache.get("a")
    1
    >>> cache.set("c", 3)
    >>> "b" in cache
    False
    """

    max_size: int
    _data: OrderedDict[K, V]  # Track access order for LRU

    def __init__(self, max_size: int = 0) -> None:
        if max_size < 0:
            raise ValueError(f"max_size must be non-negative. Got {max_size}.")
        self.max_size = max_size
        self._data = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value for ``key`` and mark it most recently used."""
        with self._lock:
            try:
                value = self._data[key]
            except KeyError:
                self._misses += 1
                return default
            self._data.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: K, value: V) -> None:
        """Insert or refresh ``key``, evicting the least recently used entry if full."""
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            elif self.max_size and len(self._data) >= self.max_size:
                lru_key, _ = self._data.popitem(last=False)
                self._evictions += 1
                logger.debug("set: evicted key %r, max_size %d", lru_key, self.max_size)
            self._data[key] = value

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        """
        Return the cached value for ``key``, building and caching it with ``factory`` on a miss.

        ``factory`` runs outside the lock; concurrent misses may build the same value twice,
        which is harmless because values are pure functions of their keys.
        """
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
                self._hits += 1
                return self._data[key]
            self._misses += 1
        value = factory()
        self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def cache_info(self) -> dict[str, Any]:
        """Return information about the cache state."""
        with self._lock:
            return {
                "max_size": self.max_size,
                "current_size": len(self._data),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
