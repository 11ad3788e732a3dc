"""Bounded lookup caches with oldest-first eviction.

BoundedCache keeps a hit map and a separate miss set, each capped at a fixed
capacity. Insertion order lives in an index-based doubly linked list (an
arena of slots plus a free list), so evicting the oldest entry and moving a
re-inserted key to the newest position are both O(1).

All access goes through one lock per cache instance. Reads take the lock
too: hit/miss bookkeeping has to stay atomic with respect to eviction.
"""

import asyncio
import threading
from collections.abc import Callable, Hashable, Iterator
from enum import Enum
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_NIL = -1


class CacheState(Enum):
    """Outcome of a single cache lookup."""

    HIT = "hit"
    MISS = "miss"  # Key is known to resolve to nothing
    UNKNOWN = "unknown"


class _SlotList(Generic[K, V]):
    """Insertion-ordered key/value slots linked by index.

    Freed slots are recycled through a free list, so the backing arrays
    never grow beyond the peak number of live entries.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._keys: list[K | None] = []
        self._values: list[V | None] = []
        self._prev: list[int] = []
        self._next: list[int] = []
        self._free: list[int] = []
        self._index: dict[K, int] = {}
        self._head = _NIL  # Oldest
        self._tail = _NIL  # Newest

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def get(self, key: K) -> V | None:
        slot = self._index.get(key)
        return None if slot is None else self._values[slot]

    def append(self, key: K, value: V) -> None:
        """Insert as newest; an existing key is moved to the newest position."""
        slot = self._index.get(key)
        if slot is not None:
            self._unlink(slot)
        elif self._free:
            slot = self._free.pop()
        else:
            slot = len(self._keys)
            self._keys.append(None)
            self._values.append(None)
            self._prev.append(_NIL)
            self._next.append(_NIL)

        self._keys[slot] = key
        self._values[slot] = value
        self._index[key] = slot
        self._link_tail(slot)

    def remove(self, key: K) -> bool:
        slot = self._index.pop(key, None)
        if slot is None:
            return False
        self._unlink(slot)
        self._release(slot)
        return True

    def pop_oldest(self) -> K | None:
        if self._head == _NIL:
            return None
        slot = self._head
        key = self._keys[slot]
        del self._index[key]  # type: ignore[arg-type]
        self._unlink(slot)
        self._release(slot)
        return key

    def clear(self) -> None:
        self._reset()

    def keys(self) -> Iterator[K]:
        slot = self._head
        while slot != _NIL:
            yield self._keys[slot]  # type: ignore[misc]
            slot = self._next[slot]

    def _link_tail(self, slot: int) -> None:
        self._prev[slot] = self._tail
        self._next[slot] = _NIL
        if self._tail != _NIL:
            self._next[self._tail] = slot
        else:
            self._head = slot
        self._tail = slot

    def _unlink(self, slot: int) -> None:
        prev, nxt = self._prev[slot], self._next[slot]
        if prev != _NIL:
            self._next[prev] = nxt
        else:
            self._head = nxt
        if nxt != _NIL:
            self._prev[nxt] = prev
        else:
            self._tail = prev
        self._prev[slot] = _NIL
        self._next[slot] = _NIL

    def _release(self, slot: int) -> None:
        self._keys[slot] = None
        self._values[slot] = None
        self._free.append(slot)


class BoundedCache(Generic[K, V]):
    """Thread-safe capacity-bounded hit map plus miss set.

    Values are never None; None from get() means "not cached".
    """

    def __init__(self, capacity: int, miss_capacity: int | None = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.miss_capacity = miss_capacity if miss_capacity is not None else capacity
        if self.miss_capacity < 1:
            raise ValueError(f"miss_capacity must be >= 1, got {self.miss_capacity}")
        self._hits: _SlotList[K, V] = _SlotList()
        self._misses: _SlotList[K, bool] = _SlotList()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._hits

    @property
    def miss_count(self) -> int:
        with self._lock:
            return len(self._misses)

    def get(self, key: K) -> V | None:
        """Return the cached value, or None."""
        with self._lock:
            return self._hits.get(key)

    def is_miss(self, key: K) -> bool:
        """Return True if key was recorded as resolving to nothing."""
        with self._lock:
            return key in self._misses

    def lookup(self, key: K) -> tuple[CacheState, V | None]:
        """Classify a key as hit, known miss, or unknown under one lock."""
        with self._lock:
            value = self._hits.get(key)
            if value is not None:
                return CacheState.HIT, value
            if key in self._misses:
                return CacheState.MISS, None
            return CacheState.UNKNOWN, None

    def put(self, key: K, value: V) -> None:
        """Cache a value as newest, clearing any recorded miss for the key."""
        if value is None:
            raise ValueError("BoundedCache values must not be None; use mark_miss()")
        with self._lock:
            self._misses.remove(key)
            self._hits.append(key, value)
            while len(self._hits) > self.capacity:
                self._hits.pop_oldest()

    def mark_miss(self, key: K) -> None:
        """Record that key resolves to nothing."""
        with self._lock:
            self._hits.remove(key)
            self._misses.append(key, True)
            while len(self._misses) > self.miss_capacity:
                self._misses.pop_oldest()

    def discard(self, key: K) -> None:
        """Forget key in both the hit map and the miss set."""
        with self._lock:
            self._hits.remove(key)
            self._misses.remove(key)

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()
            self._misses.clear()

    def keys(self) -> list[K]:
        """Cached keys, oldest first."""
        with self._lock:
            return list(self._hits.keys())


class AsyncBoundedCache(Generic[K, V]):
    """Async front for a BoundedCache that coalesces concurrent loads.

    Concurrent get_or_load() calls for the same unknown key share a single
    loader invocation, which runs in the default executor.
    """

    def __init__(self, cache: BoundedCache[K, V]) -> None:
        self.cache = cache
        self._in_flight: dict[K, asyncio.Future[V | None]] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def get_or_load(self, key: K, loader: Callable[[K], V | None]) -> V | None:
        """Return the cached value for key, loading it at most once."""
        state, value = self.cache.lookup(key)
        if state is CacheState.HIT:
            return value
        if state is CacheState.MISS:
            return None

        future = self._in_flight.get(key)
        if future is None:
            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(None, self._load, key, loader)
            self._in_flight[key] = future
            future.add_done_callback(lambda f, k=key: self._forget(k, f))
        # Shield so one cancelled waiter does not cancel the shared load
        return await asyncio.shield(future)

    def _forget(self, key: K, future: "asyncio.Future[V | None]") -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]

    def _load(self, key: K, loader: Callable[[K], V | None]) -> V | None:
        value = loader(key)
        if value is None:
            self.cache.mark_miss(key)
        else:
            self.cache.put(key, value)
        return value
