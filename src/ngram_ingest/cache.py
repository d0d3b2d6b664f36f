"""Thread-safe bounded LRU cache for sequence ids."""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Generic, Hashable, Tuple, TypeVar, Union

__all__ = ["MISSING", "BoundedCache"]

V = TypeVar("V")


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()
"""Returned by BoundedCache.get for keys that are not cached (None is a valid value)."""


class BoundedCache(Generic[V]):
    """
    Least-recently-used cache holding at most `capacity` entries.

    Values may be None, which is how confirmed-absent sequences are
    remembered; use `MISSING` to distinguish a cache miss. All operations
    take an internal lock, so one instance can be shared by worker threads.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._data: "OrderedDict[Hashable, V]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: Hashable) -> Union[V, _Missing]:
        with self._lock:
            try:
                value = self._data[key]
            except KeyError:
                self.misses += 1
                return MISSING
            self._data.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: Hashable, value: V) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            self._data[key] = value
            while len(self._data) > self.capacity:
                self._data.popitem(last=False)
                self.evictions += 1

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def get_stats(self) -> Tuple[int, int, int]:
        """Return (hits, misses, evictions)."""
        with self._lock:
            return self.hits, self.misses, self.evictions
