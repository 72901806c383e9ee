"""Fixed-capacity LRU store with optional time-to-live."""

from __future__ import annotations

import math
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, List, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Least-recently-used map bounded by ``max_size`` entries.

    ``get`` on a live entry moves it to the most-recent end; the write
    timestamp is kept, so TTL counts from the last ``set``.  Entries older
    than ``ttl_seconds`` are dropped lazily on access.
    """

    def __init__(
        self,
        max_size: int,
        ttl_seconds: Optional[float] = None,
        on_evict: Optional[Callable[[K, V], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl_seconds = math.inf if ttl_seconds is None else ttl_seconds
        self._on_evict = on_evict
        self._clock = clock
        self._data: "OrderedDict[K, Tuple[V, float]]" = OrderedDict()

    def get(self, key: K) -> Optional[V]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, written_at = entry
        if self._clock() - written_at > self.ttl_seconds:
            self.delete(key)
            return None
        self._data.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        if key in self._data:
            del self._data[key]
        while len(self._data) >= self.max_size:
            oldest_key, (oldest_value, _) = self._data.popitem(last=False)
            if self._on_evict is not None:
                self._on_evict(oldest_key, oldest_value)
        self._data[key] = (value, self._clock())

    def has(self, key: K) -> bool:
        return self.get(key) is not None

    def delete(self, key: K) -> bool:
        entry = self._data.pop(key, None)
        if entry is None:
            return False
        if self._on_evict is not None:
            self._on_evict(key, entry[0])
        return True

    def clear(self) -> None:
        if self._on_evict is not None:
            for key, (value, _) in self._data.items():
                self._on_evict(key, value)
        self._data.clear()

    def keys(self) -> List[K]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data
