"""Parse-result cache keyed by a cheap per-file content fingerprint."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Pattern, Tuple, TypeVar, Union

from .config import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_CACHE_TTL_MINUTES
from .lru_cache import LRUCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (modification time in ns, size in bytes); None when the file can't be stat'ed.
Fingerprint = Optional[Tuple[int, int]]


def file_fingerprint(path: str) -> Fingerprint:
    """Return ``(mtime_ns, size)`` for *path*, or None if it can't be read."""
    try:
        st = os.stat(path)
    except OSError as exc:
        logger.debug("Fingerprint failed for %s: %s", path, exc)
        return None
    return (st.st_mtime_ns, st.st_size)


@dataclass
class _Entry(Generic[T]):
    fingerprint: Fingerprint
    value: T


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class CacheManager(Generic[T]):
    """Memoize one value per file path, valid while the fingerprint holds.

    A fingerprint mismatch on ``get`` is a miss and drops the stale entry.
    An unreadable file yields an empty fingerprint, which never matches.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        ttl_seconds: Optional[float] = DEFAULT_CACHE_TTL_MINUTES * 60,
        fingerprint: Callable[[str], Fingerprint] = file_fingerprint,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        kwargs = {"clock": clock} if clock is not None else {}
        self._store: LRUCache[str, _Entry[T]] = LRUCache(
            max_size=max_entries, ttl_seconds=ttl_seconds, **kwargs,
        )
        self._fingerprint = fingerprint
        self.hits = 0
        self.misses = 0

    def get(self, path: str) -> Optional[T]:
        entry = self._store.get(path)
        if entry is None:
            self.misses += 1
            return None
        current = self._fingerprint(path)
        if current is None or current != entry.fingerprint:
            logger.debug("Stale cache entry for %s", path)
            self._store.delete(path)
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def set(self, path: str, value: T) -> None:
        self._store.set(path, _Entry(self._fingerprint(path), value))

    def invalidate(self, path: str) -> bool:
        return self._store.delete(path)

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        removed = 0
        for key in self._store.keys():
            if regex.search(key):
                self._store.delete(key)
                removed += 1
        return removed

    def clear(self) -> None:
        self._store.clear()

    @property
    def hit_rate(self) -> float:
        return self.stats().hit_rate

    def stats(self) -> CacheStats:
        return CacheStats(hits=self.hits, misses=self.misses, size=len(self._store))

    def __len__(self) -> int:
        return len(self._store)
