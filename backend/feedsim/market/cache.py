"""Bounded continuity cache for per-symbol derived state."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass(slots=True)
class CacheEntry:
    """A cached payload with its insertion time and read count."""

    payload: Any
    inserted_at: float
    hits: int = 0


class ContinuityCache:
    """Size- and age-bounded store of the last derived state per key.

    Expiry is lazy: an entry older than ``ttl`` seconds is dropped the next time
    it is read. When full, inserting a new key evicts the entry with the oldest
    *insertion* time (not the least recently read one). Reads do not refresh an
    entry's age, only its hit counter.

    Writers: the tick driver and the pull-mode stream, both on the event loop.
    The lock only matters if the cache is ever shared across threads.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float = 3600.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock or time.time
        self._lock = Lock()
        self._evictions = 0

    def get(self, key: str) -> Any | None:
        """Return the payload for ``key``, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._clock() - entry.inserted_at > self._ttl:
                del self._entries[key]
                return None

            entry.hits += 1
            return entry.payload

    def put(self, key: str, payload: Any) -> None:
        """Store ``payload`` under ``key``, evicting the oldest entry if full."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_oldest()
            self._entries[key] = CacheEntry(payload=payload, inserted_at=self._clock())

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def entry(self, key: str) -> CacheEntry | None:
        """Raw entry lookup for inspection. Does not count as a hit or expire."""
        with self._lock:
            return self._entries.get(key)

    def entries(self) -> dict[str, CacheEntry]:
        """Shallow copy of all entries, including ones not yet lazily expired."""
        with self._lock:
            return dict(self._entries)

    def hit_rate(self) -> float:
        """Average hit count per stored entry (0 when empty).

        Not a fraction: an entry read four times contributes 4.
        """
        with self._lock:
            if not self._entries:
                return 0.0
            return sum(entry.hits for entry in self._entries.values()) / len(self._entries)

    @property
    def evictions(self) -> int:
        return self._evictions

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl(self) -> float:
        return self._ttl

    def _evict_oldest(self) -> None:
        # Linear scan; strict < keeps the first entry seen on ties
        oldest_key: str | None = None
        oldest_ts = 0.0
        for key, entry in self._entries.items():
            if oldest_key is None or entry.inserted_at < oldest_ts:
                oldest_key = key
                oldest_ts = entry.inserted_at
        if oldest_key is not None:
            del self._entries[oldest_key]
            self._evictions += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
