"""Process-local TTL cache fronting profile and stats reads.

Entries expire a fixed duration after they are written and are evicted
lazily on the next access. Every mutation path calls ``clear()`` so the
next read always goes to the database.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from tradoor.config import get_settings


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    expires_at: float


class TTLCache:
    """Key/value cache with a fixed time-to-live per entry."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.data

    def set(self, key: str, data: Any) -> None:
        """Store a value, always overwriting with a fresh expiry."""
        now = self._clock()
        self._entries[key] = CacheEntry(data=data, timestamp=now, expires_at=now + self.ttl_seconds)

    def is_expired(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return True
        return self._clock() > entry.expires_at

    def clear(self) -> None:
        self._entries.clear()


@lru_cache
def get_cache() -> TTLCache:
    """Get the shared process cache."""
    return TTLCache(get_settings().cache_ttl_seconds)
