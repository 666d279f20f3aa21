"""
Timestamp-expiring key/value cache.

Owned by a resolver (or enhancer) instance rather than living at module
level, so tests can inject a clock and assert expiry deterministically.
No locking: entries are written last-writer-wins and a duplicate write
stores the same computed value.
Entries are kept in write order; each write drops the expired prefix.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]

_MISSING = object()


@dataclass
class CacheEntry(Generic[V]):
    """A cached value and the time (seconds) it was stored."""

    key: str
    value: V
    timestamp: float


class TTLCache(Generic[V]):
    """Dict-backed cache whose entries expire ttl_seconds after being set."""

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry[V]] = {}

    def _is_fresh(self, entry: CacheEntry[V], now: float) -> bool:
        return now - entry.timestamp < self.ttl_seconds

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or default if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return default
        if not self._is_fresh(entry, self._clock()):
            del self._entries[key]
            return default
        return entry.value

    def lookup(self, key: str) -> tuple[bool, Optional[V]]:
        """(hit, value) - distinguishes a cached None from a miss."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            return False, None
        return True, value

    def set(self, key: str, value: V) -> None:
        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key, value, now)
        self._evict_expired(now)

    def _evict_expired(self, now: float) -> int:
        # Oldest first: stop at the first fresh entry
        expired = []
        for key, entry in self._entries.items():
            if self._is_fresh(entry, now):
                break
            expired.append(key)
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        return self._evict_expired(self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        """Total / valid / expired entry counts (expired entries linger until the next write)."""
        now = self._clock()
        valid = sum(1 for e in self._entries.values() if self._is_fresh(e, now))
        return {
            "total_entries": len(self._entries),
            "valid_entries": valid,
            "expired_entries": len(self._entries) - valid,
        }
