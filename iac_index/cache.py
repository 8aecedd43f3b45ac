"""In-process TTL + LRU cache shared by the analyzers and content sources."""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Optional

from iac_index.config import get_settings
from iac_index.metrics import record_cache_lookup

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with the time it was stored and its lifetime."""

    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl


class CacheStore:
    """Bounded key/value store with per-entry TTL and approximate LRU eviction.

    Entries live in insertion order. A successful ``get`` re-inserts the
    entry at the end, so reads refresh recency while plain overwrites only
    move the key. When the store is full, ``set`` for a new key evicts the
    entry at the front of the order.

    Expired entries are dropped lazily by ``get``/``has``; ``cleanup`` sweeps
    the whole store and is meant to be called periodically.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_entries = max(1, int(max_entries))
        self._default_ttl = max(0.0, float(default_ttl))
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key, evicting the oldest entry if full."""
        actual_ttl = self._default_ttl if ttl is None else max(0.0, float(ttl))
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted %s", evicted)
            self._entries[key] = CacheEntry(value, self._clock(), actual_ttl)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None

            if entry is None:
                self._misses += 1
                record_cache_lookup(False)
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            record_cache_lookup(True)
            return entry.value

    def has(self, key: str) -> bool:
        """Check for a live entry without refreshing its position."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns count deleted."""
        with self._lock:
            doomed = [key for key in list(self._entries.keys()) if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Remove all expired entries. Returns count removed."""
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in list(self._entries.items()) if entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache cleanup removed %d expired entries", len(expired))
        return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def stats(self) -> dict:
        """Size, capacity and hit rate since construction."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }


# Global cache instance
_cache: Optional[CacheStore] = None


def init_cache() -> CacheStore:
    """Create the process-wide cache from settings. Called at app startup."""
    global _cache
    settings = get_settings()
    _cache = CacheStore(
        max_entries=settings.cache_max_entries,
        default_ttl=settings.cache_default_ttl,
    )
    logger.info(
        "Cache initialized",
        extra={"max_entries": settings.cache_max_entries, "default_ttl": settings.cache_default_ttl},
    )
    return _cache


def close_cache() -> None:
    """Drop the process-wide cache. Called at app shutdown."""
    global _cache
    if _cache is not None:
        _cache.clear()
    _cache = None


def get_cache() -> CacheStore:
    """Get the process-wide cache, creating it on first use."""
    global _cache
    if _cache is None:
        return init_cache()
    return _cache
