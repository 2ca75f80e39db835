"""
TTL response cache for reasoning requests.

Bounded by entry count; when full, the globally oldest entry (by insertion
time, not by access) is evicted. Expiry is both lazy (on get) and active
(periodic sweep). State is optionally persisted through a CacheStore.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from dreamscape.core.contracts import CacheEntry
from dreamscape.core.errors import CacheQuotaExceeded
from dreamscape.core.timers import Scheduler, TimerHandle
from dreamscape.reasoning.cache_store import CacheStore, JsonFileCacheStore


@dataclass
class CacheConfig:
    """Response cache settings."""
    enabled: bool = True
    max_size: int = 50
    default_ttl: float = 3600.0       # 1 hour
    sweep_interval: float = 300.0     # 5 minutes
    persist_path: Optional[str] = None
    persist_max_bytes: Optional[int] = None
    evict_on_quota: int = 3


class ResponseCache:
    """
    Key/value cache with per-entry TTL and bounded size.

    Hit/miss counters only move forward and are reset by clear().
    """

    def __init__(
        self,
        max_size: int = 50,
        default_ttl: float = 3600.0,
        store: Optional[CacheStore] = None,
        evict_on_quota: int = 3,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache and restore persisted entries.

        Args:
            max_size: Maximum number of entries
            default_ttl: Seconds an entry lives without a per-key ttl
            store: Durable store, or None for memory only
            evict_on_quota: Oldest entries dropped before retrying a failed save
            clock: Time source in seconds
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.evict_on_quota = evict_on_quota
        self._store = store
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._sweeper: Optional[TimerHandle] = None

        self._load()

    @classmethod
    def from_config(cls, config: CacheConfig, clock: Callable[[], float] = time.time) -> "ResponseCache":
        store = None
        if config.persist_path:
            store = JsonFileCacheStore(config.persist_path, max_bytes=config.persist_max_bytes)
        return cls(
            max_size=config.max_size,
            default_ttl=config.default_ttl,
            store=store,
            evict_on_quota=config.evict_on_quota,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """
        Look up a live entry.

        Returns:
            Cached value, or None on a miss (absent or expired)
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if not entry.is_alive(self._clock(), self.default_ttl):
                del self._entries[key]
                self._misses += 1
                expired = True
            else:
                self._hits += 1
                return entry.value

        if expired:
            logger.debug(f"Cache entry expired: {key[:60]}")
            self._persist()
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """
        Insert or replace an entry.

        Args:
            key: Cache key
            value: Value to store
            ttl: Per-entry time-to-live in seconds (None uses default)
        """
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest_locked(1)
            self._entries[key] = CacheEntry(
                key=key, value=value, inserted_at=self._clock(), ttl=ttl
            )
        self._persist()

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            self._persist()
        return removed

    def clear(self):
        """Drop every entry and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        if self._store is not None:
            try:
                self._store.clear()
            except OSError as e:
                logger.error(f"Failed to clear cache store: {e}")
        logger.info("Response cache cleared")

    def sweep(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if not entry.is_alive(now, self.default_ttl)
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
            self._persist()
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
            }

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.is_alive(self._clock(), self.default_ttl)

    # ------------------------------------------------------------------
    # Periodic sweep
    # ------------------------------------------------------------------

    def start_sweeper(self, scheduler: Scheduler, interval: float = 300.0) -> TimerHandle:
        self.stop_sweeper()
        self._sweeper = scheduler.call_every(interval, self.sweep)
        return self._sweeper

    def stop_sweeper(self):
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _evict_oldest_locked(self, count: int) -> int:
        oldest = sorted(self._entries.values(), key=lambda e: e.inserted_at)[:count]
        for entry in oldest:
            del self._entries[entry.key]
            logger.debug(f"Evicted cache entry: {entry.key[:60]}")
        return len(oldest)

    def _record(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": {
                    key: {
                        "value": entry.value,
                        "inserted_at": entry.inserted_at,
                        "ttl": entry.ttl,
                    }
                    for key, entry in self._entries.items()
                },
                "stats": {"hits": self._hits, "misses": self._misses},
            }

    def _persist(self):
        if self._store is None:
            return
        try:
            self._store.save(self._record())
            return
        except (CacheQuotaExceeded, OSError, TypeError, ValueError) as e:
            logger.warning(f"Cache save failed ({e}), evicting {self.evict_on_quota} oldest entries")

        with self._lock:
            self._evict_oldest_locked(self.evict_on_quota)
        try:
            self._store.save(self._record())
        except (CacheQuotaExceeded, OSError, TypeError, ValueError) as e:
            logger.error(f"Cache save retry failed, continuing in memory only: {e}")

    def _load(self):
        if self._store is None:
            return
        try:
            record = self._store.load()
            if record is None:
                return
            entries = {}
            for key, raw in record.get("entries", {}).items():
                entries[key] = CacheEntry(
                    key=key,
                    value=raw["value"],
                    inserted_at=float(raw["inserted_at"]),
                    ttl=None if raw.get("ttl") is None else float(raw["ttl"]),
                )
            stats = record.get("stats", {})
            hits = int(stats.get("hits", 0))
            misses = int(stats.get("misses", 0))
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"Could not load persisted cache, starting empty: {e}")
            return

        with self._lock:
            self._entries = entries
            self._hits = hits
            self._misses = misses
            if len(self._entries) > self.max_size:
                self._evict_oldest_locked(len(self._entries) - self.max_size)
        removed = self.sweep()
        logger.info(f"Restored {len(self)} cached responses ({removed} expired)")
