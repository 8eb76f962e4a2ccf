"""
Cache management for NEIS School Lookup.

In-process TTL cache for upstream responses, keyed by request signature.
Entries expire lazily on access and are evicted by a periodic sweep
(see scheduler.CacheSweeper). Nothing is written to durable storage.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from neis_lookup.config import CacheConfig

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]


def _retrieve_exception(task: "asyncio.Task") -> None:
    # Callers re-raise failures; needed when every caller was cancelled
    if not task.cancelled():
        task.exception()


@dataclass
class CacheEntry:
    """Cached upstream response.

    Attributes:
        key: Request signature the data was fetched for
        data: Parsed JSON body
        expires_at: Clock reading after which the entry is stale
    """

    key: str
    data: Any
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class CacheManager:
    """
    In-memory TTL cache with miss coalescing and statistics tracking.

    Features:
    - Fixed TTL shared by all keys (5 minutes default)
    - Lazy expiry on access plus explicit sweep()
    - Concurrent misses on one key share a single producer call
    - Failed producer calls are never cached
    - Thread-safe entry map (the sweep runs on a scheduler thread)

    Attributes:
        ttl_seconds: Time-to-live for cache entries
        clock: Monotonic time source, injectable for tests

    Example:
        >>> cache = CacheManager(ttl_seconds=300)
        >>> body = await cache.get(signature.cache_key, lambda: client.fetch(signature))
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize cache manager.

        Args:
            ttl_seconds: Cache TTL in seconds (defaults to CacheConfig.TTL_SECONDS)
            clock: Time source returning seconds (defaults to time.monotonic)
        """
        self.ttl_seconds = CacheConfig.TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock or time.monotonic

        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._lock = threading.Lock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "expired": 0,
            "evictions": 0,
            "producer_failures": 0,
        }

        logger.info(f"CacheManager initialized: ttl={self.ttl_seconds}s")

    async def get(self, key: str, producer: Producer) -> Any:
        """
        Get cached data, invoking the producer on a miss.

        The producer runs as its own task shared by every caller of the
        key; cancelling one caller never cancels the fetch or the others.

        Args:
            key: Cache key (request signature)
            producer: Zero-argument coroutine function fetching fresh data

        Returns:
            Cached or freshly produced data

        Raises:
            Exception: Whatever the producer raises; nothing is cached then
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if entry.is_live(self.clock()):
                    self._stats["hits"] += 1
                    logger.debug(f"Cache hit: {key}")
                    return entry.data
                del self._entries[key]
                self._stats["expired"] += 1

            task = self._in_flight.get(key)
            if task is None:
                self._stats["misses"] += 1
                logger.debug(f"Cache miss: {key}")
                task = asyncio.ensure_future(self._produce(key, producer))
                task.add_done_callback(_retrieve_exception)
                self._in_flight[key] = task
            else:
                self._stats["coalesced"] += 1
                logger.debug(f"Cache miss coalesced: {key}")

        return await asyncio.shield(task)

    async def _produce(self, key: str, producer: Producer) -> Any:
        try:
            data = await producer()
        except Exception:
            self._stats["producer_failures"] += 1
            raise
        else:
            with self._lock:
                self._entries[key] = CacheEntry(
                    key=key,
                    data=data,
                    expires_at=self.clock() + self.ttl_seconds,
                )
            logger.debug(f"Cached: {key} (ttl={self.ttl_seconds}s)")
            return data
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def peek(self, key: str) -> Optional[Any]:
        """Return live cached data without invoking a producer."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_live(self.clock()):
                return entry.data
        return None

    def invalidate(self, key: str) -> bool:
        """
        Invalidate (delete) a specific cache entry.

        Returns:
            True if entry was deleted, False if not found
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None

        if removed:
            logger.info(f"Invalidated cache: {key}")
        return removed

    def sweep(self) -> int:
        """
        Remove all expired cache entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self.clock()
            expired = [k for k, e in self._entries.items() if not e.is_live(now)]
            for key in expired:
                del self._entries[key]
            self._stats["evictions"] += len(expired)

        if expired:
            logger.info(f"Swept {len(expired)} expired cache entries")
        else:
            logger.debug("No expired cache entries to sweep")
        return len(expired)

    def clear(self) -> int:
        """
        Delete all cache entries.

        Returns:
            Number of entries deleted
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()

        logger.warning(f"Cleared ALL {count} cache entries")
        return count

    def get_statistics(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary containing counters plus entry counts and
            the configured TTL
        """
        with self._lock:
            now = self.clock()
            total = len(self._entries)
            live = sum(1 for e in self._entries.values() if e.is_live(now))
            stats = dict(self._stats)
            in_flight = len(self._in_flight)

        lookups = stats["hits"] + stats["misses"] + stats["coalesced"]
        return {
            **stats,
            "total_entries": total,
            "valid_entries": live,
            "expired_entries": total - live,
            "in_flight": in_flight,
            "hit_rate_pct": round(stats["hits"] / lookups * 100, 2) if lookups else 0.0,
            "ttl_seconds": self.ttl_seconds,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.is_live(self.clock())

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"CacheManager(ttl_seconds={self.ttl_seconds}, "
            f"entries={len(self)})"
        )
