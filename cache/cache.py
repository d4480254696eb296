"""Per-invocation timestamp cache with coalesced in-flight lookups.

This module provides the cache the temporal decay stage uses to avoid
repeating metadata lookups when several results share the same
underlying content within one batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


@dataclass
class CacheStats:
    """Cache statistics for monitoring and debugging.

    Attributes:
        hits: Number of requests served by an existing (pending or done) lookup
        misses: Number of requests that started a new lookup
        size: Number of distinct keys in the cache
        resolved: Number of finished lookups that produced a timestamp
        unresolved: Number of finished lookups without a timestamp
        hit_rate: Cache hit rate (0.0 to 1.0)
    """
    hits: int = 0
    misses: int = 0
    size: int = 0
    resolved: int = 0
    unresolved: int = 0
    hit_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary for JSON serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": self.size,
            "resolved": self.resolved,
            "unresolved": self.unresolved,
            "hit_rate": round(self.hit_rate, 4)
        }


class TimestampCache:
    """Start-or-join registry of timestamp lookups for a single batch.

    Keys combine the result source with its path. The first requester for
    a key starts the lookup as an asyncio task; later requesters await the
    same task, so concurrent requests for one key share a single outcome.

    The cache is created fresh for every decay invocation and must not be
    shared across invocations.

    Example:
        >>> cache = TimestampCache()
        >>> key = TimestampCache.make_key("memory", "notes/todo.md")
        >>> timestamp = await cache.get_or_start(key, lambda: lookup("notes/todo.md"))
        >>> print(cache.get_stats())
    """

    def __init__(self):
        self._tasks: Dict[CacheKey, "asyncio.Task[Optional[datetime]]"] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(source: Optional[str], path: str) -> CacheKey:
        """Create the composite cache key for a result.

        Args:
            source: Source tag of the result (may be None)
            path: Identity of the result

        Returns:
            Tuple key for cache lookup; a missing source becomes ""
        """
        return (source or "", path)

    def get_or_start(
        self,
        key: CacheKey,
        factory: Callable[[], Awaitable[Optional[datetime]]]
    ) -> "asyncio.Future[Optional[datetime]]":
        """Return the lookup for ``key``, starting it if not yet requested.

        Must be called from within a running event loop.

        Args:
            key: Cache key (see ``make_key``)
            factory: Zero-argument callable returning the lookup coroutine.
                     Only invoked on a miss.

        Returns:
            Awaitable resolving to the timestamp or None. Each requester
            receives a shielded view so cancelling one awaiting caller does
            not cancel the shared lookup.
        """
        task = self._tasks.get(key)
        if task is None:
            self._misses += 1
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            logger.debug("Timestamp lookup started for key: %s:%s", key[0], key[1][:80])
        else:
            self._hits += 1
            logger.debug("Timestamp lookup joined for key: %s:%s", key[0], key[1][:80])
        return asyncio.shield(task)

    def peek(self, key: CacheKey) -> Optional[datetime]:
        """Return a finished lookup's timestamp without starting anything.

        Returns None when the key is unknown, still pending, failed, or
        resolved to no timestamp.
        """
        task = self._tasks.get(key)
        if task is None or not task.done() or task.cancelled():
            return None
        if task.exception() is not None:
            return None
        return task.result()

    def get_stats(self) -> CacheStats:
        """Get current cache statistics.

        Returns:
            CacheStats object with current statistics
        """
        resolved = 0
        unresolved = 0
        for key in self._tasks:
            task = self._tasks[key]
            if not task.done():
                continue
            if self.peek(key) is None:
                unresolved += 1
            else:
                resolved += 1

        total = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._tasks),
            resolved=resolved,
            unresolved=unresolved,
            hit_rate=self._hits / total if total > 0 else 0.0
        )

    def __len__(self) -> int:
        """Return current number of distinct keys."""
        return len(self._tasks)

    def __contains__(self, key: CacheKey) -> bool:
        """Check if a lookup was started for ``key``."""
        return key in self._tasks
