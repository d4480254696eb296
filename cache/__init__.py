"""Timestamp caching for the temporal decay stage.

Provides a per-invocation, start-or-join cache so results that share the
same underlying content trigger a single metadata lookup.
"""

from cache.cache import TimestampCache, CacheStats

__all__ = ["TimestampCache", "CacheStats"]
