"""Temporal decay scoring for hybrid search results.

Decay Formula:
    multiplier = exp(-λ * age_days),  λ = ln(2) / half_life_days

So a result exactly one half-life old keeps 50% of its score. Age is
clamped to zero, which keeps the multiplier in (0, 1].

Timestamp resolution, in priority order:
    1. A dated memory file (``memory/YYYY-MM-DD.md``) uses that date
       (UTC midnight).
    2. Evergreen memory files (``MEMORY.md`` or undated files under
       ``memory/``) have no timestamp and never decay.
    3. Otherwise the file's last-modified time is used. Lookup failures
       leave the result undecayed.
"""

import asyncio
import logging
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from cache import TimestampCache
from refine_config import DecayConfig
from search_result import get_field, with_score
from utils import PathResolver, get_modified_time, normalize_identity

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

# Source tag of the memory corpus partition
MEMORY_SOURCE = "memory"

# Root-level knowledge files that never decay
EVERGREEN_ROOT_FILES = frozenset({"MEMORY.md", "memory.md"})

DATED_MEMORY_PATH_RE = re.compile(r"(?:^|/)memory/(\d{4})-(\d{2})-(\d{2})\.[A-Za-z0-9]+$")

MtimeLookup = Callable[[Path], Awaitable[Optional[float]]]


def to_decay_lambda(half_life_days: Any) -> float:
    """Convert a half-life in days to an exponential decay rate.

    Returns 0 (no decay) when the half-life is not a finite positive number.
    """
    try:
        half_life = float(half_life_days)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(half_life) or half_life <= 0:
        return 0.0
    return math.log(2) / half_life


def calculate_temporal_decay_multiplier(age_in_days: Any, half_life_days: Any) -> float:
    """Calculate the score multiplier for content of a given age.

    Args:
        age_in_days: Content age in days; negative ages count as zero
        half_life_days: Age at which the multiplier reaches 0.5

    Returns:
        Multiplier in (0, 1]. Returns 1.0 when decay is disabled or the
        age cannot be interpreted.
    """
    decay_lambda = to_decay_lambda(half_life_days)
    try:
        age = max(0.0, float(age_in_days))
    except (TypeError, ValueError):
        return 1.0
    if decay_lambda <= 0 or not math.isfinite(age):
        return 1.0
    return math.exp(-decay_lambda * age)


def apply_temporal_decay_to_score(score: float, age_in_days: Any, half_life_days: Any) -> float:
    """Multiply a score by the decay multiplier for ``age_in_days``."""
    return score * calculate_temporal_decay_multiplier(age_in_days, half_life_days)


def parse_memory_date_from_path(path: str) -> Optional[datetime]:
    """Parse the date embedded in a dated memory file path.

    Example:
        >>> parse_memory_date_from_path("notes/memory/2024-01-15.md")
        datetime.datetime(2024, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)
        >>> parse_memory_date_from_path("memory/2024-02-30.md") is None
        True

    Returns:
        UTC midnight of the embedded date, or None when the path is not a
        dated memory file or the date is not a valid calendar date
    """
    match = DATED_MEMORY_PATH_RE.search(normalize_identity(path))
    if not match:
        return None

    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        logger.debug("Invalid calendar date in memory path: %s", path)
        return None


def is_evergreen_memory_path(path: str) -> bool:
    """Check whether a memory path holds evergreen (non-decaying) knowledge."""
    normalized = normalize_identity(path)
    if normalized in EVERGREEN_ROOT_FILES:
        return True
    if not normalized.startswith("memory/"):
        return False
    return DATED_MEMORY_PATH_RE.search(normalized) is None


async def extract_timestamp(
    path: str,
    source: Optional[str] = None,
    path_resolver: Optional[PathResolver] = None,
    mtime_lookup: Optional[MtimeLookup] = None
) -> Optional[datetime]:
    """Resolve the timestamp used to age a result.

    Args:
        path: Result identity
        source: Result source tag
        path_resolver: Resolver for relative identities
        mtime_lookup: Async last-modified-time lookup (defaults to a stat
                      call in a worker thread)

    Returns:
        Aware UTC datetime, or None when the result should not decay
    """
    from_path = parse_memory_date_from_path(path)
    if from_path is not None:
        return from_path

    if source == MEMORY_SOURCE and is_evergreen_memory_path(path):
        return None

    resolver = path_resolver or PathResolver(None)
    absolute_path = resolver.resolve(path)
    if absolute_path is None:
        return None

    lookup = mtime_lookup or get_modified_time
    try:
        mtime = await lookup(absolute_path)
    except Exception as e:
        logger.debug("Modified-time lookup failed for %s: %s", absolute_path, e)
        return None

    if mtime is None:
        return None
    try:
        mtime = float(mtime)
        if not math.isfinite(mtime):
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug("Unusable modified time %r for %s", mtime, absolute_path)
        return None


def age_in_days(timestamp: datetime, now: datetime) -> float:
    """Age of ``timestamp`` relative to ``now`` in days, clamped to zero."""
    return max(0.0, (now - timestamp).total_seconds()) / SECONDS_PER_DAY


def _as_utc(now: Optional[Union[datetime, float]]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if isinstance(now, datetime):
        return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(float(now), tz=timezone.utc)


async def apply_temporal_decay_to_hybrid_results(
    results: Sequence[Any],
    decay_config: Optional[DecayConfig] = None,
    base_path: Optional[Union[str, Path]] = None,
    now: Optional[Union[datetime, float]] = None,
    mtime_lookup: Optional[MtimeLookup] = None,
    timestamp_cache: Optional[TimestampCache] = None
) -> List[Any]:
    """Apply temporal decay to a batch of hybrid search results.

    Args:
        results: Results with ``path``, ``score`` and ``source`` fields
        decay_config: Decay settings (defaults: disabled, 30 day half-life)
        base_path: Directory relative paths are resolved against
        now: Reference time for every age in the batch (datetime or POSIX
             seconds); captured once from the clock when omitted
        mtime_lookup: Async last-modified-time lookup
        timestamp_cache: Cache for this batch; a fresh one is created when
                         omitted. Pass one only to inspect its stats.

    Returns:
        New list in input order. Results without a timestamp are returned
        as-is; others are copies with the decayed score.
    """
    config = decay_config or DecayConfig()
    if not config.enabled:
        return list(results)

    reference_time = _as_utc(now)
    resolver = PathResolver(Path(base_path)) if base_path is not None else PathResolver(None)
    cache = timestamp_cache if timestamp_cache is not None else TimestampCache()

    async def decay_entry(entry: Any) -> Any:
        path = get_field(entry, "path", "")
        source = get_field(entry, "source")
        key = TimestampCache.make_key(source, path)
        try:
            timestamp = await cache.get_or_start(
                key,
                lambda: extract_timestamp(path, source, resolver, mtime_lookup)
            )
        except Exception as e:
            logger.warning("Timestamp resolution failed for %s: %s", path, e)
            return entry

        if timestamp is None:
            return entry

        age = age_in_days(timestamp, reference_time)
        decayed_score = apply_temporal_decay_to_score(
            get_field(entry, "score", 0.0), age, config.half_life_days
        )
        logger.debug("Decayed %s (age=%.2f days, score=%.4f)", path, age, decayed_score)
        try:
            return with_score(entry, decayed_score)
        except (AttributeError, TypeError) as e:
            logger.warning("Cannot rewrite score of %s (%s): %s", path, type(entry).__name__, e)
            return entry

    decayed = await asyncio.gather(*(decay_entry(entry) for entry in results))

    stats = cache.get_stats()
    logger.info(
        "Temporal decay applied to %d results (half_life=%s days, lookups=%d, coalesced=%d)",
        len(decayed), config.half_life_days, stats.misses, stats.hits
    )
    return list(decayed)
