import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from cache import TimestampCache
from decay import apply_temporal_decay_to_hybrid_results
from decay.temporal_decay import MtimeLookup
from mmr import apply_mmr_to_hybrid_results, compute_result_diversity
from refine_config import REFINE_CONFIG_DEFAULT, RefineConfig
from search_result import get_field

logger = logging.getLogger(__name__)


@dataclass
class RefineReport:
    """Outcome of one refinement run.

    Attributes:
        results: Refined results (same type and count as the input)
        timing: Per-stage latency in milliseconds
        cache_stats: Timestamp cache statistics (empty when decay is disabled)
        diversity: Diversity metrics of the refined results
            (empty unless metrics are enabled)
    """
    results: List[Any]
    timing: Dict[str, float] = field(default_factory=dict)
    cache_stats: Dict[str, Any] = field(default_factory=dict)
    diversity: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the report metadata to a dictionary for JSON serialization."""
        return {
            "count": len(self.results),
            "timing": self.timing,
            "cache_stats": self.cache_stats,
            "diversity": self.diversity
        }


class ResultRefiner:
    """Post-retrieval refinement for hybrid search results.

    Applies two independent stages to a batch of scored results:
    temporal decay (older content loses score, evergreen memory files are
    exempt) followed by MMR diversity reranking (textually redundant
    results move down the list). Both stages are off by default, in which
    case results pass through unchanged.

    Features:
        - Exponential score decay with a configurable half-life
        - Dates taken from dated memory file names before falling back to mtime
        - One metadata lookup per distinct (source, path) in a batch
        - MMR reordering over snippet token overlap (Jaccard)
        - Per-stage timing and optional diversity metrics

    Example:
        >>> refiner = ResultRefiner("/path/to/workspace", REFINE_CONFIG_DIVERSE)
        >>> refined = await refiner.refine(results)
        >>> print(refiner.format_results(refined))
    """

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        refine_config: Optional[RefineConfig] = None,
        mtime_lookup: Optional[MtimeLookup] = None,
    ):
        """Initialize the result refiner.

        Args:
            base_path: Workspace root that relative result paths are resolved
                       against for last-modified-time lookups. Without it only
                       absolute paths and dated memory files can be aged.
            refine_config: Pipeline configuration (uses default if not provided)
            mtime_lookup: Async last-modified-time lookup, mainly for tests

        Raises:
            ValueError: If base_path doesn't exist or is not a directory
        """
        self.base_path = Path(base_path).resolve() if base_path is not None else None
        self.refine_config = refine_config or REFINE_CONFIG_DEFAULT
        self.mtime_lookup = mtime_lookup

        if self.base_path is not None:
            if not self.base_path.exists():
                raise ValueError(f"Base path does not exist: {base_path}")
            if not self.base_path.is_dir():
                raise ValueError(f"Base path is not a directory: {base_path}")

        logger.debug(
            "ResultRefiner initialized (base_path=%s, decay=%s, mmr=%s)",
            self.base_path or "none",
            self.refine_config.decay.enabled,
            self.refine_config.diversity.enabled
        )

    async def refine(
        self,
        results: Sequence[Any],
        now: Optional[Union[datetime, float]] = None
    ) -> List[Any]:
        """Apply temporal decay and then MMR reranking.

        Args:
            results: Hybrid search results (``HybridSearchResult`` or dicts)
            now: Reference time for decay; defaults to the current time

        Returns:
            Refined results; the input sequence is not modified
        """
        report = await self.refine_with_report(results, now=now)
        return report.results

    async def refine_with_report(
        self,
        results: Sequence[Any],
        now: Optional[Union[datetime, float]] = None
    ) -> RefineReport:
        """Same as ``refine`` but also returns timing and metrics."""
        start_time = time.time()
        timing: Dict[str, float] = {}
        config = self.refine_config

        # Phase 1: Temporal decay (optional)
        phase_start = time.time()
        timestamp_cache = TimestampCache()
        decayed = await apply_temporal_decay_to_hybrid_results(
            results,
            decay_config=config.decay,
            base_path=self.base_path,
            now=now,
            mtime_lookup=self.mtime_lookup,
            timestamp_cache=timestamp_cache
        )
        timing["decay_ms"] = round((time.time() - phase_start) * 1000, 2)

        # Phase 2: MMR diversity reranking (optional)
        phase_start = time.time()
        reranked = apply_mmr_to_hybrid_results(decayed, config.diversity)
        timing["mmr_ms"] = round((time.time() - phase_start) * 1000, 2)

        timing["total_ms"] = round((time.time() - start_time) * 1000, 2)

        report = RefineReport(results=reranked, timing=timing)
        if config.decay.enabled:
            report.cache_stats = timestamp_cache.get_stats().to_dict()
        if config.metrics_enabled:
            report.diversity = compute_result_diversity(reranked)

        logger.info(
            "Refined %d results in %.2fms (decay=%s, mmr=%s)",
            len(reranked), timing["total_ms"], config.decay.enabled, config.diversity.enabled
        )
        return report

    def refine_sync(
        self,
        results: Sequence[Any],
        now: Optional[Union[datetime, float]] = None
    ) -> List[Any]:
        """Blocking wrapper around ``refine`` for synchronous callers.

        Raises:
            RuntimeError: If called from a running event loop
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.refine(results, now=now))
        raise RuntimeError(
            "refine_sync() cannot run inside an active event loop; await refine() instead"
        )

    @staticmethod
    def format_results(results: Sequence[Any], preview_window: Optional[int] = 200) -> str:
        """Render refined results as readable text.

        Args:
            results: Refined results
            preview_window: Maximum snippet characters to show (None for all)

        Returns:
            Multi-line string, one block per result
        """
        output_lines = [f"Refined {len(results)} results:", ""]
        for rank, result in enumerate(results, 1):
            path = get_field(result, "path", "")
            start_line = get_field(result, "start_line")
            end_line = get_field(result, "end_line")
            location = path
            if start_line is not None:
                location = f"{path}:{start_line}" + (f"-{end_line}" if end_line else "")

            snippet = (get_field(result, "snippet", "") or "").strip()
            if preview_window is not None and len(snippet) > preview_window:
                snippet = snippet[:preview_window] + "..."

            output_lines.append(
                f"{rank}. {location} [{get_field(result, 'source', '')}] "
                f"score={get_field(result, 'score', 0.0):.4f}"
            )
            if snippet:
                output_lines.append(f"   {snippet}")
            output_lines.append("")
        return "\n".join(output_lines).rstrip() + "\n"
