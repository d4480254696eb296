"""Temporal decay scoring.

This module provides age-based exponential decay of search result scores
so recent content ranks above stale content, while evergreen memory
files keep their original scores.
"""

from .temporal_decay import (
    apply_temporal_decay_to_hybrid_results,
    apply_temporal_decay_to_score,
    calculate_temporal_decay_multiplier,
    extract_timestamp,
    is_evergreen_memory_path,
    parse_memory_date_from_path,
    to_decay_lambda,
)

__all__ = [
    "apply_temporal_decay_to_hybrid_results",
    "apply_temporal_decay_to_score",
    "calculate_temporal_decay_multiplier",
    "extract_timestamp",
    "is_evergreen_memory_path",
    "parse_memory_date_from_path",
    "to_decay_lambda",
]
