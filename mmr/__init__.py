"""Maximal Marginal Relevance (MMR) diversity reranking.

This module provides MMR-based diversity reranking to push textually
redundant results down the list while maintaining query relevance.
"""

from .mmr import (
    MMRItem,
    MMRReranker,
    apply_mmr_to_hybrid_results,
    compute_mmr_score,
    compute_result_diversity,
    jaccard_similarity,
    mmr_rerank,
    text_similarity,
    tokenize,
)

__all__ = [
    "MMRItem",
    "MMRReranker",
    "apply_mmr_to_hybrid_results",
    "compute_mmr_score",
    "compute_result_diversity",
    "jaccard_similarity",
    "mmr_rerank",
    "text_similarity",
    "tokenize",
]
