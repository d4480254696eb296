"""Maximal Marginal Relevance (MMR) implementation for diversity-aware reranking.

Reference:
    "The Use of MMR, Diversity-Based Reranking for Reordering Documents
     and Producing Summaries" by Carbonell and Goldstein (1998)
    https://www.cs.cmu.edu/~jgc/publication/The_Use_of_MMR_Diversity_Based_Latent_Semantic_Indexing_for_Information_Retrieval.pdf

MMR Formula:
    MMR = λ * Rel(doc) - (1-λ) * max(Sim(doc, selected_docs))

Where:
    - λ (lambda) is the diversity trade-off parameter (0-1)
    - Rel(doc) is the relevance score, min-max normalized across the batch
    - Sim(doc, selected_docs) is the Jaccard similarity between token sets

The algorithm greedily selects documents that balance:
    1. High relevance to the query
    2. Low textual overlap with already selected documents (diversity)
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set

import numpy as np

from refine_config import MMR_LAMBDA_DEFAULT, DiversityConfig
from search_result import get_field

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[a-z0-9_]+")


@dataclass(frozen=True)
class MMRItem:
    """Minimal item shape the reranker works on.

    Attributes:
        id: Identity, unique within one rerank call
        score: Relevance score (any scale)
        content: Text used for similarity
    """
    id: str
    score: float
    content: str


def tokenize(text: str) -> Set[str]:
    """Tokenize text into a set of lowercase alphanumeric tokens.

    Example:
        >>> sorted(tokenize("Hello, hello WORLD_2!"))
        ['hello', 'world_2']
    """
    return set(TOKEN_PATTERN.findall(text.lower()))


def jaccard_similarity(set_a: Set[str], set_b: Set[str]) -> float:
    """Calculate Jaccard similarity between two token sets.

    Two empty sets are identical (1.0); an empty and a non-empty set
    share nothing (0.0).

    Returns:
        Similarity in range [0, 1]
    """
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0

    smaller, larger = (set_a, set_b) if len(set_a) <= len(set_b) else (set_b, set_a)
    intersection = sum(1 for token in smaller if token in larger)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union if union else 0.0


def text_similarity(content_a: str, content_b: str) -> float:
    """Jaccard similarity between the token sets of two strings."""
    return jaccard_similarity(tokenize(content_a), tokenize(content_b))


def compute_mmr_score(relevance: float, max_similarity: float, lambda_param: float) -> float:
    """MMR score: λ * relevance - (1-λ) * max_similarity."""
    return lambda_param * relevance - (1 - lambda_param) * max_similarity


def clamp_lambda(lambda_param: Any) -> float:
    """Clamp lambda into [0, 1]; unusable values fall back to the default."""
    try:
        value = float(lambda_param)
    except (TypeError, ValueError):
        return MMR_LAMBDA_DEFAULT
    if math.isnan(value):
        return MMR_LAMBDA_DEFAULT
    return max(0.0, min(1.0, value))


def normalize_scores(scores: Sequence[float]) -> List[float]:
    """Min-max normalize scores to [0, 1].

    If all scores are equal every normalized score is 1.0.
    """
    if not scores:
        return []
    values = np.asarray(scores, dtype=np.float64)
    min_score = values.min()
    score_range = values.max() - min_score
    if score_range == 0:
        return [1.0] * len(scores)
    return ((values - min_score) / score_range).tolist()


class MMRReranker:
    """Maximal Marginal Relevance reranker for diversity-aware result ordering.

    MMR addresses result redundancy by explicitly trading off relevance
    against textual overlap with results that already made the list.
    Unlike a top-k selector, it returns a full reordering: every input
    item appears exactly once in the output.

    Example:
        >>> reranker = MMRReranker(lambda_param=0.5)
        >>> items = [
        ...     MMRItem("A", 0.90, "cats and dogs"),
        ...     MMRItem("B", 0.85, "cats and dogs too"),
        ...     MMRItem("C", 0.50, "quantum physics"),
        ... ]
        >>> [item.id for item in reranker.rerank(items)]
        ['A', 'B', 'C']
        >>> [item.id for item in MMRReranker(lambda_param=0.3).rerank(items)]
        ['A', 'C', 'B']
    """

    def __init__(
        self,
        lambda_param: float = MMR_LAMBDA_DEFAULT,
        enabled: bool = True
    ):
        """Initialize the MMR reranker.

        Args:
            lambda_param: Trade-off parameter between relevance and diversity.
                         - 1.0 = Pure relevance (no diversity consideration)
                         - 0.7 = Relevance-leaning (default)
                         - 0.0 = Pure diversity (after the first pick)
                         Out-of-range values are clamped to [0, 1].
            enabled: If False, ``rerank`` returns the input order unchanged
        """
        self.lambda_param = clamp_lambda(lambda_param)
        self.enabled = enabled

        logger.debug(
            "Initialized MMRReranker (lambda=%.2f, enabled=%s)",
            self.lambda_param, enabled
        )

    @classmethod
    def from_config(cls, config: Optional[DiversityConfig] = None) -> "MMRReranker":
        config = config or DiversityConfig()
        return cls(lambda_param=config.lambda_param, enabled=config.enabled)

    def rerank(self, items: Sequence[MMRItem]) -> List[MMRItem]:
        """Rerank items using Maximal Marginal Relevance.

        Args:
            items: Items to rerank; ids must be unique within the call

        Returns:
            New list holding every input item once, in MMR selection order.
            Equal MMR scores are broken by the higher original score, then
            by input order.

        Raises:
            RuntimeError: If the selection loop fails to pick a candidate
                while candidates remain (a logic error, never a data error)
        """
        if not self.enabled or len(items) <= 1:
            return list(items)

        if self.lambda_param == 1.0:
            return sorted(items, key=lambda item: item.score, reverse=True)

        tokens = [tokenize(item.content) for item in items]
        relevance = normalize_scores([item.score for item in items])

        # Insertion-ordered so iteration follows input order and removal is O(1)
        remaining: Dict[int, None] = dict.fromkeys(range(len(items)))
        max_similarity = [0.0] * len(items)
        selected: List[int] = []

        while remaining:
            best_idx = -1
            best_mmr_score = float("-inf")

            for idx in remaining:
                mmr_score = compute_mmr_score(
                    relevance[idx], max_similarity[idx], self.lambda_param
                )
                if mmr_score > best_mmr_score or (
                    mmr_score == best_mmr_score
                    and best_idx >= 0
                    and items[idx].score > items[best_idx].score
                ):
                    best_mmr_score = mmr_score
                    best_idx = idx

            if best_idx == -1:
                logger.error(
                    "MMR selection found no candidate with %d items remaining",
                    len(remaining)
                )
                raise RuntimeError("MMR selection failed to choose a candidate")

            del remaining[best_idx]
            selected.append(best_idx)

            # Only the newest pick can raise a candidate's max similarity
            for idx in remaining:
                sim = jaccard_similarity(tokens[idx], tokens[best_idx])
                if sim > max_similarity[idx]:
                    max_similarity[idx] = sim

            logger.debug(
                "MMR selected %s (relevance=%.3f, mmr=%.3f)",
                items[best_idx].id, relevance[best_idx], best_mmr_score
            )

        return [items[idx] for idx in selected]


def mmr_rerank(
    items: Sequence[MMRItem],
    config: Optional[DiversityConfig] = None
) -> List[MMRItem]:
    """Rerank ``items`` with the settings in ``config``.

    Uses the defaults (disabled, lambda 0.7) when no config is given.
    """
    return MMRReranker.from_config(config).rerank(items)


def apply_mmr_to_hybrid_results(
    results: Sequence[Any],
    config: Optional[DiversityConfig] = None
) -> List[Any]:
    """Apply MMR reranking to hybrid search results.

    Each result gets a per-call id built from its path, start line and
    position, so duplicate path/snippet pairs stay distinct. Reranked ids
    are mapped back to the original result objects.

    Args:
        results: Results with ``path``, ``start_line``, ``score`` and
                 ``snippet`` fields (dataclasses or dicts)
        config: Diversity settings

    Returns:
        Reordered list of the original result objects
    """
    if not results:
        return list(results)

    config = config or DiversityConfig()
    item_by_id: Dict[str, Any] = {}
    mmr_items: List[MMRItem] = []
    for index, result in enumerate(results):
        item_id = f"{get_field(result, 'path', '')}:{get_field(result, 'start_line', '')}:{index}"
        item_by_id[item_id] = result
        mmr_items.append(MMRItem(
            id=item_id,
            score=get_field(result, "score", 0.0),
            content=get_field(result, "snippet", "") or ""
        ))

    reranked = mmr_rerank(mmr_items, config)

    if config.enabled and len(results) > 1:
        logger.info(
            "MMR reranking complete: reordered %d results (lambda=%.2f)",
            len(reranked), clamp_lambda(config.lambda_param)
        )

    return [item_by_id[item.id] for item in reranked]


def compute_result_diversity(results: Sequence[Any]) -> Dict:
    """Compute diversity metrics for a set of results.

    Args:
        results: Results with ``snippet`` and ``path`` fields

    Returns:
        Dictionary with diversity metrics:
            - avg_pairwise_similarity: Average Jaccard similarity between all pairs
            - max_pairwise_similarity: Maximum similarity between any pair
            - unique_paths: Number of unique paths represented
            - path_diversity_ratio: Ratio of unique paths to total results
    """
    paths = {get_field(r, "path", "") for r in results} - {""}

    if len(results) < 2:
        return {
            "avg_pairwise_similarity": 0.0,
            "max_pairwise_similarity": 0.0,
            "unique_paths": len(paths),
            "path_diversity_ratio": 1.0 if results else 0.0
        }

    token_sets = [tokenize(get_field(r, "snippet", "") or "") for r in results]
    similarities = np.array([
        jaccard_similarity(token_sets[i], token_sets[j])
        for i in range(len(token_sets))
        for j in range(i + 1, len(token_sets))
    ])

    return {
        "avg_pairwise_similarity": round(float(similarities.mean()), 4),
        "max_pairwise_similarity": round(float(similarities.max()), 4),
        "unique_paths": len(paths),
        "path_diversity_ratio": round(len(paths) / len(results), 3)
    }
