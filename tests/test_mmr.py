"""Tests for Maximal Marginal Relevance (MMR) diversity reranking."""

import pytest

from mmr import (
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
from refine_config import DiversityConfig
from search_result import HybridSearchResult


def make_items():
    return [
        MMRItem("A", 0.90, "cats and dogs"),
        MMRItem("B", 0.85, "cats and dogs too"),
        MMRItem("C", 0.50, "quantum physics"),
    ]


class TestTokenize:
    """Tests for tokenization."""

    def test_lowercases_and_splits(self):
        """Tokens are lowercase alphanumeric runs."""
        assert tokenize("Hello, World! foo_bar 42") == {"hello", "world", "foo_bar", "42"}

    def test_duplicates_collapsed(self):
        """Repeated tokens appear once."""
        assert tokenize("the the THE") == {"the"}

    def test_empty_text(self):
        """Empty or punctuation-only text has no tokens."""
        assert tokenize("") == set()
        assert tokenize("!!! ---") == set()

    def test_non_ascii_letters_split_tokens(self):
        """Characters outside [a-z0-9_] act as separators."""
        assert tokenize("café-au-lait") == {"caf", "au", "lait"}


class TestJaccardSimilarity:
    """Tests for Jaccard similarity calculation."""

    def test_identical_sets(self):
        """Identical sets have similarity 1."""
        assert jaccard_similarity({"a", "b"}, {"a", "b"}) == 1.0

    def test_disjoint_sets(self):
        """Disjoint non-empty sets have similarity 0."""
        assert jaccard_similarity({"a"}, {"b"}) == 0.0

    def test_both_empty(self):
        """Two empty sets are treated as identical."""
        assert jaccard_similarity(set(), set()) == 1.0

    def test_one_empty(self):
        """An empty set shares nothing with a non-empty set."""
        assert jaccard_similarity(set(), {"a"}) == 0.0
        assert jaccard_similarity({"a"}, set()) == 0.0

    def test_partial_overlap(self):
        """Similarity is |intersection| / |union|."""
        assert jaccard_similarity({"a", "b", "c"}, {"b", "c", "d"}) == pytest.approx(2 / 4)

    def test_symmetric(self):
        """Similarity does not depend on argument order."""
        a = {"cats", "and", "dogs"}
        b = {"cats", "and", "dogs", "too"}
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)

    def test_text_similarity(self):
        """text_similarity tokenizes before comparing."""
        assert text_similarity("Cats and dogs", "cats AND dogs") == 1.0
        assert text_similarity("cats and dogs", "cats and dogs too") == pytest.approx(0.75)
        assert text_similarity("cats", "quantum physics") == 0.0


class TestComputeMMRScore:
    """Tests for the MMR score formula."""

    def test_formula(self):
        """MMR = lambda * relevance - (1 - lambda) * similarity."""
        assert compute_mmr_score(1.0, 0.5, 0.7) == pytest.approx(0.7 - 0.15)

    def test_pure_relevance(self):
        """lambda=1 ignores similarity."""
        assert compute_mmr_score(0.4, 1.0, 1.0) == pytest.approx(0.4)

    def test_pure_diversity(self):
        """lambda=0 ignores relevance."""
        assert compute_mmr_score(0.9, 0.25, 0.0) == pytest.approx(-0.25)


class TestMMRReranker:
    """Tests for MMRReranker class."""

    def test_lambda_is_clamped(self):
        """Out-of-range lambda values are clamped instead of rejected."""
        assert MMRReranker(lambda_param=-0.5).lambda_param == 0.0
        assert MMRReranker(lambda_param=1.5).lambda_param == 1.0
        assert MMRReranker(lambda_param=0.3).lambda_param == 0.3

    def test_invalid_lambda_uses_default(self):
        """Non-numeric or NaN lambda falls back to the default."""
        assert MMRReranker(lambda_param="abc").lambda_param == 0.7
        assert MMRReranker(lambda_param=float("nan")).lambda_param == 0.7

    def test_disabled_returns_copy(self):
        """Disabled reranker returns the input order in a new list."""
        items = make_items()[::-1]
        reranked = MMRReranker(lambda_param=0.5, enabled=False).rerank(items)
        assert reranked == items
        assert reranked is not items

    def test_empty_and_single(self):
        """Batches of size 0 or 1 come back unchanged."""
        reranker = MMRReranker(lambda_param=0.5)
        assert reranker.rerank([]) == []
        single = [MMRItem("only", 0.1, "text")]
        assert reranker.rerank(single) == single

    def test_pure_relevance_ranking(self):
        """lambda=1 sorts by descending score regardless of overlap."""
        items = [
            MMRItem("low", 0.1, "same words here"),
            MMRItem("high", 0.9, "same words here"),
            MMRItem("mid", 0.5, "same words here"),
        ]
        reranked = MMRReranker(lambda_param=1.0).rerank(items)
        assert [item.id for item in reranked] == ["high", "mid", "low"]

    def test_balanced_lambda_keeps_relevant_overlap(self):
        """With lambda=0.5 the 0.75 overlap does not outweigh B's relevance lead."""
        reranked = MMRReranker(lambda_param=0.5).rerank(make_items())
        assert [item.id for item in reranked] == ["A", "B", "C"]

    def test_diversity_defers_redundant_result(self):
        """A lower lambda pushes the near-duplicate B behind the dissimilar C."""
        reranked = MMRReranker(lambda_param=0.3).rerank(make_items())
        assert [item.id for item in reranked] == ["A", "C", "B"]

    def test_pure_diversity_ranking(self):
        """lambda=0 picks the most relevant first, then the most dissimilar."""
        items = [
            MMRItem("d1", 0.9, "alpha beta gamma"),
            MMRItem("d2", 0.8, "alpha beta gamma delta"),
            MMRItem("d3", 0.2, "omega"),
        ]
        reranked = MMRReranker(lambda_param=0.0).rerank(items)
        assert [item.id for item in reranked] == ["d1", "d3", "d2"]

    def test_tie_break_prefers_higher_original_score(self):
        """Equal MMR scores are resolved by the original score."""
        items = [
            MMRItem("first", 0.5, "one"),
            MMRItem("second", 0.9, "two"),
            MMRItem("third", 0.1, "three"),
        ]
        # lambda=0 makes every first-round MMR score 0
        reranked = MMRReranker(lambda_param=0.0).rerank(items)
        assert reranked[0].id == "second"

    def test_equal_scores_normalize_to_one(self):
        """All-equal scores are all treated as fully relevant."""
        items = [
            MMRItem("x", 0.4, "red apple"),
            MMRItem("y", 0.4, "red apple"),
            MMRItem("z", 0.4, "blue ocean"),
        ]
        reranked = MMRReranker(lambda_param=0.5).rerank(items)
        # x wins by input order; z beats the duplicate y afterwards
        assert [item.id for item in reranked] == ["x", "z", "y"]

    def test_negative_scores(self):
        """Scores of any sign are normalized before scoring."""
        items = [
            MMRItem("a", -1.0, "north"),
            MMRItem("b", -3.0, "south"),
            MMRItem("c", -2.0, "east"),
        ]
        reranked = MMRReranker(lambda_param=0.9).rerank(items)
        assert [item.id for item in reranked] == ["a", "c", "b"]

    def test_output_is_permutation(self):
        """Every input item appears exactly once for any lambda."""
        items = [
            MMRItem(f"doc{i}", (i * 37 % 11) / 10.0, f"word{i % 3} shared text {i % 2}")
            for i in range(25)
        ]
        for lambda_param in (0.0, 0.25, 0.5, 0.75, 1.0):
            reranked = MMRReranker(lambda_param=lambda_param).rerank(items)
            assert len(reranked) == len(items)
            assert sorted(item.id for item in reranked) == sorted(item.id for item in items)

    def test_input_not_mutated(self):
        """The input list keeps its order."""
        items = make_items()[::-1]
        snapshot = list(items)
        MMRReranker(lambda_param=0.3).rerank(items)
        assert items == snapshot

    def test_empty_content_is_dissimilar(self):
        """Empty content has zero similarity to non-empty content."""
        items = [
            MMRItem("full", 1.0, "some text"),
            MMRItem("empty", 0.5, ""),
            MMRItem("dup", 0.9, "some text"),
        ]
        reranked = MMRReranker(lambda_param=0.5).rerank(items)
        assert [item.id for item in reranked] == ["full", "empty", "dup"]

    def test_unselectable_candidates_raise(self, caplog):
        """NaN scores leave no pickable candidate and fail loudly."""
        items = [
            MMRItem("x", float("nan"), "alpha"),
            MMRItem("y", float("nan"), "beta"),
        ]
        with caplog.at_level("ERROR", logger="mmr.mmr"):
            with pytest.raises(RuntimeError, match="failed to choose a candidate"):
                MMRReranker(lambda_param=0.5).rerank(items)
        assert "no candidate with 2 items remaining" in caplog.text


class TestMMRRerankFunction:
    """Tests for the functional mmr_rerank entry point."""

    def test_default_config_is_disabled(self):
        """Without a config MMR is off and order is preserved."""
        items = make_items()[::-1]
        assert mmr_rerank(items) == items

    def test_config_applied(self):
        """Enabled config reranks with its lambda."""
        reranked = mmr_rerank(make_items(), DiversityConfig(enabled=True, lambda_param=0.3))
        assert [item.id for item in reranked] == ["A", "C", "B"]


class TestApplyMMRToHybridResults:
    """Tests for the hybrid search result adapter."""

    def test_maps_back_to_original_objects(self):
        """Reranked output holds the original result objects."""
        results = [
            HybridSearchResult(path="a.md", score=0.9, snippet="cats and dogs", start_line=1),
            HybridSearchResult(path="b.md", score=0.85, snippet="cats and dogs too", start_line=3),
            HybridSearchResult(path="c.md", score=0.5, snippet="quantum physics", start_line=5),
        ]
        reranked = apply_mmr_to_hybrid_results(results, DiversityConfig(enabled=True, lambda_param=0.3))
        assert [r.path for r in reranked] == ["a.md", "c.md", "b.md"]
        assert all(any(r is original for original in results) for r in reranked)

    def test_duplicate_identity_kept_distinct(self):
        """Results sharing path, line and snippet are both kept."""
        duplicate = {"path": "x.md", "start_line": 1, "score": 0.8, "snippet": "same"}
        results = [
            dict(duplicate),
            dict(duplicate),
            {"path": "y.md", "start_line": 1, "score": 0.7, "snippet": "other"},
        ]
        reranked = apply_mmr_to_hybrid_results(results, DiversityConfig(enabled=True, lambda_param=0.5))
        assert len(reranked) == 3
        assert [r["path"] for r in reranked].count("x.md") == 2
        assert reranked[0] is results[0]

    def test_empty_results(self):
        """Empty input returns an empty list."""
        assert apply_mmr_to_hybrid_results([], DiversityConfig(enabled=True)) == []

    def test_disabled_preserves_order(self):
        """Disabled config keeps the retrieval order."""
        results = [
            {"path": "a", "start_line": 1, "score": 0.1, "snippet": "x"},
            {"path": "b", "start_line": 1, "score": 0.9, "snippet": "y"},
        ]
        assert apply_mmr_to_hybrid_results(results) == results


class TestComputeResultDiversity:
    """Tests for diversity metrics computation."""

    def test_empty_results(self):
        """Empty results should return zero metrics."""
        metrics = compute_result_diversity([])
        assert metrics["unique_paths"] == 0
        assert metrics["path_diversity_ratio"] == 0.0

    def test_single_result(self):
        """Single result should have perfect diversity ratio."""
        metrics = compute_result_diversity([{"path": "a.md", "snippet": "x"}])
        assert metrics["unique_paths"] == 1
        assert metrics["path_diversity_ratio"] == 1.0

    def test_identical_snippets(self):
        """Identical snippets should have maximal similarity."""
        results = [
            {"path": "a.md", "snippet": "same text"},
            {"path": "b.md", "snippet": "same text"},
        ]
        metrics = compute_result_diversity(results)
        assert metrics["avg_pairwise_similarity"] == pytest.approx(1.0)
        assert metrics["max_pairwise_similarity"] == pytest.approx(1.0)

    def test_path_diversity_calculation(self):
        """Path diversity should count unique paths."""
        results = [
            HybridSearchResult(path="a.md", score=1.0, snippet="one"),
            HybridSearchResult(path="a.md", score=0.9, snippet="two"),
            HybridSearchResult(path="b.md", score=0.8, snippet="three"),
        ]
        metrics = compute_result_diversity(results)
        assert metrics["unique_paths"] == 2
        assert metrics["path_diversity_ratio"] == pytest.approx(2 / 3, abs=0.01)
        assert metrics["max_pairwise_similarity"] == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
