"""Test hybrid score blending."""

import pytest

from contrib_match.core.exceptions import InvalidArgumentError
from contrib_match.core.scorer import HybridScorer, ScoringWeights, normalize_distance


class TestHybridScorer:
    """Test HybridScorer functionality."""

    @pytest.fixture
    def scorer(self):
        return HybridScorer()

    def test_normalize_distance(self):
        assert normalize_distance(0.0) == 0.0
        assert normalize_distance(1.0) == 0.5
        assert normalize_distance(2.0) == 1.0

    def test_combine(self, scorer):
        weights = ScoringWeights(text_weight=0.3, vector_weight=0.7)

        assert scorer.combine(0.5, 0.6, weights) == pytest.approx(0.7 * 0.75 + 0.3 * 0.6)
        assert scorer.combine(None, 0.6, weights) == pytest.approx(0.18)
        assert scorer.combine(0.0, None, weights) == pytest.approx(0.7)

    def test_weights_need_not_sum_to_one(self, scorer):
        weights = ScoringWeights(text_weight=2.0, vector_weight=2.0)

        assert scorer.combine(0.0, 1.0, weights) == pytest.approx(4.0)

    def test_invalid_weights(self):
        with pytest.raises(InvalidArgumentError):
            ScoringWeights(text_weight=0.0, vector_weight=0.0)
        with pytest.raises(InvalidArgumentError):
            ScoringWeights(text_weight=-1.0, vector_weight=1.0)

    def test_rank_merges_sources(self, scorer):
        results = scorer.rank(
            vector_hits=[("a", 0.2), ("b", 1.0)],
            text_hits=[("b", 0.9), ("c", 0.4)],
            weights=ScoringWeights(text_weight=0.5, vector_weight=0.5),
        )

        by_id = {result.entity_id: result for result in results}
        assert set(by_id) == {"a", "b", "c"}
        assert by_id["a"].text_similarity is None
        assert by_id["c"].vector_distance is None
        assert by_id["b"].combined_score == pytest.approx(0.5 * 0.5 + 0.5 * 0.9)
        assert [result.rank for result in results] == [1, 2, 3]

    def test_ties_broken_by_id(self, scorer):
        results = scorer.rank(
            vector_hits=[("b", 0.0), ("a", 0.0)],
            text_hits=[],
            weights=ScoringWeights(text_weight=0.0, vector_weight=0.7),
        )

        assert [result.entity_id for result in results] == ["a", "b"]
        assert all(result.combined_score == pytest.approx(0.7) for result in results)

    def test_min_score_and_limit(self, scorer):
        results = scorer.rank(
            vector_hits=[],
            text_hits=[("a", 0.9), ("b", 0.5), ("c", 0.05), ("d", 0.7)],
            weights=ScoringWeights(text_weight=1.0, vector_weight=0.0),
            min_score=0.1,
            limit=2,
        )

        assert [result.entity_id for result in results] == ["a", "d"]

    def test_min_score_boundary_is_inclusive(self, scorer):
        results = scorer.rank(
            vector_hits=[],
            text_hits=[("a", 0.5)],
            weights=ScoringWeights(text_weight=1.0, vector_weight=0.0),
            min_score=0.5,
        )

        assert [result.entity_id for result in results] == ["a"]

    def test_resolve_attaches_entities(self, scorer, sample_repositories):
        repos = {repo.id: repo for repo in sample_repositories}

        results = scorer.rank(
            vector_hits=[("repo_ml", 0.1)],
            text_hits=[],
            weights=ScoringWeights(text_weight=0.0, vector_weight=1.0),
            resolve=repos.get,
        )

        assert results[0].entity is repos["repo_ml"]

    def test_empty_input(self, scorer):
        assert scorer.rank([], [], ScoringWeights(0.3, 0.7)) == []
