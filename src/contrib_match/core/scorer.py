"""Hybrid score blending and ranking."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..models.entity import SearchableEntity
from ..models.result import SimilarityResult
from ..utils.validators import validate_weights

logger = logging.getLogger(__name__)

MAX_DISTANCE = 2.0


@dataclass(frozen=True)
class ScoringWeights:
    """Non-negative blending weights; they need not sum to 1."""
    text_weight: float
    vector_weight: float

    def __post_init__(self) -> None:
        validate_weights(self.text_weight, self.vector_weight)


def normalize_distance(distance: float) -> float:
    """Map a cosine distance in [0, 2] onto [0, 1]."""
    return min(distance, MAX_DISTANCE) / MAX_DISTANCE


class HybridScorer:
    """
    Blends vector distance and lexical similarity into one ranking.

    ``combined = vector_weight * (1 - normalize(distance))
    + text_weight * similarity``; a missing component contributes 0.
    Results are ordered by descending combined score, ties by ascending
    entity id, so identical inputs always paginate identically.
    """

    def combine(
        self,
        vector_distance: Optional[float],
        text_similarity: Optional[float],
        weights: ScoringWeights
    ) -> float:
        """Combined score of one entity."""
        score = 0.0
        if vector_distance is not None:
            score += weights.vector_weight * (1.0 - normalize_distance(vector_distance))
        if text_similarity is not None:
            score += weights.text_weight * text_similarity
        return score

    def rank(
        self,
        vector_hits: Iterable[Tuple[str, float]],
        text_hits: Iterable[Tuple[str, float]],
        weights: ScoringWeights,
        min_score: float = 0.0,
        limit: Optional[int] = None,
        resolve: Optional[Callable[[str], Optional[SearchableEntity]]] = None
    ) -> List[SimilarityResult]:
        """
        Merge per-source hits by entity id and rank them.

        Args:
            vector_hits: (entity_id, cosine distance) pairs
            text_hits: (entity_id, similarity) pairs
            weights: Blending weights
            min_score: Entities scoring below this are dropped
            limit: Maximum number of results, None for all
            resolve: Optional lookup attaching the entity to each result

        Returns:
            Ranked results, best first
        """
        distances: Dict[str, float] = dict(vector_hits)
        similarities: Dict[str, float] = dict(text_hits)

        scored = []
        for entity_id in set(distances) | set(similarities):
            distance = distances.get(entity_id)
            similarity = similarities.get(entity_id)
            combined = self.combine(distance, similarity, weights)
            if combined < min_score:
                continue
            scored.append((combined, entity_id, distance, similarity))

        scored.sort(key=lambda item: (-item[0], item[1]))
        if limit is not None:
            scored = scored[:limit]

        results = []
        for rank, (combined, entity_id, distance, similarity) in enumerate(scored, 1):
            results.append(SimilarityResult(
                entity_id=entity_id,
                vector_distance=distance,
                text_similarity=similarity,
                combined_score=combined,
                rank=rank,
                entity=resolve(entity_id) if resolve else None,
            ))

        logger.debug(
            f"Ranked {len(results)} of {len(distances)} vector and "
            f"{len(similarities)} lexical hits"
        )
        return results
