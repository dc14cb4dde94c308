"""Similarity result data model."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .entity import SearchableEntity


@dataclass(frozen=True)
class SimilarityResult:
    """
    One ranked hit of a hybrid search or recommendation.

    Results exist only for the duration of a query and are never persisted.

    Attributes:
        entity_id: Identifier of the matched entity
        vector_distance: Cosine distance in [0, 2], None without an embedding match
        text_similarity: Lexical similarity in [0, 1], None without a lexical match
        combined_score: Weighted blend, higher is better
        rank: Result ranking position (1-based)
        entity: The matched entity, when the caller's corpus supplied it
        reasons: Human-readable match explanations (recommendations only)
    """
    entity_id: str
    vector_distance: Optional[float]
    text_similarity: Optional[float]
    combined_score: float
    rank: int = 1
    entity: Optional[SearchableEntity] = field(default=None, repr=False, compare=False)
    reasons: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate similarity result."""
        if self.vector_distance is not None and not 0.0 <= self.vector_distance <= 2.0:
            raise ValueError("Vector distance must be between 0.0 and 2.0")
        if self.text_similarity is not None and not 0.0 <= self.text_similarity <= 1.0:
            raise ValueError("Text similarity must be between 0.0 and 1.0")
        if self.rank <= 0:
            raise ValueError("Rank must be positive")

    @property
    def sort_key(self) -> Tuple[float, str]:
        """Best-first ordering key: descending score, then ascending id."""
        return (-self.combined_score, self.entity_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "entity_id": self.entity_id,
            "vector_distance": (
                round(self.vector_distance, 6) if self.vector_distance is not None else None
            ),
            "text_similarity": (
                round(self.text_similarity, 6) if self.text_similarity is not None else None
            ),
            "combined_score": round(self.combined_score, 6),
            "rank": self.rank,
            "reasons": list(self.reasons),
        }
