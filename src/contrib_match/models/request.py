"""Search and match request models."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

import numpy as np
from pydantic import BaseModel, Field, validator

from .entity import EntityType, SkillLevel


class SearchFilters(BaseModel):
    """
    Entity filters recognised by hybrid search and recommendations.

    Unknown keys are rejected rather than ignored. The camelCase spellings
    (``minStars``, ``activeOnly``, ``skillsRequired``) are accepted by
    :func:`contrib_match.utils.validators.coerce_filters`.
    """

    language: Optional[str] = Field(None, description="Language to match")
    difficulty: Optional[SkillLevel] = Field(None, description="Required difficulty")
    min_stars: Optional[int] = Field(None, ge=0, description="Minimum repository stars")
    active_only: bool = Field(False, description="Only active repositories / open opportunities")
    skills_required: Optional[FrozenSet[str]] = Field(None, description="Skills of which one must match")

    class Config:
        extra = "forbid"

    @validator('language')
    def validate_language(cls, v: Optional[str]) -> Optional[str]:
        """Blank language means no language filter."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @validator('skills_required')
    def validate_skills(cls, v: Optional[FrozenSet[str]]) -> Optional[FrozenSet[str]]:
        """Drop blank skills; an empty set means no skill filter."""
        if v is None:
            return None
        skills = frozenset(skill.strip() for skill in v if skill and skill.strip())
        return skills or None


@dataclass
class SearchRequest:
    """
    One hybrid search over a single entity type.

    Attributes:
        entity_type: Partition to search
        query_text: Free-text query, may be empty
        query_embedding: Query vector (1536 components), optional
        text_weight: Weight of the lexical similarity
        vector_weight: Weight of the vector similarity
        min_score: Minimum combined score to keep a result
        limit: Maximum number of results
        filters: Entity filters applied before scoring
        ef_search: HNSW candidate list size override
    """
    entity_type: EntityType
    query_text: str = ""
    query_embedding: Optional[np.ndarray] = None
    text_weight: float = 0.3
    vector_weight: float = 0.7
    min_score: float = 0.0
    limit: int = 20
    filters: SearchFilters = field(default_factory=SearchFilters)
    ef_search: Optional[int] = None


@dataclass
class MatchRequest:
    """
    Recommendation request for one user.

    Attributes:
        user_id: User whose profile drives the match
        min_score: Minimum combined score to keep a result
        limit: Maximum number of results
        filters: Eligibility filters applied before scoring
    """
    user_id: str
    min_score: float = 0.0
    limit: int = 10
    filters: SearchFilters = field(default_factory=SearchFilters)
