"""Data models for the contribution matching engine."""

from .entity import (
    ContributionType,
    EntityType,
    Opportunity,
    OpportunityStatus,
    Repository,
    RepositoryStatus,
    SearchableEntity,
    SkillLevel,
    UserProfile,
)
from .request import MatchRequest, SearchFilters, SearchRequest
from .result import SimilarityResult

__all__ = [
    "ContributionType",
    "EntityType",
    "Opportunity",
    "OpportunityStatus",
    "Repository",
    "RepositoryStatus",
    "SearchableEntity",
    "SkillLevel",
    "UserProfile",
    "MatchRequest",
    "SearchFilters",
    "SearchRequest",
    "SimilarityResult",
]
