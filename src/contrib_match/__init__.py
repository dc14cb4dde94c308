"""
Contribution Matching Engine

Hybrid search and recommendation over open-source repositories,
contribution opportunities and developer profiles, blending approximate
vector similarity of precomputed embeddings with fuzzy lexical matching.
"""

from .api.service import ContributionSearchService
from .config import EngineConfig
from .core.exceptions import (
    ContribMatchError,
    CorruptEmbeddingError,
    DimensionError,
    IndexUnavailableError,
    InvalidArgumentError,
    NotFoundError,
    QueryTimeoutError,
    SearchError,
)
from .models.entity import EntityType, Opportunity, Repository, UserProfile
from .models.request import MatchRequest, SearchFilters, SearchRequest
from .models.result import SimilarityResult

__version__ = "1.0.0"

__all__ = [
    "ContributionSearchService",
    "EngineConfig",
    "EntityType",
    "Repository",
    "Opportunity",
    "UserProfile",
    "SearchFilters",
    "SearchRequest",
    "MatchRequest",
    "SimilarityResult",
    "ContribMatchError",
    "CorruptEmbeddingError",
    "DimensionError",
    "IndexUnavailableError",
    "InvalidArgumentError",
    "NotFoundError",
    "QueryTimeoutError",
    "SearchError",
]
