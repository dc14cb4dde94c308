"""Engine configuration."""

import os
from typing import Any, Dict

from pydantic import BaseModel, Field, validator

EMBEDDING_DIMENSION = 1536

_ENV_PREFIX = "CONTRIB_MATCH_"


class EngineConfig(BaseModel):
    """
    Tunables shared by the indexes, executor and matcher.

    Attributes:
        dimension: Embedding length; fixed by the upstream embedding model
        hnsw_m: HNSW graph degree
        hnsw_ef_construction: HNSW build-time candidate list size
        ef_search: Default HNSW query-time candidate list size
        query_timeout: Per-query execution budget in seconds
        max_vector_candidates: Upper bound on neighbours requested per query
        phrase_boost: Share of a field score given to verbatim matches
        match_vector_weight: Vector weight used by the recommendation matcher
        match_text_weight: Skill-proxy weight used by the recommendation matcher
        interest_threshold: Vector similarity above which a match is
            reported as similar to the user's interests
        max_workers: Worker threads for index lookups
        log_level: Logging level applied by the service
    """

    dimension: int = EMBEDDING_DIMENSION
    hnsw_m: int = Field(16, ge=2, le=128)
    hnsw_ef_construction: int = Field(200, ge=1)
    ef_search: int = Field(100, ge=1)
    query_timeout: float = Field(5.0, gt=0.0)
    max_vector_candidates: int = Field(10000, ge=1)
    phrase_boost: float = Field(0.3, ge=0.0, le=1.0)
    match_vector_weight: float = Field(0.7, ge=0.0)
    match_text_weight: float = Field(0.3, ge=0.0)
    interest_threshold: float = Field(0.7, ge=0.0, le=1.0)
    max_workers: int = Field(4, ge=1)
    log_level: str = "INFO"

    class Config:
        extra = "forbid"

    @validator('dimension')
    def validate_dimension(cls, v: int) -> int:
        """Embeddings are produced by a fixed external model."""
        if v != EMBEDDING_DIMENSION:
            raise ValueError(f'dimension must be {EMBEDDING_DIMENSION}')
        return v

    @validator('log_level')
    def validate_log_level(cls, v: str) -> str:
        """Ensure the level is one the logging module knows."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f'Unknown log level: {v}')
        return level

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineConfig":
        """
        Build a configuration from CONTRIB_MATCH_* environment variables.

        Explicit keyword overrides take precedence over the environment.
        """
        values: Dict[str, Any] = {}
        for name in cls.__fields__:
            if name == "dimension":
                continue
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls(**values)
