"""Core engine components for hybrid contribution search."""

from .exceptions import (
    ContribMatchError,
    CorruptEmbeddingError,
    DimensionError,
    IndexUnavailableError,
    InvalidArgumentError,
    NotFoundError,
    QueryTimeoutError,
    SearchError,
)

__all__ = [
    "ContribMatchError",
    "CorruptEmbeddingError",
    "DimensionError",
    "IndexUnavailableError",
    "InvalidArgumentError",
    "NotFoundError",
    "QueryTimeoutError",
    "SearchError",
]
