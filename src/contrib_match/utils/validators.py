"""Input validation utilities."""

import dataclasses
import math
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from ..core.codec import validate_embedding
from ..core.exceptions import InvalidArgumentError
from ..models.entity import EntityType
from ..models.request import MatchRequest, SearchFilters, SearchRequest

_FILTER_ALIASES = {
    "minStars": "min_stars",
    "activeOnly": "active_only",
    "skillsRequired": "skills_required",
}

FiltersLike = Union[SearchFilters, Mapping[str, Any], None]


def coerce_filters(filters: FiltersLike) -> SearchFilters:
    """
    Build a :class:`SearchFilters` from a mapping or pass one through.

    Args:
        filters: Filter object, mapping of options, or None

    Returns:
        Validated filters

    Raises:
        InvalidArgumentError: On unrecognised keys or invalid values
    """
    if filters is None:
        return SearchFilters()
    if isinstance(filters, SearchFilters):
        return filters
    if not isinstance(filters, Mapping):
        raise InvalidArgumentError(
            f"Filters must be a mapping, got {type(filters).__name__}"
        )

    options = {}
    for key, value in filters.items():
        name = _FILTER_ALIASES.get(key, key)
        if name in options:
            raise InvalidArgumentError(f"Filter option given twice: {key}")
        options[name] = value

    try:
        return SearchFilters(**options)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid filters: {e}")


def coerce_entity_type(entity_type: Union[EntityType, str]) -> EntityType:
    """Resolve an entity type name."""
    try:
        return EntityType(entity_type)
    except ValueError:
        raise InvalidArgumentError(f"Unknown entity type: {entity_type}")


def validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidArgumentError("Limit must be an integer")
    if limit <= 0:
        raise InvalidArgumentError("Result limit must be positive")


def validate_score(value: float, name: str) -> None:
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgumentError(f"{name} must be a finite number")


def validate_weights(text_weight: float, vector_weight: float) -> None:
    """
    Validate a pair of blending weights.

    Raises:
        InvalidArgumentError: If a weight is negative or non-finite, or both are zero
    """
    validate_score(text_weight, "Text weight")
    validate_score(vector_weight, "Vector weight")
    if text_weight < 0 or vector_weight < 0:
        raise InvalidArgumentError("Weights cannot be negative")
    if text_weight == 0 and vector_weight == 0:
        raise InvalidArgumentError("Text weight and vector weight cannot both be zero")


def validate_ef_search(ef_search: Optional[int]) -> None:
    if ef_search is None:
        return
    if isinstance(ef_search, bool) or not isinstance(ef_search, int) or ef_search <= 0:
        raise InvalidArgumentError("ef_search must be a positive integer")


def validate_search_request(request: SearchRequest) -> SearchRequest:
    """
    Validate a search request and normalise its embedding and filters.

    Args:
        request: Search request

    Returns:
        A normalised copy of the request with a read-only embedding array
        and parsed filters; the caller's request is left untouched

    Raises:
        InvalidArgumentError: If the request is malformed
        DimensionError: If the query embedding is not 1536 long
    """
    if not isinstance(request, SearchRequest):
        raise InvalidArgumentError("Invalid search request type")

    entity_type = coerce_entity_type(request.entity_type)
    validate_limit(request.limit)
    validate_weights(request.text_weight, request.vector_weight)
    validate_score(request.min_score, "Minimum score")
    validate_ef_search(request.ef_search)

    query_text = "" if request.query_text is None else request.query_text
    if not isinstance(query_text, str):
        raise InvalidArgumentError("Query text must be a string")

    query_embedding = request.query_embedding
    if query_embedding is not None:
        query_embedding = validate_embedding(query_embedding)

    return dataclasses.replace(
        request,
        entity_type=entity_type,
        query_text=query_text,
        query_embedding=query_embedding,
        filters=coerce_filters(request.filters),
    )


def validate_match_request(request: MatchRequest) -> MatchRequest:
    """
    Validate a recommendation request.

    Raises:
        InvalidArgumentError: If the request is malformed
    """
    if not isinstance(request, MatchRequest):
        raise InvalidArgumentError("Invalid match request type")
    if not isinstance(request.user_id, str) or not request.user_id.strip():
        raise InvalidArgumentError("User ID is required")

    validate_limit(request.limit)
    validate_score(request.min_score, "Minimum score")
    return dataclasses.replace(request, filters=coerce_filters(request.filters))
