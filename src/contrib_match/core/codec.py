"""Embedding codec: storage text form and the structured array form."""

import math
from typing import Iterable, Union

import numpy as np

from ..config import EMBEDDING_DIMENSION
from .exceptions import CorruptEmbeddingError, DimensionError, InvalidArgumentError

Embedding = np.ndarray
VectorLike = Union[np.ndarray, Iterable[float]]


def validate_embedding(vector: VectorLike) -> Embedding:
    """
    Convert a vector into the engine's read-only embedding array.

    Args:
        vector: Sequence of numbers or numpy array

    Returns:
        Read-only float64 array of shape (1536,)

    Raises:
        DimensionError: If the vector does not have exactly 1536 components
        InvalidArgumentError: If any component is not a finite number
    """
    if isinstance(vector, (str, bytes)):
        raise InvalidArgumentError("Embedding must be a numeric sequence, not text")

    try:
        array = np.array(vector, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Embedding must contain only numbers: {e}")

    if array.ndim != 1:
        raise DimensionError(array.size, EMBEDDING_DIMENSION)
    if array.shape[0] != EMBEDDING_DIMENSION:
        raise DimensionError(array.shape[0], EMBEDDING_DIMENSION)
    if not np.all(np.isfinite(array)):
        raise InvalidArgumentError("All embedding values must be finite numbers")

    array.setflags(write=False)
    return array


def encode(vector: VectorLike) -> str:
    """
    Serialize an embedding to its storage form ``[v1,v2,...,v1536]``.

    Floats are written with ``repr`` so that decoding is bit-exact.

    Raises:
        DimensionError: If the vector does not have exactly 1536 components
        InvalidArgumentError: If any component is not a finite number
    """
    array = validate_embedding(vector)
    return "[" + ",".join(repr(float(value)) for value in array) + "]"


def decode(stored: str) -> Embedding:
    """
    Parse a storage-form embedding back into a read-only array.

    Raises:
        CorruptEmbeddingError: If the text is not exactly 1536 finite numbers
            enclosed in brackets
    """
    if not isinstance(stored, str):
        raise CorruptEmbeddingError(
            f"Stored embedding must be text, got {type(stored).__name__}"
        )

    text = stored.strip()
    if len(text) < 2 or text[0] != "[" or text[-1] != "]":
        raise CorruptEmbeddingError("Stored embedding is missing bracket delimiters")

    body = text[1:-1].strip()
    parts = body.split(",") if body else []
    if len(parts) != EMBEDDING_DIMENSION:
        raise CorruptEmbeddingError(
            f"Stored embedding has {len(parts)} components, expected {EMBEDDING_DIMENSION}"
        )

    values = []
    for position, part in enumerate(parts):
        try:
            value = float(part)
        except ValueError:
            raise CorruptEmbeddingError(
                f"Stored embedding component {position} is not numeric: {part.strip()!r}"
            )
        if not math.isfinite(value):
            raise CorruptEmbeddingError(
                f"Stored embedding component {position} is not finite"
            )
        values.append(value)

    array = np.array(values, dtype=np.float64)
    array.setflags(write=False)
    return array


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """L2-normalise each row; zero rows stay zero."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return matrix / norms


def cosine_distance(a: VectorLike, b: VectorLike) -> float:
    """
    Cosine distance ``1 - cosine_similarity`` clipped to [0, 2].

    Zero vectors have no direction and are treated as orthogonal.
    """
    x = np.asarray(a, dtype=np.float64)
    y = np.asarray(b, dtype=np.float64)
    norm_x = np.linalg.norm(x)
    norm_y = np.linalg.norm(y)
    if norm_x == 0.0 or norm_y == 0.0:
        return 1.0
    similarity = float(np.dot(x / norm_x, y / norm_y))
    return similarity_to_distance(similarity)


def similarity_to_distance(similarity: float) -> float:
    """Map a cosine similarity to a distance, absorbing float rounding at the ends."""
    distance = 1.0 - similarity
    if abs(distance) < 1e-9:
        return 0.0
    if abs(distance - 2.0) < 1e-9:
        return 2.0
    return min(max(distance, 0.0), 2.0)
