"""Trigram-style lexical similarity index."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from ..config import EngineConfig
from ..models.entity import EntityType
from ..utils.text_processing import clean_text, contains_phrase
from .exceptions import IndexUnavailableError

logger = logging.getLogger(__name__)

Scored = Tuple[str, float]

# Per-field weights; the identifying field of each entity type counts fully.
FIELD_WEIGHTS: Dict[EntityType, Dict[str, float]] = {
    EntityType.REPOSITORY: {
        "name": 1.0,
        "full_name": 0.9,
        "description": 0.8,
        "topics": 0.9,
    },
    EntityType.OPPORTUNITY: {
        "title": 1.0,
        "description": 0.8,
        "skills": 0.9,
        "labels": 0.7,
    },
    EntityType.USER: {
        "username": 1.0,
        "name": 0.9,
        "bio": 0.8,
        "skills": 0.9,
    },
}


@dataclass(frozen=True)
class _Partition:
    """Immutable snapshot of one entity type's text fields."""
    ids: Tuple[str, ...] = ()
    texts: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    vectorizer: Optional[TfidfVectorizer] = None
    matrices: Dict[str, object] = field(default_factory=dict)
    rows: Dict[str, int] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.ids)


class LexicalIndex:
    """
    Fuzzy text matching over entity text fields.

    Each field is represented by character trigram TF-IDF vectors (words
    padded with spaces, as pg_trgm does), so misspellings and partial words
    still share most trigrams with the original. A field scores

        (1 - phrase_boost) * fuzzy + phrase_boost * verbatim

    where ``fuzzy`` is the trigram cosine similarity and ``verbatim`` is 1
    when the whole normalised query occurs inside the field. The entity
    similarity is the best weighted field score, in [0, 1].

    Queries are literal text: no character has wildcard or operator
    meaning. Maintenance follows the same snapshot model as the vector
    index.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize an empty lexical index.

        Args:
            config: Engine configuration (phrase boost)
        """
        self.config = config or EngineConfig()
        self._documents: Dict[EntityType, Dict[str, Dict[str, str]]] = {
            entity_type: {} for entity_type in EntityType
        }
        self._partitions: Dict[EntityType, _Partition] = {
            entity_type: _Partition() for entity_type in EntityType
        }
        self._write_lock = threading.Lock()
        self._closed = False

    def upsert(self, entity_type: EntityType, entity_id: str, fields: Mapping[str, str]) -> None:
        """Insert or replace one entity's text fields."""
        self.upsert_many(entity_type, [(entity_id, fields)])

    def upsert_many(
        self,
        entity_type: EntityType,
        items: Iterable[Tuple[str, Mapping[str, str]]]
    ) -> None:
        """
        Insert or replace text fields for several entities of one type.

        Fields not listed in the entity type's field weights are ignored.
        """
        weights = FIELD_WEIGHTS[entity_type]
        cleaned = [
            (entity_id, {name: clean_text(fields.get(name, "")) for name in weights})
            for entity_id, fields in items
        ]
        if not cleaned:
            return

        with self._write_lock:
            self._check_available()
            documents = dict(self._documents[entity_type])
            documents.update(cleaned)
            self._publish(entity_type, documents)

        logger.debug(f"Upserted {len(cleaned)} {entity_type.value} text records")

    def remove(self, entity_type: EntityType, entity_id: str) -> bool:
        """Remove an entity's text fields; True if it was indexed."""
        with self._write_lock:
            self._check_available()
            if entity_id not in self._documents[entity_type]:
                return False
            documents = dict(self._documents[entity_type])
            del documents[entity_id]
            self._publish(entity_type, documents)
        return True

    def score(
        self,
        query_text: str,
        entity_type: EntityType,
        candidates: Optional[FrozenSet[str]] = None
    ) -> List[Scored]:
        """
        Score every entity of a type against a free-text query.

        Args:
            query_text: Literal query text; empty text scores 0 everywhere
            entity_type: Partition to score
            candidates: Restrict scoring to these entity ids

        Returns:
            (entity_id, similarity) pairs, similarity descending, ties by id

        Raises:
            IndexUnavailableError: If the index is closed
        """
        self._check_available()
        partition = self._partitions[entity_type]
        if partition.size == 0:
            return []

        if candidates is None:
            rows = np.arange(partition.size)
        else:
            rows = np.array(
                sorted(partition.rows[c] for c in candidates if c in partition.rows),
                dtype=np.int64,
            )
            if rows.size == 0:
                return []

        query = clean_text(query_text or "")
        if not query or partition.vectorizer is None:
            scores = np.zeros(rows.size)
        else:
            scores = self._score_rows(partition, entity_type, query, rows)

        results = [(partition.ids[row], float(score)) for row, score in zip(rows, scores)]
        results.sort(key=lambda item: (-item[1], item[0]))
        return results

    def _score_rows(
        self,
        partition: _Partition,
        entity_type: EntityType,
        query: str,
        rows: np.ndarray
    ) -> np.ndarray:
        boost = self.config.phrase_boost
        query_vector = partition.vectorizer.transform([query])

        best = np.zeros(rows.size)
        for name, weight in FIELD_WEIGHTS[entity_type].items():
            fuzzy = cosine_similarity(query_vector, partition.matrices[name][rows]).ravel()
            texts = partition.texts[name]
            verbatim = np.array(
                [contains_phrase(texts[row], query) for row in rows], dtype=np.float64
            )
            field_score = (1.0 - boost) * fuzzy + boost * verbatim
            best = np.maximum(best, weight * field_score)

        return np.clip(best, 0.0, 1.0)

    def size(self, entity_type: EntityType) -> int:
        return self._partitions[entity_type].size

    def stats(self) -> Dict[str, object]:
        """Index statistics."""
        return {
            'available': not self._closed,
            'phrase_boost': self.config.phrase_boost,
            'partitions': {
                entity_type.value: {
                    'documents': self._partitions[entity_type].size,
                    'vocabulary_size': (
                        len(self._partitions[entity_type].vectorizer.vocabulary_)
                        if self._partitions[entity_type].vectorizer is not None else 0
                    ),
                }
                for entity_type in EntityType
            },
        }

    def close(self) -> None:
        """Stop serving reads."""
        with self._write_lock:
            self._closed = True
            for entity_type in EntityType:
                self._documents[entity_type] = {}
                self._partitions[entity_type] = _Partition()
        logger.info("Lexical index closed")

    @property
    def is_available(self) -> bool:
        return not self._closed

    def _check_available(self) -> None:
        if self._closed:
            raise IndexUnavailableError("Lexical index is closed")

    def _publish(self, entity_type: EntityType, documents: Dict[str, Dict[str, str]]) -> None:
        """Build a snapshot and swap it in. Caller holds the write lock."""
        self._documents[entity_type] = documents
        self._partitions[entity_type] = self._build(entity_type, documents)

    def _build(self, entity_type: EntityType, documents: Dict[str, Dict[str, str]]) -> _Partition:
        if not documents:
            return _Partition()

        ids = tuple(sorted(documents))
        field_names = list(FIELD_WEIGHTS[entity_type])
        texts = {
            name: tuple(documents[entity_id][name] for entity_id in ids)
            for name in field_names
        }

        corpus = [text for name in field_names for text in texts[name] if text]
        vectorizer = None
        matrices = {}
        if corpus:
            vectorizer = TfidfVectorizer(
                analyzer="char_wb",
                ngram_range=(3, 3),
                lowercase=False,
                sublinear_tf=True,
            )
            vectorizer.fit(corpus)
            matrices = {name: vectorizer.transform(texts[name]).tocsr() for name in field_names}

        return _Partition(
            ids=ids,
            texts=texts,
            vectorizer=vectorizer,
            matrices=matrices,
            rows={entity_id: row for row, entity_id in enumerate(ids)},
        )
