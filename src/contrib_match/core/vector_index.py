"""Approximate nearest-neighbour index over entity embeddings."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import faiss
import numpy as np

from ..config import EngineConfig
from ..models.entity import EntityType
from .codec import normalize_rows, similarity_to_distance, validate_embedding
from .exceptions import IndexUnavailableError, InvalidArgumentError

logger = logging.getLogger(__name__)

Neighbour = Tuple[str, float]


@dataclass(frozen=True)
class _Partition:
    """Immutable snapshot of one entity type's vectors."""
    ids: Tuple[str, ...] = ()
    vectors: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    index: Optional[faiss.Index] = None
    rows: Dict[str, int] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.ids)


class VectorIndex:
    """
    HNSW index of entity embeddings, one partition per entity type.

    Vectors are L2-normalised so that inner product equals cosine
    similarity. The graph search is approximate: a true neighbour may be
    missed (recall loss), but every returned candidate is re-scored with
    the exact float64 cosine distance, so the order of returned items is
    exact. Candidate pools no larger than the HNSW candidate list are
    scored exhaustively, which is both exact and cheaper than a graph walk.

    Writes rebuild the affected partition and publish it with a single
    reference swap. Readers never lock and observe either the previous or
    the new snapshot of an entity, never a partially written vector.
    Batch writes through :meth:`upsert_many` to amortise rebuilds.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize an empty vector index.

        Args:
            config: Engine configuration (HNSW parameters, default ef_search)
        """
        self.config = config or EngineConfig()
        self._embeddings: Dict[EntityType, Dict[str, np.ndarray]] = {
            entity_type: {} for entity_type in EntityType
        }
        self._partitions: Dict[EntityType, _Partition] = {
            entity_type: _Partition() for entity_type in EntityType
        }
        self._write_lock = threading.Lock()
        self._closed = False

    def upsert(self, entity_type: EntityType, entity_id: str, embedding: np.ndarray) -> None:
        """Insert or replace one entity's embedding."""
        self.upsert_many(entity_type, [(entity_id, embedding)])

    def upsert_many(
        self,
        entity_type: EntityType,
        items: Iterable[Tuple[str, np.ndarray]]
    ) -> None:
        """
        Insert or replace embeddings for several entities of one type.

        Args:
            entity_type: Partition to update
            items: (entity_id, embedding) pairs

        Raises:
            DimensionError: If an embedding is not 1536 long
            IndexUnavailableError: If the index is closed or the rebuild fails
        """
        validated = [(entity_id, validate_embedding(vector)) for entity_id, vector in items]
        if not validated:
            return

        with self._write_lock:
            self._check_available()
            embeddings = dict(self._embeddings[entity_type])
            embeddings.update(validated)
            self._publish(entity_type, embeddings)

        logger.debug(f"Upserted {len(validated)} {entity_type.value} embeddings")

    def remove(self, entity_type: EntityType, entity_id: str) -> bool:
        """
        Remove an entity's embedding.

        Returns:
            True if an embedding was removed
        """
        with self._write_lock:
            self._check_available()
            if entity_id not in self._embeddings[entity_type]:
                return False
            embeddings = dict(self._embeddings[entity_type])
            del embeddings[entity_id]
            self._publish(entity_type, embeddings)

        logger.debug(f"Removed {entity_type.value} embedding {entity_id}")
        return True

    def nearest(
        self,
        query_vector: np.ndarray,
        entity_type: EntityType,
        k: int,
        ef_search: Optional[int] = None,
        candidates: Optional[FrozenSet[str]] = None
    ) -> List[Neighbour]:
        """
        Find the k nearest embeddings by cosine distance.

        Args:
            query_vector: Query embedding (1536 components)
            entity_type: Partition to search
            k: Maximum number of neighbours
            ef_search: HNSW candidate list size; higher improves recall at
                the cost of latency. Defaults to the configured value.
            candidates: Restrict the search to these entity ids

        Returns:
            (entity_id, distance) pairs, distance ascending, ties by id

        Raises:
            DimensionError: If the query vector is not 1536 long
            InvalidArgumentError: If k or ef_search is not positive
            IndexUnavailableError: If the index is closed
        """
        self._check_available()
        query = validate_embedding(query_vector)
        if k <= 0:
            raise InvalidArgumentError("k must be positive")
        ef = ef_search if ef_search is not None else self.config.ef_search
        if ef <= 0:
            raise InvalidArgumentError("ef_search must be positive")

        partition = self._partitions[entity_type]
        if partition.size == 0:
            return []

        if candidates is None:
            rows = None
            pool = partition.size
        else:
            rows = np.array(
                sorted(partition.rows[c] for c in candidates if c in partition.rows),
                dtype=np.int64,
            )
            pool = int(rows.size)
            if pool == 0:
                return []

        norm = np.linalg.norm(query)
        unit_query = query / norm if norm > 0 else query

        if pool <= max(ef, k):
            scan_rows = rows if rows is not None else np.arange(partition.size, dtype=np.int64)
        else:
            scan_rows = self._graph_search(partition, unit_query, min(k, pool), ef, rows)

        similarities = partition.vectors[scan_rows] @ unit_query
        hits = [
            (partition.ids[row], similarity_to_distance(float(similarity)))
            for row, similarity in zip(scan_rows, similarities)
        ]
        hits.sort(key=lambda hit: (hit[1], hit[0]))
        return hits[:k]

    def _graph_search(
        self,
        partition: _Partition,
        unit_query: np.ndarray,
        k: int,
        ef: int,
        rows: Optional[np.ndarray]
    ) -> np.ndarray:
        """Run the HNSW search and return the surfaced rows."""
        params = faiss.SearchParametersHNSW()
        params.efSearch = max(ef, k)
        if rows is not None:
            selector = faiss.IDSelectorBatch(rows.size, faiss.swig_ptr(rows))
            params.sel = selector

        query = np.ascontiguousarray(unit_query.reshape(1, -1), dtype=np.float32)
        _, labels = partition.index.search(query, k, params=params)
        return np.array([label for label in labels[0] if label >= 0], dtype=np.int64)

    def size(self, entity_type: EntityType) -> int:
        """Number of embeddings indexed for an entity type."""
        return self._partitions[entity_type].size

    def contains(self, entity_type: EntityType, entity_id: str) -> bool:
        return entity_id in self._partitions[entity_type].rows

    def stats(self) -> Dict[str, object]:
        """Index statistics."""
        return {
            'available': not self._closed,
            'hnsw_m': self.config.hnsw_m,
            'ef_construction': self.config.hnsw_ef_construction,
            'ef_search': self.config.ef_search,
            'partitions': {
                entity_type.value: self._partitions[entity_type].size
                for entity_type in EntityType
            },
        }

    def close(self) -> None:
        """Stop serving reads and release the graphs."""
        with self._write_lock:
            self._closed = True
            for entity_type in EntityType:
                self._embeddings[entity_type] = {}
                self._partitions[entity_type] = _Partition()
        logger.info("Vector index closed")

    @property
    def is_available(self) -> bool:
        return not self._closed

    def _check_available(self) -> None:
        if self._closed:
            raise IndexUnavailableError("Vector index is closed")

    def _publish(self, entity_type: EntityType, embeddings: Dict[str, np.ndarray]) -> None:
        """Build a snapshot and swap it in. Caller holds the write lock."""
        try:
            partition = self._build(embeddings)
        except RuntimeError as e:
            logger.error(f"Failed to rebuild {entity_type.value} vector partition: {e}")
            raise IndexUnavailableError(f"Vector index rebuild failed: {e}")

        self._embeddings[entity_type] = embeddings
        self._partitions[entity_type] = partition

    def _build(self, embeddings: Dict[str, np.ndarray]) -> _Partition:
        if not embeddings:
            return _Partition()

        ids = tuple(sorted(embeddings))
        vectors = normalize_rows(np.vstack([embeddings[entity_id] for entity_id in ids]))
        vectors.setflags(write=False)

        index = faiss.IndexHNSWFlat(
            self.config.dimension, self.config.hnsw_m, faiss.METRIC_INNER_PRODUCT
        )
        index.hnsw.efConstruction = self.config.hnsw_ef_construction
        index.add(np.ascontiguousarray(vectors, dtype=np.float32))

        return _Partition(
            ids=ids,
            vectors=vectors,
            index=index,
            rows={entity_id: row for row, entity_id in enumerate(ids)},
        )
