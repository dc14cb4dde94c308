"""High-level API service for contribution search and recommendations."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..config import EngineConfig
from ..core.corpus import Corpus
from ..core.exceptions import ContribMatchError, SearchError
from ..core.executor import QueryExecutor
from ..core.lexical_index import LexicalIndex
from ..core.matcher import RecommendationMatcher
from ..core.scorer import HybridScorer
from ..core.vector_index import VectorIndex
from ..models.entity import EntityType, SearchableEntity
from ..models.request import MatchRequest, SearchRequest
from ..models.result import SimilarityResult
from ..utils.logging_config import setup_logging
from ..utils.validators import (
    FiltersLike,
    coerce_entity_type,
    validate_ef_search,
    validate_limit,
    validate_score,
)

logger = logging.getLogger(__name__)

EntityTypeLike = Union[EntityType, str]


class ContributionSearchService:
    """
    Service interface for hybrid search and opportunity recommendations.

    Wires the corpus, both similarity indexes, the query executor and the
    recommendation matcher around one worker pool. Engine errors
    (validation, not-found, timeout, index availability) reach the caller
    unchanged; anything unexpected is wrapped in :class:`SearchError`.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        corpus: Optional[Corpus] = None,
        configure_logging: bool = True
    ):
        """
        Initialize contribution search service.

        Args:
            config: Engine configuration, defaults to environment-derived values
            corpus: Pre-populated corpus; a new empty one is created otherwise
            configure_logging: Whether to install the logging configuration
        """
        self.config = config or EngineConfig.from_env()
        if configure_logging:
            setup_logging(level=self.config.log_level)

        self.corpus = corpus or Corpus(
            vector_index=VectorIndex(self.config),
            lexical_index=LexicalIndex(self.config),
        )
        self._pool = ThreadPoolExecutor(max_workers=self.config.max_workers)
        self.executor = QueryExecutor(
            self.corpus, config=self.config, scorer=HybridScorer(), executor=self._pool
        )
        self.matcher = RecommendationMatcher(self.executor, config=self.config)
        self._closed = False

        self._stats = {
            'total_searches': 0,
            'total_matches': 0,
            'avg_search_time': 0.0,
        }
        logger.info("Contribution search service initialized")

    async def hybrid_search(
        self,
        entity_type: EntityTypeLike,
        query_text: str = "",
        query_embedding: Optional[Sequence[float]] = None,
        text_weight: float = 0.3,
        vector_weight: float = 0.7,
        min_score: float = 0.0,
        limit: int = 20,
        filters: FiltersLike = None,
        ef_search: Optional[int] = None
    ) -> List[SimilarityResult]:
        """
        Rank entities of one type against text and/or an embedding.

        Args:
            entity_type: "repository", "opportunity" or "user"
            query_text: Free-text query, may be empty
            query_embedding: Query vector with 1536 components
            text_weight: Weight of lexical similarity
            vector_weight: Weight of vector similarity
            min_score: Minimum combined score
            limit: Maximum number of results
            filters: Filter options (language, difficulty, minStars,
                activeOnly, skillsRequired)
            ef_search: HNSW candidate list size override

        Returns:
            Ranked results, best first
        """
        request = SearchRequest(
            entity_type=entity_type,
            query_text=query_text,
            query_embedding=query_embedding,
            text_weight=text_weight,
            vector_weight=vector_weight,
            min_score=min_score,
            limit=limit,
            filters=filters,
            ef_search=ef_search,
        )
        return await self.search(request)

    async def search(self, request: SearchRequest) -> List[SimilarityResult]:
        """Run a prepared search request."""
        self._check_open()
        start_time = asyncio.get_running_loop().time()
        results = await self._guard("Search", self.executor.search(request))
        self._update_search_stats(asyncio.get_running_loop().time() - start_time)
        return results

    async def match_opportunities_for_user(
        self,
        user_id: str,
        min_score: float = 0.0,
        limit: int = 10,
        filters: FiltersLike = None
    ) -> List[SimilarityResult]:
        """
        Recommend open opportunities for a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        self._check_open()
        request = MatchRequest(user_id=user_id, min_score=min_score, limit=limit, filters=filters)
        results = await self._guard("Match", self.matcher.match(request))
        self._stats['total_matches'] += 1
        return results

    async def nearest_by_embedding(
        self,
        entity_type: EntityTypeLike,
        query_embedding: Sequence[float],
        k: int,
        ef_search: Optional[int] = None
    ) -> List[Tuple[str, float]]:
        """
        Approximate k nearest neighbours by cosine distance, ascending.

        The search may miss a true neighbour; the returned items are
        ordered exactly.
        """
        self._check_open()
        entity_type = coerce_entity_type(entity_type)
        validate_limit(k)
        validate_ef_search(ef_search)
        return await self._guard(
            "Nearest-neighbour search",
            self.executor.run_bounded(self._in_pool(
                self.corpus.vector_index.nearest, query_embedding, entity_type, k, ef_search
            )),
        )

    async def lexical_score(
        self,
        entity_type: EntityTypeLike,
        query_text: str
    ) -> List[Tuple[str, float]]:
        """Lexical similarity of every entity of a type, best first."""
        self._check_open()
        entity_type = coerce_entity_type(entity_type)
        return await self._guard(
            "Lexical scoring",
            self.executor.run_bounded(
                self._in_pool(self.corpus.lexical_index.score, query_text, entity_type)
            ),
        )

    async def find_similar_users(
        self,
        query_embedding: Sequence[float],
        min_score: float = 0.7,
        limit: int = 10
    ) -> List[SimilarityResult]:
        """
        Users whose profile embedding is close to the query.

        ``min_score`` applies to the vector-only combined score
        ``1 - distance / 2``.
        """
        validate_score(min_score, "Minimum score")
        return await self.hybrid_search(
            EntityType.USER,
            query_embedding=query_embedding,
            text_weight=0.0,
            vector_weight=1.0,
            min_score=min_score,
            limit=limit,
        )

    async def add_entities(self, entities: Iterable[SearchableEntity]) -> None:
        """Insert or replace entities and refresh both indexes."""
        self._check_open()
        entities = list(entities)
        await self._guard("Indexing", self._in_pool(self.corpus.upsert_many, entities))
        logger.info(f"Added {len(entities)} entities")

    async def remove_entity(self, entity_type: EntityTypeLike, entity_id: str) -> bool:
        """Remove an entity from the corpus and both indexes."""
        self._check_open()
        entity_type = coerce_entity_type(entity_type)
        return await self._guard(
            "Removal", self._in_pool(self.corpus.remove, entity_type, entity_id)
        )

    async def save_corpus(self, path: Path) -> int:
        """Persist the corpus as JSON lines."""
        self._check_open()
        return await self._guard("Save", self._in_pool(self.corpus.save, Path(path)))

    async def load_corpus(self, path: Path) -> int:
        """Load a corpus written by :meth:`save_corpus`."""
        self._check_open()
        return await self._guard("Load", self._in_pool(self.corpus.load, Path(path)))

    def get_stats(self) -> Dict[str, Any]:
        """Service, corpus and index statistics."""
        return {
            **self._stats,
            'corpus': self.corpus.stats(),
            'vector_index': self.corpus.vector_index.stats(),
            'lexical_index': self.corpus.lexical_index.stats(),
            'config': {
                'ef_search': self.config.ef_search,
                'query_timeout': self.config.query_timeout,
                'max_workers': self.config.max_workers,
            },
        }

    async def health_check(self) -> Dict[str, Any]:
        """Report index availability."""
        vector_ok = self.corpus.vector_index.is_available
        lexical_ok = self.corpus.lexical_index.is_available

        if self._closed:
            status = 'closed'
        elif vector_ok and lexical_ok:
            status = 'healthy'
        elif vector_ok or lexical_ok:
            status = 'degraded'
        else:
            status = 'unhealthy'

        return {
            'status': status,
            'indexes': {
                'vector': {'available': vector_ok},
                'lexical': {'available': lexical_ok},
            },
            'stats': self.get_stats(),
            'timestamp': asyncio.get_running_loop().time(),
        }

    async def close(self) -> None:
        """Release the worker pool and close the indexes."""
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=True)
        self.corpus.vector_index.close()
        self.corpus.lexical_index.close()
        logger.info("Contribution search service closed")

    @classmethod
    @asynccontextmanager
    async def create(
        cls,
        corpus_path: Optional[Path] = None,
        **kwargs
    ) -> AsyncIterator['ContributionSearchService']:
        """
        Create and manage service lifecycle with context manager.

        Args:
            corpus_path: Corpus file to load when it exists
            **kwargs: Additional service configuration

        Yields:
            Ready contribution search service
        """
        service = cls(**kwargs)
        try:
            if corpus_path is not None and Path(corpus_path).exists():
                await service.load_corpus(corpus_path)
            yield service
        finally:
            await service.close()

    async def _in_pool(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._pool, lambda: func(*args))

    async def _guard(self, operation: str, coro):
        try:
            return await coro
        except ContribMatchError:
            raise
        except Exception as e:
            logger.error(f"{operation} failed: {e}")
            raise SearchError(f"{operation} failed: {e}") from e

    def _check_open(self) -> None:
        if self._closed:
            raise SearchError("Service is closed")

    def _update_search_stats(self, search_time: float) -> None:
        """Update search performance statistics."""
        self._stats['total_searches'] += 1
        total_searches = self._stats['total_searches']
        current_avg = self._stats['avg_search_time']
        self._stats['avg_search_time'] = (
            (current_avg * (total_searches - 1) + search_time) / total_searches
        )
