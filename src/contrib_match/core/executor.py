"""Hybrid search query execution."""

import asyncio
import functools
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Awaitable, Dict, FrozenSet, List, Optional, TypeVar

import numpy as np

from ..config import EngineConfig
from ..models.entity import EntityType
from ..models.request import SearchRequest
from ..models.result import SimilarityResult
from ..utils.logging_config import StructuredLogger
from ..utils.text_processing import clean_text
from ..utils.validators import validate_search_request
from .corpus import Corpus
from .exceptions import IndexUnavailableError, QueryTimeoutError
from .scorer import HybridScorer, ScoringWeights

logger = StructuredLogger(__name__)

T = TypeVar("T")


class QueryExecutor:
    """
    Answers hybrid search requests over one entity type at a time.

    Filters shrink the candidate set first; the vector and lexical indexes
    are then queried concurrently on the worker pool and their hits are
    blended by the :class:`HybridScorer`. A source whose weight is zero is
    not queried at all, so degenerate weights reduce exactly to the other
    source's ranking. Blank query text never reaches the lexical index.
    """

    def __init__(
        self,
        corpus: Corpus,
        config: Optional[EngineConfig] = None,
        scorer: Optional[HybridScorer] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize query executor.

        Args:
            corpus: Entity source whose indexes serve the lookups
            config: Engine configuration
            scorer: Score blender
            executor: Thread pool for index lookups
        """
        self.corpus = corpus
        self.config = config or EngineConfig()
        self.scorer = scorer or HybridScorer()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=self.config.max_workers)

    async def search(self, request: SearchRequest) -> List[SimilarityResult]:
        """
        Run one hybrid search.

        Args:
            request: Search request

        Returns:
            At most ``limit`` results, best first; empty when nothing clears
            ``min_score`` or the corpus is empty

        Raises:
            InvalidArgumentError: If the request is malformed
            DimensionError: If the query embedding is not 1536 long
            IndexUnavailableError: If every queried index is unavailable
            QueryTimeoutError: If the query exceeds its time budget
        """
        request = validate_search_request(request)
        log = logger.with_context(
            entity_type=request.entity_type.value, request_id=uuid.uuid4().hex[:8]
        )
        weights = ScoringWeights(request.text_weight, request.vector_weight)

        async def run() -> List[SimilarityResult]:
            candidates = await self.in_pool(
                self.corpus.candidate_ids, request.entity_type, request.filters
            )
            if not candidates:
                log.debug("No candidates after filtering")
                return []
            return await self.rank_candidates(
                request.entity_type,
                candidates,
                request.query_text,
                request.query_embedding,
                weights,
                request.min_score,
                request.limit,
                ef_search=request.ef_search,
                log=log,
            )

        start_time = asyncio.get_running_loop().time()
        results = await self.run_bounded(run(), log)
        search_time = asyncio.get_running_loop().time() - start_time
        log.info(f"Hybrid search completed: {len(results)} results in {search_time:.3f}s")
        return results

    async def rank_candidates(
        self,
        entity_type: EntityType,
        candidates: FrozenSet[str],
        query_text: str,
        query_embedding: Optional[np.ndarray],
        weights: ScoringWeights,
        min_score: float,
        limit: int,
        ef_search: Optional[int] = None,
        log: Optional[StructuredLogger] = None
    ) -> List[SimilarityResult]:
        """
        Score a pre-filtered candidate set with both indexes and rank it.

        Falls back to the surviving source once if the other raises
        :class:`IndexUnavailableError`.
        """
        log = log or logger
        loop = asyncio.get_running_loop()
        lookups: Dict[str, Awaitable] = {}

        if query_embedding is not None and weights.vector_weight > 0:
            ef = ef_search if ef_search is not None else self.config.ef_search
            k = min(max(limit, ef), self.config.max_vector_candidates)
            lookups['vector'] = loop.run_in_executor(
                self._executor,
                functools.partial(
                    self.corpus.vector_index.nearest,
                    query_embedding, entity_type, k, ef, candidates,
                ),
            )
        if weights.text_weight > 0 and clean_text(query_text):
            lookups['text'] = loop.run_in_executor(
                self._executor,
                functools.partial(
                    self.corpus.lexical_index.score, query_text, entity_type, candidates,
                ),
            )

        if not lookups:
            log.debug("No source to query: no usable embedding or query text")
            return []

        outcomes = await asyncio.gather(*lookups.values(), return_exceptions=True)

        hits = {}
        failures = {}
        for source, outcome in zip(lookups, outcomes):
            if isinstance(outcome, IndexUnavailableError):
                failures[source] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                hits[source] = outcome

        if failures:
            if not hits:
                log.error(f"No index available: {', '.join(str(e) for e in failures.values())}")
                raise next(iter(failures.values()))
            log.warning(
                f"Degraded to {', '.join(hits)} ranking; unavailable: {', '.join(failures)}"
            )

        entities = self.corpus.entities(entity_type)
        return self.scorer.rank(
            hits.get('vector', []),
            hits.get('text', []),
            weights,
            min_score=min_score,
            limit=limit,
            resolve=entities.get,
        )

    async def in_pool(self, func, *args) -> T:
        """Run a blocking corpus or index call on the worker pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def run_bounded(self, coro: Awaitable[T], log: Optional[StructuredLogger] = None) -> T:
        """
        Await a query under the configured time budget.

        Raises:
            QueryTimeoutError: If the budget is exceeded; pending lookups are
                abandoned and their results discarded
        """
        try:
            return await asyncio.wait_for(coro, timeout=self.config.query_timeout)
        except asyncio.TimeoutError:
            (log or logger).error(f"Query exceeded {self.config.query_timeout:.2f}s budget")
            raise QueryTimeoutError(
                f"Query exceeded its {self.config.query_timeout:.2f}s time budget"
            )

    def close(self) -> None:
        """Release the worker pool if this executor created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
