"""Test hybrid search query execution."""

import asyncio
import threading
import time

import pytest

from contrib_match.config import EngineConfig
from contrib_match.core.corpus import Corpus
from contrib_match.core.exceptions import (
    DimensionError,
    IndexUnavailableError,
    InvalidArgumentError,
    QueryTimeoutError,
)
from contrib_match.core.executor import QueryExecutor
from contrib_match.core.lexical_index import LexicalIndex
from contrib_match.core.vector_index import VectorIndex
from contrib_match.models.entity import EntityType, Repository
from contrib_match.models.request import SearchRequest

REPO = EntityType.REPOSITORY


@pytest.fixture
def build_executor(config):
    """Executor over a fresh corpus holding the given entities."""
    executors = []

    def _build(entities, engine_config=None):
        engine_config = engine_config or config
        corpus = Corpus(
            vector_index=VectorIndex(engine_config),
            lexical_index=LexicalIndex(engine_config),
        )
        corpus.upsert_many(entities)
        query_executor = QueryExecutor(corpus, config=engine_config)
        executors.append(query_executor)
        return query_executor

    yield _build
    for query_executor in executors:
        query_executor.close()


class TestHybridSearch:
    """Test QueryExecutor.search."""

    async def test_identical_embedding_ranks_first(self, build_executor, make_embedding, blend):
        a, b, c = make_embedding(1), make_embedding(2), make_embedding(3)
        executor = build_executor([
            Repository(id="A", name="alpha", embedding=a),
            Repository(id="B", name="beta", embedding=blend(a, b, 0.3)),
            Repository(id="C", name="gamma", embedding=blend(a, c, 0.6)),
        ])

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_embedding=a, text_weight=0.0, vector_weight=1.0, limit=3,
        ))

        assert [r.entity_id for r in results] == ["A", "B", "C"]
        assert results[0].vector_distance == pytest.approx(0.0, abs=1e-9)
        assert results[0].combined_score == pytest.approx(1.0)
        assert results[1].vector_distance < results[2].vector_distance
        assert all(r.text_similarity is None for r in results)

    async def test_text_only_query(self, build_executor):
        executor = build_executor([
            Repository(id="X", name="x", description="TypeScript search engine"),
            Repository(id="Y", name="y", description="Python data pipeline"),
        ])

        results = await executor.search(SearchRequest(
            entity_type=REPO,
            query_text="typescript",
            text_weight=1.0,
            vector_weight=0.0,
            min_score=0.1,
            limit=10,
        ))

        assert results[0].entity_id == "X"
        assert [r.entity_id for r in results] in (["X"], ["X", "Y"])
        assert all(r.vector_distance is None for r in results)

    async def test_text_only_matches_lexical_ranking(self, executor):
        expected = [
            entity_id
            for entity_id, _ in executor.corpus.lexical_index.score("python", REPO)
        ]

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="python", text_weight=1.0, vector_weight=0.0,
        ))

        assert [r.entity_id for r in results] == expected

    async def test_vector_only_matches_nearest(self, executor, make_embedding):
        query = make_embedding(1)
        expected = [
            entity_id
            for entity_id, _ in executor.corpus.vector_index.nearest(query, REPO, k=10)
        ]

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_embedding=query, text_weight=0.0, vector_weight=1.0,
        ))

        assert [r.entity_id for r in results] == expected

    async def test_both_weights_zero(self, executor):
        with pytest.raises(InvalidArgumentError):
            await executor.search(SearchRequest(
                entity_type=REPO, query_text="python", text_weight=0.0, vector_weight=0.0,
            ))

    async def test_wrong_embedding_length(self, executor):
        with pytest.raises(DimensionError):
            await executor.search(SearchRequest(
                entity_type=REPO, query_embedding=[0.1] * 1500,
            ))

    async def test_equal_scores_ordered_by_id(self, build_executor, make_embedding):
        shared = make_embedding(9)
        executor = build_executor([
            Repository(id="b", name="same", embedding=shared),
            Repository(id="a", name="same", embedding=shared),
        ])

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_embedding=shared, text_weight=0.0, vector_weight=0.7,
        ))

        assert [r.entity_id for r in results] == ["a", "b"]
        assert results[0].combined_score == pytest.approx(0.7)
        assert results[1].combined_score == pytest.approx(0.7)

    async def test_hybrid_blend(self, executor, make_embedding):
        results = await executor.search(SearchRequest(
            entity_type=REPO,
            query_text="machine learning",
            query_embedding=make_embedding(1),
        ))

        top = results[0]
        assert top.entity_id == "repo_ml"
        assert top.combined_score == pytest.approx(
            0.7 * (1 - top.vector_distance / 2) + 0.3 * top.text_similarity
        )
        assert top.entity is executor.corpus.get(REPO, "repo_ml")

    async def test_entity_without_embedding_scored_on_text(self, executor, make_embedding):
        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="legacy parser", query_embedding=make_embedding(1),
        ))

        legacy = next(r for r in results if r.entity_id == "repo_legacy")
        assert legacy.vector_distance is None
        assert legacy.combined_score == pytest.approx(0.3 * legacy.text_similarity)

    async def test_blank_text_skips_lexical_index(self, executor, make_embedding):
        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="  ", query_embedding=make_embedding(1),
        ))

        assert {r.entity_id for r in results} == {"repo_ml", "repo_web", "repo_db"}
        assert all(r.text_similarity is None for r in results)
        assert results[0].combined_score == pytest.approx(0.7)

    async def test_blank_text_without_embedding(self, executor):
        results = await executor.search(SearchRequest(entity_type=REPO, query_text=""))

        assert results == []

    async def test_filtering_runs_on_worker_pool(self, executor, monkeypatch):
        loop_thread = threading.get_ident()
        threads = []
        original = executor.corpus.candidate_ids

        def recording_candidate_ids(*args, **kwargs):
            threads.append(threading.get_ident())
            return original(*args, **kwargs)

        monkeypatch.setattr(executor.corpus, "candidate_ids", recording_candidate_ids)

        await executor.search(SearchRequest(entity_type=REPO, query_text="python"))

        assert threads and loop_thread not in threads

    async def test_filters_restrict_candidates(self, executor, make_embedding):
        results = await executor.search(SearchRequest(
            entity_type=REPO,
            query_text="python",
            query_embedding=make_embedding(3),
            filters={"language": "Python", "activeOnly": True},
        ))

        assert [r.entity_id for r in results] == ["repo_ml"]

    async def test_limit_and_min_score(self, executor, make_embedding):
        results = await executor.search(SearchRequest(
            entity_type=REPO, query_embedding=make_embedding(1), limit=2,
        ))
        assert len(results) == 2
        assert [r.rank for r in results] == [1, 2]

        strict = await executor.search(SearchRequest(
            entity_type=REPO, query_embedding=make_embedding(1), min_score=0.99,
        ))
        assert all(r.combined_score >= 0.99 for r in strict)

    async def test_empty_corpus(self, build_executor, make_embedding):
        executor = build_executor([])

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="anything", query_embedding=make_embedding(1),
        ))

        assert results == []

    async def test_vector_weight_without_embedding(self, executor):
        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="python", text_weight=0.0, vector_weight=1.0,
        ))

        assert results == []

    async def test_concurrent_searches_agree(self, executor, make_embedding):
        request_args = dict(
            entity_type=REPO, query_text="dashboard", query_embedding=make_embedding(2),
        )

        batches = await asyncio.gather(*[
            executor.search(SearchRequest(**request_args)) for _ in range(8)
        ])

        first = [(r.entity_id, r.combined_score) for r in batches[0]]
        assert all([(r.entity_id, r.combined_score) for r in batch] == first for batch in batches)


class TestDegradedExecution:
    """Test behaviour when an index cannot serve reads."""

    async def test_vector_index_down_falls_back_to_text(self, executor, make_embedding):
        executor.corpus.vector_index.close()

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="dashboard", query_embedding=make_embedding(2),
        ))

        assert results
        assert results[0].entity_id == "repo_web"
        assert all(r.vector_distance is None for r in results)

    async def test_lexical_index_down_falls_back_to_vector(self, executor, make_embedding):
        executor.corpus.lexical_index.close()

        results = await executor.search(SearchRequest(
            entity_type=REPO, query_text="dashboard", query_embedding=make_embedding(2),
        ))

        assert results[0].entity_id == "repo_web"
        assert all(r.text_similarity is None for r in results)

    async def test_all_indexes_down(self, executor, make_embedding):
        executor.corpus.vector_index.close()
        executor.corpus.lexical_index.close()

        with pytest.raises(IndexUnavailableError):
            await executor.search(SearchRequest(
                entity_type=REPO, query_text="dashboard", query_embedding=make_embedding(2),
            ))

    async def test_only_queried_index_down(self, executor):
        executor.corpus.lexical_index.close()

        with pytest.raises(IndexUnavailableError):
            await executor.search(SearchRequest(
                entity_type=REPO, query_text="dashboard", text_weight=1.0, vector_weight=0.0,
            ))

    async def test_timeout(self, build_executor, sample_repositories, monkeypatch):
        executor = build_executor(
            sample_repositories, EngineConfig(query_timeout=0.05, max_workers=2)
        )
        original = executor.corpus.lexical_index.score

        def slow_score(*args, **kwargs):
            time.sleep(0.5)
            return original(*args, **kwargs)

        monkeypatch.setattr(executor.corpus.lexical_index, "score", slow_score)

        with pytest.raises(QueryTimeoutError):
            await executor.search(SearchRequest(entity_type=REPO, query_text="python"))

    async def test_timeout_is_a_timeout_error(self):
        assert issubclass(QueryTimeoutError, TimeoutError)
