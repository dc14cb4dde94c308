"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path
from typing import Callable, List

import numpy as np
import pytest

from contrib_match.api.service import ContributionSearchService
from contrib_match.config import EMBEDDING_DIMENSION, EngineConfig
from contrib_match.core.corpus import Corpus
from contrib_match.core.executor import QueryExecutor
from contrib_match.core.lexical_index import LexicalIndex
from contrib_match.core.vector_index import VectorIndex
from contrib_match.models.entity import (
    ContributionType,
    Opportunity,
    OpportunityStatus,
    Repository,
    RepositoryStatus,
    SkillLevel,
    UserProfile,
)


def _random_unit(seed: int) -> np.ndarray:
    vector = np.random.default_rng(seed).standard_normal(EMBEDDING_DIMENSION)
    return vector / np.linalg.norm(vector)


@pytest.fixture
def make_embedding() -> Callable[[int], np.ndarray]:
    """Deterministic unit embeddings keyed by seed."""
    return _random_unit


@pytest.fixture
def blend() -> Callable[[np.ndarray, np.ndarray, float], np.ndarray]:
    """Mix two embeddings; larger ``t`` moves further from the first."""
    def _blend(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
        vector = (1.0 - t) * a + t * b
        return vector / np.linalg.norm(vector)
    return _blend


@pytest.fixture
def config() -> EngineConfig:
    """Engine configuration with a small worker pool."""
    return EngineConfig(max_workers=2, log_level="WARNING")


@pytest.fixture
def sample_repositories() -> List[Repository]:
    """Create sample repositories for testing."""
    return [
        Repository(
            id="repo_ml",
            name="awesome-ml",
            full_name="octo/awesome-ml",
            description="Machine learning toolkit for tabular data",
            language="Python",
            topics=("machine-learning", "python", "data-science"),
            stars=1200,
            health_score=88.0,
            complexity_level=SkillLevel.ADVANCED,
            embedding=_random_unit(1),
        ),
        Repository(
            id="repo_web",
            name="react-dashboard",
            full_name="octo/react-dashboard",
            description="Admin dashboard built with React and TypeScript",
            language="TypeScript",
            topics=("react", "dashboard", "frontend"),
            stars=300,
            health_score=72.5,
            complexity_level=SkillLevel.BEGINNER,
            embedding=_random_unit(2),
        ),
        Repository(
            id="repo_db",
            name="rusty-kv",
            full_name="crab/rusty-kv",
            description="Embedded key-value store with write-ahead logging",
            language="Rust",
            topics=("database", "storage"),
            stars=5000,
            health_score=95.0,
            complexity_level=SkillLevel.EXPERT,
            embedding=_random_unit(3),
        ),
        Repository(
            id="repo_legacy",
            name="legacy-parser",
            full_name="octo/legacy-parser",
            description="Old Python parser kept for reference",
            language="Python",
            topics=("parser",),
            stars=40,
            status=RepositoryStatus.ARCHIVED,
            embedding=None,
        ),
    ]


@pytest.fixture
def sample_opportunities() -> List[Opportunity]:
    """Create sample contribution opportunities for testing."""
    return [
        Opportunity(
            id="opp_docs",
            repository_id="repo_ml",
            title="Improve documentation for model training",
            description="The training guide is missing examples for pandas input",
            contribution_type=ContributionType.DOCUMENTATION,
            difficulty=SkillLevel.BEGINNER,
            required_skills=("python", "writing"),
            technologies=("python", "sphinx"),
            labels=("documentation", "good first issue"),
            good_first_issue=True,
            help_wanted=True,
            embedding=_random_unit(11),
        ),
        Opportunity(
            id="opp_feature",
            repository_id="repo_ml",
            title="Add gradient boosting estimator",
            description="Implement a histogram based gradient boosting model",
            contribution_type=ContributionType.FEATURE,
            difficulty=SkillLevel.ADVANCED,
            required_skills=("python", "numpy", "machine learning"),
            technologies=("python", "numpy"),
            labels=("enhancement",),
            mentorship_available=True,
            embedding=_random_unit(12),
        ),
        Opportunity(
            id="opp_ui",
            repository_id="repo_web",
            title="Fix chart tooltip overflow",
            description="Tooltips overflow the card on narrow screens",
            contribution_type=ContributionType.BUG_FIX,
            difficulty=SkillLevel.BEGINNER,
            required_skills=("typescript", "css"),
            technologies=("react", "typescript"),
            labels=("bug",),
            good_first_issue=True,
            embedding=_random_unit(13),
        ),
        Opportunity(
            id="opp_wal",
            repository_id="repo_db",
            title="Compact write-ahead log segments",
            description="Background compaction of old log segments",
            contribution_type=ContributionType.FEATURE,
            difficulty=SkillLevel.EXPERT,
            required_skills=("rust", "storage engines"),
            technologies=("rust",),
            labels=("enhancement", "help wanted"),
            help_wanted=True,
            embedding=_random_unit(14),
        ),
        Opportunity(
            id="opp_closed",
            repository_id="repo_web",
            title="Upgrade React to the latest major version",
            contribution_type=ContributionType.REFACTOR,
            status=OpportunityStatus.CLOSED,
            required_skills=("typescript", "react"),
            technologies=("react",),
            embedding=_random_unit(15),
        ),
    ]


@pytest.fixture
def sample_users() -> List[UserProfile]:
    """Create sample developer profiles for testing."""
    return [
        UserProfile(
            id="user_ana",
            username="ana-dev",
            name="Ana",
            bio="Data scientist who loves Python and open source",
            skills=("python", "numpy", "machine learning"),
            preferred_languages=("Python",),
            skill_level=SkillLevel.ADVANCED,
            embedding=_random_unit(21),
        ),
        UserProfile(
            id="user_ben",
            username="ben-ui",
            name="Ben",
            bio="Frontend engineer",
            skills=("typescript", "css"),
            preferred_languages=("TypeScript",),
            skill_level=SkillLevel.BEGINNER,
            preferred_contribution_types=frozenset({ContributionType.BUG_FIX}),
            embedding=_random_unit(22),
        ),
        UserProfile(
            id="user_cam",
            username="cam",
            skills=("rust",),
            preferred_languages=("Rust",),
            skill_level=SkillLevel.EXPERT,
            contributed_repository_ids=frozenset({"repo_db"}),
            embedding=None,
        ),
    ]


@pytest.fixture
def sample_entities(sample_repositories, sample_opportunities, sample_users) -> list:
    """Every sample entity."""
    return [*sample_repositories, *sample_opportunities, *sample_users]


@pytest.fixture
def temp_corpus_path():
    """Create temporary directory for corpus storage."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir) / "corpus.jsonl"


@pytest.fixture
def corpus(config) -> Corpus:
    """Empty corpus wired to fresh indexes."""
    return Corpus(vector_index=VectorIndex(config), lexical_index=LexicalIndex(config))


@pytest.fixture
def populated_corpus(corpus, sample_entities) -> Corpus:
    """Corpus holding every sample entity."""
    corpus.upsert_many(sample_entities)
    return corpus


@pytest.fixture
def executor(populated_corpus, config):
    """Query executor over the sample corpus."""
    query_executor = QueryExecutor(populated_corpus, config=config)
    yield query_executor
    query_executor.close()


@pytest.fixture
async def search_service(config):
    """Create a contribution search service for testing."""
    async with ContributionSearchService.create(
        config=config, configure_logging=False
    ) as service:
        yield service


@pytest.fixture
async def populated_service(search_service, sample_entities):
    """Create a search service with the sample entities."""
    await search_service.add_entities(sample_entities)
    return search_service
