"""Searchable entity data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union

import numpy as np

from ..core.codec import validate_embedding
from ..utils.text_processing import normalize_terms


class EntityType(str, Enum):
    """Entity partitions served by the indexes."""
    REPOSITORY = "repository"
    OPPORTUNITY = "opportunity"
    USER = "user"


class SkillLevel(str, Enum):
    """Difficulty of an opportunity or experience of a user."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class ContributionType(str, Enum):
    """Kinds of contribution an opportunity asks for."""
    BUG_FIX = "bug_fix"
    FEATURE = "feature"
    DOCUMENTATION = "documentation"
    TEST = "test"
    REFACTOR = "refactor"
    SECURITY = "security"


class RepositoryStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    PRIVATE = "private"
    FORK = "fork"
    TEMPLATE = "template"


class OpportunityStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    STALE = "stale"
    CLOSED = "closed"


def _embedding_or_none(value) -> Optional[np.ndarray]:
    if value is None:
        return None
    return validate_embedding(value)


def _require_id(entity_id: str, kind: str) -> None:
    if not isinstance(entity_id, str) or not entity_id.strip():
        raise ValueError(f"{kind} ID cannot be empty")


@dataclass(frozen=True)
class Repository:
    """
    Repository that can be searched and recommended.

    Attributes:
        id: Unique repository identifier
        name: Short repository name
        full_name: Owner-qualified name (``owner/name``)
        description: Free-text description
        language: Primary language
        topics: Topic tags
        stars: Star count
        health_score: Health score on a 0-100 scale
        status: Lifecycle status
        complexity_level: Expected experience of contributors
        embedding: Description embedding, if computed
    """
    id: str
    name: str
    full_name: str = ""
    description: str = ""
    language: Optional[str] = None
    topics: Tuple[str, ...] = ()
    stars: int = 0
    health_score: float = 0.0
    status: RepositoryStatus = RepositoryStatus.ACTIVE
    complexity_level: SkillLevel = SkillLevel.INTERMEDIATE
    embedding: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    entity_type = EntityType.REPOSITORY

    def __post_init__(self) -> None:
        """Validate and normalise repository fields."""
        _require_id(self.id, "Repository")
        if not self.name.strip():
            raise ValueError("Repository name cannot be empty")
        if self.stars < 0:
            raise ValueError("Star count cannot be negative")
        object.__setattr__(self, "status", RepositoryStatus(self.status))
        object.__setattr__(self, "complexity_level", SkillLevel(self.complexity_level))
        object.__setattr__(self, "topics", tuple(self.topics))
        object.__setattr__(self, "embedding", _embedding_or_none(self.embedding))

    @property
    def text_fields(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "full_name": self.full_name,
            "description": self.description,
            "topics": " ".join(self.topics),
        }

    @property
    def is_active(self) -> bool:
        return self.status == RepositoryStatus.ACTIVE


@dataclass(frozen=True)
class Opportunity:
    """
    Contribution opportunity (an issue or pull request) in a repository.

    Attributes:
        id: Unique opportunity identifier
        repository_id: Identifier of the parent repository
        title: Issue title
        description: Issue body
        contribution_type: Kind of contribution requested
        status: Lifecycle status
        difficulty: Expected skill level
        required_skills: Skills needed to complete the work
        technologies: Technologies involved
        labels: Issue labels
        good_first_issue: Flagged as suitable for newcomers
        help_wanted: Maintainers asked for help
        mentorship_available: A maintainer offers mentorship
        estimated_hours: Expected effort, if known
        priority: Priority on a 0-100 scale
        embedding: Title/description embedding, if computed
    """
    id: str
    repository_id: str
    title: str
    description: str = ""
    contribution_type: ContributionType = ContributionType.FEATURE
    status: OpportunityStatus = OpportunityStatus.OPEN
    difficulty: SkillLevel = SkillLevel.INTERMEDIATE
    required_skills: Tuple[str, ...] = ()
    technologies: Tuple[str, ...] = ()
    labels: Tuple[str, ...] = ()
    good_first_issue: bool = False
    help_wanted: bool = False
    mentorship_available: bool = False
    estimated_hours: Optional[int] = None
    priority: int = 50
    embedding: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    entity_type = EntityType.OPPORTUNITY

    def __post_init__(self) -> None:
        """Validate and normalise opportunity fields."""
        _require_id(self.id, "Opportunity")
        _require_id(self.repository_id, "Repository")
        if not self.title.strip():
            raise ValueError("Opportunity title cannot be empty")
        if self.estimated_hours is not None and self.estimated_hours <= 0:
            raise ValueError("Estimated hours must be positive")
        if not 0 <= self.priority <= 100:
            raise ValueError("Priority must be between 0 and 100")
        object.__setattr__(self, "contribution_type", ContributionType(self.contribution_type))
        object.__setattr__(self, "status", OpportunityStatus(self.status))
        object.__setattr__(self, "difficulty", SkillLevel(self.difficulty))
        object.__setattr__(self, "required_skills", tuple(self.required_skills))
        object.__setattr__(self, "technologies", tuple(self.technologies))
        object.__setattr__(self, "labels", tuple(self.labels))
        object.__setattr__(self, "embedding", _embedding_or_none(self.embedding))

    @property
    def text_fields(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "skills": " ".join(self.required_skills + self.technologies),
            "labels": " ".join(self.labels),
        }

    @property
    def is_active(self) -> bool:
        return self.status == OpportunityStatus.OPEN

    @property
    def skill_terms(self) -> FrozenSet[str]:
        return normalize_terms(self.required_skills)


@dataclass(frozen=True)
class UserProfile:
    """
    Developer profile used for recommendations and similar-user search.

    Attributes:
        id: Unique user identifier
        username: Login name
        name: Display name
        bio: Free-text biography
        skills: Declared skills
        preferred_languages: Languages the user wants to work in
        skill_level: Self-assessed experience
        preferred_contribution_types: Contribution kinds the user wants
        max_estimated_hours: Largest effort the user will take on
        contributed_repository_ids: Repositories the user already contributed to
        embedding: Profile embedding, if computed
    """
    id: str
    username: str
    name: str = ""
    bio: str = ""
    skills: Tuple[str, ...] = ()
    preferred_languages: Tuple[str, ...] = ()
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    preferred_contribution_types: FrozenSet[ContributionType] = frozenset()
    max_estimated_hours: Optional[int] = None
    contributed_repository_ids: FrozenSet[str] = frozenset()
    embedding: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    entity_type = EntityType.USER

    def __post_init__(self) -> None:
        """Validate and normalise profile fields."""
        _require_id(self.id, "User")
        if not self.username.strip():
            raise ValueError("Username cannot be empty")
        if self.max_estimated_hours is not None and self.max_estimated_hours <= 0:
            raise ValueError("Maximum estimated hours must be positive")
        object.__setattr__(self, "skill_level", SkillLevel(self.skill_level))
        object.__setattr__(self, "skills", tuple(self.skills))
        object.__setattr__(self, "preferred_languages", tuple(self.preferred_languages))
        object.__setattr__(
            self,
            "preferred_contribution_types",
            frozenset(ContributionType(t) for t in self.preferred_contribution_types),
        )
        object.__setattr__(
            self, "contributed_repository_ids", frozenset(self.contributed_repository_ids)
        )
        object.__setattr__(self, "embedding", _embedding_or_none(self.embedding))

    @property
    def text_fields(self) -> Dict[str, str]:
        return {
            "username": self.username,
            "name": self.name,
            "bio": self.bio,
            "skills": " ".join(self.skills),
        }

    @property
    def is_active(self) -> bool:
        return True

    @property
    def skill_terms(self) -> FrozenSet[str]:
        return normalize_terms(self.skills)

    @property
    def language_terms(self) -> FrozenSet[str]:
        return normalize_terms(self.preferred_languages)

    def interest_query(self) -> str:
        """Declared skills and languages as a lexical query."""
        terms: Iterable[str] = list(self.skills) + [
            language for language in self.preferred_languages
            if language.casefold() not in self.skill_terms
        ]
        return " ".join(term.strip() for term in terms if term.strip())


SearchableEntity = Union[Repository, Opportunity, UserProfile]

ENTITY_CLASSES = {
    EntityType.REPOSITORY: Repository,
    EntityType.OPPORTUNITY: Opportunity,
    EntityType.USER: UserProfile,
}
