"""Generate a synthetic contribution corpus."""

import random
from pathlib import Path
from typing import Dict, List

import numpy as np

from contrib_match.config import EMBEDDING_DIMENSION
from contrib_match.core.corpus import Corpus
from contrib_match.models.entity import (
    ContributionType,
    Opportunity,
    OpportunityStatus,
    Repository,
    SkillLevel,
    UserProfile,
)

# Each theme gets its own embedding direction so related entities cluster.
THEMES = {
    "machine learning": ("Python", ["python", "numpy", "pytorch", "statistics"]),
    "web frontend": ("TypeScript", ["typescript", "react", "css", "accessibility"]),
    "databases": ("Rust", ["rust", "storage engines", "sql", "concurrency"]),
    "devops": ("Go", ["go", "kubernetes", "docker", "terraform"]),
    "mobile apps": ("Kotlin", ["kotlin", "android", "ui design", "testing"]),
}

THEME_BY_LANGUAGE = {language: theme for theme, (language, _) in THEMES.items()}

ISSUE_TEMPLATES = {
    ContributionType.BUG_FIX: "Fix {thing} crashing on {edge}",
    ContributionType.FEATURE: "Add {thing} support for {edge}",
    ContributionType.DOCUMENTATION: "Document {thing} configuration",
    ContributionType.TEST: "Increase test coverage of {thing}",
    ContributionType.REFACTOR: "Simplify the {thing} module",
    ContributionType.SECURITY: "Validate {thing} input against {edge}",
}

THINGS = ["tokenizer", "scheduler", "cache", "exporter", "router", "query planner"]
EDGES = ["empty input", "unicode names", "large files", "slow networks", "old clients"]


def _theme_vectors(rng: np.random.Generator) -> Dict[str, np.ndarray]:
    return {theme: rng.standard_normal(EMBEDDING_DIMENSION) for theme in THEMES}


def _near(rng: np.random.Generator, centre: np.ndarray, spread: float = 0.4) -> np.ndarray:
    return centre + spread * rng.standard_normal(EMBEDDING_DIMENSION)


def generate_repositories(rng, centres, count: int = 25) -> List[Repository]:
    """Generate sample repositories."""
    repositories = []
    for i in range(count):
        theme = random.choice(list(THEMES))
        language, skills = THEMES[theme]
        slug = f"{theme.split()[0]}-{random.choice(THINGS).replace(' ', '-')}-{i}"
        repositories.append(Repository(
            id=f"repo_{i:03d}",
            name=slug,
            full_name=f"org{i % 7}/{slug}",
            description=f"{language} project for {theme} with a focus on {random.choice(THINGS)}",
            language=language,
            topics=tuple(random.sample(skills, 2)),
            stars=random.randint(0, 20000),
            health_score=round(random.uniform(20, 100), 1),
            complexity_level=random.choice(list(SkillLevel)),
            embedding=_near(rng, centres[theme]),
        ))
    return repositories


def generate_opportunities(rng, centres, repositories, count: int = 80) -> List[Opportunity]:
    """Generate sample opportunities spread over the repositories."""
    opportunities = []
    for i in range(count):
        repository = random.choice(repositories)
        theme = THEME_BY_LANGUAGE[repository.language]
        _, skills = THEMES[theme]
        contribution_type = random.choice(list(ContributionType))
        title = ISSUE_TEMPLATES[contribution_type].format(
            thing=random.choice(THINGS), edge=random.choice(EDGES)
        )
        good_first_issue = random.random() < 0.25
        opportunities.append(Opportunity(
            id=f"opp_{i:03d}",
            repository_id=repository.id,
            title=title,
            description=f"{title}. Affects the {theme} pipeline in {repository.full_name}.",
            contribution_type=contribution_type,
            status=random.choices(
                list(OpportunityStatus), weights=[70, 10, 5, 10, 5]
            )[0],
            difficulty=SkillLevel.BEGINNER if good_first_issue else random.choice(list(SkillLevel)),
            required_skills=tuple(random.sample(skills, 2)),
            technologies=(repository.language.lower(),),
            labels=("good first issue",) if good_first_issue else ("enhancement",),
            good_first_issue=good_first_issue,
            help_wanted=random.random() < 0.3,
            mentorship_available=random.random() < 0.2,
            estimated_hours=random.choice([None, 2, 4, 8, 16]),
            priority=random.randint(0, 100),
            embedding=_near(rng, centres[theme]),
        ))
    return opportunities


def generate_users(rng, centres, repositories, count: int = 15) -> List[UserProfile]:
    """Generate sample developer profiles."""
    users = []
    for i in range(count):
        theme = random.choice(list(THEMES))
        language, skills = THEMES[theme]
        users.append(UserProfile(
            id=f"user_{i:03d}",
            username=f"dev{i:03d}",
            name=f"Developer {i}",
            bio=f"Enjoys {theme} and {random.choice(THINGS)} internals",
            skills=tuple(random.sample(skills, 3)),
            preferred_languages=(language,),
            skill_level=random.choice(list(SkillLevel)),
            preferred_contribution_types=frozenset(
                random.sample(list(ContributionType), random.randint(0, 3))
            ),
            max_estimated_hours=random.choice([None, 4, 8, 16]),
            contributed_repository_ids=frozenset(
                repo.id for repo in random.sample(repositories, 2)
            ),
            # Some profiles have not been embedded yet
            embedding=_near(rng, centres[theme]) if i % 5 else None,
        ))
    return users


def save_sample_corpus(output_path: Path, seed: int = 42) -> int:
    """Generate the sample corpus and save it as JSON lines."""
    random.seed(seed)
    rng = np.random.default_rng(seed)
    centres = _theme_vectors(rng)

    repositories = generate_repositories(rng, centres)
    opportunities = generate_opportunities(rng, centres, repositories)
    users = generate_users(rng, centres, repositories)

    corpus = Corpus()
    corpus.upsert_many([*repositories, *opportunities, *users])
    written = corpus.save(output_path)
    print(f"Saved {written} records to {output_path}")
    return written


if __name__ == "__main__":
    save_sample_corpus(Path(__file__).parent / "sample_corpus.jsonl")
