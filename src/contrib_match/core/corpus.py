"""In-memory entity corpus and its storage adapter."""

import dataclasses
import json
import logging
import threading
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from ..models.entity import (
    ENTITY_CLASSES,
    EntityType,
    Opportunity,
    Repository,
    SearchableEntity,
    UserProfile,
)
from ..models.request import SearchFilters
from ..utils.text_processing import clean_text, normalize_terms
from .codec import decode, encode
from .exceptions import CorruptEmbeddingError, InvalidArgumentError, NotFoundError
from .lexical_index import LexicalIndex
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


class Corpus:
    """
    Searchable entities per type, kept in step with both indexes.

    The corpus is the read interface used by query execution (lookups and
    filter evaluation) and the write entry point for the embedding
    pipeline. Records are published as immutable mappings, so readers
    never lock; writers serialise on one lock and update the indexes
    before releasing it.

    The bracketed text form of embeddings exists only here, in
    :meth:`save` and :meth:`load`.
    """

    def __init__(
        self,
        vector_index: Optional[VectorIndex] = None,
        lexical_index: Optional[LexicalIndex] = None
    ):
        """
        Initialize an empty corpus.

        Args:
            vector_index: Index receiving entity embeddings
            lexical_index: Index receiving entity text fields
        """
        self.vector_index = vector_index or VectorIndex()
        self.lexical_index = lexical_index or LexicalIndex()
        self._records: Dict[EntityType, Mapping[str, SearchableEntity]] = {
            entity_type: MappingProxyType({}) for entity_type in EntityType
        }
        self._write_lock = threading.Lock()

    def upsert(self, entity: SearchableEntity) -> None:
        """Insert or replace one entity."""
        self.upsert_many([entity])

    def upsert_many(self, entities: Iterable[SearchableEntity]) -> None:
        """
        Insert or replace entities, refreshing both indexes.

        Raises:
            InvalidArgumentError: If an object is not a searchable entity
        """
        # Later copies of an id within one batch replace earlier ones
        grouped: Dict[EntityType, Dict[str, SearchableEntity]] = {}
        for entity in entities:
            if not isinstance(entity, (Repository, Opportunity, UserProfile)):
                raise InvalidArgumentError(
                    f"Not a searchable entity: {type(entity).__name__}"
                )
            grouped.setdefault(entity.entity_type, {})[entity.id] = entity

        with self._write_lock:
            for entity_type, latest in grouped.items():
                batch = list(latest.values())
                records = dict(self._records[entity_type])
                records.update((entity.id, entity) for entity in batch)

                embedded = [(e.id, e.embedding) for e in batch if e.embedding is not None]
                self.vector_index.upsert_many(entity_type, embedded)
                for entity in batch:
                    if entity.embedding is None:
                        self.vector_index.remove(entity_type, entity.id)
                self.lexical_index.upsert_many(
                    entity_type, [(entity.id, entity.text_fields) for entity in batch]
                )

                self._records[entity_type] = MappingProxyType(records)
                logger.info(f"Stored {len(batch)} {entity_type.value} records")

    def remove(self, entity_type: EntityType, entity_id: str) -> bool:
        """Remove an entity from the corpus and both indexes."""
        with self._write_lock:
            if entity_id not in self._records[entity_type]:
                return False
            records = dict(self._records[entity_type])
            del records[entity_id]
            self.vector_index.remove(entity_type, entity_id)
            self.lexical_index.remove(entity_type, entity_id)
            self._records[entity_type] = MappingProxyType(records)

        logger.info(f"Removed {entity_type.value} {entity_id}")
        return True

    def get(self, entity_type: EntityType, entity_id: str) -> Optional[SearchableEntity]:
        return self._records[entity_type].get(entity_id)

    def get_user(self, user_id: str) -> UserProfile:
        """
        Resolve a user profile.

        Raises:
            NotFoundError: If no profile has this id
        """
        user = self._records[EntityType.USER].get(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    def entities(self, entity_type: EntityType) -> Mapping[str, SearchableEntity]:
        """Read-only snapshot of one entity type's records."""
        return self._records[entity_type]

    def candidate_ids(self, entity_type: EntityType, filters: SearchFilters) -> FrozenSet[str]:
        """
        Ids of the entities of a type that pass the filters.

        Repository lookups for opportunity filters (language, stars) use
        the same snapshot moment as the opportunities themselves.
        """
        records = self._records[entity_type]
        repositories = self._records[EntityType.REPOSITORY]
        return frozenset(
            entity_id for entity_id, entity in records.items()
            if self._passes(entity, filters, repositories)
        )

    def _passes(
        self,
        entity: SearchableEntity,
        filters: SearchFilters,
        repositories: Mapping[str, Repository]
    ) -> bool:
        language = clean_text(filters.language) if filters.language else None
        skills = normalize_terms(filters.skills_required) if filters.skills_required else None

        if isinstance(entity, Repository):
            if filters.active_only and not entity.is_active:
                return False
            if language and clean_text(entity.language or "") != language:
                return False
            if filters.difficulty and entity.complexity_level != filters.difficulty:
                return False
            if filters.min_stars is not None and entity.stars < filters.min_stars:
                return False
            if skills and not skills & normalize_terms(entity.topics):
                return False
            return True

        if isinstance(entity, Opportunity):
            repository = repositories.get(entity.repository_id)
            if filters.active_only and not entity.is_active:
                return False
            if language:
                languages = normalize_terms(entity.technologies)
                if repository is not None and repository.language:
                    languages = languages | {clean_text(repository.language)}
                if language not in languages:
                    return False
            if filters.difficulty and entity.difficulty != filters.difficulty:
                return False
            if filters.min_stars is not None:
                if repository is None or repository.stars < filters.min_stars:
                    return False
            if skills and not skills & entity.skill_terms:
                return False
            return True

        # User profiles have no stars or lifecycle status
        if language and language not in entity.language_terms:
            return False
        if filters.difficulty and entity.skill_level != filters.difficulty:
            return False
        if skills and not skills & entity.skill_terms:
            return False
        return True

    def save(self, path: Path) -> int:
        """
        Write every record as a JSON line.

        Embeddings are stored in the bracketed text form.

        Returns:
            Number of records written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        written = 0
        with open(path, 'w', encoding='utf-8') as f:
            for entity_type in EntityType:
                for entity_id in sorted(self._records[entity_type]):
                    entity = self._records[entity_type][entity_id]
                    f.write(json.dumps(_to_record(entity), sort_keys=True))
                    f.write("\n")
                    written += 1

        logger.info(f"Saved {written} records to {path}")
        return written

    def load(self, path: Path) -> int:
        """
        Read records written by :meth:`save` and upsert them.

        Returns:
            Number of records loaded

        Raises:
            CorruptEmbeddingError: If a stored embedding does not decode to
                exactly 1536 numbers
            InvalidArgumentError: If a record is otherwise malformed
        """
        path = Path(path)
        entities = []
        with open(path, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    entities.append(_from_record(json.loads(line)))
                except CorruptEmbeddingError as e:
                    raise CorruptEmbeddingError(f"{path}:{line_number}: {e}")
                except (ValueError, TypeError, KeyError) as e:
                    raise InvalidArgumentError(f"{path}:{line_number}: invalid record: {e}")

        self.upsert_many(entities)
        logger.info(f"Loaded {len(entities)} records from {path}")
        return len(entities)

    def stats(self) -> Dict[str, Any]:
        """Record counts and embedding coverage per entity type."""
        stats = {}
        for entity_type in EntityType:
            records = self._records[entity_type]
            total = len(records)
            embedded = sum(1 for entity in records.values() if entity.embedding is not None)
            stats[entity_type.value] = {
                'total': total,
                'with_embeddings': embedded,
                'embedding_coverage': (embedded / total) * 100 if total > 0 else 0.0,
            }
        return stats


def _to_record(entity: SearchableEntity) -> Dict[str, Any]:
    fields = {}
    for f in dataclasses.fields(entity):
        if f.name == "embedding":
            continue
        fields[f.name] = _plain(getattr(entity, f.name))
    return {
        "entity_type": entity.entity_type.value,
        "fields": fields,
        "embedding": encode(entity.embedding) if entity.embedding is not None else None,
    }


def _from_record(record: Dict[str, Any]) -> SearchableEntity:
    entity_class = ENTITY_CLASSES[EntityType(record["entity_type"])]
    stored = record.get("embedding")
    embedding = decode(stored) if stored is not None else None
    return entity_class(**record["fields"], embedding=embedding)


def _plain(value: Any) -> Any:
    """JSON-compatible form of a record field."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, frozenset):
        return sorted(_plain(item) for item in value)
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    return value
