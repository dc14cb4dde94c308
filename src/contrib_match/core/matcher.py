"""Personalised opportunity recommendations."""

import dataclasses
import uuid
from typing import FrozenSet, List, Optional, Tuple

from ..config import EngineConfig
from ..models.entity import EntityType, Opportunity, UserProfile
from ..models.request import MatchRequest, SearchFilters
from ..models.result import SimilarityResult
from ..utils.logging_config import StructuredLogger
from ..utils.text_processing import clean_text, normalize_terms
from ..utils.validators import validate_match_request
from .executor import QueryExecutor
from .scorer import ScoringWeights

logger = StructuredLogger(__name__)


class RecommendationMatcher:
    """
    Matches a user's profile against the open opportunity corpus.

    Eligibility is decided before any ranking: the opportunity must be
    open, pass the caller's filters, offer a contribution type the user
    prefers (when the user declared any), fit within the user's hour
    limit when both sides state one, and belong to a repository the user
    has not contributed to yet. Eligible opportunities are ranked by
    the same vector + lexical pipeline as hybrid search, using the user's
    profile embedding and their declared skills and languages as the query.

    Users without an embedding are matched on the skill proxy alone
    instead of failing.
    """

    def __init__(self, executor: QueryExecutor, config: Optional[EngineConfig] = None):
        """
        Initialize recommendation matcher.

        Args:
            executor: Query executor providing candidate ranking
            config: Engine configuration (matcher weights, interest threshold)
        """
        self.executor = executor
        self.corpus = executor.corpus
        self.config = config or executor.config

    async def match(self, request: MatchRequest) -> List[SimilarityResult]:
        """
        Recommend opportunities for one user.

        Args:
            request: Match request

        Returns:
            At most ``limit`` results, best first, each with match reasons

        Raises:
            InvalidArgumentError: If the request is malformed
            NotFoundError: If the user id does not resolve to a profile
            IndexUnavailableError: If every queried index is unavailable
            QueryTimeoutError: If the query exceeds its time budget
        """
        request = validate_match_request(request)
        user = self.corpus.get_user(request.user_id)
        log = logger.with_context(user_id=user.id, request_id=uuid.uuid4().hex[:8])

        async def run() -> List[SimilarityResult]:
            candidates = await self.executor.in_pool(self.eligible_ids, user, request.filters)
            if not candidates:
                log.debug("No eligible opportunities")
                return []

            query_text = user.interest_query()
            weights = self._weights_for(user, query_text, log)
            return await self.executor.rank_candidates(
                EntityType.OPPORTUNITY,
                candidates,
                query_text,
                user.embedding,
                weights,
                request.min_score,
                request.limit,
                log=log,
            )

        results = await self.executor.run_bounded(run(), log)
        log.info(f"Matched {len(results)} opportunities")
        return [
            dataclasses.replace(result, reasons=self.match_reasons(user, result))
            for result in results
        ]

    def eligible_ids(self, user: UserProfile, filters: SearchFilters) -> FrozenSet[str]:
        """Opportunities the user may be recommended."""
        opportunities = self.corpus.entities(EntityType.OPPORTUNITY)
        preferred = user.preferred_contribution_types
        return frozenset(
            opportunity_id
            for opportunity_id in self.corpus.candidate_ids(EntityType.OPPORTUNITY, filters)
            if opportunity_id in opportunities
            and self._is_eligible(opportunities[opportunity_id], user, preferred)
        )

    @staticmethod
    def _is_eligible(opportunity: Opportunity, user: UserProfile, preferred) -> bool:
        if not opportunity.is_active:
            return False
        if preferred and opportunity.contribution_type not in preferred:
            return False
        if opportunity.repository_id in user.contributed_repository_ids:
            return False
        if (
            user.max_estimated_hours is not None
            and opportunity.estimated_hours is not None
            and opportunity.estimated_hours > user.max_estimated_hours
        ):
            return False
        return True

    def _weights_for(self, user: UserProfile, query_text: str, log) -> ScoringWeights:
        if user.embedding is None:
            log.info("User has no embedding, matching on declared skills only")
            return ScoringWeights(text_weight=1.0, vector_weight=0.0)

        text_weight = self.config.match_text_weight if query_text else 0.0
        vector_weight = self.config.match_vector_weight
        if text_weight == 0 and vector_weight == 0:
            return ScoringWeights(text_weight=1.0, vector_weight=0.0)
        return ScoringWeights(text_weight=text_weight, vector_weight=vector_weight)

    def match_reasons(self, user: UserProfile, result: SimilarityResult) -> Tuple[str, ...]:
        """Explain why an opportunity was recommended."""
        opportunity = result.entity
        if opportunity is None:
            return ()

        reasons = []
        if (
            result.vector_distance is not None
            and 1.0 - result.vector_distance > self.config.interest_threshold
        ):
            reasons.append("Similar to your interests")
        if opportunity.difficulty == user.skill_level:
            reasons.append("Matches your skill level")
        if user.skill_terms & opportunity.skill_terms:
            reasons.append("Uses your skills")
        if user.language_terms & self._languages_of(opportunity):
            reasons.append("Uses your preferred languages")
        if opportunity.good_first_issue:
            reasons.append("Good first issue")
        if opportunity.help_wanted:
            reasons.append("Help wanted")
        if opportunity.mentorship_available:
            reasons.append("Mentorship available")
        return tuple(reasons)

    def _languages_of(self, opportunity: Opportunity) -> FrozenSet[str]:
        languages = normalize_terms(opportunity.technologies)
        repository = self.corpus.get(EntityType.REPOSITORY, opportunity.repository_id)
        if repository is not None and repository.language:
            languages = languages | {clean_text(repository.language)}
        return languages
