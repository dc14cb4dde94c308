"""Service facade for contribution search."""

from .service import ContributionSearchService

__all__ = ["ContributionSearchService"]
