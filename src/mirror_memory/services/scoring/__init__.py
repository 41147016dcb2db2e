"""Relevance scorer package."""
from .base import RelevanceScorer, RelevanceScorerPluginBase, MatchOptions
from .._constants import EXT_RELEVANCE_SCORER

from scitrera_app_framework import Variables, get_extension


def get_relevance_scorer(v: Variables = None) -> RelevanceScorer:
    """Get the relevance scorer instance."""
    return get_extension(EXT_RELEVANCE_SCORER, v)


__all__ = (
    'RelevanceScorer',
    'RelevanceScorerPluginBase',
    'MatchOptions',
    'get_relevance_scorer',
    'EXT_RELEVANCE_SCORER',
)
