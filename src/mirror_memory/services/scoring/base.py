"""
Relevance Scorer - Base classes and interfaces.

Composite relevance scoring for entity candidates and the enhanced (filtered) semantic
match used by importance-driven retrieval.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_RELEVANCE_SCORER, DEFAULT_MIRROR_RELEVANCE_SCORER
from ...models import Entity, ImportanceTier, MemoryType, ScoredEntity, SensitivityLevel
from .._constants import EXT_RELEVANCE_SCORER, EXT_STORAGE_BACKEND

# Composite weights (sum to 1.0)
SIMILARITY_WEIGHT = 0.5
IMPORTANCE_WEIGHT = 0.2
RECENCY_WEIGHT = 0.15
ACCESS_WEIGHT = 0.15

RECENCY_WEEKLY_FACTOR = 0.95
NEUTRAL_SIMILARITY = 0.5

MIN_MATCH_COUNT = 1
MAX_MATCH_COUNT = 100


@dataclass
class MatchOptions:
    """Filters for ``RelevanceScorer.match_entities``."""

    match_threshold: Optional[float] = None  # Rescaled similarity must exceed this; None uses the scorer default
    match_count: int = 10  # Clamped to [1, 100]
    memory_types: Optional[list[MemoryType]] = None
    include_historical: bool = False
    exclude_expired: bool = True
    sensitivity_max: SensitivityLevel = SensitivityLevel.NORMAL
    min_importance: Optional[ImportanceTier] = None
    track_access: bool = True
    now: Optional[datetime] = None


class RelevanceScorer(ABC):
    """Interface for relevance scoring."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    def score_components(
            self,
            candidate: Entity,
            query_vector: Optional[list[float]] = None,
            now: Optional[datetime] = None,
    ) -> ScoredEntity:
        """Score a candidate and expose each signal."""
        pass

    def score(
            self,
            candidate: Entity,
            query_vector: Optional[list[float]] = None,
            now: Optional[datetime] = None,
    ) -> float:
        """Composite relevance in [0, 1]."""
        return self.score_components(candidate, query_vector, now).final_score

    @abstractmethod
    async def match_entities(
            self,
            user_id: str,
            query_vector: list[float],
            options: Optional[MatchOptions] = None,
    ) -> list[ScoredEntity]:
        """Semantic match with temporal, sensitivity and importance filters, best first."""
        pass


# noinspection PyAbstractClass
class RelevanceScorerPluginBase(Plugin):
    """Base plugin for relevance scorers."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_RELEVANCE_SCORER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_RELEVANCE_SCORER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_RELEVANCE_SCORER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_RELEVANCE_SCORER, DEFAULT_MIRROR_RELEVANCE_SCORER)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND,)
