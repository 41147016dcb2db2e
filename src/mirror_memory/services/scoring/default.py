"""Default relevance scorer: 50% similarity, 20% importance tier, 15% recency, 15% access."""
import math
from datetime import datetime
from logging import Logger
from typing import Optional

from scitrera_app_framework import Variables

from ...config import MIRROR_MATCH_THRESHOLD, DEFAULT_MIRROR_MATCH_THRESHOLD
from ...models import Entity, EntityStatus, ScoredEntity
from ...utils import age_in_days, cosine_similarity, ensure_utc, rescale_similarity, utc_now
from .._constants import EXT_STORAGE_BACKEND
from ..storage import StorageBackend
from .base import (
    RelevanceScorer, RelevanceScorerPluginBase, MatchOptions,
    SIMILARITY_WEIGHT, IMPORTANCE_WEIGHT, RECENCY_WEIGHT, ACCESS_WEIGHT,
    RECENCY_WEEKLY_FACTOR, NEUTRAL_SIMILARITY, MIN_MATCH_COUNT, MAX_MATCH_COUNT,
)


def recency_boost(updated_at: Optional[datetime], now: datetime) -> float:
    """``0.95 ** age_in_weeks``."""
    return RECENCY_WEEKLY_FACTOR ** (age_in_days(updated_at, now) / 7.0)


def access_boost(access_count: int) -> float:
    """``min(1, 0.5 + ln(1 + n) / 5)``."""
    return min(1.0, 0.5 + math.log1p(max(0, access_count)) / 5.0)


class DefaultRelevanceScorer(RelevanceScorer):
    """Composite scorer backed by the storage backend for candidate loading."""

    def __init__(
            self,
            storage: StorageBackend,
            v: Variables = None,
            match_threshold: float = DEFAULT_MIRROR_MATCH_THRESHOLD,
    ):
        super().__init__(v)
        self.storage = storage
        self.match_threshold = match_threshold

    def _similarity(self, candidate: Entity, query_vector: Optional[list[float]]) -> float:
        if not query_vector or not candidate.embedding:
            return NEUTRAL_SIMILARITY
        return rescale_similarity(cosine_similarity(query_vector, candidate.embedding))

    def score_components(
            self,
            candidate: Entity,
            query_vector: Optional[list[float]] = None,
            now: Optional[datetime] = None,
    ) -> ScoredEntity:
        now = now or utc_now()
        similarity = self._similarity(candidate, query_vector)
        importance = candidate.importance.weight
        recency = recency_boost(candidate.updated_at or candidate.created_at, now)
        access = access_boost(candidate.access_count)

        final = (
                SIMILARITY_WEIGHT * similarity
                + IMPORTANCE_WEIGHT * importance
                + RECENCY_WEIGHT * recency
                + ACCESS_WEIGHT * access
        )
        return ScoredEntity(
            entity=candidate,
            similarity=similarity,
            importance_weight=importance,
            recency_boost=recency,
            access_boost=access,
            final_score=final,
        )

    async def match_entities(
            self,
            user_id: str,
            query_vector: list[float],
            options: Optional[MatchOptions] = None,
    ) -> list[ScoredEntity]:
        options = options or MatchOptions()
        now = ensure_utc(options.now) or utc_now()
        threshold = self.match_threshold if options.match_threshold is None else options.match_threshold
        limit = max(MIN_MATCH_COUNT, min(MAX_MATCH_COUNT, options.match_count))
        if not query_vector:
            return []

        candidates = await self.storage.query_entities(
            user_id, statuses=(EntityStatus.ACTIVE,), require_embedding=True,
        )

        matched: list[ScoredEntity] = []
        for entity in candidates:
            scored = self.score_components(entity, query_vector, now)
            if scored.similarity <= threshold:
                continue
            if options.memory_types is not None and entity.memory_type not in options.memory_types:
                continue
            if not options.include_historical and entity.is_historical:
                continue
            if options.exclude_expired and entity.expires_at is not None and ensure_utc(entity.expires_at) <= now:
                continue
            if entity.effective_from is not None and ensure_utc(entity.effective_from) > now:
                continue
            if entity.sensitivity_level.rank > options.sensitivity_max.rank:
                continue
            if options.min_importance is not None and entity.importance.rank < options.min_importance.rank:
                continue
            matched.append(scored)

        matched.sort(key=lambda s: s.final_score, reverse=True)
        matched = matched[:limit]

        if options.track_access and matched:
            await self.storage.record_entity_access(user_id, [s.entity.id for s in matched])
        self.logger.debug("Matched %d of %d candidates for user %s", len(matched), len(candidates), user_id)
        return matched


class DefaultRelevanceScorerPlugin(RelevanceScorerPluginBase):
    """Default relevance scorer plugin."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> RelevanceScorer:
        return DefaultRelevanceScorer(
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            v=v,
            match_threshold=v.environ(MIRROR_MATCH_THRESHOLD, default=DEFAULT_MIRROR_MATCH_THRESHOLD, type_fn=float),
        )
