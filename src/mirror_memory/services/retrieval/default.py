"""Default retrieval engine."""
import asyncio
from logging import Logger
from typing import Awaitable, Optional, Sequence, TypeVar

from scitrera_app_framework import Variables

from ...models import (
    Behavior, Entity, EntityStrategy, EntityType, Fact, FactStrategy, Note, NoteStrategy, Pattern,
    PatternStrategy, PatternType, RetrievalResult, Strategy,
)
from .._constants import EXT_GRAPH_TRAVERSAL, EXT_RELEVANCE_SCORER, EXT_STORAGE_BACKEND
from ..scoring import MatchOptions, RelevanceScorer
from ..storage import StorageBackend
from ..traversal import GraphTraversal
from .base import RetrievalEngine, RetrievalEnginePluginBase

T = TypeVar("T")

HIGH_CONFIDENCE_FLOOR = 0.7
RELEVANT_CONFIDENCE_FLOOR = 0.6
PATTERN_CONFIDENCE_FLOOR = 0.6

# Note strategy -> number of topics used as match terms (0: newest notes only)
NOTE_TOPIC_COUNTS: dict[NoteStrategy, int] = {
    NoteStrategy.RELATED_TOPICS: 5,
    NoteStrategy.PAST_SIMILAR: 0,
    NoteStrategy.SIMILAR_EXPLORATIONS: 3,
    NoteStrategy.BROAD_SEARCH: 5,
    NoteStrategy.RECENT: 0,
}

# Pattern strategy -> (categories, pattern types)
PATTERN_FILTERS: dict[PatternStrategy, tuple[tuple[str, ...], tuple[PatternType, ...]]] = {
    PatternStrategy.BEHAVIORAL: (("decision", "behavior", "preference"), (PatternType.BEHAVIORAL,)),
    PatternStrategy.EMOTIONAL_PATTERNS: (("emotional", "stress", "wellbeing"), (PatternType.EMOTIONAL,)),
    PatternStrategy.THINKING_PATTERNS: (("thinking", "exploration", "curiosity"), (PatternType.COGNITIVE,)),
}


class DefaultRetrievalEngine(RetrievalEngine):
    """
    Retrieval engine over the storage backend.

    Entities are fetched first because facts anchor on them; facts, notes, patterns and
    behaviors are then fetched concurrently.
    """

    def __init__(
            self,
            storage: StorageBackend,
            scorer: RelevanceScorer,
            traversal: GraphTraversal,
            v: Variables = None,
    ):
        super().__init__(v)
        self.storage = storage
        self.scorer = scorer
        self.traversal = traversal

    async def retrieve(
            self,
            user_id: str,
            strategy: Strategy,
            mentioned_entities: Sequence[str] = (),
            topics: Sequence[str] = (),
            query_vector: Optional[list[float]] = None,
            include_historical: bool = False,
    ) -> RetrievalResult:
        names = [n for n in mentioned_entities if n and n.strip()]
        topics = [t for t in topics if t and t.strip()]
        failed: list[str] = []

        entities = await self._guarded(
            "entities", user_id, failed,
            self._fetch_entities(user_id, strategy, names, query_vector, include_historical),
        )
        facts, notes, patterns, behaviors = await asyncio.gather(
            self._guarded("facts", user_id, failed, self._fetch_facts(user_id, strategy, entities)),
            self._guarded("notes", user_id, failed, self._fetch_notes(user_id, strategy, names, topics)),
            self._guarded("patterns", user_id, failed, self._fetch_patterns(user_id, strategy)),
            self._guarded("behaviors", user_id, failed, self._fetch_behaviors(user_id, strategy, names)),
        )

        result = RetrievalResult(
            entities=entities[:strategy.entity_limit],
            facts=facts[:strategy.fact_limit],
            notes=notes[:strategy.note_limit],
            patterns=patterns[:strategy.pattern_limit],
            behaviors=behaviors[:strategy.behavior_limit],
            failed_categories=failed,
        )
        self.logger.debug("Retrieved %s for user %s (%s)", result.counts(), user_id, strategy.task_type.value)
        return result

    async def _guarded(self, category: str, user_id: str, failed: list[str], fetch: Awaitable[list[T]]) -> list[T]:
        try:
            return await fetch
        except Exception as e:
            # Only category and user id; never message content
            self.logger.warning("Failed to retrieve %s for user %s (%s)", category, user_id, type(e).__name__)
            failed.append(category)
            return []

    # ========== Entities ==========

    async def _fetch_entities(
            self,
            user_id: str,
            strategy: Strategy,
            names: list[str],
            query_vector: Optional[list[float]],
            include_historical: bool,
    ) -> list[Entity]:
        limit = strategy.entity_limit
        mode = strategy.entities
        if limit <= 0 or mode == EntityStrategy.NONE:
            return []

        if mode == EntityStrategy.TOP_BY_IMPORTANCE and query_vector:
            matches = await self.scorer.match_entities(user_id, query_vector, MatchOptions(
                match_count=limit, include_historical=include_historical,
            ))
            if matches:
                # Access already tracked by the scorer
                return [m.entity for m in matches]

        entities: list[Entity] = []
        if mode in (EntityStrategy.MENTIONED_ONLY, EntityStrategy.MENTIONED_PLUS_RELATED) and not names:
            entities = await self._top(user_id, include_historical, limit)
        elif mode == EntityStrategy.MENTIONED_ONLY:
            entities = await self._mentioned(user_id, names, include_historical, limit)
        elif mode == EntityStrategy.MENTIONED_PLUS_RELATED:
            mentioned = await self._mentioned(user_id, names, include_historical, limit)
            entities = await self._with_neighbors(user_id, mentioned, limit)
        elif mode in (EntityStrategy.SUPPORTIVE_RELATIONSHIPS, EntityStrategy.RELEVANT_PEOPLE):
            entities = await self.storage.query_entities(
                user_id, entity_types=[EntityType.PERSON], include_historical=include_historical,
                order_by="importance_score", limit=limit,
            )
        elif mode == EntityStrategy.ALL_RELATED:
            mentioned = await self._mentioned(user_id, names, include_historical, limit)
            entities = await self._with_neighbors(user_id, mentioned, limit)
            if len(entities) < limit:
                seen = {e.id for e in entities}
                for entity in await self._top(user_id, include_historical, limit):
                    if entity.id not in seen and len(entities) < limit:
                        entities.append(entity)
                        seen.add(entity.id)
        elif mode == EntityStrategy.TOP_BY_IMPORTANCE:
            entities = await self.storage.query_entities(
                user_id, include_historical=include_historical, order_by="mention_count", limit=limit,
            )

        entities = entities[:limit]
        if entities:
            await self.storage.record_entity_access(user_id, [e.id for e in entities])
        return entities

    async def _mentioned(self, user_id: str, names: list[str], include_historical: bool, limit: int) -> list[Entity]:
        if not names:
            return []
        return await self.storage.query_entities(
            user_id, name_contains=names, include_historical=include_historical, limit=limit,
        )

    async def _top(self, user_id: str, include_historical: bool, limit: int) -> list[Entity]:
        return await self.storage.query_entities(
            user_id, include_historical=include_historical, order_by="importance_score", limit=limit,
        )

    async def _with_neighbors(self, user_id: str, seeds: list[Entity], limit: int) -> list[Entity]:
        """Seeds followed by their one-hop neighbors, deduplicated, up to ``limit``."""
        entities = list(seeds[:limit])
        seen = {e.id for e in entities}
        for seed in seeds:
            if len(entities) >= limit:
                break
            for related in await self.traversal.related_entities(user_id, seed.id, limit=limit):
                if related.entity.id not in seen and len(entities) < limit:
                    entities.append(related.entity)
                    seen.add(related.entity.id)
        return entities

    # ========== Facts ==========

    async def _fetch_facts(self, user_id: str, strategy: Strategy, entities: list[Entity]) -> list[Fact]:
        limit = strategy.fact_limit
        mode = strategy.facts
        if limit <= 0 or mode in (FactStrategy.NONE, FactStrategy.MINIMAL):
            return []

        entity_ids = None
        min_confidence = None
        if mode == FactStrategy.ALL_FOR_ENTITY:
            if not entities:
                return []
            entity_ids = [e.id for e in entities]
        elif mode == FactStrategy.HIGH_CONFIDENCE:
            min_confidence = HIGH_CONFIDENCE_FLOOR
        elif mode == FactStrategy.RELEVANT:
            min_confidence = RELEVANT_CONFIDENCE_FLOOR

        return await self.storage.query_facts(
            user_id, entity_ids=entity_ids, min_confidence=min_confidence, order_by="confidence", limit=limit,
        )

    # ========== Notes ==========

    async def _fetch_notes(self, user_id: str, strategy: Strategy, names: list[str], topics: list[str]) -> list[Note]:
        limit = strategy.note_limit
        mode = strategy.notes
        if limit <= 0 or mode == NoteStrategy.NONE:
            return []

        if mode == NoteStrategy.MENTIONS_ONLY:
            if not names:
                return []
            return await self.storage.query_notes(user_id, match_terms=names, limit=limit)

        topic_count = NOTE_TOPIC_COUNTS.get(mode, 0)
        terms = topics[:topic_count]
        if terms:
            return await self.storage.query_notes(user_id, match_terms=terms, limit=limit)
        return await self.storage.query_notes(user_id, limit=limit)

    # ========== Patterns ==========

    async def _fetch_patterns(self, user_id: str, strategy: Strategy) -> list[Pattern]:
        limit = strategy.pattern_limit
        mode = strategy.patterns
        if limit <= 0 or mode == PatternStrategy.NONE:
            return []

        categories, pattern_types = PATTERN_FILTERS.get(mode, (None, None))
        return await self.storage.query_patterns(
            user_id,
            pattern_types=pattern_types,
            categories=categories,
            min_confidence=PATTERN_CONFIDENCE_FLOOR,
            limit=limit,
        )

    # ========== Behaviors ==========

    async def _fetch_behaviors(self, user_id: str, strategy: Strategy, names: list[str]) -> list[Behavior]:
        limit = strategy.behavior_limit
        if limit <= 0:
            return []

        behaviors: list[Behavior] = []
        seen: set[tuple[str, str]] = set()

        def take(candidates: list[Behavior]) -> None:
            for behavior in candidates:
                if len(behaviors) >= limit:
                    return
                if behavior.dedupe_key not in seen:
                    seen.add(behavior.dedupe_key)
                    behaviors.append(behavior)

        if names:
            take(await self.storage.query_behaviors(user_id, entity_names=names, limit=limit))
        if len(behaviors) < limit:
            # Over-fetch so deduplication can still fill the cap
            take(await self.storage.query_behaviors(user_id, limit=limit * 2))
        return behaviors


class DefaultRetrievalEnginePlugin(RetrievalEnginePluginBase):
    """Default retrieval engine plugin."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> RetrievalEngine:
        return DefaultRetrievalEngine(
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            scorer=self.get_extension(EXT_RELEVANCE_SCORER, v),
            traversal=self.get_extension(EXT_GRAPH_TRAVERSAL, v),
            v=v,
        )
