"""Default temporal fact service."""
from datetime import datetime
from logging import Logger
from typing import Optional

from scitrera_app_framework.api import Variables

from ...models import Fact, KnowledgeDiff, TimelineEvent, normalize_predicate
from ...utils import ensure_utc
from .._constants import EXT_STORAGE_BACKEND
from ..storage import StorageBackend
from .base import TemporalFactService, TemporalFactServicePluginBase


def _was_true_at(fact: Fact, at: datetime) -> bool:
    valid_from = ensure_utc(fact.valid_from or fact.created_at)
    if valid_from > at:
        return False
    if fact.valid_to is not None and ensure_utc(fact.valid_to) <= at:
        return False
    if fact.invalidated_at is not None and ensure_utc(fact.invalidated_at) <= at:
        return False
    return True


class DefaultTemporalFactService(TemporalFactService):
    """Temporal queries evaluated over the storage backend's fact rows."""

    def __init__(self, storage: StorageBackend, v: Variables = None):
        super().__init__(v)
        self._storage = storage

    async def _all_facts(self, user_id: str, entity_id: Optional[str], predicate: Optional[str] = None,
                         order_by: str = "valid_from") -> list[Fact]:
        return await self._storage.query_facts(
            user_id,
            entity_ids=[entity_id] if entity_id else None,
            predicates=[normalize_predicate(predicate)] if predicate else None,
            statuses=None,
            current_only=False,
            order_by=order_by,
        )

    async def facts_at_time(self, user_id: str, at: datetime, entity_id: Optional[str] = None) -> list[Fact]:
        at = ensure_utc(at)
        return [f for f in await self._all_facts(user_id, entity_id) if _was_true_at(f, at)]

    async def fact_history(self, user_id: str, entity_id: str, predicate: str) -> list[Fact]:
        return await self._all_facts(user_id, entity_id, predicate, order_by="version")

    async def current_facts(self, user_id: str, entity_id: Optional[str] = None) -> list[Fact]:
        return await self._storage.query_facts(user_id, entity_ids=[entity_id] if entity_id else None)

    async def entity_timeline(self, user_id: str, entity_id: str) -> list[TimelineEvent]:
        events: list[TimelineEvent] = []
        for fact in await self._all_facts(user_id, entity_id, order_by="created_at"):
            events.append(TimelineEvent(at=fact.created_at, event="learned", fact=fact))
            if fact.invalidated_at is not None:
                events.append(TimelineEvent(
                    at=fact.invalidated_at,
                    event="invalidated",
                    fact=fact,
                    reason=fact.invalidation_reason.value if fact.invalidation_reason else None,
                ))
        events.sort(key=lambda e: ensure_utc(e.at))
        return events

    async def compare_knowledge(
            self,
            user_id: str,
            t1: datetime,
            t2: datetime,
            entity_id: Optional[str] = None,
    ) -> KnowledgeDiff:
        before = await self.facts_at_time(user_id, t1, entity_id)
        after = await self.facts_at_time(user_id, t2, entity_id)

        def key(f: Fact) -> tuple[str, str, str]:
            return f.entity_id, f.predicate, f.normalized_object

        before_keys = {key(f) for f in before}
        after_keys = {key(f) for f in after}
        diff = KnowledgeDiff()
        changed_slots: set[tuple[str, str]] = set()

        for fact in after:
            if key(fact) in before_keys:
                continue
            previous = next(
                (f for f in before if f.entity_id == fact.entity_id and f.predicate == fact.predicate
                 and key(f) not in after_keys),
                None,
            )
            if previous is not None:
                diff.changed.append({
                    "predicate": fact.predicate,
                    "entity_id": fact.entity_id,
                    "before": previous.object_text,
                    "after": fact.object_text,
                })
                changed_slots.add((fact.entity_id, fact.predicate))
            else:
                diff.added.append(fact)

        for fact in before:
            if key(fact) not in after_keys and (fact.entity_id, fact.predicate) not in changed_slots:
                diff.removed.append(fact)

        self.logger.debug(
            "Compared knowledge for user %s: %d added, %d removed, %d changed",
            user_id, len(diff.added), len(diff.removed), len(diff.changed),
        )
        return diff


class DefaultTemporalFactServicePlugin(TemporalFactServicePluginBase):
    """Plugin that creates the default temporal fact service."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> TemporalFactService:
        storage: StorageBackend = self.get_extension(EXT_STORAGE_BACKEND, v)
        return DefaultTemporalFactService(storage=storage, v=v)
