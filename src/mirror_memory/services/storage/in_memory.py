"""
In-memory storage backend.

Provides a complete storage implementation that keeps all data in dictionaries keyed by
user id. Data is lost on restart - use for tests or when embedding the core in another
process that owns persistence.
"""
import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from logging import Logger
from typing import Any, Iterable, Optional, Sequence, TypeVar

from pydantic import BaseModel
from scitrera_app_framework import Variables

from .base import StorageBackend, StoragePluginBase, ACTIVE_ONLY, ENTITY_ORDER_FIELDS, FACT_ORDER_FIELDS
from ...models import (
    Behavior, BehaviorStatus, Entity, EntityStatus, EntityType, Fact, FactStatus, Note, NoteStatus,
    OperationRecord, Pattern, PatternStatus, PatternType, Relationship,
)
from ...utils import utc_now

M = TypeVar("M", bound=BaseModel)


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts below any value
    return value is not None, value


def _ordered(items: list[M], order_by: str, limit: Optional[int]) -> list[M]:
    """Sort descending by ``order_by``, newest first on ties, then apply ``limit``."""
    items = sorted(items, key=lambda x: x.id)
    if hasattr(items[0] if items else None, "created_at"):
        items.sort(key=lambda x: x.created_at, reverse=True)
    items.sort(key=lambda x: _sort_key(getattr(x, order_by)), reverse=True)
    if limit is not None:
        items = items[:max(0, limit)]
    return items


def _apply_updates(model: M, updates: dict[str, Any]) -> M:
    """Return a re-validated copy of ``model`` with ``updates`` applied."""
    data = model.model_dump()
    data.update(updates)
    if "updated_at" in data and "updated_at" not in updates:
        data["updated_at"] = utc_now()
    return type(model).model_validate(data)


def _contains_any(haystacks: Iterable[Optional[str]], needles: Sequence[str]) -> bool:
    lowered = [h.lower() for h in haystacks if h]
    return any(n.lower() in h for n in needles if n for h in lowered)


class MemoryStorageBackend(StorageBackend):
    """
    In-memory storage backend.

    Every read returns copies, so callers can only change stored rows through the
    ``update_*`` methods.
    """

    def __init__(self, v: Variables = None):
        super().__init__(v)
        # Storage containers: user_id -> {record_id -> record}
        self._entities: dict[str, dict[str, Entity]] = {}
        self._facts: dict[str, dict[str, Fact]] = {}
        self._notes: dict[str, dict[str, Note]] = {}
        self._patterns: dict[str, dict[str, Pattern]] = {}
        self._behaviors: dict[str, dict[str, Behavior]] = {}
        self._relationships: dict[str, dict[str, Relationship]] = {}
        self._operations: dict[str, list[OperationRecord]] = {}

        self._user_locks: dict[str, asyncio.Lock] = {}
        self._in_transaction: ContextVar[frozenset] = ContextVar(f"mirror_memory_tx_{id(self)}", default=frozenset())
        self.logger.info("Initialized MemoryStorageBackend")

    async def connect(self) -> None:
        """Initialize storage (no-op for in-memory)."""
        self.logger.info("In-memory storage connected")

    async def disconnect(self) -> None:
        """Close storage (no-op for in-memory)."""
        self.logger.info("In-memory storage disconnected")

    async def health_check(self) -> bool:
        """Always healthy."""
        return True

    @asynccontextmanager
    async def transaction(self, user_id: str):
        active = self._in_transaction.get()
        if user_id in active:
            yield
            return

        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            # Snapshot for rollback
            snapshot = {
                name: {k: rows.copy() for k, rows in store.items() if k == user_id}
                for name, store in self._stores().items()
            }
            token = self._in_transaction.set(active | {user_id})
            try:
                yield
            except BaseException:
                for name, store in self._stores().items():
                    store.pop(user_id, None)
                    store.update(snapshot[name])
                self.logger.debug("Rolled back transaction for user %s", user_id)
                raise
            finally:
                self._in_transaction.reset(token)

    def _stores(self) -> dict[str, dict[str, Any]]:
        return {
            "entities": self._entities,
            "facts": self._facts,
            "notes": self._notes,
            "patterns": self._patterns,
            "behaviors": self._behaviors,
            "relationships": self._relationships,
            "operations": self._operations,
        }

    # ========== Entity Operations ==========

    async def create_entity(self, entity: Entity) -> Entity:
        self._entities.setdefault(entity.user_id, {})[entity.id] = entity.model_copy(deep=True)
        self.logger.debug("Created entity: %s for user: %s", entity.id, entity.user_id)
        return entity.model_copy(deep=True)

    async def get_entity(self, user_id: str, entity_id: str) -> Optional[Entity]:
        entity = self._entities.get(user_id, {}).get(entity_id)
        return entity.model_copy(deep=True) if entity else None

    async def update_entity(self, user_id: str, entity_id: str, **updates) -> Optional[Entity]:
        rows = self._entities.get(user_id, {})
        entity = rows.get(entity_id)
        if not entity:
            return None
        rows[entity_id] = _apply_updates(entity, updates)
        return rows[entity_id].model_copy(deep=True)

    async def delete_entity(self, user_id: str, entity_id: str) -> bool:
        if self._entities.get(user_id, {}).pop(entity_id, None) is None:
            return False
        facts = self._facts.get(user_id, {})
        for fact_id in [f.id for f in facts.values() if f.entity_id == entity_id]:
            del facts[fact_id]
        self.logger.debug("Deleted entity: %s for user: %s", entity_id, user_id)
        return True

    async def query_entities(
            self,
            user_id: str,
            name_contains: Optional[Sequence[str]] = None,
            entity_types: Optional[Iterable[EntityType]] = None,
            statuses: Optional[Iterable[EntityStatus]] = ACTIVE_ONLY,
            include_superseded: bool = False,
            include_historical: bool = True,
            require_embedding: bool = False,
            order_by: str = "importance_score",
            limit: Optional[int] = None,
    ) -> list[Entity]:
        if order_by not in ENTITY_ORDER_FIELDS:
            raise ValueError(f"Unsupported entity ordering: {order_by}")
        types = set(entity_types) if entity_types is not None else None
        allowed = set(statuses) if statuses is not None else None
        names = [n for n in (name_contains or []) if n and n.strip()]

        results = []
        for entity in self._entities.get(user_id, {}).values():
            if allowed is not None and entity.status not in allowed:
                continue
            if types is not None and entity.entity_type not in types:
                continue
            if not include_superseded and entity.superseded_by is not None:
                continue
            if not include_historical and entity.is_historical:
                continue
            if require_embedding and not entity.embedding:
                continue
            if name_contains is not None and not _contains_any([entity.name, *entity.aliases], names):
                continue
            results.append(entity.model_copy(deep=True))
        return _ordered(results, order_by, limit)

    async def record_entity_access(self, user_id: str, entity_ids: Sequence[str]) -> None:
        rows = self._entities.get(user_id, {})
        now = utc_now()
        for entity_id in set(entity_ids):
            entity = rows.get(entity_id)
            if entity:
                rows[entity_id] = entity.model_copy(update={
                    "access_count": entity.access_count + 1,
                    "last_accessed_at": now,
                })

    async def list_user_ids(self) -> list[str]:
        return sorted(user_id for user_id, rows in self._entities.items() if rows)

    # ========== Fact Operations ==========

    async def create_fact(self, fact: Fact) -> Fact:
        self._facts.setdefault(fact.user_id, {})[fact.id] = fact.model_copy(deep=True)
        self.logger.debug("Created fact: %s (%s) for entity: %s", fact.id, fact.predicate, fact.entity_id)
        return fact.model_copy(deep=True)

    async def get_fact(self, user_id: str, fact_id: str) -> Optional[Fact]:
        fact = self._facts.get(user_id, {}).get(fact_id)
        return fact.model_copy(deep=True) if fact else None

    async def update_fact(self, user_id: str, fact_id: str, **updates) -> Optional[Fact]:
        rows = self._facts.get(user_id, {})
        fact = rows.get(fact_id)
        if not fact:
            return None
        rows[fact_id] = _apply_updates(fact, updates)
        return rows[fact_id].model_copy(deep=True)

    async def query_facts(
            self,
            user_id: str,
            entity_ids: Optional[Sequence[str]] = None,
            predicates: Optional[Iterable[str]] = None,
            statuses: Optional[Iterable[FactStatus]] = (FactStatus.ACTIVE,),
            current_only: bool = True,
            min_confidence: Optional[float] = None,
            object_text: Optional[str] = None,
            source_note_id: Optional[str] = None,
            order_by: str = "confidence",
            limit: Optional[int] = None,
    ) -> list[Fact]:
        if order_by not in FACT_ORDER_FIELDS:
            raise ValueError(f"Unsupported fact ordering: {order_by}")
        ids = set(entity_ids) if entity_ids is not None else None
        preds = set(predicates) if predicates is not None else None
        allowed = set(statuses) if statuses is not None else None
        needle = object_text.strip().lower() if object_text is not None else None

        results = []
        for fact in self._facts.get(user_id, {}).values():
            if ids is not None and fact.entity_id not in ids:
                continue
            if preds is not None and fact.predicate not in preds:
                continue
            if allowed is not None and fact.status not in allowed:
                continue
            if current_only and not fact.is_current:
                continue
            if min_confidence is not None and fact.confidence < min_confidence:
                continue
            if needle is not None and fact.normalized_object != needle:
                continue
            if source_note_id is not None and fact.source_note_id != source_note_id:
                continue
            results.append(fact.model_copy(deep=True))
        return _ordered(results, order_by, limit)

    # ========== Note Operations ==========

    async def create_note(self, note: Note) -> Note:
        self._notes.setdefault(note.user_id, {})[note.id] = note.model_copy(deep=True)
        return note.model_copy(deep=True)

    async def get_note(self, user_id: str, note_id: str) -> Optional[Note]:
        note = self._notes.get(user_id, {}).get(note_id)
        return note.model_copy(deep=True) if note else None

    async def update_note(self, user_id: str, note_id: str, **updates) -> Optional[Note]:
        rows = self._notes.get(user_id, {})
        note = rows.get(note_id)
        if not note:
            return None
        rows[note_id] = _apply_updates(note, updates)
        return rows[note_id].model_copy(deep=True)

    async def remove_note(self, user_id: str, note_id: str) -> bool:
        return self._notes.get(user_id, {}).pop(note_id, None) is not None

    async def query_notes(
            self,
            user_id: str,
            match_terms: Optional[Sequence[str]] = None,
            include_deleted: bool = False,
            limit: Optional[int] = None,
    ) -> list[Note]:
        terms = [t for t in (match_terms or []) if t and t.strip()]
        results = []
        for note in self._notes.get(user_id, {}).values():
            if not include_deleted and note.status == NoteStatus.DELETED:
                continue
            if match_terms is not None and not _contains_any([note.title, note.category], terms):
                continue
            results.append(note.model_copy(deep=True))
        return _ordered(results, "created_at", limit)

    # ========== Pattern Operations ==========

    async def create_pattern(self, pattern: Pattern) -> Pattern:
        self._patterns.setdefault(pattern.user_id, {})[pattern.id] = pattern.model_copy(deep=True)
        return pattern.model_copy(deep=True)

    async def query_patterns(
            self,
            user_id: str,
            pattern_types: Optional[Iterable[PatternType]] = None,
            categories: Optional[Iterable[str]] = None,
            min_confidence: Optional[float] = None,
            exclude_rejected: bool = True,
            limit: Optional[int] = None,
    ) -> list[Pattern]:
        types = set(pattern_types) if pattern_types is not None else None
        cats = {c.lower() for c in categories} if categories is not None else None

        results = []
        for pattern in self._patterns.get(user_id, {}).values():
            if exclude_rejected and pattern.status == PatternStatus.REJECTED:
                continue
            if min_confidence is not None and pattern.confidence < min_confidence:
                continue
            if types is not None or cats is not None:
                type_match = types is not None and pattern.pattern_type in types
                cat_match = cats is not None and (pattern.category or "").lower() in cats
                if not (type_match or cat_match):
                    continue
            results.append(pattern.model_copy(deep=True))
        return _ordered(results, "confidence", limit)

    # ========== Behavior Operations ==========

    async def create_behavior(self, behavior: Behavior) -> Behavior:
        self._behaviors.setdefault(behavior.user_id, {})[behavior.id] = behavior.model_copy(deep=True)
        return behavior.model_copy(deep=True)

    async def update_behavior(self, user_id: str, behavior_id: str, **updates) -> Optional[Behavior]:
        rows = self._behaviors.get(user_id, {})
        behavior = rows.get(behavior_id)
        if not behavior:
            return None
        rows[behavior_id] = _apply_updates(behavior, updates)
        return rows[behavior_id].model_copy(deep=True)

    async def query_behaviors(
            self,
            user_id: str,
            entity_names: Optional[Sequence[str]] = None,
            predicate: Optional[str] = None,
            statuses: Optional[Iterable[BehaviorStatus]] = (BehaviorStatus.ACTIVE,),
            source_note_id: Optional[str] = None,
            limit: Optional[int] = None,
    ) -> list[Behavior]:
        allowed = set(statuses) if statuses is not None else None
        names = [n for n in (entity_names or []) if n and n.strip()]

        results = []
        for behavior in self._behaviors.get(user_id, {}).values():
            if allowed is not None and behavior.status not in allowed:
                continue
            if predicate is not None and behavior.predicate != predicate:
                continue
            if source_note_id is not None and behavior.source_note_id != source_note_id:
                continue
            if entity_names is not None and not _contains_any([behavior.entity_name], names):
                continue
            results.append(behavior.model_copy(deep=True))
        return _ordered(results, "confidence", limit)

    # ========== Relationship Operations ==========

    async def create_relationship(self, relationship: Relationship) -> Relationship:
        self._relationships.setdefault(relationship.user_id, {})[relationship.id] = relationship.model_copy(deep=True)
        return relationship.model_copy(deep=True)

    async def update_relationship(self, user_id: str, relationship_id: str, **updates) -> Optional[Relationship]:
        rows = self._relationships.get(user_id, {})
        relationship = rows.get(relationship_id)
        if not relationship:
            return None
        rows[relationship_id] = _apply_updates(relationship, updates)
        return rows[relationship_id].model_copy(deep=True)

    async def query_relationships(
            self,
            user_id: str,
            entity_id: Optional[str] = None,
            source_entity_id: Optional[str] = None,
            target_entity_id: Optional[str] = None,
            relationship_type: Optional[str] = None,
            active_only: bool = True,
            limit: Optional[int] = None,
    ) -> list[Relationship]:
        results = []
        for rel in self._relationships.get(user_id, {}).values():
            if entity_id is not None and entity_id not in (rel.source_entity_id, rel.target_entity_id):
                continue
            if source_entity_id is not None and rel.source_entity_id != source_entity_id:
                continue
            if target_entity_id is not None and rel.target_entity_id != target_entity_id:
                continue
            if relationship_type is not None and rel.relationship_type != relationship_type:
                continue
            if active_only and not rel.is_active:
                continue
            results.append(rel.model_copy(deep=True))
        return _ordered(results, "strength", limit)

    # ========== Operation Log ==========

    async def record_operation(self, record: OperationRecord) -> OperationRecord:
        self._operations.setdefault(record.user_id, []).append(record)
        return record

    async def list_operations(self, user_id: str, limit: int = 50) -> list[OperationRecord]:
        return list(reversed(self._operations.get(user_id, [])))[:max(0, limit)]


class MemoryStoragePlugin(StoragePluginBase):
    """Plugin for in-memory storage backend."""

    PROVIDER_NAME = 'memory'

    def initialize(self, v: Variables, logger: Logger) -> MemoryStorageBackend:
        return MemoryStorageBackend(v=v)
