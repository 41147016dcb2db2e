"""Abstract storage backend interface."""
from abc import ABC, abstractmethod
from logging import Logger
from typing import AsyncContextManager, Iterable, Optional, Sequence

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables, Plugin, enabled_option_pattern

from ...config import MIRROR_STORAGE_BACKEND, DEFAULT_MIRROR_STORAGE_BACKEND
from ...models import (
    Behavior, BehaviorStatus, Entity, EntityStatus, EntityType, Fact, FactStatus, Note,
    OperationRecord, Pattern, PatternType, Relationship,
)
from .._constants import EXT_STORAGE_BACKEND

# Sortable fields (always descending, ties broken by newest first)
ENTITY_ORDER_FIELDS = ("importance_score", "mention_count", "updated_at", "created_at", "last_accessed_at")
FACT_ORDER_FIELDS = ("confidence", "version", "created_at", "valid_from")

ACTIVE_ONLY = (EntityStatus.ACTIVE,)


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Every query is scoped to one user id. Query methods filter, sort and limit; callers
    never receive more rows than ``limit``.
    """

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    # Lifecycle
    @abstractmethod
    async def connect(self) -> None:
        """Initialize storage connection."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close storage connection."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage is healthy."""
        pass

    @abstractmethod
    def transaction(self, user_id: str) -> AsyncContextManager[None]:
        """Async context manager making the enclosed reads and writes one atomic unit for a user.

        Nested use within the same task joins the outer transaction.
        """
        pass

    # Entity operations
    @abstractmethod
    async def create_entity(self, entity: Entity) -> Entity:
        """Store a new entity."""
        pass

    @abstractmethod
    async def get_entity(self, user_id: str, entity_id: str) -> Optional[Entity]:
        """Get entity by id (any status)."""
        pass

    @abstractmethod
    async def update_entity(self, user_id: str, entity_id: str, **updates) -> Optional[Entity]:
        """Update entity fields. ``updated_at`` is set to now unless passed explicitly."""
        pass

    @abstractmethod
    async def delete_entity(self, user_id: str, entity_id: str) -> bool:
        """Permanently remove an entity and its facts."""
        pass

    @abstractmethod
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
        """Filter entities.

        Args:
            user_id: Owning user
            name_contains: Case-insensitive substrings; matches name or any alias (OR)
            entity_types: Restrict to these types
            statuses: Restrict to these statuses (None for any)
            include_superseded: Include rows that have a newer version
            include_historical: Include rows flagged ``is_historical``
            require_embedding: Only rows with an embedding
            order_by: One of ENTITY_ORDER_FIELDS, descending
            limit: Maximum rows returned
        """
        pass

    @abstractmethod
    async def record_entity_access(self, user_id: str, entity_ids: Sequence[str]) -> None:
        """Increment access_count and set last_accessed_at for the given entities."""
        pass

    @abstractmethod
    async def list_user_ids(self) -> list[str]:
        """All users that own at least one entity."""
        pass

    async def find_entity_by_name(self, user_id: str, name: str) -> Optional[Entity]:
        """Resolve a name to one current entity: exact (case-insensitive) match first, then substring."""
        if not name or not name.strip():
            return None
        candidates = await self.query_entities(user_id, name_contains=[name.strip()], limit=25)
        for entity in candidates:
            if entity.matches_name(name):
                return entity
        return candidates[0] if candidates else None

    # Fact operations
    @abstractmethod
    async def create_fact(self, fact: Fact) -> Fact:
        """Store a new fact."""
        pass

    @abstractmethod
    async def get_fact(self, user_id: str, fact_id: str) -> Optional[Fact]:
        """Get fact by id (any status)."""
        pass

    @abstractmethod
    async def update_fact(self, user_id: str, fact_id: str, **updates) -> Optional[Fact]:
        """Update fact fields. ``updated_at`` is set to now unless passed explicitly."""
        pass

    @abstractmethod
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
        """Filter facts.

        Args:
            user_id: Owning user
            entity_ids: Subject entities (set membership)
            predicates: Normalized predicates (set membership)
            statuses: Restrict to these statuses (None for any)
            current_only: Only ``is_current`` rows
            min_confidence: Inclusive confidence floor
            object_text: Case-insensitive equality on object text
            source_note_id: Only facts extracted from this note
            order_by: One of FACT_ORDER_FIELDS, descending
            limit: Maximum rows returned
        """
        pass

    # Note operations
    @abstractmethod
    async def create_note(self, note: Note) -> Note:
        """Store note metadata."""
        pass

    @abstractmethod
    async def get_note(self, user_id: str, note_id: str) -> Optional[Note]:
        """Get note by id (any status)."""
        pass

    @abstractmethod
    async def update_note(self, user_id: str, note_id: str, **updates) -> Optional[Note]:
        """Update note fields."""
        pass

    @abstractmethod
    async def remove_note(self, user_id: str, note_id: str) -> bool:
        """Permanently remove note metadata."""
        pass

    @abstractmethod
    async def query_notes(
            self,
            user_id: str,
            match_terms: Optional[Sequence[str]] = None,
            include_deleted: bool = False,
            limit: Optional[int] = None,
    ) -> list[Note]:
        """Notes newest first; ``match_terms`` match title or category (case-insensitive substring, OR)."""
        pass

    # Pattern operations
    @abstractmethod
    async def create_pattern(self, pattern: Pattern) -> Pattern:
        """Store a new pattern."""
        pass

    @abstractmethod
    async def query_patterns(
            self,
            user_id: str,
            pattern_types: Optional[Iterable[PatternType]] = None,
            categories: Optional[Iterable[str]] = None,
            min_confidence: Optional[float] = None,
            exclude_rejected: bool = True,
            limit: Optional[int] = None,
    ) -> list[Pattern]:
        """Patterns by confidence descending; a row matches when its type OR its category is listed."""
        pass

    # Behavior operations
    @abstractmethod
    async def create_behavior(self, behavior: Behavior) -> Behavior:
        """Store a new behavior."""
        pass

    @abstractmethod
    async def update_behavior(self, user_id: str, behavior_id: str, **updates) -> Optional[Behavior]:
        """Update behavior fields."""
        pass

    @abstractmethod
    async def query_behaviors(
            self,
            user_id: str,
            entity_names: Optional[Sequence[str]] = None,
            predicate: Optional[str] = None,
            statuses: Optional[Iterable[BehaviorStatus]] = (BehaviorStatus.ACTIVE,),
            source_note_id: Optional[str] = None,
            limit: Optional[int] = None,
    ) -> list[Behavior]:
        """Behaviors by confidence descending; ``entity_names`` match case-insensitive substrings (OR)."""
        pass

    async def find_behavior(self, user_id: str, predicate: str, entity_name: str) -> Optional[Behavior]:
        """Active behavior with this predicate whose entity name equals ``entity_name`` (case-insensitive)."""
        needle = entity_name.strip().lower()
        for behavior in await self.query_behaviors(user_id, entity_names=[entity_name.strip()], predicate=predicate):
            if behavior.entity_name.strip().lower() == needle:
                return behavior
        return None

    # Relationship operations
    @abstractmethod
    async def create_relationship(self, relationship: Relationship) -> Relationship:
        """Store a new relationship edge."""
        pass

    @abstractmethod
    async def update_relationship(self, user_id: str, relationship_id: str, **updates) -> Optional[Relationship]:
        """Update relationship fields."""
        pass

    @abstractmethod
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
        """Edges by strength descending; ``entity_id`` matches either endpoint."""
        pass

    # Operation log
    @abstractmethod
    async def record_operation(self, record: OperationRecord) -> OperationRecord:
        """Append to the lifecycle operation log."""
        pass

    @abstractmethod
    async def list_operations(self, user_id: str, limit: int = 50) -> list[OperationRecord]:
        """Operation log, newest first."""
        pass


# noinspection PyAbstractClass
class StoragePluginBase(Plugin):
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_STORAGE_BACKEND}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_STORAGE_BACKEND

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_STORAGE_BACKEND, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_STORAGE_BACKEND, DEFAULT_MIRROR_STORAGE_BACKEND)

    async def async_ready(self, v: Variables, logger: Logger, value: object | None) -> None:
        if isinstance(value, StorageBackend):
            try:
                await value.connect()
                logger.info("Storage backend '%s' connected successfully.", self.PROVIDER_NAME)
            except Exception as e:
                logger.error("Error connecting storage backend '%s': %s", self.PROVIDER_NAME, e)
                raise
        return

    async def async_stopping(self, v: Variables, logger: Logger, value: object | None) -> None:
        if isinstance(value, StorageBackend):
            try:
                await value.disconnect()
                logger.info("Storage backend '%s' disconnected successfully.", self.PROVIDER_NAME)
            except Exception as e:
                logger.error("Error disconnecting storage backend '%s': %s", self.PROVIDER_NAME, e)
        return
