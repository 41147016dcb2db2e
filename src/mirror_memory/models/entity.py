"""
Entity domain models for the MIRROR memory core.

Entities (people, places, projects, ...) and entity-shaped memories (preferences, events,
goals, ...) share one table with a ``memory_type`` discriminator.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class EntityType(str, Enum):
    """What kind of thing an entity is."""

    PERSON = "person"
    PLACE = "place"
    PROJECT = "project"
    ORGANIZATION = "organization"
    PET = "pet"
    CONCEPT = "concept"
    EVENT = "event"
    OTHER = "other"  # Fallback for unrecognized types

    @classmethod
    def parse(cls, value: Optional[str]) -> "EntityType":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.OTHER


class MemoryType(str, Enum):
    """Discriminator for rows in the shared entity table."""

    ENTITY = "entity"
    FACT = "fact"
    PREFERENCE = "preference"
    EVENT = "event"
    GOAL = "goal"
    PROCEDURE = "procedure"
    DECISION = "decision"
    ACTION = "action"


class ImportanceTier(str, Enum):
    """Five-level ordinal importance."""

    TRIVIAL = "trivial"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> float:
        """Numeric weight used by composite scoring and as the initial importance score."""
        return IMPORTANCE_TIER_WEIGHTS[self]

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = (
    ImportanceTier.TRIVIAL,
    ImportanceTier.LOW,
    ImportanceTier.MEDIUM,
    ImportanceTier.HIGH,
    ImportanceTier.CRITICAL,
)

IMPORTANCE_TIER_WEIGHTS: dict[ImportanceTier, float] = {
    ImportanceTier.CRITICAL: 1.0,
    ImportanceTier.HIGH: 0.8,
    ImportanceTier.MEDIUM: 0.6,
    ImportanceTier.LOW: 0.4,
    ImportanceTier.TRIVIAL: 0.2,
}


class EntityStatus(str, Enum):
    """Lifecycle status of an entity row."""

    ACTIVE = "active"
    ARCHIVED = "archived"  # Decayed, expired or soft-deleted; recoverable
    SUPERSEDED = "superseded"  # Replaced by a newer version
    DELETED = "deleted"


class SensitivityLevel(str, Enum):
    """How careful retrieval must be with a memory (ordered)."""

    NORMAL = "normal"
    SENSITIVE = "sensitive"
    PRIVATE = "private"

    @property
    def rank(self) -> int:
        return list(SensitivityLevel).index(self)


MAX_CONTEXT_NOTES = 10


class Entity(BaseModel):
    """A person/place/project/thing known to a user, or an entity-shaped memory."""

    model_config = {"from_attributes": True}

    # Identity
    id: str = Field(..., description="Unique entity identifier")
    user_id: str = Field(..., description="Owning user")
    name: str = Field(..., description="Display name")
    aliases: list[str] = Field(default_factory=list, description="Alternative names")

    # Classification
    entity_type: EntityType = Field(EntityType.OTHER, description="Kind of entity")
    memory_type: MemoryType = Field(MemoryType.ENTITY, description="Row discriminator")
    relationship: Optional[str] = Field(None, description="Free-text relationship to the user")
    summary: Optional[str] = Field(None, description="Free-text summary")

    # Ranking signals
    importance: ImportanceTier = Field(ImportanceTier.MEDIUM, description="Importance tier")
    importance_score: float = Field(0.5, ge=0.0, le=1.0, description="Numeric importance, subject to decay")
    sentiment_average: float = Field(0.0, ge=-1.0, le=1.0, description="Average sentiment of mentions")
    mention_count: int = Field(0, ge=0, description="Number of times mentioned")
    embedding: Optional[list[float]] = Field(None, description="Semantic embedding vector")

    # Lifecycle
    status: EntityStatus = Field(EntityStatus.ACTIVE, description="Lifecycle status")
    version: int = Field(1, ge=1, description="Version counter")
    supersedes_id: Optional[str] = Field(None, description="Previous version this row replaces")
    superseded_by: Optional[str] = Field(None, description="Newer version that replaced this row")
    context_notes: list[str] = Field(default_factory=list, description="Bounded log of update notes")
    source_note_ids: list[str] = Field(default_factory=list, description="Notes this entity was extracted from")

    # Temporal
    is_historical: bool = Field(False, description="Describes a past state of affairs")
    effective_from: Optional[datetime] = Field(None, description="Not retrievable before this time")
    expires_at: Optional[datetime] = Field(None, description="Archived after this time")
    recurrence_pattern: Optional[dict[str, Any]] = Field(None, description="Recurring event description")
    sensitivity_level: SensitivityLevel = Field(SensitivityLevel.NORMAL, description="Retrieval sensitivity")

    # Access tracking
    access_count: int = Field(0, ge=0, description="Times returned by retrieval")
    last_accessed_at: Optional[datetime] = Field(None, description="Last retrieval time")

    # Timestamps
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp")

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        """Validate that the name is not empty."""
        if not v or not v.strip():
            raise ValueError("Entity name cannot be empty")
        return v.strip()

    @field_validator("context_notes")
    @classmethod
    def bound_context_notes(cls, v: list[str]) -> list[str]:
        return v[-MAX_CONTEXT_NOTES:]

    @property
    def normalized_name(self) -> str:
        return self.name.strip().lower()

    @property
    def is_current(self) -> bool:
        return self.status == EntityStatus.ACTIVE and self.superseded_by is None

    def matches_name(self, name: str) -> bool:
        """Case-insensitive equality against the name or any alias."""
        needle = (name or "").strip().lower()
        if not needle:
            return False
        return needle == self.normalized_name or any(needle == a.strip().lower() for a in self.aliases)
