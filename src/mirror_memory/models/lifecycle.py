"""
Lifecycle models: extraction candidates, lifecycle decisions and the operation log.

Candidates are what the extraction collaborator hands over; the lifecycle manager never
parses free text itself.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ..utils import generate_id
from .entity import EntityType, ImportanceTier, MemoryType, SensitivityLevel


class MemoryOperation(str, Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NOOP = "NOOP"


class MergeStrategy(str, Enum):
    REPLACE = "replace"  # Correction, in place
    APPEND = "append"  # New detail merged into the summary, in place
    SUPERSEDE = "supersede"  # Life-state change, new version row


class CandidateMemory(BaseModel):
    """An entity-shaped memory proposed by the extraction collaborator."""

    name: str = Field(..., description="Entity name")
    entity_type: EntityType = Field(EntityType.OTHER, description="Kind of entity")
    memory_type: MemoryType = Field(MemoryType.ENTITY, description="Row discriminator")
    relationship: Optional[str] = Field(None, description="Relationship to the user")
    summary: Optional[str] = Field(None, description="What was learned")
    importance: ImportanceTier = Field(ImportanceTier.MEDIUM, description="Importance tier")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Extraction confidence")
    sentiment: float = Field(0.0, ge=-1.0, le=1.0, description="Sentiment of the mention")
    aliases: list[str] = Field(default_factory=list, description="Alternative names")
    source_note_id: Optional[str] = Field(None, description="Originating note")
    embedding: Optional[list[float]] = Field(None, description="Precomputed embedding")

    # Temporal markers
    is_historical: bool = Field(False, description="Describes a past state")
    effective_from: Optional[datetime] = Field(None, description="Future-dated memories")
    expires_at: Optional[datetime] = Field(None, description="Expiry time")
    recurrence_pattern: Optional[dict[str, Any]] = Field(None, description="Recurring events")
    sensitivity_level: SensitivityLevel = Field(SensitivityLevel.NORMAL, description="Sensitivity")

    # Hints for the decision step
    is_correction: bool = Field(False, description="Corrects an earlier mistake")
    supersedes: bool = Field(False, description="Life-state change replacing the previous version")
    delete_requested: bool = Field(False, description="User asked to forget this")
    hard_delete: bool = Field(False, description="User asked for permanent removal")

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Candidate name cannot be empty")
        return v.strip()


class CandidateFact(BaseModel):
    """A fact proposed by the extraction collaborator."""

    entity_id: str = Field(..., description="Subject entity")
    predicate: str = Field(..., description="Predicate (normalized on insert)")
    object_text: Optional[str] = Field(None, description="Object text")
    object_entity_id: Optional[str] = Field(None, description="Object entity, when resolved")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Extraction confidence")
    valid_from: Optional[datetime] = Field(None, description="When it became true (default: now)")
    source_note_id: Optional[str] = Field(None, description="Originating note")
    is_inferred: bool = Field(False, description="Derived rather than extracted")


class CandidateBehavior(BaseModel):
    """A behavior detection proposed by the extraction collaborator."""

    predicate: str = Field(..., description="Behavior predicate")
    entity_name: str = Field(..., description="Target entity name")
    entity_id: Optional[str] = Field(None, description="Target entity, when resolved")
    topic: Optional[str] = Field(None, description="Topic")
    sentiment: float = Field(0.0, ge=-1.0, le=1.0, description="Sentiment")
    evidence: Optional[str] = Field(None, description="Supporting snippet")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Detection confidence")
    source_note_id: Optional[str] = Field(None, description="Originating note")


class LifecycleDecision(BaseModel):
    """What to do with a candidate."""

    operation: MemoryOperation = Field(..., description="ADD, UPDATE, DELETE or NOOP")
    target_id: Optional[str] = Field(None, description="Existing entity for UPDATE/DELETE")
    merge_strategy: Optional[MergeStrategy] = Field(None, description="UPDATE strategy")
    reasoning: str = Field("", description="Why, for the audit log")
    hard_delete: bool = Field(False, description="DELETE permanently")
    updated_summary: Optional[str] = Field(None, description="Summary to write on UPDATE, when provided")

    @classmethod
    def noop(cls, reasoning: str) -> "LifecycleDecision":
        return cls(operation=MemoryOperation.NOOP, reasoning=reasoning)


@dataclass
class OperationRecord:
    """Audit-log entry for one lifecycle operation."""
    id: str = field(default_factory=lambda: generate_id("op"))
    user_id: str = ''
    operation: MemoryOperation = MemoryOperation.NOOP
    entity_id: Optional[str] = None  # Row written (new row for ADD/supersede)
    target_id: Optional[str] = None  # Existing row acted on
    merge_strategy: Optional[MergeStrategy] = None
    reasoning: str = ''
    candidate_name: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class CascadeResult:
    """Records whose status flipped because a note was deleted or restored."""
    note_id: str = ''
    fact_ids: list[str] = field(default_factory=list)
    behavior_ids: list[str] = field(default_factory=list)
    note_removed: bool = False

    @property
    def affected_ids(self) -> list[str]:
        return [*self.fact_ids, *self.behavior_ids]
