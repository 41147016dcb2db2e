"""
Behavior and pattern models.

Behaviors describe how the *user* relates to an entity; patterns are higher-level
observations about the user inferred across many notes.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .fact import normalize_predicate


class BehaviorPredicate(str, Enum):
    """How the user relates to an entity."""

    TRUSTS_OPINION_OF = "trusts_opinion_of"
    SEEKS_ADVICE_FROM = "seeks_advice_from"
    RELIES_ON = "relies_on"
    LEARNS_FROM = "learns_from"
    INSPIRED_BY = "inspired_by"
    COLLABORATES_WITH = "collaborates_with"
    AVOIDS = "avoids"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BehaviorPredicate":
        try:
            return cls(normalize_predicate(value))
        except ValueError:
            return cls.UNKNOWN


# Behavior predicate -> fact predicate recorded on the target entity
BEHAVIOR_INVERSES: dict[BehaviorPredicate, str] = {
    BehaviorPredicate.TRUSTS_OPINION_OF: "is_trusted_by_user_on",
    BehaviorPredicate.SEEKS_ADVICE_FROM: "advises_user_on",
    BehaviorPredicate.RELIES_ON: "is_relied_upon_by_user",
    BehaviorPredicate.LEARNS_FROM: "teaches_user",
    BehaviorPredicate.INSPIRED_BY: "inspires_user",
    BehaviorPredicate.COLLABORATES_WITH: "collaborates_with_user",
}


class BehaviorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"  # Source note deleted (reversible)


class Behavior(BaseModel):
    """A reinforced observation of how the user relates to an entity."""

    model_config = {"from_attributes": True}

    id: str = Field(..., description="Unique behavior identifier")
    user_id: str = Field(..., description="Owning user")
    predicate: str = Field(..., description="Normalized behavior predicate")
    entity_id: Optional[str] = Field(None, description="Target entity, when resolved")
    entity_name: str = Field(..., description="Target entity name as extracted")
    topic: Optional[str] = Field(None, description="Topic the behavior is about")
    sentiment: float = Field(0.0, ge=-1.0, le=1.0, description="Sentiment of the evidence")
    evidence: Optional[str] = Field(None, description="Supporting snippet")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Current confidence")
    reinforcement_count: int = Field(1, ge=1, description="Number of detections")
    status: BehaviorStatus = Field(BehaviorStatus.ACTIVE, description="Lifecycle status")
    source_note_id: Optional[str] = Field(None, description="Note of first detection")
    first_detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="First detection")
    last_reinforced_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last detection")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp")

    @field_validator("predicate")
    @classmethod
    def normalize(cls, v: str) -> str:
        normalized = normalize_predicate(v)
        if not normalized:
            raise ValueError("Behavior predicate cannot be empty")
        return normalized

    @property
    def predicate_kind(self) -> BehaviorPredicate:
        return BehaviorPredicate.parse(self.predicate)

    @property
    def dedupe_key(self) -> tuple[str, str]:
        return self.predicate, self.entity_name.strip().lower()


class PatternType(str, Enum):
    BEHAVIORAL = "behavioral"
    EMOTIONAL = "emotional"
    COGNITIVE = "cognitive"
    RELATIONAL = "relational"
    OTHER = "other"


class PatternStatus(str, Enum):
    DETECTED = "detected"
    SURFACED = "surfaced"  # Shown to the user
    CONFIRMED = "confirmed"
    REJECTED = "rejected"  # Never retrieved again


class Pattern(BaseModel):
    """A higher-level behavioral/cognitive observation about the user."""

    model_config = {"from_attributes": True}

    id: str = Field(..., description="Unique pattern identifier")
    user_id: str = Field(..., description="Owning user")
    pattern_type: PatternType = Field(PatternType.OTHER, description="Broad class of pattern")
    category: Optional[str] = Field(None, description="Finer label, e.g. stress or curiosity")
    description: str = Field(..., description="Full description")
    short_description: Optional[str] = Field(None, description="One-line description")
    confidence: float = Field(0.6, ge=0.0, le=1.0, description="Detection confidence")
    evidence: list[str] = Field(default_factory=list, description="Supporting snippets or note ids")
    status: PatternStatus = Field(PatternStatus.DETECTED, description="Review status")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp")

    @property
    def display_text(self) -> str:
        return self.short_description or self.description
