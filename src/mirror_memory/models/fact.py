"""
Fact and relationship-edge models.

Facts are bi-temporal subject/predicate/object triples: ``valid_from``/``valid_to`` track when
something was true in reality, ``created_at``/``invalidated_at`` track when the system learned
or retracted it. Versions of one (entity, predicate) slot are linked through
``previous_version_id`` and ``invalidated_by``.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Predicate(str, Enum):
    """Closed predicate vocabulary; anything else resolves to UNKNOWN."""

    # Work & education
    WORKS_AT = "works_at"
    COMPANY = "company"
    EMPLOYER = "employer"
    ROLE = "role"
    JOB_TITLE = "job_title"
    REPORTS_TO = "reports_to"
    MANAGER = "manager"
    MANAGES = "manages"
    COLLEAGUE_OF = "colleague_of"
    STUDIED_AT = "studied_at"
    SCHOOL = "school"
    EXPERTISE = "expertise"
    MENTOR_TO = "mentor_to"
    MENTORED_BY = "mentored_by"

    # Personal relationships
    RELATIONSHIP = "relationship"
    KNOWS = "knows"
    FRIEND = "friend"
    SPOUSE = "spouse"
    SPOUSE_OF = "spouse_of"
    MARRIED_TO = "married_to"
    DATING = "dating"
    PARTNER = "partner"
    PARTNER_OF = "partner_of"
    SIBLING = "sibling"
    SIBLING_OF = "sibling_of"
    PARENT = "parent"
    PARENT_OF = "parent_of"
    CHILD = "child"
    CHILD_OF = "child_of"

    # Membership
    MEMBER_OF = "member_of"
    BELONGS_TO = "belongs_to"

    # Attributes
    LOCATION = "location"
    LIVES_IN = "lives_in"
    AGE = "age"
    BIRTHDAY = "birthday"
    EMAIL = "email"
    PHONE = "phone"
    LIKES = "likes"
    DISLIKES = "dislikes"
    OWNS = "owns"
    STATUS = "status"

    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Predicate":
        try:
            return cls(normalize_predicate(value))
        except ValueError:
            return cls.UNKNOWN


def normalize_predicate(value: Optional[str]) -> str:
    """``"Works At"`` -> ``"works_at"``."""
    return "_".join((value or "").strip().lower().replace("-", " ").split())


# A (entity, predicate) slot with one of these may hold only one current fact
SINGLE_VALUED_PREDICATES: frozenset[Predicate] = frozenset({
    Predicate.WORKS_AT,
    Predicate.LIVES_IN,
    Predicate.JOB_TITLE,
    Predicate.REPORTS_TO,
    Predicate.MARRIED_TO,
    Predicate.DATING,
    Predicate.AGE,
    Predicate.BIRTHDAY,
    Predicate.COMPANY,
    Predicate.ROLE,
    Predicate.LOCATION,
    Predicate.EMPLOYER,
    Predicate.EMAIL,
    Predicate.PHONE,
})

# Predicate on A -> predicate implied on B
INVERSE_PREDICATES: dict[Predicate, Predicate] = {
    Predicate.REPORTS_TO: Predicate.MANAGES,
    Predicate.MANAGES: Predicate.REPORTS_TO,
    Predicate.SPOUSE_OF: Predicate.SPOUSE_OF,
    Predicate.MARRIED_TO: Predicate.MARRIED_TO,
    Predicate.PARENT_OF: Predicate.CHILD_OF,
    Predicate.CHILD_OF: Predicate.PARENT_OF,
    Predicate.SIBLING_OF: Predicate.SIBLING_OF,
    Predicate.MENTOR_TO: Predicate.MENTORED_BY,
    Predicate.MENTORED_BY: Predicate.MENTOR_TO,
    Predicate.PARTNER_OF: Predicate.PARTNER_OF,
    Predicate.COLLEAGUE_OF: Predicate.COLLEAGUE_OF,
}


def is_single_valued(predicate: str) -> bool:
    return Predicate.parse(predicate) in SINGLE_VALUED_PREDICATES


class FactStatus(str, Enum):
    """Lifecycle status of a fact row."""

    ACTIVE = "active"
    INACTIVE = "inactive"  # Source note deleted (reversible)
    SUPERSEDED = "superseded"


class InvalidationReason(str, Enum):
    """Why a fact stopped being current."""

    CONTRADICTION = "contradiction"
    SOURCE_DELETED = "source_deleted"
    USER_CORRECTED = "user_corrected"
    EXPIRED = "expired"
    MERGED = "merged"


class Fact(BaseModel):
    """A subject-predicate-object statement anchored to an entity."""

    model_config = {"from_attributes": True}

    id: str = Field(..., description="Unique fact identifier")
    user_id: str = Field(..., description="Owning user")
    entity_id: str = Field(..., description="Subject entity")
    predicate: str = Field(..., description="Normalized predicate (see Predicate)")
    object_text: Optional[str] = Field(None, description="Object as free text")
    object_entity_id: Optional[str] = Field(None, description="Object as a reference to another entity")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Extraction confidence")
    status: FactStatus = Field(FactStatus.ACTIVE, description="Lifecycle status")
    source_note_id: Optional[str] = Field(None, description="Note this fact was extracted from")
    is_inferred: bool = Field(False, description="Derived from another fact rather than extracted")

    # Bi-temporal: reality
    valid_from: Optional[datetime] = Field(None, description="When the fact became true")
    valid_to: Optional[datetime] = Field(None, description="When the fact stopped being true")

    # Bi-temporal: system knowledge
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="When the system learned it")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp")
    invalidated_at: Optional[datetime] = Field(None, description="When the system retracted it")
    invalidated_by: Optional[str] = Field(None, description="Fact that replaced this one")
    invalidation_reason: Optional[InvalidationReason] = Field(None, description="Why it was retracted")

    # Versioning
    version: int = Field(1, ge=1, description="Version within the (entity, predicate) slot")
    previous_version_id: Optional[str] = Field(None, description="Fact this version replaced")
    is_current: bool = Field(True, description="Current version of its slot")

    @field_validator("predicate")
    @classmethod
    def normalize(cls, v: str) -> str:
        normalized = normalize_predicate(v)
        if not normalized:
            raise ValueError("Fact predicate cannot be empty")
        return normalized

    @property
    def predicate_kind(self) -> Predicate:
        return Predicate.parse(self.predicate)

    @property
    def normalized_object(self) -> str:
        return (self.object_text or "").strip().lower()

    @property
    def is_live(self) -> bool:
        """Active and current: eligible for retrieval."""
        return self.status == FactStatus.ACTIVE and self.is_current


class Relationship(BaseModel):
    """Typed link between two entities with a reinforcement strength."""

    model_config = {"from_attributes": True}

    id: str = Field(..., description="Unique edge identifier")
    user_id: str = Field(..., description="Owning user")
    source_entity_id: str = Field(..., description="Edge source")
    target_entity_id: str = Field(..., description="Edge target")
    relationship_type: str = Field(..., description="Edge label, e.g. colleague_of")
    strength: float = Field(0.5, ge=0.0, le=1.0, description="Grows on reconfirmation")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Extraction confidence")
    is_active: bool = Field(True, description="False once the relationship ended")
    started_at: Optional[datetime] = Field(None, description="When the relationship began")
    ended_at: Optional[datetime] = Field(None, description="When the relationship ended")
    last_confirmed_at: Optional[datetime] = Field(None, description="Last reconfirmation")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Creation timestamp")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp")

    @field_validator("relationship_type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        normalized = normalize_predicate(v)
        if not normalized:
            raise ValueError("Relationship type cannot be empty")
        return normalized
