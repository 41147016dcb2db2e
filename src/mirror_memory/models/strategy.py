"""
Task types and retrieval strategy models.

A ``Strategy`` says, per memory category, which sub-strategy to run and how many results
it may return.
"""
from enum import Enum

from pydantic import BaseModel, Field


class TaskType(str, Enum):
    """What the user is asking for, in classifier priority order."""

    ENTITY_RECALL = "entity_recall"
    DECISION = "decision"
    EMOTIONAL = "emotional"
    RESEARCH = "research"
    THINKING_PARTNER = "thinking_partner"
    FACTUAL = "factual"
    GENERAL = "general"

    @property
    def label(self) -> str:
        return TASK_TYPE_LABELS[self]


TASK_TYPE_LABELS: dict[TaskType, str] = {
    TaskType.ENTITY_RECALL: "Recalling information",
    TaskType.DECISION: "Decision support",
    TaskType.EMOTIONAL: "Emotional support",
    TaskType.RESEARCH: "Deep research",
    TaskType.THINKING_PARTNER: "Thinking partner",
    TaskType.FACTUAL: "Factual lookup",
    TaskType.GENERAL: "General assistance",
}


class EntityStrategy(str, Enum):
    NONE = "none"
    MENTIONED_ONLY = "mentioned_only"
    MENTIONED_PLUS_RELATED = "mentioned_plus_related"
    SUPPORTIVE_RELATIONSHIPS = "supportive_relationships"  # person-only
    RELEVANT_PEOPLE = "relevant_people"  # person-only
    ALL_RELATED = "all_related"
    TOP_BY_IMPORTANCE = "top_by_importance"


class FactStrategy(str, Enum):
    NONE = "none"
    MINIMAL = "minimal"
    ALL_FOR_ENTITY = "all_for_entity"
    HIGH_CONFIDENCE = "high_confidence"  # confidence >= 0.7
    RELEVANT = "relevant"  # confidence >= 0.6
    ALL = "all"


class NoteStrategy(str, Enum):
    NONE = "none"
    MENTIONS_ONLY = "mentions_only"
    RELATED_TOPICS = "related_topics"
    PAST_SIMILAR = "past_similar"
    SIMILAR_EXPLORATIONS = "similar_explorations"
    BROAD_SEARCH = "broad_search"
    RECENT = "recent"


class PatternStrategy(str, Enum):
    NONE = "none"
    BEHAVIORAL = "behavioral"
    EMOTIONAL_PATTERNS = "emotional_patterns"
    THINKING_PATTERNS = "thinking_patterns"
    ALL = "all"


class Strategy(BaseModel):
    """Per-category retrieval plan for one task type."""

    model_config = {"frozen": True}

    task_type: TaskType = Field(..., description="Task type this strategy serves")
    entities: EntityStrategy = Field(EntityStrategy.NONE, description="Entity sub-strategy")
    facts: FactStrategy = Field(FactStrategy.NONE, description="Fact sub-strategy")
    notes: NoteStrategy = Field(NoteStrategy.NONE, description="Note sub-strategy")
    patterns: PatternStrategy = Field(PatternStrategy.NONE, description="Pattern sub-strategy")

    entity_limit: int = Field(10, ge=0, description="Max entities returned")
    fact_limit: int = Field(30, ge=0, description="Max facts returned")
    note_limit: int = Field(10, ge=0, description="Max notes returned")
    pattern_limit: int = Field(10, ge=0, description="Max patterns returned")
    behavior_limit: int = Field(10, ge=0, description="Max behaviors returned (always loaded)")

    max_tokens: int = Field(3000, gt=0, description="Token budget for the formatted block")
