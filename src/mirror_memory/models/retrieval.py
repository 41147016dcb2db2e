"""
Retrieval-side models: message analysis, raw candidate sets, scored matches, graph
traversal results and the per-request retrieval context.

None of these are persisted.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .behavior import Behavior, Pattern
from .entity import Entity
from .fact import Fact
from .note import Note
from .strategy import Strategy, TaskType


class MessageAnalysis(BaseModel):
    """Classifier output for one user message."""

    task_type: TaskType = Field(..., description="Classified task type")
    mentioned_entities: list[str] = Field(default_factory=list, description="Names mentioned in the message")
    topics: list[str] = Field(default_factory=list, description="Topic keywords")
    include_historical: bool = Field(False, description="Message asks about past states")


class RetrievalResult(BaseModel):
    """Raw candidate sets, one list per memory category."""

    entities: list[Entity] = Field(default_factory=list)
    facts: list[Fact] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    patterns: list[Pattern] = Field(default_factory=list)
    behaviors: list[Behavior] = Field(default_factory=list)
    failed_categories: list[str] = Field(default_factory=list, description="Categories degraded to empty")

    def counts(self) -> dict[str, int]:
        return {
            "entities": len(self.entities),
            "facts": len(self.facts),
            "notes": len(self.notes),
            "patterns": len(self.patterns),
            "behaviors": len(self.behaviors),
        }


class ScoredEntity(BaseModel):
    """Entity with its composite score and the individual signals."""

    entity: Entity
    similarity: float = Field(..., description="Rescaled cosine similarity in [0, 1]")
    importance_weight: float = Field(..., description="Tier weight in [0.2, 1]")
    recency_boost: float = Field(..., description="0.95 ** age_in_weeks")
    access_boost: float = Field(..., description="min(1, 0.5 + ln(1 + n) / 5)")
    final_score: float = Field(..., description="Weighted composite score")


class ContextUsedItem(BaseModel):
    """One audit-list entry for UI/observability."""

    type: str = Field(..., description="entity, fact, note, pattern or behavior")
    label: str = Field(..., description="Short, truncated label")
    entity_type: Optional[str] = Field(None, description="Entity type for entity items")


class FormattedContext(BaseModel):
    """Prompt-ready text plus the audit list."""

    text: str = Field("", description="Markdown block for the generation LLM")
    context_used: list[ContextUsedItem] = Field(default_factory=list)
    sections: list[str] = Field(default_factory=list, description="Rendered section names in order")
    truncated: bool = Field(False, description="Lines were dropped to honor the token budget")


class RetrievalContext(BaseModel):
    """Everything loaded for one user message; created per request and discarded after."""

    user_id: str
    task_type: TaskType
    task_label: str
    strategy: Strategy
    mentioned_entities: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    entities: list[Entity] = Field(default_factory=list)
    facts: list[Fact] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    patterns: list[Pattern] = Field(default_factory=list)
    behaviors: list[Behavior] = Field(default_factory=list)
    context_used: list[ContextUsedItem] = Field(default_factory=list)
    formatted: str = Field("", description="Formatted context block")
    failed_categories: list[str] = Field(default_factory=list)


class TraversalNode(BaseModel):
    id: str
    name: str
    entity_type: str
    depth: int = Field(..., ge=0, description="Hops from the seed")


class TraversalEdge(BaseModel):
    source_id: str
    target_id: str
    relationship: str = Field(..., description="Label of the link that discovered the target")
    predicate: Optional[str] = Field(None, description="Fact predicate or relationship type behind the link")


class TraversalResult(BaseModel):
    """Nodes (deduplicated by id) and discovery edges of a bounded traversal."""

    seed_id: str
    max_depth: int
    nodes: list[TraversalNode] = Field(default_factory=list)
    edges: list[TraversalEdge] = Field(default_factory=list)

    @property
    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}


class RelatedEntity(BaseModel):
    """One-hop neighbor of an entity."""

    entity: Entity
    relationship: str
    via_predicate: Optional[str] = None


class SharedConnection(BaseModel):
    """Two or more entities sharing the same predicate and object (e.g. same employer)."""

    predicate: str
    object_text: str
    entity_ids: list[str]


class TimelineEvent(BaseModel):
    """A point on an entity's knowledge timeline."""

    at: datetime
    event: str = Field(..., description="learned or invalidated")
    fact: Fact
    reason: Optional[str] = None


class KnowledgeDiff(BaseModel):
    """Difference between what was known at two points in time."""

    added: list[Fact] = Field(default_factory=list)
    removed: list[Fact] = Field(default_factory=list)
    changed: list[dict[str, Any]] = Field(default_factory=list, description="{predicate, entity_id, before, after}")
