"""
Core domain models for the MIRROR memory core.

Exports all Pydantic models for entities, facts, behaviors, patterns, notes, strategies,
retrieval results and lifecycle operations.
"""
from .entity import (
    Entity,
    EntityStatus,
    EntityType,
    IMPORTANCE_TIER_WEIGHTS,
    ImportanceTier,
    MemoryType,
    SensitivityLevel,
)
from .fact import (
    Fact,
    FactStatus,
    INVERSE_PREDICATES,
    InvalidationReason,
    Predicate,
    Relationship,
    SINGLE_VALUED_PREDICATES,
    is_single_valued,
    normalize_predicate,
)
from .behavior import (
    BEHAVIOR_INVERSES,
    Behavior,
    BehaviorPredicate,
    BehaviorStatus,
    Pattern,
    PatternStatus,
    PatternType,
)
from .note import Note, NoteStatus
from .strategy import (
    EntityStrategy,
    FactStrategy,
    NoteStrategy,
    PatternStrategy,
    Strategy,
    TaskType,
)
from .retrieval import (
    ContextUsedItem,
    FormattedContext,
    KnowledgeDiff,
    MessageAnalysis,
    RelatedEntity,
    RetrievalContext,
    RetrievalResult,
    ScoredEntity,
    SharedConnection,
    TimelineEvent,
    TraversalEdge,
    TraversalNode,
    TraversalResult,
)
from .lifecycle import (
    CandidateBehavior,
    CandidateFact,
    CandidateMemory,
    CascadeResult,
    LifecycleDecision,
    MemoryOperation,
    MergeStrategy,
    OperationRecord,
)

__all__ = [
    # Entity
    "Entity",
    "EntityStatus",
    "EntityType",
    "IMPORTANCE_TIER_WEIGHTS",
    "ImportanceTier",
    "MemoryType",
    "SensitivityLevel",
    # Fact
    "Fact",
    "FactStatus",
    "INVERSE_PREDICATES",
    "InvalidationReason",
    "Predicate",
    "Relationship",
    "SINGLE_VALUED_PREDICATES",
    "is_single_valued",
    "normalize_predicate",
    # Behavior & pattern
    "BEHAVIOR_INVERSES",
    "Behavior",
    "BehaviorPredicate",
    "BehaviorStatus",
    "Pattern",
    "PatternStatus",
    "PatternType",
    # Note
    "Note",
    "NoteStatus",
    # Strategy
    "EntityStrategy",
    "FactStrategy",
    "NoteStrategy",
    "PatternStrategy",
    "Strategy",
    "TaskType",
    # Retrieval
    "ContextUsedItem",
    "FormattedContext",
    "KnowledgeDiff",
    "MessageAnalysis",
    "RelatedEntity",
    "RetrievalContext",
    "RetrievalResult",
    "ScoredEntity",
    "SharedConnection",
    "TimelineEvent",
    "TraversalEdge",
    "TraversalNode",
    "TraversalResult",
    # Lifecycle
    "CandidateBehavior",
    "CandidateFact",
    "CandidateMemory",
    "CascadeResult",
    "LifecycleDecision",
    "MemoryOperation",
    "MergeStrategy",
    "OperationRecord",
]
