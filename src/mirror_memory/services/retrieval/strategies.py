"""Static task-type -> retrieval strategy table."""
from typing import Optional, Union

from ...models import EntityStrategy, FactStrategy, NoteStrategy, PatternStrategy, Strategy, TaskType

DEFAULT_BEHAVIOR_LIMIT = 10

STRATEGIES: dict[TaskType, Strategy] = {
    TaskType.ENTITY_RECALL: Strategy(
        task_type=TaskType.ENTITY_RECALL,
        entities=EntityStrategy.MENTIONED_ONLY, entity_limit=10,
        facts=FactStrategy.ALL_FOR_ENTITY, fact_limit=50,
        notes=NoteStrategy.MENTIONS_ONLY, note_limit=10,
        patterns=PatternStrategy.NONE, pattern_limit=0,
        behavior_limit=DEFAULT_BEHAVIOR_LIMIT,
        max_tokens=2000,
    ),
    TaskType.DECISION: Strategy(
        task_type=TaskType.DECISION,
        entities=EntityStrategy.RELEVANT_PEOPLE, entity_limit=15,
        facts=FactStrategy.HIGH_CONFIDENCE, fact_limit=30,
        notes=NoteStrategy.RELATED_TOPICS, note_limit=15,
        patterns=PatternStrategy.BEHAVIORAL, pattern_limit=10,
        behavior_limit=DEFAULT_BEHAVIOR_LIMIT,
        max_tokens=4000,
    ),
    TaskType.EMOTIONAL: Strategy(
        task_type=TaskType.EMOTIONAL,
        entities=EntityStrategy.SUPPORTIVE_RELATIONSHIPS, entity_limit=10,
        facts=FactStrategy.MINIMAL, fact_limit=0,
        notes=NoteStrategy.PAST_SIMILAR, note_limit=10,
        patterns=PatternStrategy.EMOTIONAL_PATTERNS, pattern_limit=10,
        behavior_limit=DEFAULT_BEHAVIOR_LIMIT,
        max_tokens=3000,
    ),
    TaskType.RESEARCH: Strategy(
        task_type=TaskType.RESEARCH,
        entities=EntityStrategy.ALL_RELATED, entity_limit=30,
        facts=FactStrategy.ALL, fact_limit=50,
        notes=NoteStrategy.BROAD_SEARCH, note_limit=25,
        patterns=PatternStrategy.ALL, pattern_limit=10,
        behavior_limit=DEFAULT_BEHAVIOR_LIMIT,
        max_tokens=6000,
    ),
    TaskType.THINKING_PARTNER: Strategy(
        task_type=TaskType.THINKING_PARTNER,
        entities=EntityStrategy.MENTIONED_PLUS_RELATED, entity_limit=15,
        facts=FactStrategy.RELEVANT, fact_limit=20,
        notes=NoteStrategy.SIMILAR_EXPLORATIONS, note_limit=15,
        patterns=PatternStrategy.THINKING_PATTERNS, pattern_limit=10,
        behavior_limit=DEFAULT_BEHAVIOR_LIMIT,
        max_tokens=4000,
    ),
    TaskType.FACTUAL: Strategy(
        task_type=TaskType.FACTUAL,
        entities=EntityStrategy.MENTIONED_ONLY, entity_limit=10,
        facts=FactStrategy.ALL_FOR_ENTITY, fact_limit=50,
        notes=NoteStrategy.NONE, note_limit=0,
        patterns=PatternStrategy.NONE, pattern_limit=0,
        behavior_limit=5,
        max_tokens=1500,
    ),
    TaskType.GENERAL: Strategy(
        task_type=TaskType.GENERAL,
        entities=EntityStrategy.TOP_BY_IMPORTANCE, entity_limit=10,
        facts=FactStrategy.HIGH_CONFIDENCE, fact_limit=30,
        notes=NoteStrategy.RECENT, note_limit=10,
        patterns=PatternStrategy.NONE, pattern_limit=0,
        behavior_limit=DEFAULT_BEHAVIOR_LIMIT,
        max_tokens=3000,
    ),
}


def strategy_for(task_type: Union[TaskType, str, None]) -> Strategy:
    """Strategy for a task type; unknown values (raw strings, None) get the general strategy."""
    resolved: Optional[TaskType]
    if isinstance(task_type, TaskType):
        resolved = task_type
    else:
        try:
            resolved = TaskType(task_type)
        except ValueError:
            resolved = None
    return STRATEGIES.get(resolved, STRATEGIES[TaskType.GENERAL])
