"""Rule-based lifecycle decisions (no external calls)."""
from logging import Logger
from typing import Optional, Sequence

from scitrera_app_framework import Variables

from ...config import DecisionProviderType
from ...models import CandidateMemory, Entity, LifecycleDecision, MemoryOperation, MemoryType, MergeStrategy
from ...utils import contains_ci
from .base import DecisionProvider, DecisionProviderPluginBase

MIN_CONFIDENCE = 0.3

# Memory types whose new value replaces the previous state rather than adding detail
LIFE_STATE_TYPES = frozenset({MemoryType.EVENT, MemoryType.DECISION, MemoryType.GOAL})


class HeuristicDecisionProvider(DecisionProvider):
    """
    Rules, first match wins:

    1. no existing match: ADD (NOOP for a delete request)
    2. delete requested: DELETE, permanent only when asked
    3. low confidence or empty summary: NOOP
    4. summary already known: NOOP
    5. correction: UPDATE replace
    6. life-state change: UPDATE supersede
    7. otherwise: UPDATE append
    """

    async def decide(
            self,
            user_id: str,
            candidate: CandidateMemory,
            existing: Sequence[Entity],
    ) -> Optional[LifecycleDecision]:
        if not existing:
            if candidate.delete_requested:
                return LifecycleDecision.noop("Nothing to delete")
            return LifecycleDecision(operation=MemoryOperation.ADD, reasoning="No existing memory with this name")

        target = existing[0]
        if candidate.delete_requested:
            return LifecycleDecision(
                operation=MemoryOperation.DELETE,
                target_id=target.id,
                hard_delete=candidate.hard_delete,
                reasoning="User asked to forget this",
            )

        summary = (candidate.summary or "").strip()
        if candidate.confidence < MIN_CONFIDENCE or not summary:
            return LifecycleDecision.noop("Low confidence or no new information")

        if contains_ci(target.summary, summary):
            return LifecycleDecision.noop("Already known")

        if candidate.is_correction:
            strategy, reasoning = MergeStrategy.REPLACE, "Correction of an earlier memory"
        elif candidate.supersedes or candidate.memory_type in LIFE_STATE_TYPES:
            strategy, reasoning = MergeStrategy.SUPERSEDE, "Life-state change"
        else:
            strategy, reasoning = MergeStrategy.APPEND, "New detail about a known memory"

        return LifecycleDecision(
            operation=MemoryOperation.UPDATE,
            target_id=target.id,
            merge_strategy=strategy,
            reasoning=reasoning,
        )


class HeuristicDecisionProviderPlugin(DecisionProviderPluginBase):
    PROVIDER_NAME = DecisionProviderType.HEURISTIC

    def initialize(self, v: Variables, logger: Logger) -> DecisionProvider:
        return HeuristicDecisionProvider(v=v)
