"""Anthropic Claude lifecycle decision provider (single forced tool call)."""
import json
from logging import Logger
from typing import Any, Optional, Sequence

from anthropic import AsyncAnthropic
from pydantic import ValidationError
from scitrera_app_framework import Variables

from ...config import DecisionProviderType, MIRROR_DECISION_ANTHROPIC_API_KEY, MIRROR_DECISION_ANTHROPIC_MODEL
from ...models import CandidateMemory, Entity, LifecycleDecision, MemoryOperation, MergeStrategy
from .base import DecisionProvider, DecisionProviderPluginBase

DEFAULT_DECISION_ANTHROPIC_MODEL = 'claude-sonnet-4-20250514'
DEFAULT_DECISION_MAX_TOKENS = 512

DECISION_TOOL_NAME = "memory_decision"

DECISION_TOOL = {
    "name": DECISION_TOOL_NAME,
    "description": "Record what to do with a newly extracted memory given the memories already stored.",
    "input_schema": {
        "type": "object",
        "properties": {
            "operation": {"type": "string", "enum": [op.value for op in MemoryOperation]},
            "target_id": {"type": "string", "description": "Id of the existing memory acted on (UPDATE/DELETE)"},
            "merge_strategy": {"type": "string", "enum": [s.value for s in MergeStrategy]},
            "reasoning": {"type": "string"},
            "hard_delete": {"type": "boolean"},
            "updated_summary": {"type": "string", "description": "Summary to store after the update"},
        },
        "required": ["operation", "reasoning"],
    },
}

SYSTEM_PROMPT = (
    "You maintain a personal memory store. Given a candidate memory and the existing memories "
    "with the same name, choose exactly one operation: ADD a new memory, UPDATE an existing one "
    "(replace for corrections, append for new detail, supersede for life changes such as a new job "
    "or a move), DELETE when the user asked to forget it, or NOOP when nothing new was learned. "
    "Only set hard_delete when the user explicitly asked for permanent removal."
)


class AnthropicDecisionProvider(DecisionProvider):
    """Asks Claude for a decision through a forced ``memory_decision`` tool call."""

    def __init__(
            self,
            api_key: Optional[str] = None,
            model: str = DEFAULT_DECISION_ANTHROPIC_MODEL,
            max_tokens: int = DEFAULT_DECISION_MAX_TOKENS,
            client: Optional[AsyncAnthropic] = None,
            v: Variables = None,
    ):
        super().__init__(v)
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = client
        self.logger.info("Initialized AnthropicDecisionProvider: model=%s", model)

    def _get_client(self) -> AsyncAnthropic:
        """Lazy-create the async client."""
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    @staticmethod
    def _build_prompt(candidate: CandidateMemory, existing: Sequence[Entity]) -> str:
        payload = {
            "candidate": candidate.model_dump(
                mode="json",
                include={"name", "entity_type", "memory_type", "relationship", "summary", "importance",
                         "confidence", "is_correction", "supersedes", "delete_requested", "hard_delete"},
            ),
            "existing": [
                {
                    "id": e.id,
                    "name": e.name,
                    "entity_type": e.entity_type.value,
                    "summary": e.summary,
                    "version": e.version,
                    "updated_at": e.updated_at.isoformat(),
                }
                for e in existing
            ],
        }
        return json.dumps(payload, indent=2)

    async def decide(
            self,
            user_id: str,
            candidate: CandidateMemory,
            existing: Sequence[Entity],
    ) -> Optional[LifecycleDecision]:
        client = self._get_client()
        self.logger.debug("Decision request for user %s (%d existing)", user_id, len(existing))

        response = await client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": self._build_prompt(candidate, existing)}],
            tools=[DECISION_TOOL],
            tool_choice={"type": "tool", "name": DECISION_TOOL_NAME},
        )

        tool_input = self._tool_input(response)
        if tool_input is None:
            self.logger.warning("Decision response for user %s had no %s call", user_id, DECISION_TOOL_NAME)
            return None

        try:
            decision = LifecycleDecision.model_validate(tool_input)
        except ValidationError as e:
            self.logger.warning("Invalid decision for user %s (%d errors)", user_id, e.error_count())
            return None

        known_ids = {e.id for e in existing}
        if decision.operation in (MemoryOperation.UPDATE, MemoryOperation.DELETE):
            if decision.target_id not in known_ids:
                if not existing:
                    return LifecycleDecision.noop("Decision targeted an unknown memory")
                decision = decision.model_copy(update={"target_id": existing[0].id})
            if decision.operation == MemoryOperation.UPDATE and decision.merge_strategy is None:
                decision = decision.model_copy(update={"merge_strategy": MergeStrategy.APPEND})
        return decision

    @staticmethod
    def _tool_input(response: Any) -> Optional[dict]:
        for block in response.content or []:
            if getattr(block, "type", None) == "tool_use" and getattr(block, "name", None) == DECISION_TOOL_NAME:
                return dict(block.input)
        return None


class AnthropicDecisionProviderPlugin(DecisionProviderPluginBase):
    PROVIDER_NAME = DecisionProviderType.ANTHROPIC

    def initialize(self, v: Variables, logger: Logger) -> DecisionProvider:
        return AnthropicDecisionProvider(
            api_key=v.environ(MIRROR_DECISION_ANTHROPIC_API_KEY, default=None),
            model=v.environ(MIRROR_DECISION_ANTHROPIC_MODEL, default=DEFAULT_DECISION_ANTHROPIC_MODEL),
            v=v,
        )
