"""Default pattern-based task classifier."""
import re
from logging import Logger

from scitrera_app_framework import Variables

from ...models import TaskType
from .._constants import EXT_TEXT_EXTRACTOR
from .base import TaskClassifier, TaskClassifierPluginBase

# Evaluated in this order; first match wins
TASK_PATTERNS: tuple[tuple[TaskType, tuple[re.Pattern, ...]], ...] = tuple(
    (task_type, tuple(re.compile(p, re.IGNORECASE) for p in patterns))
    for task_type, patterns in (
        (TaskType.ENTITY_RECALL, (
            r"what do you know about",
            r"tell me about",
            r"who is",
            r"what is (.+)'s",
            r"remind me about",
            r"what have I said about",
            r"what have you learned about",
            r"remind me who",
        )),
        (TaskType.DECISION, (
            r"should I",
            r"help me decide",
            r"what do you think about",
            r"pros and cons",
            r"weighing",
            r"considering",
            r"torn between",
            r"which (?:should|would)",
            r"advice on",
        )),
        (TaskType.EMOTIONAL, (
            r"I('m| am) (feeling|stressed|anxious|worried|excited|nervous|overwhelmed)",
            r"feeling (stressed|anxious|worried|excited|nervous|overwhelmed|happy|sad|frustrated|angry|scared)",
            r"I('m| am) (happy|sad|frustrated|angry|scared)",
            r"this is hard",
            r"struggling with",
            r"I('m| am) having a hard time",
            r"need to vent",
            r"frustrated about",
        )),
        (TaskType.RESEARCH, (
            r"^research\s+",
            r"deep dive",
            r"explore my thinking",
            r"what patterns",
            r"analyze my",
            r"synthesis of",
            r"tell me everything",
            r"what have I thought about",
        )),
        (TaskType.THINKING_PARTNER, (
            r"I('m| am) thinking about",
            r"help me think through",
            r"brainstorm",
            r"let's explore",
            r"I('ve| have) been pondering",
            r"what if",
            r"work through",
            r"think out loud",
            r"help me process",
        )),
        (TaskType.FACTUAL, (
            r"when did",
            r"where does",
            r"what is the",
            r"how many",
            r"what date",
            r"what time",
            r"where is",
            r"when was",
            r"how long",
        )),
    )
)

HISTORICAL_QUERY_PATTERN = re.compile(r"used to|previously|in the past|history|changed", re.IGNORECASE)


class DefaultTaskClassifier(TaskClassifier):
    """Keyword/regex classifier; pure and deterministic."""

    def classify(self, message: str) -> TaskType:
        if not message or not isinstance(message, str):
            return TaskType.GENERAL

        for task_type, patterns in TASK_PATTERNS:
            if any(p.search(message) for p in patterns):
                return task_type
        return TaskType.GENERAL

    def wants_history(self, message: str) -> bool:
        if not message or not isinstance(message, str):
            return False
        return HISTORICAL_QUERY_PATTERN.search(message) is not None


class DefaultTaskClassifierPlugin(TaskClassifierPluginBase):
    """Default task classifier plugin."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> TaskClassifier:
        return DefaultTaskClassifier(
            extractor=self.get_extension(EXT_TEXT_EXTRACTOR, v),
            v=v,
        )
