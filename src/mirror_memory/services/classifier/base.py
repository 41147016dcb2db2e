"""
Task Classifier - Base classes and interfaces.

Maps a user message to a closed ``TaskType`` and bundles the extracted names and topics
into a ``MessageAnalysis``.
"""
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_TASK_CLASSIFIER, DEFAULT_MIRROR_TASK_CLASSIFIER
from ...models import MessageAnalysis, TaskType
from .._constants import EXT_TASK_CLASSIFIER, EXT_TEXT_EXTRACTOR
from ..extractor import TextExtractor


class TaskClassifier(ABC):
    """Interface for task classification."""

    def __init__(self, extractor: TextExtractor, v: Variables = None):
        self.extractor = extractor
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    def classify(self, message: str) -> TaskType:
        """Classify a message; ambiguous, empty or non-string input resolves to ``TaskType.GENERAL``."""
        pass

    @abstractmethod
    def wants_history(self, message: str) -> bool:
        """True when the message asks about past states (so historical records should be included)."""
        pass

    def extract_mentioned_entities(self, message: str, known_names: Optional[Iterable[str]] = None) -> list[str]:
        return self.extractor.extract_mentioned_entities(message, known_names)

    def extract_topics(self, message: str) -> list[str]:
        return self.extractor.extract_topics(message)

    def analyze(self, message: str, known_names: Optional[Iterable[str]] = None) -> MessageAnalysis:
        """Classify and extract in one call."""
        analysis = MessageAnalysis(
            task_type=self.classify(message),
            mentioned_entities=self.extract_mentioned_entities(message, known_names),
            topics=self.extract_topics(message),
            include_historical=self.wants_history(message),
        )
        self.logger.debug(
            "Classified message as %s (%d names, %d topics)",
            analysis.task_type.value, len(analysis.mentioned_entities), len(analysis.topics),
        )
        return analysis


# noinspection PyAbstractClass
class TaskClassifierPluginBase(Plugin):
    """Base plugin for task classifiers."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_TASK_CLASSIFIER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_TASK_CLASSIFIER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_TASK_CLASSIFIER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_TASK_CLASSIFIER, DEFAULT_MIRROR_TASK_CLASSIFIER)

    def get_dependencies(self, v: Variables):
        return (EXT_TEXT_EXTRACTOR,)
