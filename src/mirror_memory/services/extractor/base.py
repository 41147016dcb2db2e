"""
Text Extractor - Base classes and interfaces.

Pulls candidate entity names and topic keywords out of a raw user message.
"""
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_TEXT_EXTRACTOR, DEFAULT_MIRROR_TEXT_EXTRACTOR
from .._constants import EXT_TEXT_EXTRACTOR


class TextExtractor(ABC):
    """Interface for message text extraction. Implementations never raise on bad input."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    def extract_mentioned_entities(self, message: str, known_names: Optional[Iterable[str]] = None) -> list[str]:
        """Names mentioned in ``message``, deduplicated in first-seen order.

        Args:
            message: Raw user message
            known_names: Canonical names of entities the user already has; matched whole-word,
                case-insensitively, and returned in canonical spelling

        Returns:
            List of names (empty for empty or non-string input)
        """
        pass

    @abstractmethod
    def extract_topics(self, message: str) -> list[str]:
        """Lowercase topic keywords of ``message`` with stopwords removed, deduplicated."""
        pass


# noinspection PyAbstractClass
class TextExtractorPluginBase(Plugin):
    """Base plugin for text extractors."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_TEXT_EXTRACTOR}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_TEXT_EXTRACTOR

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_TEXT_EXTRACTOR, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_TEXT_EXTRACTOR, DEFAULT_MIRROR_TEXT_EXTRACTOR)
