from abc import ABC, abstractmethod
from typing import Optional

from scitrera_app_framework.api import Variables, Plugin, enabled_option_pattern
from scitrera_app_framework import get_logger

from ...config import MIRROR_EMBEDDING_PROVIDER, DEFAULT_MIRROR_EMBEDDING_PROVIDER
from .._constants import EXT_EMBEDDING_PROVIDER


class EmbeddingProvider(ABC):
    """Abstract embedding provider (turns a user message into a query vector)."""

    def __init__(self, v: Variables = None, output_dimensions: Optional[int] = None):
        self._dimensions = output_dimensions
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for single text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts (more efficient)."""
        pass

    @property
    def dimensions(self) -> int:
        """Embedding dimensions."""
        return self._dimensions


# noinspection PyAbstractClass
class EmbeddingProviderPluginBase(Plugin):
    """Base Plugin Implementation for embedding providers."""
    PROVIDER_NAME: str = ''

    def name(self) -> str:
        return f"{EXT_EMBEDDING_PROVIDER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_EMBEDDING_PROVIDER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_EMBEDDING_PROVIDER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_EMBEDDING_PROVIDER, DEFAULT_MIRROR_EMBEDDING_PROVIDER)
