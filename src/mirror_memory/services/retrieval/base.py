"""
Retrieval Engine - Base classes and interfaces.

Fetches candidate records for each memory category according to a ``Strategy``.
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_RETRIEVAL_ENGINE, DEFAULT_MIRROR_RETRIEVAL_ENGINE
from ...models import RetrievalResult, Strategy
from .._constants import EXT_GRAPH_TRAVERSAL, EXT_RELEVANCE_SCORER, EXT_RETRIEVAL_ENGINE, EXT_STORAGE_BACKEND


class RetrievalEngine(ABC):
    """Interface for strategy-driven retrieval."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def retrieve(
            self,
            user_id: str,
            strategy: Strategy,
            mentioned_entities: Sequence[str] = (),
            topics: Sequence[str] = (),
            query_vector: Optional[list[float]] = None,
            include_historical: bool = False,
    ) -> RetrievalResult:
        """
        Fetch entities, facts, notes, patterns and behaviors for one message.

        A failing category resolves to an empty list (named in ``failed_categories``)
        and never fails the whole retrieval. No category exceeds its strategy cap.
        """
        pass


# noinspection PyAbstractClass
class RetrievalEnginePluginBase(Plugin):
    """Base plugin for retrieval engines."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_RETRIEVAL_ENGINE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_RETRIEVAL_ENGINE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_RETRIEVAL_ENGINE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_RETRIEVAL_ENGINE, DEFAULT_MIRROR_RETRIEVAL_ENGINE)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND, EXT_RELEVANCE_SCORER, EXT_GRAPH_TRAVERSAL)
