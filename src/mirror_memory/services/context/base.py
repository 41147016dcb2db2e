"""
Context Service - Base classes and interfaces.

Orchestrates one retrieval turn: analyze the message, pick a strategy, embed the query,
retrieve and assemble.
"""
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_CONTEXT_SERVICE, DEFAULT_MIRROR_CONTEXT_SERVICE
from ...models import RetrievalContext
from .._constants import (
    EXT_CONTEXT_ASSEMBLER, EXT_CONTEXT_SERVICE, EXT_EMBEDDING_PROVIDER, EXT_RETRIEVAL_ENGINE,
    EXT_STORAGE_BACKEND, EXT_TASK_CLASSIFIER,
)


class ContextService(ABC):
    """Interface for per-message context loading."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def load_context(
            self,
            user_id: str,
            message: str,
            known_names: Optional[Iterable[str]] = None,
    ) -> RetrievalContext:
        """
        Build the retrieval context for one user message.

        Args:
            user_id: Owning user
            message: Raw user message (never logged)
            known_names: Names to look for in the message; defaults to the user's active entities

        Returns:
            A fresh RetrievalContext; category failures degrade to empty lists
        """
        pass


# noinspection PyAbstractClass
class ContextServicePluginBase(Plugin):
    """Base plugin for context services."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_CONTEXT_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_CONTEXT_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_CONTEXT_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_CONTEXT_SERVICE, DEFAULT_MIRROR_CONTEXT_SERVICE)

    def get_dependencies(self, v: Variables):
        return (
            EXT_STORAGE_BACKEND,
            EXT_TASK_CLASSIFIER,
            EXT_RETRIEVAL_ENGINE,
            EXT_CONTEXT_ASSEMBLER,
            EXT_EMBEDDING_PROVIDER,
        )
