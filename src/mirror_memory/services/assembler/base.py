"""
Context Assembler - Base classes and interfaces.

Renders retrieved records into the markdown block handed to the generation LLM, plus the
short audit list shown to the user.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_CONTEXT_ASSEMBLER, DEFAULT_MIRROR_CONTEXT_ASSEMBLER
from ...models import Entity, FormattedContext, RetrievalContext, RetrievalResult, SharedConnection, TaskType
from .._constants import EXT_CONTEXT_ASSEMBLER


class ContextAssembler(ABC):
    """Interface for context formatting."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    def assemble(
            self,
            result: RetrievalResult,
            task_type: Optional[TaskType] = None,
            topics: Optional[Sequence[str]] = None,
            max_tokens: Optional[int] = None,
    ) -> FormattedContext:
        """Format a retrieval result; empty sections are omitted and the text honors ``max_tokens``."""
        pass

    @abstractmethod
    def format_connections(self, connections: Sequence[SharedConnection], entities: Sequence[Entity]) -> str:
        """One sentence per shared connection, e.g. ``"Sarah and Tom both work at Acme"``."""
        pass

    def summarize(self, context: RetrievalContext) -> dict[str, Any]:
        """Counts only (no content), safe to log."""
        return {
            "task_type": context.task_type.value,
            "entity_count": len(context.entities),
            "fact_count": len(context.facts),
            "note_count": len(context.notes),
            "pattern_count": len(context.patterns),
            "behavior_count": len(context.behaviors),
            "context_used_count": len(context.context_used),
        }


# noinspection PyAbstractClass
class ContextAssemblerPluginBase(Plugin):
    """Base plugin for context assemblers."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_CONTEXT_ASSEMBLER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_CONTEXT_ASSEMBLER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_CONTEXT_ASSEMBLER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_CONTEXT_ASSEMBLER, DEFAULT_MIRROR_CONTEXT_ASSEMBLER)
