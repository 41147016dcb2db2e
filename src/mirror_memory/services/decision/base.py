"""
Lifecycle Decision Provider - Base classes and interfaces.

Decides whether a candidate memory is added, merged into an existing entity, deletes one,
or is ignored.
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_DECISION_PROVIDER, DEFAULT_MIRROR_DECISION_PROVIDER
from ...models import CandidateMemory, Entity, LifecycleDecision
from .._constants import EXT_DECISION_PROVIDER


class DecisionProvider(ABC):
    """Interface for lifecycle decisions."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def decide(
            self,
            user_id: str,
            candidate: CandidateMemory,
            existing: Sequence[Entity],
    ) -> Optional[LifecycleDecision]:
        """
        Decide what to do with a candidate.

        Args:
            user_id: Owning user
            candidate: Proposed memory
            existing: Current entities with the same normalized name (may be empty)

        Returns:
            The decision; None when no decision could be reached
        """
        pass


# noinspection PyAbstractClass
class DecisionProviderPluginBase(Plugin):
    """Base plugin for decision providers."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_DECISION_PROVIDER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_DECISION_PROVIDER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_DECISION_PROVIDER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_DECISION_PROVIDER, DEFAULT_MIRROR_DECISION_PROVIDER)
