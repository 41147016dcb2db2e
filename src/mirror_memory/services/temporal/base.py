"""
Temporal Fact Service - Base interface and plugin.

Point-in-time and history queries over bi-temporal facts.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_TEMPORAL_SERVICE, DEFAULT_MIRROR_TEMPORAL_SERVICE
from ...models import Fact, KnowledgeDiff, TimelineEvent
from .._constants import EXT_STORAGE_BACKEND, EXT_TEMPORAL_SERVICE


class TemporalFactService(ABC):
    """Interface for temporal fact queries."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def facts_at_time(self, user_id: str, at: datetime, entity_id: Optional[str] = None) -> list[Fact]:
        """Facts that were true at ``at`` and not yet retracted by then."""
        pass

    @abstractmethod
    async def fact_history(self, user_id: str, entity_id: str, predicate: str) -> list[Fact]:
        """All versions of one (entity, predicate) slot, newest version first."""
        pass

    @abstractmethod
    async def current_facts(self, user_id: str, entity_id: Optional[str] = None) -> list[Fact]:
        """Active, current facts."""
        pass

    @abstractmethod
    async def entity_timeline(self, user_id: str, entity_id: str) -> list[TimelineEvent]:
        """Chronological ``learned``/``invalidated`` events for an entity's facts."""
        pass

    @abstractmethod
    async def compare_knowledge(
            self,
            user_id: str,
            t1: datetime,
            t2: datetime,
            entity_id: Optional[str] = None,
    ) -> KnowledgeDiff:
        """What was added, removed or changed between two points in time."""
        pass


# noinspection PyAbstractClass
class TemporalFactServicePluginBase(Plugin):
    """Base plugin for temporal fact services."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_TEMPORAL_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_TEMPORAL_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_TEMPORAL_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_TEMPORAL_SERVICE, DEFAULT_MIRROR_TEMPORAL_SERVICE)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND,)
