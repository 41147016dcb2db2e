"""
Graph Traversal - Base classes and interfaces.

Entities are linked implicitly through facts (same employer, same school, a named spouse)
and explicitly through relationship edges. Traversal is bounded breadth-first search.
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import MIRROR_GRAPH_TRAVERSAL, DEFAULT_MIRROR_GRAPH_TRAVERSAL
from ...models import RelatedEntity, SharedConnection, TraversalResult
from .._constants import EXT_GRAPH_TRAVERSAL, EXT_STORAGE_BACKEND

MAX_DEPTH_LIMIT = 5
MAX_NODES_LIMIT = 200
DEFAULT_MAX_NODES = 50


class GraphTraversal(ABC):
    """Interface for entity graph traversal."""

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def traverse(
            self,
            user_id: str,
            seed_entity_id: str,
            max_depth: Optional[int] = None,
            max_nodes: int = DEFAULT_MAX_NODES,
    ) -> TraversalResult:
        """
        Breadth-first traversal from a seed entity.

        Args:
            user_id: Owning user
            seed_entity_id: Starting entity (depth 0)
            max_depth: Hops to expand, clamped to [0, 5]; None uses the configured default
            max_nodes: Node budget including the seed, clamped to [1, 200]

        Returns:
            Nodes deduplicated by id and the edges that discovered them (empty for an unknown seed)
        """
        pass

    @abstractmethod
    async def related_entities(self, user_id: str, entity_id: str, limit: int = 10) -> list[RelatedEntity]:
        """One-hop neighbors of an entity, deduplicated by id."""
        pass

    @abstractmethod
    async def find_shared_connections(self, user_id: str, entity_ids: Sequence[str]) -> list[SharedConnection]:
        """Groups of two or more of ``entity_ids`` sharing the same predicate and object."""
        pass


# noinspection PyAbstractClass
class GraphTraversalPluginBase(Plugin):
    """Base plugin for graph traversal."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_GRAPH_TRAVERSAL}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_GRAPH_TRAVERSAL

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, MIRROR_GRAPH_TRAVERSAL, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(MIRROR_GRAPH_TRAVERSAL, DEFAULT_MIRROR_GRAPH_TRAVERSAL)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND,)
