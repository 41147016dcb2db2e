"""Default graph traversal over facts and relationship edges."""
from collections import deque
from logging import Logger
from typing import Optional, Sequence

from scitrera_app_framework import Variables

from ...config import MIRROR_TRAVERSAL_MAX_DEPTH, DEFAULT_MIRROR_TRAVERSAL_MAX_DEPTH
from ...models import (
    Entity, Fact, RelatedEntity, SharedConnection, TraversalEdge, TraversalNode, TraversalResult,
)
from ...utils import humanize_predicate
from .._constants import EXT_STORAGE_BACKEND
from ..storage import StorageBackend
from .base import GraphTraversal, GraphTraversalPluginBase, MAX_DEPTH_LIMIT, MAX_NODES_LIMIT, DEFAULT_MAX_NODES

# Predicate groups whose members link entities sharing the same object
COLLEAGUE_PREDICATES = ("works_at", "company", "employer")
MEMBERSHIP_PREDICATES = ("member_of", "belongs_to")
SCHOOL_PREDICATES = ("studied_at", "school")

# Predicates whose object names another entity
DIRECT_PREDICATES = (
    "knows", "friend", "spouse", "spouse_of", "sibling", "sibling_of", "parent", "parent_of",
    "child", "child_of", "partner", "partner_of",
)
HIERARCHY_LABELS = {"reports_to": "reports to", "manager": "manager"}

CONNECTING_PREDICATES = (
        COLLEAGUE_PREDICATES + MEMBERSHIP_PREDICATES + SCHOOL_PREDICATES
        + DIRECT_PREDICATES + tuple(HIERARCHY_LABELS)
)

# Per-hop caps
FACTS_PER_HOP = 50
PEERS_PER_FACT = 20
EDGES_PER_HOP = 50
SHARED_FACT_SCAN_LIMIT = 500


def _group_for(predicate: str) -> Optional[tuple[tuple[str, ...], str]]:
    if predicate in COLLEAGUE_PREDICATES:
        return COLLEAGUE_PREDICATES, "also works at {}"
    if predicate in MEMBERSHIP_PREDICATES:
        return MEMBERSHIP_PREDICATES, "also member of {}"
    if predicate in SCHOOL_PREDICATES:
        return SCHOOL_PREDICATES, "also studied at {}"
    return None


class DefaultGraphTraversal(GraphTraversal):
    """Bounded BFS; a visited set keyed by entity id guarantees termination on cyclic graphs."""

    def __init__(
            self,
            storage: StorageBackend,
            v: Variables = None,
            default_max_depth: int = DEFAULT_MIRROR_TRAVERSAL_MAX_DEPTH,
    ):
        super().__init__(v)
        self.storage = storage
        self.default_max_depth = default_max_depth

    async def traverse(
            self,
            user_id: str,
            seed_entity_id: str,
            max_depth: Optional[int] = None,
            max_nodes: int = DEFAULT_MAX_NODES,
    ) -> TraversalResult:
        max_depth = self.default_max_depth if max_depth is None else max_depth
        max_depth = max(0, min(MAX_DEPTH_LIMIT, max_depth))
        max_nodes = max(1, min(MAX_NODES_LIMIT, max_nodes))

        result = TraversalResult(seed_id=seed_entity_id, max_depth=max_depth)
        seed = await self.storage.get_entity(user_id, seed_entity_id)
        if seed is None:
            return result

        visited = {seed.id}
        result.nodes.append(self._node(seed, 0))
        queue: deque[tuple[Entity, int]] = deque([(seed, 0)])

        while queue and len(result.nodes) < max_nodes:
            current, depth = queue.popleft()
            if depth >= max_depth:
                continue
            for related in await self._neighbors(user_id, current):
                target = related.entity
                if target.id in visited:
                    continue
                if len(result.nodes) >= max_nodes:
                    break
                visited.add(target.id)
                result.nodes.append(self._node(target, depth + 1))
                result.edges.append(TraversalEdge(
                    source_id=current.id,
                    target_id=target.id,
                    relationship=related.relationship,
                    predicate=related.via_predicate,
                ))
                queue.append((target, depth + 1))

        self.logger.debug(
            "Traversed %d nodes / %d edges from %s (depth %d)",
            len(result.nodes), len(result.edges), seed_entity_id, max_depth,
        )
        return result

    async def related_entities(self, user_id: str, entity_id: str, limit: int = 10) -> list[RelatedEntity]:
        entity = await self.storage.get_entity(user_id, entity_id)
        if entity is None:
            return []
        return (await self._neighbors(user_id, entity))[:max(0, limit)]

    async def find_shared_connections(self, user_id: str, entity_ids: Sequence[str]) -> list[SharedConnection]:
        ids = list(dict.fromkeys(entity_ids))
        if len(ids) < 2:
            return []

        facts = await self.storage.query_facts(user_id, entity_ids=ids, limit=SHARED_FACT_SCAN_LIMIT)
        groups: dict[tuple[str, str], SharedConnection] = {}
        for fact in facts:
            if not fact.normalized_object:
                continue
            key = (fact.predicate, fact.normalized_object)
            group = groups.setdefault(key, SharedConnection(
                predicate=fact.predicate, object_text=fact.object_text.strip(), entity_ids=[],
            ))
            if fact.entity_id not in group.entity_ids:
                group.entity_ids.append(fact.entity_id)
        return [g for g in groups.values() if len(g.entity_ids) >= 2]

    @staticmethod
    def _node(entity: Entity, depth: int) -> TraversalNode:
        return TraversalNode(id=entity.id, name=entity.name, entity_type=entity.entity_type.value, depth=depth)

    async def _neighbors(self, user_id: str, entity: Entity) -> list[RelatedEntity]:
        """One-hop neighbors in discovery order, deduplicated, excluding the entity itself."""
        found: dict[str, RelatedEntity] = {}

        def add(target: Optional[Entity], label: str, predicate: Optional[str]) -> None:
            if target is None or target.id == entity.id or target.id in found or not target.is_current:
                return
            found[target.id] = RelatedEntity(entity=target, relationship=label, via_predicate=predicate)

        facts = await self.storage.query_facts(
            user_id, entity_ids=[entity.id], predicates=CONNECTING_PREDICATES, limit=FACTS_PER_HOP,
        )
        for fact in facts:
            group = _group_for(fact.predicate)
            if group is not None:
                if not fact.normalized_object:
                    continue
                predicates, template = group
                peers = await self.storage.query_facts(
                    user_id, predicates=predicates, object_text=fact.object_text, limit=PEERS_PER_FACT + 1,
                )
                for peer in peers:
                    if peer.entity_id != entity.id:
                        add(await self.storage.get_entity(user_id, peer.entity_id),
                            template.format(fact.object_text.strip()), fact.predicate)
            else:
                label = HIERARCHY_LABELS.get(fact.predicate, humanize_predicate(fact.predicate))
                add(await self._resolve_object(user_id, fact), label, fact.predicate)

        edges = await self.storage.query_relationships(user_id, entity_id=entity.id, limit=EDGES_PER_HOP)
        for edge in edges:
            other_id = edge.target_entity_id if edge.source_entity_id == entity.id else edge.source_entity_id
            add(await self.storage.get_entity(user_id, other_id),
                humanize_predicate(edge.relationship_type), edge.relationship_type)

        return list(found.values())

    async def _resolve_object(self, user_id: str, fact: Fact) -> Optional[Entity]:
        if fact.object_entity_id:
            return await self.storage.get_entity(user_id, fact.object_entity_id)
        if fact.object_text:
            return await self.storage.find_entity_by_name(user_id, fact.object_text)
        return None


class DefaultGraphTraversalPlugin(GraphTraversalPluginBase):
    """Default graph traversal plugin."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> GraphTraversal:
        return DefaultGraphTraversal(
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            v=v,
            default_max_depth=v.environ(MIRROR_TRAVERSAL_MAX_DEPTH, default=DEFAULT_MIRROR_TRAVERSAL_MAX_DEPTH,
                                        type_fn=int),
        )
