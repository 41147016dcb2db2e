"""Default memory lifecycle manager."""
from datetime import datetime
from logging import Logger
from typing import Optional, Sequence

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import MIRROR_RELATIONSHIP_STRENGTH_BOOST, DEFAULT_MIRROR_RELATIONSHIP_STRENGTH_BOOST
from ...errors import EntityNotFoundError, FactNotFoundError, NoteNotFoundError
from ...models import (
    BEHAVIOR_INVERSES, INVERSE_PREDICATES, Behavior, BehaviorPredicate, BehaviorStatus, CandidateBehavior,
    CandidateFact, CandidateMemory, CascadeResult, Entity, EntityStatus, EntityType, Fact, FactStatus,
    ImportanceTier, InvalidationReason, LifecycleDecision, MemoryOperation, MergeStrategy, NoteStatus,
    OperationRecord, Relationship, is_single_valued, normalize_predicate,
)
from ...models.entity import MAX_CONTEXT_NOTES
from ...utils import age_in_days, contains_ci, ensure_utc, generate_id, normalize_text, utc_now
from .._constants import EXT_DECISION_PROVIDER, EXT_STORAGE_BACKEND
from ..decision import DecisionProvider
from ..storage import StorageBackend
from .base import (
    CleanupResult, DecayResult, DecaySettings, LifecycleManager, LifecycleManagerPluginBase, MaintenanceResult,
)

INFERRED_FACT_CONFIDENCE_FACTOR = 0.9
BEHAVIOR_INVERSE_CONFIDENCE_FACTOR = 0.95
BASE_RELATIONSHIP_STRENGTH = 0.5
BEHAVIOR_INVERSE_DEFAULT_OBJECT = "user"


class DefaultLifecycleManager(LifecycleManager):
    """Default lifecycle implementation using the storage backend directly."""

    def __init__(
            self,
            storage: StorageBackend,
            decisions: DecisionProvider,
            relationship_boost: float = DEFAULT_MIRROR_RELATIONSHIP_STRENGTH_BOOST,
            v: Variables = None,
    ):
        self._storage = storage
        self._decisions = decisions
        self.relationship_boost = relationship_boost
        self.logger = get_logger(v, name=self.__class__.__name__)

    # ========== Entity memories ==========

    async def process_candidate(self, user_id: str, candidate: CandidateMemory) -> OperationRecord:
        matches = await self._storage.query_entities(user_id, name_contains=[candidate.name], limit=25)
        existing = [e for e in matches if e.matches_name(candidate.name)]

        try:
            decision = await self._decisions.decide(user_id, candidate, existing)
        except Exception as e:
            self.logger.warning("Lifecycle decision failed for user %s (%s)", user_id, type(e).__name__)
            decision = LifecycleDecision.noop(f"Decision failed: {type(e).__name__}")
        if decision is None:
            self.logger.warning("No lifecycle decision for user %s", user_id)
            decision = LifecycleDecision.noop("No decision returned")

        return await self.apply_decision(user_id, candidate, decision)

    async def apply_decision(
            self,
            user_id: str,
            candidate: CandidateMemory,
            decision: LifecycleDecision,
    ) -> OperationRecord:
        record = OperationRecord(
            user_id=user_id,
            operation=decision.operation,
            target_id=decision.target_id,
            merge_strategy=decision.merge_strategy,
            reasoning=decision.reasoning,
            candidate_name=candidate.name,
        )

        if decision.operation == MemoryOperation.ADD:
            entity = await self._storage.create_entity(self._entity_from_candidate(user_id, candidate))
            record.entity_id = entity.id

        elif decision.operation == MemoryOperation.UPDATE:
            target = await self._require_entity(user_id, decision.target_id)
            strategy = decision.merge_strategy or MergeStrategy.APPEND
            record.merge_strategy = strategy
            if strategy == MergeStrategy.SUPERSEDE:
                entity = await self._supersede(user_id, target, candidate, decision)
            elif strategy == MergeStrategy.REPLACE:
                entity = await self._replace(user_id, target, candidate, decision)
            else:
                entity = await self._append(user_id, target, candidate, decision)
            record.entity_id = entity.id

        elif decision.operation == MemoryOperation.DELETE:
            target = await self._require_entity(user_id, decision.target_id)
            if decision.hard_delete:
                await self._storage.delete_entity(user_id, target.id)
            else:
                await self._storage.update_entity(user_id, target.id, status=EntityStatus.ARCHIVED)
            record.entity_id = target.id

        await self._storage.record_operation(record)
        self.logger.info(
            "Applied %s%s to entity %s for user %s",
            record.operation.value,
            f" ({record.merge_strategy.value})" if record.merge_strategy else "",
            record.entity_id or record.target_id, user_id,
        )
        return record

    async def _require_entity(self, user_id: str, entity_id: Optional[str]) -> Entity:
        entity = await self._storage.get_entity(user_id, entity_id) if entity_id else None
        if entity is None:
            raise EntityNotFoundError(entity_id or '', user_id)
        return entity

    @staticmethod
    def _entity_from_candidate(user_id: str, candidate: CandidateMemory) -> Entity:
        return Entity(
            id=generate_id("ent"),
            user_id=user_id,
            name=candidate.name,
            aliases=candidate.aliases,
            entity_type=candidate.entity_type,
            memory_type=candidate.memory_type,
            relationship=candidate.relationship,
            summary=candidate.summary,
            importance=candidate.importance,
            importance_score=candidate.importance.weight,
            sentiment_average=candidate.sentiment,
            mention_count=1,
            embedding=candidate.embedding,
            is_historical=candidate.is_historical,
            effective_from=candidate.effective_from,
            expires_at=candidate.expires_at,
            recurrence_pattern=candidate.recurrence_pattern,
            sensitivity_level=candidate.sensitivity_level,
            source_note_ids=[candidate.source_note_id] if candidate.source_note_id else [],
        )

    @staticmethod
    def _mention_updates(target: Entity, candidate: CandidateMemory) -> dict:
        """Counters shared by every in-place update."""
        count = target.mention_count + 1
        updates = {
            "mention_count": count,
            "sentiment_average": (target.sentiment_average * target.mention_count + candidate.sentiment) / count,
        }
        if candidate.source_note_id and candidate.source_note_id not in target.source_note_ids:
            updates["source_note_ids"] = [*target.source_note_ids, candidate.source_note_id]
        if candidate.embedding:
            updates["embedding"] = candidate.embedding
        return updates

    async def _replace(
            self, user_id: str, target: Entity, candidate: CandidateMemory, decision: LifecycleDecision,
    ) -> Entity:
        updates = self._mention_updates(target, candidate)
        updates["summary"] = decision.updated_summary or candidate.summary
        updates["name"] = candidate.name
        if candidate.entity_type != EntityType.OTHER:
            updates["entity_type"] = candidate.entity_type
        if candidate.relationship:
            updates["relationship"] = candidate.relationship
        return await self._storage.update_entity(user_id, target.id, **updates)

    async def _append(
            self, user_id: str, target: Entity, candidate: CandidateMemory, decision: LifecycleDecision,
    ) -> Entity:
        updates = self._mention_updates(target, candidate)
        detail = (candidate.summary or "").strip()
        if decision.updated_summary:
            updates["summary"] = decision.updated_summary
        elif detail and not contains_ci(target.summary, detail):
            updates["summary"] = f"{target.summary} {detail}" if target.summary else detail
        if detail:
            updates["context_notes"] = [*target.context_notes, detail][-MAX_CONTEXT_NOTES:]
        if candidate.relationship and not target.relationship:
            updates["relationship"] = candidate.relationship
        return await self._storage.update_entity(user_id, target.id, **updates)

    async def _supersede(
            self, user_id: str, target: Entity, candidate: CandidateMemory, decision: LifecycleDecision,
    ) -> Entity:
        replacement = self._entity_from_candidate(user_id, candidate).model_copy(update={
            "version": target.version + 1,
            "supersedes_id": target.id,
            "summary": decision.updated_summary or candidate.summary,
            "aliases": list(dict.fromkeys([*target.aliases, *candidate.aliases])),
            "relationship": candidate.relationship or target.relationship,
            "entity_type": target.entity_type if candidate.entity_type == EntityType.OTHER else candidate.entity_type,
            "mention_count": target.mention_count + 1,
            "embedding": candidate.embedding or target.embedding,
            "source_note_ids": list(dict.fromkeys(
                [*target.source_note_ids, *([candidate.source_note_id] if candidate.source_note_id else [])]
            )),
        })
        async with self._storage.transaction(user_id):
            # New version first, then retire the old one
            created = await self._storage.create_entity(replacement)
            await self._storage.update_entity(
                user_id, target.id,
                status=EntityStatus.SUPERSEDED,
                is_historical=True,
                superseded_by=created.id,
            )
        return created

    # ========== Facts ==========

    async def add_fact(self, user_id: str, candidate: CandidateFact) -> Fact:
        predicate = normalize_predicate(candidate.predicate)
        now = utc_now()
        valid_from = candidate.valid_from or now

        async with self._storage.transaction(user_id):
            # Rows deactivated by a note cascade stay current and can be restored, so they
            # take part in supersession but are never reinforced
            slot = await self._storage.query_facts(
                user_id, entity_ids=[candidate.entity_id], predicates=[predicate],
                statuses=(FactStatus.ACTIVE, FactStatus.INACTIVE),
            )
            current = [f for f in slot if f.status == FactStatus.ACTIVE]
            for fact in current:
                if self._same_object(fact, candidate):
                    if candidate.confidence <= fact.confidence:
                        return fact
                    return await self._storage.update_fact(user_id, fact.id, confidence=candidate.confidence)

            new_fact = Fact(
                id=generate_id("fact"),
                user_id=user_id,
                entity_id=candidate.entity_id,
                predicate=predicate,
                object_text=candidate.object_text,
                object_entity_id=candidate.object_entity_id,
                confidence=candidate.confidence,
                source_note_id=candidate.source_note_id,
                is_inferred=candidate.is_inferred,
                valid_from=valid_from,
                created_at=now,
                updated_at=now,
            )
            if not (is_single_valued(predicate) and slot):
                return await self._storage.create_fact(new_fact)

            previous = max(slot, key=lambda f: f.version)
            new_fact = await self._storage.create_fact(new_fact.model_copy(update={
                "version": previous.version + 1,
                "previous_version_id": previous.id,
            }))
            for old in slot:
                await self._storage.update_fact(
                    user_id, old.id,
                    is_current=False,
                    status=FactStatus.SUPERSEDED,
                    invalidated_at=now,
                    invalidated_by=new_fact.id,
                    invalidation_reason=InvalidationReason.CONTRADICTION,
                    valid_to=valid_from,
                )
            self.logger.info(
                "Superseded %d %s fact(s) on entity %s for user %s",
                len(slot), predicate, candidate.entity_id, user_id,
            )
            return new_fact

    @staticmethod
    def _same_object(fact: Fact, candidate: CandidateFact) -> bool:
        if fact.object_entity_id and candidate.object_entity_id:
            return fact.object_entity_id == candidate.object_entity_id
        return fact.normalized_object == normalize_text(candidate.object_text)

    async def invalidate_fact(
            self,
            user_id: str,
            fact_id: str,
            reason: InvalidationReason = InvalidationReason.USER_CORRECTED,
    ) -> Fact:
        fact = await self._storage.get_fact(user_id, fact_id)
        if fact is None:
            raise FactNotFoundError(fact_id, user_id)

        now = utc_now()
        updated = await self._storage.update_fact(
            user_id, fact_id,
            is_current=False,
            status=FactStatus.INACTIVE,
            invalidated_at=now,
            invalidation_reason=reason,
            valid_to=fact.valid_to or now,
        )
        self.logger.info("Invalidated fact %s for user %s (%s)", fact_id, user_id, reason.value)
        return updated

    async def infer_inverse_fact(self, user_id: str, fact: Fact) -> Optional[Fact]:
        inverse = INVERSE_PREDICATES.get(fact.predicate_kind)
        if inverse is None:
            return None

        subject = await self._storage.get_entity(user_id, fact.entity_id)
        if fact.object_entity_id:
            target = await self._storage.get_entity(user_id, fact.object_entity_id)
        else:
            target = await self._storage.find_entity_by_name(user_id, fact.object_text)
        if subject is None or target is None or target.id == subject.id:
            return None

        existing = await self._storage.query_facts(user_id, entity_ids=[target.id], predicates=[inverse.value])
        for other in existing:
            if other.object_entity_id == subject.id or other.normalized_object == subject.normalized_name:
                return None

        return await self.add_fact(user_id, CandidateFact(
            entity_id=target.id,
            predicate=inverse.value,
            object_text=subject.name,
            object_entity_id=subject.id,
            confidence=fact.confidence * INFERRED_FACT_CONFIDENCE_FACTOR,
            valid_from=fact.valid_from,
            source_note_id=fact.source_note_id,
            is_inferred=True,
        ))

    # ========== Behaviors ==========

    async def save_behavior(self, user_id: str, candidate: CandidateBehavior) -> Behavior:
        predicate = normalize_predicate(candidate.predicate)
        now = utc_now()

        async with self._storage.transaction(user_id):
            existing = await self._storage.find_behavior(user_id, predicate, candidate.entity_name)
            if existing is not None:
                behavior = await self._storage.update_behavior(
                    user_id, existing.id,
                    reinforcement_count=existing.reinforcement_count + 1,
                    confidence=max(existing.confidence, candidate.confidence),
                    last_reinforced_at=now,
                    topic=existing.topic or candidate.topic,
                    entity_id=existing.entity_id or candidate.entity_id,
                )
                self.logger.debug(
                    "Reinforced behavior %s for user %s (count=%d)", behavior.id, user_id, behavior.reinforcement_count,
                )
            else:
                behavior = await self._storage.create_behavior(Behavior(
                    id=generate_id("beh"),
                    user_id=user_id,
                    predicate=predicate,
                    entity_id=candidate.entity_id,
                    entity_name=candidate.entity_name,
                    topic=candidate.topic,
                    sentiment=candidate.sentiment,
                    evidence=candidate.evidence,
                    confidence=candidate.confidence,
                    source_note_id=candidate.source_note_id,
                    first_detected_at=now,
                    last_reinforced_at=now,
                ))

        inverse = BEHAVIOR_INVERSES.get(BehaviorPredicate.parse(predicate))
        if inverse:
            if candidate.entity_id:
                entity = await self._storage.get_entity(user_id, candidate.entity_id)
            else:
                entity = await self._storage.find_entity_by_name(user_id, candidate.entity_name)
            if entity is not None:
                await self.add_fact(user_id, CandidateFact(
                    entity_id=entity.id,
                    predicate=inverse,
                    object_text=candidate.topic or BEHAVIOR_INVERSE_DEFAULT_OBJECT,
                    confidence=candidate.confidence * BEHAVIOR_INVERSE_CONFIDENCE_FACTOR,
                    source_note_id=candidate.source_note_id,
                    is_inferred=True,
                ))
        return behavior

    # ========== Relationships ==========

    async def _find_relationship(
            self, user_id: str, source_id: str, target_id: str, relationship_type: str,
    ) -> Optional[Relationship]:
        edges = await self._storage.query_relationships(
            user_id,
            source_entity_id=source_id,
            target_entity_id=target_id,
            relationship_type=normalize_predicate(relationship_type),
            limit=1,
        )
        return edges[0] if edges else None

    async def reinforce_relationship(
            self,
            user_id: str,
            source_id: str,
            target_id: str,
            relationship_type: str,
            boost: Optional[float] = None,
    ) -> Relationship:
        boost = self.relationship_boost if boost is None else max(0.0, boost)
        now = utc_now()

        async with self._storage.transaction(user_id):
            edge = await self._find_relationship(user_id, source_id, target_id, relationship_type)
            if edge is not None:
                return await self._storage.update_relationship(
                    user_id, edge.id,
                    strength=min(1.0, edge.strength + boost),
                    last_confirmed_at=now,
                )
            return await self._storage.create_relationship(Relationship(
                id=generate_id("rel"),
                user_id=user_id,
                source_entity_id=source_id,
                target_entity_id=target_id,
                relationship_type=relationship_type,
                strength=min(1.0, BASE_RELATIONSHIP_STRENGTH + boost),
                started_at=now,
                last_confirmed_at=now,
            ))

    async def end_relationship(
            self,
            user_id: str,
            source_id: str,
            target_id: str,
            relationship_type: str,
            ended_at: Optional[datetime] = None,
    ) -> Optional[Relationship]:
        edge = await self._find_relationship(user_id, source_id, target_id, relationship_type)
        if edge is None:
            return None
        return await self._storage.update_relationship(
            user_id, edge.id, is_active=False, ended_at=ended_at or utc_now(),
        )

    # ========== Decay & cleanup ==========

    async def apply_decay(
            self,
            user_id: str,
            now: Optional[datetime] = None,
            settings: Optional[DecaySettings] = None,
    ) -> DecayResult:
        settings = settings or DecaySettings()
        now = ensure_utc(now) or utc_now()
        result = DecayResult(user_id=user_id)

        for entity in await self._storage.query_entities(user_id):
            result.processed += 1
            rule = settings.tier_rules.get(entity.importance)
            if entity.importance == ImportanceTier.CRITICAL or rule is None:
                continue

            last_activity = max(ensure_utc(entity.updated_at), ensure_utc(entity.last_accessed_at or entity.updated_at))
            if age_in_days(last_activity, now) < settings.inactive_days:
                continue

            factor, min_age_days = rule
            if age_in_days(entity.updated_at, now) < min_age_days:
                continue

            new_score = max(settings.min_importance, entity.importance_score * factor)
            if new_score < entity.importance_score:
                # Keep updated_at so decay never resets its own age
                await self._storage.update_entity(
                    user_id, entity.id, importance_score=new_score, updated_at=entity.updated_at,
                )
                result.decayed += 1
                result.entity_ids.append(entity.id)

        self.logger.debug(
            "Decay pass for user %s: %d processed, %d decayed", user_id, result.processed, result.decayed,
        )
        return result

    async def cleanup_expired(
            self,
            user_id: str,
            now: Optional[datetime] = None,
            settings: Optional[DecaySettings] = None,
    ) -> CleanupResult:
        settings = settings or DecaySettings()
        now = ensure_utc(now) or utc_now()
        result = CleanupResult(user_id=user_id)

        for entity in await self._storage.query_entities(user_id):
            if entity.expires_at is not None and ensure_utc(entity.expires_at) <= now:
                result.expired_ids.append(entity.id)
            elif (
                    entity.importance == ImportanceTier.TRIVIAL
                    and entity.importance_score < settings.stale_max_importance
                    and age_in_days(entity.updated_at, now) > settings.stale_min_age_days
                    and (entity.last_accessed_at is None
                         or age_in_days(entity.last_accessed_at, now) > settings.stale_min_idle_days)
            ):
                result.stale_ids.append(entity.id)

        for entity_id in [*result.expired_ids, *result.stale_ids]:
            await self._storage.update_entity(user_id, entity_id, status=EntityStatus.ARCHIVED)

        if result.archived:
            self.logger.info(
                "Archived %d expired and %d stale entities for user %s",
                len(result.expired_ids), len(result.stale_ids), user_id,
            )
        return result

    async def run_maintenance(
            self,
            user_ids: Optional[Sequence[str]] = None,
            now: Optional[datetime] = None,
            settings: Optional[DecaySettings] = None,
    ) -> MaintenanceResult:
        total = MaintenanceResult(started_at=utc_now())
        if user_ids is None:
            user_ids = await self._storage.list_user_ids()

        for user_id in user_ids:
            try:
                cleanup = await self.cleanup_expired(user_id, now=now, settings=settings)
                decay = await self.apply_decay(user_id, now=now, settings=settings)
            except Exception as e:
                self.logger.warning("Maintenance failed for user %s (%s)", user_id, type(e).__name__)
                total.failed_user_ids.append(user_id)
                continue
            total.users_processed += 1
            total.archived += cleanup.archived
            total.decayed += decay.decayed

        total.completed_at = utc_now()
        self.logger.info(
            "Maintenance: %d users, %d decayed, %d archived, %d failed",
            total.users_processed, total.decayed, total.archived, len(total.failed_user_ids),
        )
        return total

    # ========== Note cascade ==========

    async def delete_note(self, user_id: str, note_id: str, hard: bool = False) -> CascadeResult:
        note = await self._storage.get_note(user_id, note_id)
        if note is None:
            raise NoteNotFoundError(note_id, user_id)

        result = CascadeResult(note_id=note_id)
        now = utc_now()
        async with self._storage.transaction(user_id):
            facts = await self._storage.query_facts(
                user_id, source_note_id=note_id, statuses=(FactStatus.ACTIVE,), current_only=False,
            )
            for fact in facts:
                await self._storage.update_fact(
                    user_id, fact.id,
                    status=FactStatus.INACTIVE,
                    invalidated_at=now,
                    invalidation_reason=InvalidationReason.SOURCE_DELETED,
                )
                result.fact_ids.append(fact.id)

            behaviors = await self._storage.query_behaviors(
                user_id, source_note_id=note_id, statuses=(BehaviorStatus.ACTIVE,),
            )
            for behavior in behaviors:
                await self._storage.update_behavior(user_id, behavior.id, status=BehaviorStatus.INACTIVE)
                result.behavior_ids.append(behavior.id)

            if hard:
                result.note_removed = await self._storage.remove_note(user_id, note_id)
            else:
                await self._storage.update_note(user_id, note_id, status=NoteStatus.DELETED, deleted_at=now)

        self.logger.info(
            "Deleted note %s for user %s: %d facts, %d behaviors deactivated",
            note_id, user_id, len(result.fact_ids), len(result.behavior_ids),
        )
        return result

    async def restore_note(self, user_id: str, note_id: str) -> CascadeResult:
        note = await self._storage.get_note(user_id, note_id)
        if note is None:
            raise NoteNotFoundError(note_id, user_id)

        result = CascadeResult(note_id=note_id)
        async with self._storage.transaction(user_id):
            facts = await self._storage.query_facts(
                user_id, source_note_id=note_id, statuses=(FactStatus.INACTIVE,), current_only=False,
            )
            for fact in facts:
                if fact.invalidation_reason != InvalidationReason.SOURCE_DELETED:
                    continue
                await self._storage.update_fact(
                    user_id, fact.id, status=FactStatus.ACTIVE, invalidated_at=None, invalidation_reason=None,
                )
                result.fact_ids.append(fact.id)

            behaviors = await self._storage.query_behaviors(
                user_id, source_note_id=note_id, statuses=(BehaviorStatus.INACTIVE,),
            )
            for behavior in behaviors:
                await self._storage.update_behavior(user_id, behavior.id, status=BehaviorStatus.ACTIVE)
                result.behavior_ids.append(behavior.id)

            await self._storage.update_note(user_id, note_id, status=NoteStatus.ACTIVE, deleted_at=None)

        self.logger.info(
            "Restored note %s for user %s: %d facts, %d behaviors reactivated",
            note_id, user_id, len(result.fact_ids), len(result.behavior_ids),
        )
        return result

    async def list_operations(self, user_id: str, limit: int = 50) -> list[OperationRecord]:
        return await self._storage.list_operations(user_id, limit=limit)


class DefaultLifecycleManagerPlugin(LifecycleManagerPluginBase):
    """Plugin that creates the default lifecycle manager."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> LifecycleManager:
        storage: StorageBackend = self.get_extension(EXT_STORAGE_BACKEND, v)
        decisions: DecisionProvider = self.get_extension(EXT_DECISION_PROVIDER, v)
        return DefaultLifecycleManager(
            storage=storage,
            decisions=decisions,
            relationship_boost=v.environ(
                MIRROR_RELATIONSHIP_STRENGTH_BOOST, default=DEFAULT_MIRROR_RELATIONSHIP_STRENGTH_BOOST, type_fn=float,
            ),
            v=v,
        )
