"""Unit tests for DefaultLifecycleManager."""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from mirror_memory.errors import EntityNotFoundError, FactNotFoundError, NoteNotFoundError
from mirror_memory.models import (
    BehaviorStatus, CandidateBehavior, CandidateFact, CandidateMemory, Entity, EntityStatus, EntityType, FactStatus,
    ImportanceTier, InvalidationReason, LifecycleDecision, MemoryOperation, MergeStrategy, NoteStatus,
)
from mirror_memory.services.lifecycle.base import DecaySettings
from mirror_memory.services.lifecycle.default import DefaultLifecycleManager
from mirror_memory.services.storage.in_memory import MemoryStorageBackend
from mirror_memory.services.storage.sqlite import SQLiteStorageBackend
from mirror_memory.utils import generate_id

NOW = datetime.now(timezone.utc)


# =============================================================================
# Entity memories
# =============================================================================

@pytest.mark.asyncio
class TestProcessCandidate:
    """ADD / UPDATE / DELETE / NOOP through the heuristic decision provider."""

    async def test_add(self, lifecycle: DefaultLifecycleManager, storage, user_id: str):
        record = await lifecycle.process_candidate(
            user_id, CandidateMemory(name="Sarah", summary="Friend from college", source_note_id="note_1"),
        )

        assert record.operation == MemoryOperation.ADD
        entity = await storage.get_entity(user_id, record.entity_id)
        assert entity.summary == "Friend from college"
        assert entity.mention_count == 1
        assert entity.source_note_ids == ["note_1"]

    async def test_append(self, lifecycle: DefaultLifecycleManager, storage, make_entity, user_id: str):
        sarah = await make_entity("Sarah", summary="Friend from college")

        record = await lifecycle.process_candidate(user_id, CandidateMemory(name="sarah", summary="Loves hiking"))

        assert record.operation == MemoryOperation.UPDATE
        assert record.merge_strategy == MergeStrategy.APPEND
        assert record.entity_id == sarah.id
        updated = await storage.get_entity(user_id, sarah.id)
        assert updated.summary == "Friend from college Loves hiking"
        assert updated.context_notes == ["Loves hiking"]
        assert updated.mention_count == 2

    async def test_replace_keeps_row(self, lifecycle: DefaultLifecycleManager, storage, make_entity, user_id: str):
        sarah = await make_entity("Sarah", summary="Friend from college")

        record = await lifecycle.process_candidate(
            user_id, CandidateMemory(name="Sarah", summary="Friend from high school", is_correction=True),
        )

        assert record.merge_strategy == MergeStrategy.REPLACE
        assert record.entity_id == sarah.id
        assert (await storage.get_entity(user_id, sarah.id)).summary == "Friend from high school"

    async def test_supersede_creates_new_version(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                                 user_id: str):
        sarah = await make_entity("Sarah", summary="Lives in Boston", aliases=["Sare"])

        record = await lifecycle.process_candidate(
            user_id, CandidateMemory(name="Sarah", summary="Lives in Berlin", supersedes=True),
        )

        assert record.merge_strategy == MergeStrategy.SUPERSEDE
        assert record.entity_id != sarah.id
        new = await storage.get_entity(user_id, record.entity_id)
        old = await storage.get_entity(user_id, sarah.id)
        assert new.version == 2
        assert new.supersedes_id == sarah.id
        assert new.aliases == ["Sare"]
        assert new.is_current
        assert old.status == EntityStatus.SUPERSEDED
        assert old.superseded_by == new.id
        assert old.is_historical is True
        assert not old.is_current

    async def test_soft_and_hard_delete(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                        user_id: str):
        sarah = await make_entity("Sarah")
        tom = await make_entity("Tom")

        await lifecycle.process_candidate(user_id, CandidateMemory(name="Sarah", delete_requested=True))
        await lifecycle.process_candidate(user_id, CandidateMemory(name="Tom", delete_requested=True,
                                                                   hard_delete=True))

        assert (await storage.get_entity(user_id, sarah.id)).status == EntityStatus.ARCHIVED
        assert await storage.get_entity(user_id, tom.id) is None

    async def test_noop_when_already_known(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                           user_id: str):
        sarah = await make_entity("Sarah", summary="Friend from college")

        record = await lifecycle.process_candidate(user_id, CandidateMemory(name="Sarah", summary="from college"))

        assert record.operation == MemoryOperation.NOOP
        assert (await storage.get_entity(user_id, sarah.id)).mention_count == 1

    async def test_decision_failure_degrades_to_noop(self, storage, v, user_id: str):
        decisions = MagicMock()
        decisions.decide = AsyncMock(side_effect=RuntimeError("model unavailable"))
        manager = DefaultLifecycleManager(storage=storage, decisions=decisions, v=v)

        record = await manager.process_candidate(user_id, CandidateMemory(name="Sarah", summary="New"))

        assert record.operation == MemoryOperation.NOOP
        assert "RuntimeError" in record.reasoning
        assert await storage.query_entities(user_id) == []

    async def test_missing_decision_degrades_to_noop(self, storage, v, user_id: str):
        decisions = MagicMock()
        decisions.decide = AsyncMock(return_value=None)
        manager = DefaultLifecycleManager(storage=storage, decisions=decisions, v=v)

        record = await manager.process_candidate(user_id, CandidateMemory(name="Sarah"))

        assert record.operation == MemoryOperation.NOOP

    async def test_update_unknown_target(self, lifecycle: DefaultLifecycleManager, user_id: str):
        decision = LifecycleDecision(operation=MemoryOperation.UPDATE, target_id="ent_missing")

        with pytest.raises(EntityNotFoundError):
            await lifecycle.apply_decision(user_id, CandidateMemory(name="Sarah"), decision)

    async def test_operation_log(self, lifecycle: DefaultLifecycleManager, user_id: str):
        await lifecycle.process_candidate(user_id, CandidateMemory(name="Sarah", summary="Friend"))
        await lifecycle.process_candidate(user_id, CandidateMemory(name="Sarah", summary="Loves hiking"))

        operations = await lifecycle.list_operations(user_id)

        assert [op.operation for op in operations] == [MemoryOperation.UPDATE, MemoryOperation.ADD]
        assert all(op.candidate_name == "Sarah" for op in operations)
        assert len(await lifecycle.list_operations(user_id, limit=1)) == 1


# =============================================================================
# Facts
# =============================================================================

@pytest.mark.asyncio
class TestFacts:
    """Tests for fact insertion, supersession and invalidation."""

    async def test_contradiction_supersedes(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                            user_id: str):
        """Sarah works_at Acme, then works_at Notion: exactly one current works_at fact."""
        sarah = await make_entity("Sarah")
        acme = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                               object_text="Acme"))

        notion = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="Works At",
                                                                 object_text="Notion"))

        current = await storage.query_facts(user_id, entity_ids=[sarah.id], predicates=["works_at"])
        assert [f.id for f in current] == [notion.id]
        assert notion.version == 2
        assert notion.previous_version_id == acme.id

        old = await storage.get_fact(user_id, acme.id)
        assert old.is_current is False
        assert old.status == FactStatus.SUPERSEDED
        assert old.invalidated_by == notion.id
        assert old.invalidation_reason == InvalidationReason.CONTRADICTION
        assert old.valid_to == notion.valid_from

    async def test_same_object_reinforces(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                          user_id: str):
        sarah = await make_entity("Sarah")
        first = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                                object_text="Acme", confidence=0.6))

        lower = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                                object_text="acme", confidence=0.5))
        higher = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                                 object_text=" ACME ", confidence=0.9))

        assert lower.id == first.id
        assert lower.confidence == pytest.approx(0.6)
        assert higher.id == first.id
        assert higher.confidence == pytest.approx(0.9)
        assert len(await storage.query_facts(user_id, entity_ids=[sarah.id], current_only=False, statuses=None)) == 1

    async def test_multi_valued_predicates_accumulate(self, lifecycle: DefaultLifecycleManager, storage,
                                                      make_entity, user_id: str):
        sarah = await make_entity("Sarah")
        await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="likes", object_text="tea"))
        await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="likes", object_text="coffee"))

        current = await storage.query_facts(user_id, entity_ids=[sarah.id], predicates=["likes"])

        assert {f.object_text for f in current} == {"tea", "coffee"}

    async def test_invalidate(self, lifecycle: DefaultLifecycleManager, make_entity, make_fact, user_id: str):
        sarah = await make_entity("Sarah")
        fact = await make_fact(sarah.id, "lives_in", "Boston")

        invalidated = await lifecycle.invalidate_fact(user_id, fact.id)

        assert invalidated.is_current is False
        assert invalidated.status == FactStatus.INACTIVE
        assert invalidated.invalidation_reason == InvalidationReason.USER_CORRECTED
        assert invalidated.invalidated_at is not None
        assert invalidated.valid_to is not None

    async def test_invalidate_unknown(self, lifecycle: DefaultLifecycleManager, user_id: str):
        with pytest.raises(FactNotFoundError):
            await lifecycle.invalidate_fact(user_id, "fact_missing")

    async def test_infer_inverse(self, lifecycle: DefaultLifecycleManager, make_entity, make_fact, user_id: str):
        sarah = await make_entity("Sarah")
        tom = await make_entity("Tom")
        fact = await make_fact(sarah.id, "reports_to", "Tom", confidence=0.8)

        inverse = await lifecycle.infer_inverse_fact(user_id, fact)

        assert inverse.entity_id == tom.id
        assert inverse.predicate == "manages"
        assert inverse.object_entity_id == sarah.id
        assert inverse.is_inferred is True
        assert inverse.confidence == pytest.approx(0.72)
        assert await lifecycle.infer_inverse_fact(user_id, fact) is None

    async def test_infer_inverse_skips_non_relational(self, lifecycle: DefaultLifecycleManager, make_entity,
                                                      make_fact, user_id: str):
        sarah = await make_entity("Sarah")
        await make_entity("Tea")
        likes = await make_fact(sarah.id, "likes", "Tea")
        unresolved = await make_fact(sarah.id, "spouse_of", "Somebody Unknown")

        assert await lifecycle.infer_inverse_fact(user_id, likes) is None
        assert await lifecycle.infer_inverse_fact(user_id, unresolved) is None


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def backend(request, tmp_path, v):
    if request.param == "memory":
        store = MemoryStorageBackend(v=v)
    else:
        store = SQLiteStorageBackend(db_path=str(tmp_path / "mirror-lifecycle.db"), v=v)
    await store.connect()
    yield store
    await store.disconnect()


@pytest.mark.asyncio
class TestConcurrentFacts:
    """Racing writers on one single-valued slot, against every backend."""

    async def test_racing_contradictions_leave_one_current_fact(self, backend, decision_provider, v,
                                                                 user_id: str):
        manager = DefaultLifecycleManager(storage=backend, decisions=decision_provider, v=v)
        sarah = await backend.create_entity(Entity(id=generate_id("ent"), user_id=user_id, name="Sarah",
                                                   entity_type=EntityType.PERSON))
        employers = [f"Company {i}" for i in range(8)]

        await asyncio.gather(*(
            manager.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at", object_text=name))
            for name in employers
        ))

        live = await backend.query_facts(user_id, entity_ids=[sarah.id], predicates=["works_at"])
        assert len(live) == 1

        chain = sorted(
            await backend.query_facts(user_id, entity_ids=[sarah.id], predicates=["works_at"], statuses=None,
                                      current_only=False),
            key=lambda f: f.version,
        )
        assert [f.version for f in chain] == list(range(1, len(employers) + 1))
        assert chain[0].previous_version_id is None
        for older, newer in zip(chain, chain[1:]):
            assert newer.previous_version_id == older.id
            assert older.is_current is False
            assert older.status == FactStatus.SUPERSEDED
            assert older.invalidated_by == newer.id
        assert chain[-1].id == live[0].id
        assert sorted(f.object_text for f in chain) == sorted(employers)


# =============================================================================
# Behaviors & relationships
# =============================================================================

@pytest.mark.asyncio
class TestBehaviors:
    """Tests for behavior reinforcement and inverse facts."""

    async def test_reinforcement(self, lifecycle: DefaultLifecycleManager, storage, user_id: str):
        first = await lifecycle.save_behavior(user_id, CandidateBehavior(
            predicate="trusts_opinion_of", entity_name="Marcus", confidence=0.7,
        ))
        second = await lifecycle.save_behavior(user_id, CandidateBehavior(
            predicate="Trusts Opinion Of", entity_name="marcus ", topic="career", confidence=0.9,
        ))
        third = await lifecycle.save_behavior(user_id, CandidateBehavior(
            predicate="trusts_opinion_of", entity_name="Marcus", confidence=0.5,
        ))

        assert second.id == first.id
        assert third.reinforcement_count == 3
        assert third.confidence == pytest.approx(0.9)
        assert third.topic == "career"
        assert len(await storage.query_behaviors(user_id)) == 1

    async def test_inverse_fact_on_known_entity(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                                user_id: str):
        marcus = await make_entity("Marcus")

        await lifecycle.save_behavior(user_id, CandidateBehavior(
            predicate="trusts_opinion_of", entity_name="Marcus", topic="career", confidence=0.8,
        ))

        facts = await storage.query_facts(user_id, entity_ids=[marcus.id])
        assert [(f.predicate, f.object_text) for f in facts] == [("is_trusted_by_user_on", "career")]
        assert facts[0].confidence == pytest.approx(0.76)
        assert facts[0].is_inferred is True

    async def test_inverse_fact_defaults_to_user(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                                 user_id: str):
        jenny = await make_entity("Jenny")

        await lifecycle.save_behavior(user_id, CandidateBehavior(predicate="relies_on", entity_name="Jenny"))

        facts = await storage.query_facts(user_id, entity_ids=[jenny.id])
        assert [(f.predicate, f.object_text) for f in facts] == [("is_relied_upon_by_user", "user")]

    async def test_no_inverse_without_entity_or_mapping(self, lifecycle: DefaultLifecycleManager, storage,
                                                        make_entity, user_id: str):
        await make_entity("Carl")

        await lifecycle.save_behavior(user_id, CandidateBehavior(predicate="avoids", entity_name="Carl"))
        await lifecycle.save_behavior(user_id, CandidateBehavior(predicate="learns_from", entity_name="Nobody"))

        assert await storage.query_facts(user_id) == []


@pytest.mark.asyncio
class TestRelationships:
    """Tests for relationship strength."""

    async def test_reinforce_and_cap(self, lifecycle: DefaultLifecycleManager, make_entity, user_id: str):
        sarah = await make_entity("Sarah")
        tom = await make_entity("Tom")

        created = await lifecycle.reinforce_relationship(user_id, sarah.id, tom.id, "colleague_of")
        again = await lifecycle.reinforce_relationship(user_id, sarah.id, tom.id, "colleague_of")
        capped = await lifecycle.reinforce_relationship(user_id, sarah.id, tom.id, "colleague_of", boost=5.0)

        assert created.strength == pytest.approx(0.6)
        assert again.id == created.id
        assert again.strength == pytest.approx(0.7)
        assert capped.strength == 1.0
        assert capped.last_confirmed_at is not None

    async def test_end_relationship(self, lifecycle: DefaultLifecycleManager, storage, make_entity, user_id: str):
        sarah = await make_entity("Sarah")
        tom = await make_entity("Tom")
        await lifecycle.reinforce_relationship(user_id, sarah.id, tom.id, "dating")

        ended = await lifecycle.end_relationship(user_id, sarah.id, tom.id, "dating")

        assert ended.is_active is False
        assert ended.ended_at is not None
        assert await storage.query_relationships(user_id, entity_id=sarah.id) == []
        assert await lifecycle.end_relationship(user_id, sarah.id, tom.id, "dating") is None


# =============================================================================
# Decay, cleanup & maintenance
# =============================================================================

@pytest.mark.asyncio
class TestDecay:
    """Tests for importance decay."""

    async def test_medium_tier_decays(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                      user_id: str):
        old = NOW - timedelta(days=60)
        sarah = await make_entity("Sarah", importance_score=0.5, updated_at=old, created_at=old)

        first = await lifecycle.apply_decay(user_id, now=NOW)
        after_first = await storage.get_entity(user_id, sarah.id)
        await lifecycle.apply_decay(user_id, now=NOW)
        after_second = await storage.get_entity(user_id, sarah.id)

        assert first.decayed == 1
        assert first.entity_ids == [sarah.id]
        assert after_first.importance_score == pytest.approx(0.45)
        assert after_second.importance_score == pytest.approx(0.405)
        assert after_second.updated_at == old

    async def test_critical_never_decays(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                         user_id: str):
        old = NOW - timedelta(days=400)
        mom = await make_entity("Mom", importance=ImportanceTier.CRITICAL, importance_score=1.0, updated_at=old)

        result = await lifecycle.apply_decay(user_id, now=NOW)

        assert result.processed == 1
        assert result.decayed == 0
        assert (await storage.get_entity(user_id, mom.id)).importance_score == 1.0

    async def test_recent_activity_and_tier_age(self, lifecycle: DefaultLifecycleManager, make_entity,
                                                user_id: str):
        await make_entity("Fresh", updated_at=NOW - timedelta(days=3))
        await make_entity("Accessed", updated_at=NOW - timedelta(days=60), last_accessed_at=NOW - timedelta(days=1))
        await make_entity("High", importance=ImportanceTier.HIGH, importance_score=0.8,
                          updated_at=NOW - timedelta(days=60))

        result = await lifecycle.apply_decay(user_id, now=NOW)

        assert result.processed == 3
        assert result.decayed == 0

    async def test_floor(self, lifecycle: DefaultLifecycleManager, storage, make_entity, user_id: str):
        old = NOW - timedelta(days=60)
        trivial = await make_entity("Trivia", importance=ImportanceTier.TRIVIAL, importance_score=0.05,
                                    updated_at=old)

        result = await lifecycle.apply_decay(user_id, now=NOW)

        assert result.decayed == 0
        assert (await storage.get_entity(user_id, trivial.id)).importance_score == pytest.approx(0.05)

    async def test_custom_settings(self, lifecycle: DefaultLifecycleManager, storage, make_entity, user_id: str):
        sarah = await make_entity("Sarah", importance_score=0.5, updated_at=NOW - timedelta(days=10))
        settings = DecaySettings(tier_rules={ImportanceTier.MEDIUM: (0.5, 5)})

        await lifecycle.apply_decay(user_id, now=NOW, settings=settings)

        assert (await storage.get_entity(user_id, sarah.id)).importance_score == pytest.approx(0.25)


@pytest.mark.asyncio
class TestCleanupAndMaintenance:
    """Tests for expiry, staleness and multi-user maintenance."""

    async def test_cleanup(self, lifecycle: DefaultLifecycleManager, storage, make_entity, user_id: str):
        expired = await make_entity("Conference", expires_at=NOW - timedelta(hours=1))
        stale = await make_entity("Old Trivia", importance=ImportanceTier.TRIVIAL, importance_score=0.05,
                                  updated_at=NOW - timedelta(days=120))
        kept = await make_entity("New Trivia", importance=ImportanceTier.TRIVIAL, importance_score=0.05)

        result = await lifecycle.cleanup_expired(user_id, now=NOW)

        assert result.expired_ids == [expired.id]
        assert result.stale_ids == [stale.id]
        assert result.archived == 2
        assert (await storage.get_entity(user_id, expired.id)).status == EntityStatus.ARCHIVED
        assert (await storage.get_entity(user_id, kept.id)).status == EntityStatus.ACTIVE

    async def test_run_maintenance_all_users(self, lifecycle: DefaultLifecycleManager, make_entity, user_id: str):
        await make_entity("Sarah", updated_at=NOW - timedelta(days=60))
        await make_entity("Conference", user_id="user_other", expires_at=NOW - timedelta(hours=1))

        result = await lifecycle.run_maintenance(now=NOW)

        assert result.users_processed == 2
        assert result.decayed == 1
        assert result.archived == 1
        assert result.failed_user_ids == []
        assert result.completed_at >= result.started_at

    async def test_run_maintenance_isolates_failures(self, lifecycle: DefaultLifecycleManager, storage,
                                                     make_entity, monkeypatch):
        query_entities = storage.query_entities

        async def flaky(user_id, *args, **kwargs):
            if user_id == "user_b":
                raise RuntimeError("db unavailable")
            return await query_entities(user_id, *args, **kwargs)

        monkeypatch.setattr(storage, "query_entities", flaky)

        result = await lifecycle.run_maintenance(user_ids=["user_a", "user_b"], now=NOW)

        assert result.users_processed == 1
        assert result.failed_user_ids == ["user_b"]


# =============================================================================
# Note cascade
# =============================================================================

@pytest.mark.asyncio
class TestNoteCascade:
    """Tests for the note-delete cascade and its reversal."""

    async def test_soft_delete_and_restore(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                           make_fact, make_note, make_behavior, user_id: str):
        note = await make_note("Coffee with Sarah")
        sarah = await make_entity("Sarah")
        extracted = await make_fact(sarah.id, "works_at", "Acme", source_note_id=note.id)
        corrected = await make_fact(sarah.id, "likes", "tea", source_note_id=note.id)
        await lifecycle.invalidate_fact(user_id, corrected.id)
        other = await make_fact(sarah.id, "lives_in", "Boston")
        behavior = await make_behavior("relies_on", "Sarah", source_note_id=note.id)

        deleted = await lifecycle.delete_note(user_id, note.id)

        assert deleted.fact_ids == [extracted.id]
        assert deleted.behavior_ids == [behavior.id]
        assert deleted.affected_ids == [extracted.id, behavior.id]
        fact = await storage.get_fact(user_id, extracted.id)
        assert fact.status == FactStatus.INACTIVE
        assert fact.invalidation_reason == InvalidationReason.SOURCE_DELETED
        assert fact.is_current is True
        assert [f.id for f in await storage.query_facts(user_id)] == [other.id]
        assert await storage.query_behaviors(user_id) == []
        assert (await storage.get_note(user_id, note.id)).status == NoteStatus.DELETED

        restored = await lifecycle.restore_note(user_id, note.id)

        assert restored.fact_ids == [extracted.id]
        assert restored.behavior_ids == [behavior.id]
        assert (await storage.get_fact(user_id, extracted.id)).status == FactStatus.ACTIVE
        assert (await storage.get_fact(user_id, corrected.id)).status == FactStatus.INACTIVE
        assert (await storage.query_behaviors(user_id))[0].status == BehaviorStatus.ACTIVE
        assert (await storage.get_note(user_id, note.id)).status == NoteStatus.ACTIVE

    async def test_contradiction_while_deleted_survives_restore(self, lifecycle: DefaultLifecycleManager, storage,
                                                               make_entity, make_note, user_id: str):
        """A newer value written while the note is deleted stays the only current fact after restore."""
        note = await make_note("Coffee with Sarah")
        sarah = await make_entity("Sarah")
        acme = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                               object_text="Acme", source_note_id=note.id))
        await lifecycle.delete_note(user_id, note.id)

        notion = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                                 object_text="Notion"))
        restored = await lifecycle.restore_note(user_id, note.id)

        assert notion.version == 2
        assert notion.previous_version_id == acme.id
        assert restored.fact_ids == []
        live = await storage.query_facts(user_id, entity_ids=[sarah.id], predicates=["works_at"])
        assert [f.id for f in live] == [notion.id]
        old = await storage.get_fact(user_id, acme.id)
        assert old.is_current is False
        assert old.status == FactStatus.SUPERSEDED
        assert old.invalidation_reason == InvalidationReason.CONTRADICTION

    async def test_restating_value_while_deleted(self, lifecycle: DefaultLifecycleManager, storage, make_entity,
                                                 make_note, user_id: str):
        note = await make_note("Coffee with Sarah")
        sarah = await make_entity("Sarah")
        acme = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                               object_text="Acme", source_note_id=note.id))
        await lifecycle.delete_note(user_id, note.id)

        again = await lifecycle.add_fact(user_id, CandidateFact(entity_id=sarah.id, predicate="works_at",
                                                                object_text="Acme"))
        await lifecycle.restore_note(user_id, note.id)

        assert again.id != acme.id
        live = await storage.query_facts(user_id, entity_ids=[sarah.id], predicates=["works_at"])
        assert [f.id for f in live] == [again.id]

    async def test_hard_delete(self, lifecycle: DefaultLifecycleManager, storage, make_entity, make_fact, make_note,
                               user_id: str):
        note = await make_note("Coffee with Sarah")
        sarah = await make_entity("Sarah")
        fact = await make_fact(sarah.id, "works_at", "Acme", source_note_id=note.id)

        result = await lifecycle.delete_note(user_id, note.id, hard=True)

        assert result.note_removed is True
        assert await storage.get_note(user_id, note.id) is None
        assert (await storage.get_fact(user_id, fact.id)).status == FactStatus.INACTIVE

    async def test_unknown_note(self, lifecycle: DefaultLifecycleManager, user_id: str):
        with pytest.raises(NoteNotFoundError):
            await lifecycle.delete_note(user_id, "note_missing")
        with pytest.raises(NoteNotFoundError):
            await lifecycle.restore_note(user_id, "note_missing")
