"""Unit tests for DefaultRetrievalEngine."""
from unittest.mock import AsyncMock

import pytest

from mirror_memory.models import EntityType, PatternType, TaskType
from mirror_memory.services.retrieval.default import DefaultRetrievalEngine
from mirror_memory.services.retrieval.strategies import strategy_for


@pytest.mark.asyncio
class TestStrategyCaps:
    """No category ever exceeds its strategy cap."""

    async def test_relevant_facts_capped_and_sorted(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                                    make_fact, user_id: str):
        """200 facts with thinking-partner strategy: at most 20, all >= 0.6, best first."""
        sarah = await make_entity("Sarah")
        for i in range(200):
            await make_fact(sarah.id, "likes", f"thing {i}", confidence=i / 200)

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.THINKING_PARTNER))

        confidences = [f.confidence for f in result.facts]
        assert len(confidences) == 20
        assert all(c >= 0.6 for c in confidences)
        assert confidences == sorted(confidences, reverse=True)
        assert confidences[0] == pytest.approx(199 / 200)

    async def test_confidence_facts_not_limited_to_retrieved_entities(self, retrieval_engine: DefaultRetrievalEngine,
                                                                      make_entity, make_fact, user_id: str):
        for i in range(10):
            await make_entity(f"Person {i}", mention_count=20 - i)
        quiet = await make_entity("Quiet", mention_count=0)
        await make_fact(quiet.id, "lives_in", "Lisbon", confidence=0.9)
        await make_fact(quiet.id, "likes", "jazz", confidence=0.5)

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.GENERAL))

        assert quiet.id not in {e.id for e in result.entities}
        assert [f.object_text for f in result.facts] == ["Lisbon"]

    async def test_entity_cap(self, retrieval_engine: DefaultRetrievalEngine, make_entity, user_id: str):
        for i in range(20):
            await make_entity(f"Person {i}")

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.DECISION))

        assert len(result.entities) == 15

    async def test_behavior_cap_for_factual(self, retrieval_engine: DefaultRetrievalEngine, make_behavior,
                                            user_id: str):
        for i in range(8):
            await make_behavior("relies_on", f"Person {i}")

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.FACTUAL))

        assert len(result.behaviors) == 5
        assert result.notes == []
        assert result.patterns == []


@pytest.mark.asyncio
class TestEntityStrategies:
    """Tests for entity sub-strategies."""

    async def test_mentioned_only(self, retrieval_engine: DefaultRetrievalEngine, make_entity, make_fact,
                                  make_note, user_id: str):
        sarah = await make_entity("Sarah")
        tom = await make_entity("Tom")
        await make_fact(sarah.id, "works_at", "Acme", confidence=0.3)
        await make_fact(tom.id, "works_at", "Globex")
        await make_note("Lunch with Sarah")
        await make_note("Tom's birthday")

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.ENTITY_RECALL), mentioned_entities=["Sarah"],
        )

        assert [e.id for e in result.entities] == [sarah.id]
        assert [f.object_text for f in result.facts] == ["Acme"]
        assert [n.title for n in result.notes] == ["Lunch with Sarah"]

    async def test_mentioned_only_without_names(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                                make_fact, user_id: str):
        """No names mentioned: fall back to the most important entities and their facts."""
        tom = await make_entity("Tom", importance_score=0.3)
        sarah = await make_entity("Sarah", importance_score=0.9)
        await make_fact(sarah.id, "works_at", "Acme", confidence=0.9)
        await make_fact(tom.id, "works_at", "Globex", confidence=0.7)

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.ENTITY_RECALL))

        assert [e.id for e in result.entities] == [sarah.id, tom.id]
        assert [f.object_text for f in result.facts] == ["Acme", "Globex"]
        assert result.failed_categories == []

    async def test_historical_entities_need_opt_in(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                                   user_id: str):
        await make_entity("Old Acme Team", is_historical=True)
        strategy = strategy_for(TaskType.ENTITY_RECALL)

        current = await retrieval_engine.retrieve(user_id, strategy, mentioned_entities=["Acme"])
        history = await retrieval_engine.retrieve(user_id, strategy, mentioned_entities=["Acme"],
                                                  include_historical=True)

        assert current.entities == []
        assert [e.name for e in history.entities] == ["Old Acme Team"]

    async def test_mentioned_plus_related(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                          make_relationship, user_id: str):
        sarah = await make_entity("Sarah")
        tom = await make_entity("Tom")
        await make_entity("Stranger", importance_score=0.99)
        await make_relationship(sarah.id, tom.id, "colleague_of")

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.THINKING_PARTNER), mentioned_entities=["Sarah"],
        )

        assert [e.id for e in result.entities] == [sarah.id, tom.id]

    async def test_people_only_for_emotional(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                             make_fact, user_id: str):
        mom = await make_entity("Mom", importance_score=0.9)
        await make_entity("Acme", entity_type=EntityType.ORGANIZATION, importance_score=0.95)
        await make_fact(mom.id, "lives_in", "Boston")

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.EMOTIONAL))

        assert [e.name for e in result.entities] == ["Mom"]
        assert result.facts == []

    async def test_all_related_fills_with_top(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                              user_id: str):
        await make_entity("Sarah")
        await make_entity("Tom")

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.RESEARCH), mentioned_entities=["Sarah"],
        )

        assert [e.name for e in result.entities] == ["Sarah", "Tom"]

    async def test_top_by_importance_uses_vector(self, retrieval_engine: DefaultRetrievalEngine, make_entity,
                                                 user_id: str):
        match = await make_entity("Tokyo Offer", embedding=[1.0, 0.0])
        await make_entity("Groceries", embedding=[0.0, 1.0], mention_count=50)

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.GENERAL), query_vector=[1.0, 0.0],
        )

        assert [e.id for e in result.entities] == [match.id]

    async def test_top_by_importance_falls_back_to_mentions(self, retrieval_engine: DefaultRetrievalEngine,
                                                            make_entity, user_id: str):
        await make_entity("Rare", mention_count=1)
        await make_entity("Frequent", mention_count=40)

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.GENERAL))

        assert [e.name for e in result.entities] == ["Frequent", "Rare"]

    async def test_access_recorded(self, retrieval_engine: DefaultRetrievalEngine, storage, make_entity,
                                   user_id: str):
        sarah = await make_entity("Sarah")

        await retrieval_engine.retrieve(user_id, strategy_for(TaskType.ENTITY_RECALL), mentioned_entities=["Sarah"])

        assert (await storage.get_entity(user_id, sarah.id)).access_count == 1


@pytest.mark.asyncio
class TestOtherCategories:
    """Tests for notes, patterns and behaviors."""

    async def test_notes_by_topic(self, retrieval_engine: DefaultRetrievalEngine, make_note, user_id: str):
        await make_note("Tokyo job offer", category="career")
        await make_note("Groceries", category="errands")

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.DECISION), topics=["tokyo", "job"],
        )

        assert [n.title for n in result.notes] == ["Tokyo job offer"]

    async def test_recent_notes_newest_first(self, retrieval_engine: DefaultRetrievalEngine, make_note,
                                             user_id: str):
        await make_note("Older", days_ago=3)
        await make_note("Newest", days_ago=0)
        await make_note("Oldest", days_ago=10)

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.GENERAL), topics=["ignored"])

        assert [n.title for n in result.notes] == ["Newest", "Older", "Oldest"]

    async def test_emotional_patterns(self, retrieval_engine: DefaultRetrievalEngine, make_pattern, user_id: str):
        await make_pattern("Anxious before launches", PatternType.EMOTIONAL, confidence=0.9)
        await make_pattern("Runs when stressed", PatternType.OTHER, category="stress", confidence=0.7)
        await make_pattern("Weak signal", PatternType.EMOTIONAL, confidence=0.4)
        await make_pattern("Plans weekly", PatternType.BEHAVIORAL)

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.EMOTIONAL))

        assert [p.description for p in result.patterns] == ["Anxious before launches", "Runs when stressed"]

    async def test_behaviors_prefer_mentioned(self, retrieval_engine: DefaultRetrievalEngine, make_behavior,
                                              user_id: str):
        await make_behavior("relies_on", "Jenny", confidence=0.95)
        await make_behavior("trusts_opinion_of", "Marcus", confidence=0.5)

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.DECISION), mentioned_entities=["Marcus"],
        )

        assert [b.entity_name for b in result.behaviors] == ["Marcus", "Jenny"]


@pytest.mark.asyncio
class TestPartialFailure:
    """A failing category degrades to empty without failing the retrieval."""

    async def test_entity_failure_keeps_other_categories(self, retrieval_engine: DefaultRetrievalEngine, storage,
                                                         make_entity, make_fact, make_note, make_pattern,
                                                         make_behavior, monkeypatch, user_id: str):
        sarah = await make_entity("Sarah")
        await make_fact(sarah.id, "works_at", "Acme", confidence=0.9)
        await make_note("Tokyo job offer")
        await make_pattern("Deliberates for weeks", PatternType.BEHAVIORAL)
        await make_behavior("trusts_opinion_of", "Marcus")
        monkeypatch.setattr(storage, "query_entities", AsyncMock(side_effect=RuntimeError("db unavailable")))

        result = await retrieval_engine.retrieve(
            user_id, strategy_for(TaskType.DECISION), mentioned_entities=["Sarah"], topics=["tokyo"],
        )

        assert result.entities == []
        assert result.failed_categories == ["entities"]
        assert [f.object_text for f in result.facts] == ["Acme"]
        assert [n.title for n in result.notes] == ["Tokyo job offer"]
        assert [p.description for p in result.patterns] == ["Deliberates for weeks"]
        assert [b.entity_name for b in result.behaviors] == ["Marcus"]

    async def test_note_failure(self, retrieval_engine: DefaultRetrievalEngine, storage, make_entity,
                                monkeypatch, user_id: str):
        await make_entity("Sarah")
        monkeypatch.setattr(storage, "query_notes", AsyncMock(side_effect=TimeoutError()))

        result = await retrieval_engine.retrieve(user_id, strategy_for(TaskType.GENERAL))

        assert result.failed_categories == ["notes"]
        assert [e.name for e in result.entities] == ["Sarah"]
