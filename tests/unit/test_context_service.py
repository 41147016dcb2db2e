"""Unit tests for DefaultContextService."""
from unittest.mock import AsyncMock

import pytest

from mirror_memory.models import TaskType
from mirror_memory.services.context.default import DefaultContextService


@pytest.mark.asyncio
class TestLoadContext:
    """End-to-end context loading over the in-memory store."""

    async def test_entity_recall(self, context_service: DefaultContextService, make_entity, make_fact,
                                 user_id: str):
        sarah = await make_entity("Sarah", relationship="friend")
        await make_fact(sarah.id, "works_at", "Acme")

        context = await context_service.load_context(user_id, "Tell me about Sarah")

        assert context.task_type == TaskType.ENTITY_RECALL
        assert context.task_label == "Recalling information"
        assert context.mentioned_entities == ["Sarah"]
        assert [e.id for e in context.entities] == [sarah.id]
        assert [f.object_text for f in context.facts] == ["Acme"]
        assert "- **Sarah** (person) - friend" in context.formatted
        assert "- Sarah works at: Acme" in context.formatted
        assert context.context_used[0].label == "Sarah"
        assert context.failed_categories == []

    async def test_known_names_loaded_from_storage(self, context_service: DefaultContextService, make_entity,
                                                   user_id: str):
        """Lowercase mentions only resolve through the user's stored names and aliases."""
        await make_entity("Mom", aliases=["mother"])

        context = await context_service.load_context(user_id, "what do you know about my mother")

        assert context.task_type == TaskType.ENTITY_RECALL
        assert context.mentioned_entities == ["mother"]

    async def test_explicit_known_names(self, context_service: DefaultContextService, user_id: str):
        context = await context_service.load_context(user_id, "did you hear from mom", known_names=["Mom"])

        assert context.mentioned_entities == ["Mom"]

    async def test_empty_memory(self, context_service: DefaultContextService, user_id: str):
        context = await context_service.load_context(user_id, "Should I take the job in Tokyo or stay?")

        assert context.task_type == TaskType.DECISION
        assert context.topics == ["take", "job", "tokyo", "stay"]
        assert context.entities == []
        assert context.formatted == "### Topics\ntake, job, tokyo, stay"

    async def test_blank_message(self, context_service: DefaultContextService, embedding, monkeypatch,
                                 user_id: str):
        embed = AsyncMock()
        monkeypatch.setattr(embedding, "embed", embed)

        context = await context_service.load_context(user_id, "   ")

        assert context.task_type == TaskType.GENERAL
        embed.assert_not_awaited()

    async def test_embedding_failure_tolerated(self, context_service: DefaultContextService, embedding,
                                               make_entity, monkeypatch, user_id: str):
        await make_entity("Frequent", mention_count=10)
        monkeypatch.setattr(embedding, "embed", AsyncMock(side_effect=RuntimeError("provider down")))

        context = await context_service.load_context(user_id, "any thoughts for today?")

        assert [e.name for e in context.entities] == ["Frequent"]
        assert context.failed_categories == []

    async def test_storage_failure_degrades(self, context_service: DefaultContextService, storage, make_note,
                                            monkeypatch, user_id: str):
        await make_note("Tokyo job offer")
        monkeypatch.setattr(storage, "query_entities", AsyncMock(side_effect=RuntimeError("db unavailable")))

        context = await context_service.load_context(user_id, "Should I take the job in Tokyo?")

        assert context.entities == []
        assert "entities" in context.failed_categories
        assert [n.title for n in context.notes] == ["Tokyo job offer"]

    async def test_without_embedding_provider(self, storage, classifier, retrieval_engine, assembler, make_entity,
                                              v, user_id: str):
        service = DefaultContextService(
            storage=storage, classifier=classifier, retrieval=retrieval_engine, assembler=assembler, v=v,
        )
        await make_entity("Sarah")

        context = await service.load_context(user_id, "Tell me about Sarah")

        assert [e.name for e in context.entities] == ["Sarah"]
