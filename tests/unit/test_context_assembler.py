"""Unit tests for DefaultContextAssembler."""
from datetime import datetime, timezone

import pytest

from mirror_memory.models import (
    Behavior, Entity, EntityType, Fact, Note, Pattern, RetrievalContext, RetrievalResult, SharedConnection,
    TaskType,
)
from mirror_memory.services.assembler.default import DefaultContextAssembler
from mirror_memory.services.retrieval.strategies import strategy_for

USER = "user_assembler"


def _sarah(**overrides) -> Entity:
    data = dict(id="ent_sarah", user_id=USER, name="Sarah", entity_type=EntityType.PERSON)
    data.update(overrides)
    return Entity(**data)


def _full_result() -> RetrievalResult:
    return RetrievalResult(
        entities=[_sarah(relationship="friend", summary="Works at Acme")],
        facts=[Fact(id="fact_1", user_id=USER, entity_id="ent_sarah", predicate="works_at", object_text="Acme")],
        notes=[Note(id="note_1", user_id=USER, title="Tokyo job offer", category="career",
                    created_at=datetime(2025, 3, 5, tzinfo=timezone.utc))],
        patterns=[Pattern(id="pat_1", user_id=USER, description="Deliberates for weeks")],
        behaviors=[Behavior(id="beh_1", user_id=USER, predicate="trusts_opinion_of", entity_name="Marcus",
                            topic="career")],
    )


class TestAssemble:
    """Tests for markdown rendering."""

    def test_full_layout(self, assembler: DefaultContextAssembler):
        formatted = assembler.assemble(_full_result(), task_type=TaskType.DECISION, topics=["tokyo", "job"])

        assert formatted.text == (
            "### People & Things You Know About\n"
            "- **Sarah** (person) - friend: Works at Acme\n"
            "\n"
            "### Facts\n"
            "- Sarah works at: Acme\n"
            "\n"
            "### Relevant Notes\n"
            "- [Mar 5] Tokyo job offer (career)\n"
            "\n"
            "### Patterns Observed\n"
            "- Deliberates for weeks\n"
            "\n"
            "### How You Relate to People\n"
            "- trusts opinion of Marcus (on career)\n"
            "\n"
            "### Topics\n"
            "tokyo, job"
        )
        assert formatted.sections == [
            "People & Things You Know About", "Facts", "Relevant Notes", "Patterns Observed",
            "How You Relate to People", "Topics",
        ]
        assert formatted.truncated is False

    def test_empty_sections_omitted(self, assembler: DefaultContextAssembler):
        result = RetrievalResult(patterns=[Pattern(id="pat_1", user_id=USER, description="Long form",
                                                   short_description="Short form")])

        formatted = assembler.assemble(result)

        assert formatted.text == "### Patterns Observed\n- Short form"
        assert formatted.sections == ["Patterns Observed"]

    def test_empty_result(self, assembler: DefaultContextAssembler):
        formatted = assembler.assemble(RetrievalResult())

        assert formatted.text == ""
        assert formatted.sections == []
        assert formatted.context_used == []

    def test_fact_without_known_subject(self, assembler: DefaultContextAssembler):
        result = RetrievalResult(facts=[Fact(id="fact_1", user_id=USER, entity_id="ent_unknown",
                                             predicate="lives_in", object_text="Boston")])

        assert assembler.assemble(result).text == "### Facts\n- lives in: Boston"

    def test_long_summary_truncated(self, assembler: DefaultContextAssembler):
        result = RetrievalResult(entities=[_sarah(summary="x" * 500)])

        line = assembler.assemble(result).text.splitlines()[1]

        assert line.endswith("x" * 160 + "...")

    def test_budget_stops_at_first_overflow(self, assembler: DefaultContextAssembler):
        """Only whole lines are emitted and nothing follows the first line that does not fit."""
        result = _full_result()
        result.entities = [_sarah()]

        formatted = assembler.assemble(result, max_tokens=14)

        assert formatted.text == "### People & Things You Know About\n- **Sarah** (person)"
        assert formatted.sections == ["People & Things You Know About"]
        assert formatted.truncated is True
        assert len(formatted.text) <= 14 * 4

    def test_default_budget_follows_task_type(self, assembler: DefaultContextAssembler):
        notes = [Note(id=f"note_{i}", user_id=USER, title="t" * 80) for i in range(100)]
        result = RetrievalResult(notes=notes)

        factual = assembler.assemble(result, task_type=TaskType.FACTUAL)
        research = assembler.assemble(result, task_type=TaskType.RESEARCH)

        assert factual.truncated is True
        assert len(factual.text) <= strategy_for(TaskType.FACTUAL).max_tokens * 4
        assert research.truncated is False

    def test_zero_budget(self, assembler: DefaultContextAssembler):
        formatted = assembler.assemble(_full_result(), max_tokens=0)

        assert formatted.text == ""
        assert formatted.truncated is True
        assert len(formatted.context_used) == 5


class TestContextUsed:
    """Tests for the audit list."""

    def test_labels(self, assembler: DefaultContextAssembler):
        used = assembler.assemble(_full_result()).context_used

        assert [(u.type, u.label) for u in used] == [
            ("entity", "Sarah"),
            ("fact", "works_at: Acme"),
            ("note", 'Note: "Tokyo job offer"'),
            ("pattern", "Pattern: Deliberates for weeks"),
            ("behavior", "Behavior: trusts opinion of Marcus"),
        ]
        assert used[0].entity_type == "person"

    def test_caps_and_label_truncation(self, assembler: DefaultContextAssembler):
        result = RetrievalResult(
            entities=[_sarah(id=f"ent_{i}", name=f"Person {i}") for i in range(12)],
            facts=[Fact(id=f"fact_{i}", user_id=USER, entity_id="ent_0", predicate="likes", object_text="y" * 50)
                   for i in range(8)],
            notes=[Note(id=f"note_{i}", user_id=USER, title="Note") for i in range(5)],
        )

        used = assembler.assemble(result).context_used
        by_type = {t: [u for u in used if u.type == t] for t in ("entity", "fact", "note")}

        assert len(by_type["entity"]) == 10
        assert len(by_type["fact"]) == 5
        assert len(by_type["note"]) == 3
        assert by_type["fact"][0].label == "likes: " + "y" * 30 + "..."

    def test_untitled_note(self, assembler: DefaultContextAssembler):
        used = assembler.assemble(RetrievalResult(notes=[Note(id="note_1", user_id=USER)])).context_used
        assert used[0].label == 'Note: "Untitled"'


class TestFormatConnections:
    """Tests for shared connection sentences."""

    def test_templates(self, assembler: DefaultContextAssembler):
        entities = [_sarah(), _sarah(id="ent_tom", name="Tom")]
        connections = [
            SharedConnection(predicate="works_at", object_text="Acme", entity_ids=["ent_sarah", "ent_tom"]),
            SharedConnection(predicate="member_of", object_text="Book Club", entity_ids=["ent_sarah", "ent_tom"]),
            SharedConnection(predicate="likes", object_text="tea", entity_ids=["ent_sarah", "ent_tom"]),
        ]

        text = assembler.format_connections(connections, entities)

        assert text.splitlines() == [
            "Sarah and Tom both work at Acme",
            "Sarah and Tom are both members of Book Club",
            "Sarah and Tom share: likes tea",
        ]

    def test_unresolved_names_skipped(self, assembler: DefaultContextAssembler):
        connections = [SharedConnection(predicate="works_at", object_text="Acme",
                                        entity_ids=["ent_sarah", "ent_missing"])]

        assert assembler.format_connections(connections, [_sarah()]) == ""


class TestSummarize:
    """Tests for the log-safe summary."""

    def test_counts_only(self, assembler: DefaultContextAssembler):
        result = _full_result()
        context = RetrievalContext(
            user_id=USER, task_type=TaskType.DECISION, task_label=TaskType.DECISION.label,
            strategy=strategy_for(TaskType.DECISION), entities=result.entities, facts=result.facts,
            formatted="secret text",
        )

        summary = assembler.summarize(context)

        assert summary == {
            "task_type": "decision",
            "entity_count": 1,
            "fact_count": 1,
            "note_count": 0,
            "pattern_count": 0,
            "behavior_count": 0,
            "context_used_count": 0,
        }


@pytest.mark.parametrize("task_type", list(TaskType))
def test_every_task_type_renders(assembler: DefaultContextAssembler, task_type: TaskType):
    formatted = assembler.assemble(_full_result(), task_type=task_type)
    assert formatted.text.startswith("### People & Things You Know About")
