"""Default markdown context assembler."""
from logging import Logger
from typing import Optional, Sequence

from scitrera_app_framework import Variables

from ...models import (
    Behavior, ContextUsedItem, Entity, Fact, FormattedContext, Note, Pattern, RetrievalResult,
    SharedConnection, TaskType,
)
from ...utils import humanize_predicate, truncate
from ..retrieval.strategies import strategy_for
from .base import ContextAssembler, ContextAssemblerPluginBase

CHARS_PER_TOKEN = 4

# Per-item truncation
ENTITY_SUMMARY_CHARS = 160
FACT_OBJECT_CHARS = 100
NOTE_TITLE_CHARS = 80
PATTERN_TEXT_CHARS = 120

# Audit list
AUDIT_ENTITY_COUNT = 10
AUDIT_FACT_COUNT = 5
AUDIT_NOTE_COUNT = 3
AUDIT_PATTERN_COUNT = 3
AUDIT_BEHAVIOR_COUNT = 3
AUDIT_FACT_CHARS = 30
AUDIT_NOTE_CHARS = 40
AUDIT_PATTERN_CHARS = 30

SECTION_ENTITIES = "People & Things You Know About"
SECTION_FACTS = "Facts"
SECTION_NOTES = "Relevant Notes"
SECTION_PATTERNS = "Patterns Observed"
SECTION_BEHAVIORS = "How You Relate to People"
SECTION_TOPICS = "Topics"

SHARED_CONNECTION_TEMPLATES = {
    "works_at": "{names} both work at {object}",
    "company": "{names} both work at {object}",
    "employer": "{names} both work at {object}",
    "member_of": "{names} are both members of {object}",
    "studied_at": "{names} both studied at {object}",
}


def _entity_line(entity: Entity) -> str:
    line = f"- **{entity.name}** ({entity.entity_type.value})"
    if entity.relationship:
        line += f" - {entity.relationship}"
    if entity.summary:
        line += f": {truncate(entity.summary, ENTITY_SUMMARY_CHARS)}"
    return line


def _fact_line(fact: Fact, names: dict[str, str]) -> str:
    subject = names.get(fact.entity_id)
    predicate = humanize_predicate(fact.predicate)
    head = f"{subject} {predicate}" if subject else predicate
    return f"- {head}: {truncate(fact.object_text, FACT_OBJECT_CHARS)}"


def _note_line(note: Note) -> str:
    line = f"- [{note.created_at:%b} {note.created_at.day}] {truncate(note.display_title, NOTE_TITLE_CHARS)}"
    if note.category:
        line += f" ({note.category})"
    return line


def _pattern_line(pattern: Pattern) -> str:
    return f"- {truncate(pattern.display_text, PATTERN_TEXT_CHARS)}"


def _behavior_line(behavior: Behavior) -> str:
    line = f"- {humanize_predicate(behavior.predicate)} {behavior.entity_name}"
    if behavior.topic:
        line += f" (on {behavior.topic})"
    return line


class DefaultContextAssembler(ContextAssembler):
    """Markdown assembler with a character budget of roughly four characters per token."""

    def assemble(
            self,
            result: RetrievalResult,
            task_type: Optional[TaskType] = None,
            topics: Optional[Sequence[str]] = None,
            max_tokens: Optional[int] = None,
    ) -> FormattedContext:
        if max_tokens is None:
            max_tokens = strategy_for(task_type).max_tokens
        budget = max(0, max_tokens) * CHARS_PER_TOKEN

        names = {e.id: e.name for e in result.entities}
        sections = (
            (SECTION_ENTITIES, [_entity_line(e) for e in result.entities]),
            (SECTION_FACTS, [_fact_line(f, names) for f in result.facts]),
            (SECTION_NOTES, [_note_line(n) for n in result.notes]),
            (SECTION_PATTERNS, [_pattern_line(p) for p in result.patterns]),
            (SECTION_BEHAVIORS, [_behavior_line(b) for b in result.behaviors]),
            (SECTION_TOPICS, [", ".join(topics)] if topics else []),
        )

        text = ""
        rendered: list[str] = []
        truncated = False
        for title, lines in sections:
            for index, line in enumerate(lines):
                if index == 0:
                    addition = ("\n\n" if text else "") + f"### {title}\n{line}"
                else:
                    addition = f"\n{line}"
                if len(text) + len(addition) > budget:
                    truncated = True
                    break
                text += addition
                if index == 0:
                    rendered.append(title)
            if truncated:
                break

        if truncated:
            self.logger.debug("Context truncated to %d chars (%d tokens budget)", len(text), max_tokens)

        return FormattedContext(
            text=text,
            context_used=self._context_used(result),
            sections=rendered,
            truncated=truncated,
        )

    def _context_used(self, result: RetrievalResult) -> list[ContextUsedItem]:
        used: list[ContextUsedItem] = []
        for entity in result.entities[:AUDIT_ENTITY_COUNT]:
            used.append(ContextUsedItem(type="entity", label=entity.name, entity_type=entity.entity_type.value))
        for fact in result.facts[:AUDIT_FACT_COUNT]:
            used.append(ContextUsedItem(
                type="fact", label=f"{fact.predicate}: {truncate(fact.object_text, AUDIT_FACT_CHARS)}",
            ))
        for note in result.notes[:AUDIT_NOTE_COUNT]:
            used.append(ContextUsedItem(
                type="note", label=f'Note: "{truncate(note.display_title, AUDIT_NOTE_CHARS)}"',
            ))
        for pattern in result.patterns[:AUDIT_PATTERN_COUNT]:
            used.append(ContextUsedItem(
                type="pattern", label=f"Pattern: {truncate(pattern.display_text, AUDIT_PATTERN_CHARS)}",
            ))
        for behavior in result.behaviors[:AUDIT_BEHAVIOR_COUNT]:
            used.append(ContextUsedItem(
                type="behavior", label=f"Behavior: {humanize_predicate(behavior.predicate)} {behavior.entity_name}",
            ))
        return used

    def format_connections(self, connections: Sequence[SharedConnection], entities: Sequence[Entity]) -> str:
        names_by_id = {e.id: e.name for e in entities}
        lines = []
        for connection in connections:
            names = [names_by_id[i] for i in connection.entity_ids if i in names_by_id]
            if len(names) < 2:
                continue
            template = SHARED_CONNECTION_TEMPLATES.get(connection.predicate)
            joined = " and ".join(names)
            if template:
                lines.append(template.format(names=joined, object=connection.object_text))
            else:
                lines.append(f"{joined} share: {humanize_predicate(connection.predicate)} {connection.object_text}")
        return "\n".join(lines)


class DefaultContextAssemblerPlugin(ContextAssemblerPluginBase):
    """Default context assembler plugin."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> ContextAssembler:
        return DefaultContextAssembler(v=v)
