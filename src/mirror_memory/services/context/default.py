"""Default context service."""
from logging import Logger
from typing import Iterable, Optional

from scitrera_app_framework import Variables

from ...models import RetrievalContext
from .._constants import (
    EXT_CONTEXT_ASSEMBLER, EXT_EMBEDDING_PROVIDER, EXT_RETRIEVAL_ENGINE, EXT_STORAGE_BACKEND, EXT_TASK_CLASSIFIER,
)
from ..assembler import ContextAssembler
from ..classifier import TaskClassifier
from ..embedding import EmbeddingProvider
from ..retrieval import RetrievalEngine, strategy_for
from ..storage import StorageBackend
from .base import ContextService, ContextServicePluginBase

KNOWN_NAMES_LIMIT = 500


class DefaultContextService(ContextService):
    """Wires classifier, retrieval engine and assembler together."""

    def __init__(
            self,
            storage: StorageBackend,
            classifier: TaskClassifier,
            retrieval: RetrievalEngine,
            assembler: ContextAssembler,
            embedding: Optional[EmbeddingProvider] = None,
            v: Variables = None,
    ):
        super().__init__(v)
        self.storage = storage
        self.classifier = classifier
        self.retrieval = retrieval
        self.assembler = assembler
        self.embedding = embedding

    async def load_context(
            self,
            user_id: str,
            message: str,
            known_names: Optional[Iterable[str]] = None,
    ) -> RetrievalContext:
        if known_names is None:
            known_names = await self._known_names(user_id)

        analysis = self.classifier.analyze(message, known_names)
        strategy = strategy_for(analysis.task_type)
        query_vector = await self._embed(user_id, message)

        result = await self.retrieval.retrieve(
            user_id,
            strategy,
            mentioned_entities=analysis.mentioned_entities,
            topics=analysis.topics,
            query_vector=query_vector,
            include_historical=analysis.include_historical,
        )
        formatted = self.assembler.assemble(result, task_type=analysis.task_type, topics=analysis.topics)

        context = RetrievalContext(
            user_id=user_id,
            task_type=analysis.task_type,
            task_label=analysis.task_type.label,
            strategy=strategy,
            mentioned_entities=analysis.mentioned_entities,
            topics=analysis.topics,
            entities=result.entities,
            facts=result.facts,
            notes=result.notes,
            patterns=result.patterns,
            behaviors=result.behaviors,
            context_used=formatted.context_used,
            formatted=formatted.text,
            failed_categories=result.failed_categories,
        )
        self.logger.debug("Loaded context for user %s: %s", user_id, self.assembler.summarize(context))
        return context

    async def _known_names(self, user_id: str) -> list[str]:
        try:
            entities = await self.storage.query_entities(user_id, order_by="mention_count", limit=KNOWN_NAMES_LIMIT)
        except Exception as e:
            self.logger.warning("Failed to load known names for user %s (%s)", user_id, type(e).__name__)
            return []
        names: list[str] = []
        for entity in entities:
            names.append(entity.name)
            names.extend(entity.aliases)
        return names

    async def _embed(self, user_id: str, message: str) -> Optional[list[float]]:
        if self.embedding is None or not message or not message.strip():
            return None
        try:
            return await self.embedding.embed(message)
        except Exception as e:
            self.logger.warning("Query embedding failed for user %s (%s)", user_id, type(e).__name__)
            return None


class DefaultContextServicePlugin(ContextServicePluginBase):
    """Default context service plugin."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> ContextService:
        return DefaultContextService(
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            classifier=self.get_extension(EXT_TASK_CLASSIFIER, v),
            retrieval=self.get_extension(EXT_RETRIEVAL_ENGINE, v),
            assembler=self.get_extension(EXT_CONTEXT_ASSEMBLER, v),
            embedding=self.get_extension(EXT_EMBEDDING_PROVIDER, v),
            v=v,
        )
