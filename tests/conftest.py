"""
Pytest configuration and fixtures for MIRROR memory core tests.

Most unit tests build services directly around a fresh in-memory store so every test starts
from an empty database. ``test_framework`` wires the full plugin graph through
scitrera-app-framework with an isolated Variables instance (no environment lookups).
"""
import logging
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from scitrera_app_framework import Variables

from mirror_memory.config import (
    MIRROR_DATA_DIR,
    MIRROR_DECISION_PROVIDER,
    MIRROR_EMBEDDING_PROVIDER,
    MIRROR_STORAGE_BACKEND,
)
from mirror_memory.models import (
    Behavior, Entity, EntityType, Fact, ImportanceTier, Note, Pattern, PatternType, Relationship,
)
from mirror_memory.services.assembler.default import DefaultContextAssembler
from mirror_memory.services.classifier.default import DefaultTaskClassifier
from mirror_memory.services.context.default import DefaultContextService
from mirror_memory.services.decision.heuristic import HeuristicDecisionProvider
from mirror_memory.services.embedding.mock import MockEmbeddingProvider
from mirror_memory.services.extractor.heuristic import HeuristicTextExtractor
from mirror_memory.services.lifecycle.default import DefaultLifecycleManager
from mirror_memory.services.retrieval.default import DefaultRetrievalEngine
from mirror_memory.services.scoring.default import DefaultRelevanceScorer
from mirror_memory.services.storage.in_memory import MemoryStorageBackend
from mirror_memory.services.temporal.default import DefaultTemporalFactService
from mirror_memory.services.traversal.default import DefaultGraphTraversal
from mirror_memory.utils import generate_id

USER_ID = "user_test"


# -----------------------------------------------------------------------------
# Logging Configuration (initialized by test harness, not framework)
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def test_logger() -> logging.Logger:
    """Root logger for tests; the test harness owns logging configuration."""
    logger = logging.getLogger("mirror-memory-test")
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s %(funcName)s() > %(message)s',
            datefmt='%Y/%m/%d %H:%M:%S'
        ))
        logger.addHandler(handler)

    return logger


@pytest.fixture
def v() -> Variables:
    """Isolated Variables instance for direct service construction."""
    return Variables()


@pytest.fixture
def user_id() -> str:
    return USER_ID


# -----------------------------------------------------------------------------
# Storage & Services (direct construction)
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture
async def storage(v):
    """Fresh in-memory storage backend."""
    backend = MemoryStorageBackend(v=v)
    await backend.connect()
    yield backend
    await backend.disconnect()


@pytest.fixture
def embedding(v):
    return MockEmbeddingProvider(v=v, dimensions=64)


@pytest.fixture
def extractor(v):
    return HeuristicTextExtractor(v=v)


@pytest.fixture
def classifier(extractor, v):
    return DefaultTaskClassifier(extractor=extractor, v=v)


@pytest.fixture
def scorer(storage, v):
    return DefaultRelevanceScorer(storage=storage, v=v)


@pytest.fixture
def traversal(storage, v):
    return DefaultGraphTraversal(storage=storage, v=v)


@pytest.fixture
def retrieval_engine(storage, scorer, traversal, v):
    return DefaultRetrievalEngine(storage=storage, scorer=scorer, traversal=traversal, v=v)


@pytest.fixture
def assembler(v):
    return DefaultContextAssembler(v=v)


@pytest.fixture
def context_service(storage, classifier, retrieval_engine, assembler, embedding, v):
    return DefaultContextService(
        storage=storage,
        classifier=classifier,
        retrieval=retrieval_engine,
        assembler=assembler,
        embedding=embedding,
        v=v,
    )


@pytest.fixture
def decision_provider(v):
    return HeuristicDecisionProvider(v=v)


@pytest.fixture
def lifecycle(storage, decision_provider, v):
    return DefaultLifecycleManager(storage=storage, decisions=decision_provider, v=v)


@pytest.fixture
def temporal(storage, v):
    return DefaultTemporalFactService(storage=storage, v=v)


# -----------------------------------------------------------------------------
# Test Data Factories
# -----------------------------------------------------------------------------

@pytest.fixture
def make_entity(storage, user_id):
    """Create and store an entity; keyword arguments override defaults."""

    async def _make(name: str, **overrides) -> Entity:
        data = dict(
            id=generate_id("ent"),
            user_id=user_id,
            name=name,
            entity_type=EntityType.PERSON,
            importance=ImportanceTier.MEDIUM,
            importance_score=ImportanceTier.MEDIUM.weight,
            mention_count=1,
        )
        data.update(overrides)
        return await storage.create_entity(Entity(**data))

    return _make


@pytest.fixture
def make_fact(storage, user_id):
    """Create and store a fact about ``entity_id``."""

    async def _make(entity_id: str, predicate: str, object_text: str = None, **overrides) -> Fact:
        data = dict(
            id=generate_id("fact"),
            user_id=user_id,
            entity_id=entity_id,
            predicate=predicate,
            object_text=object_text,
            confidence=0.8,
        )
        data.update(overrides)
        return await storage.create_fact(Fact(**data))

    return _make


@pytest.fixture
def make_note(storage, user_id):
    async def _make(title: str, category: str = None, days_ago: float = 0, **overrides) -> Note:
        created = datetime.now(timezone.utc) - timedelta(days=days_ago)
        data = dict(
            id=generate_id("note"),
            user_id=user_id,
            title=title,
            category=category,
            created_at=created,
            updated_at=created,
        )
        data.update(overrides)
        return await storage.create_note(Note(**data))

    return _make


@pytest.fixture
def make_pattern(storage, user_id):
    async def _make(description: str, pattern_type: PatternType = PatternType.BEHAVIORAL, **overrides) -> Pattern:
        data = dict(
            id=generate_id("pat"),
            user_id=user_id,
            pattern_type=pattern_type,
            description=description,
            confidence=0.8,
        )
        data.update(overrides)
        return await storage.create_pattern(Pattern(**data))

    return _make


@pytest.fixture
def make_behavior(storage, user_id):
    async def _make(predicate: str, entity_name: str, **overrides) -> Behavior:
        data = dict(
            id=generate_id("beh"),
            user_id=user_id,
            predicate=predicate,
            entity_name=entity_name,
            confidence=0.8,
        )
        data.update(overrides)
        return await storage.create_behavior(Behavior(**data))

    return _make


@pytest.fixture
def make_relationship(storage, user_id):
    async def _make(source_id: str, target_id: str, relationship_type: str = "knows", **overrides) -> Relationship:
        data = dict(
            id=generate_id("rel"),
            user_id=user_id,
            source_entity_id=source_id,
            target_entity_id=target_id,
            relationship_type=relationship_type,
        )
        data.update(overrides)
        return await storage.create_relationship(Relationship(**data))

    return _make


# -----------------------------------------------------------------------------
# Framework Initialization with Test Isolation
# -----------------------------------------------------------------------------

@pytest.fixture
def test_configuration(tmp_path) -> Variables:
    """
    Isolated Variables instance with explicit configuration for a wired framework:
    in-memory storage, mock embeddings and heuristic decisions.
    """
    v = Variables()
    v.set(MIRROR_STORAGE_BACKEND, "memory")
    v.set(MIRROR_EMBEDDING_PROVIDER, "mock")
    v.set(MIRROR_DECISION_PROVIDER, "heuristic")
    v.set(MIRROR_DATA_DIR, str(tmp_path))
    return v


@pytest_asyncio.fixture
async def test_framework(test_configuration, test_logger):
    """
    Initialize an isolated framework instance.

    Yields:
        Variables with all plugins initialized and storage connected
    """
    from mirror_memory.dependencies import preconfigure, initialize_services, shutdown_services

    v, _ = preconfigure(v=test_configuration, test_mode=True, test_logger=test_logger)
    v = await initialize_services(v)

    yield v

    await shutdown_services(v)
