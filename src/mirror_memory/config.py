"""Configuration keys and defaults for the MIRROR memory core.

Values are resolved through scitrera-app-framework ``Variables`` (environment variables
unless a test or host application sets them explicitly).
"""

from enum import Enum

# ============================================
# Data Home Directory
# ============================================
MIRROR_DATA_DIR = 'MIRROR_DATA_DIR'


# ============================================
# Storage Backend
# ============================================
class StorageBackendType(str, Enum):
    """Available storage backends."""

    SQLITE = "sqlite"  # aiosqlite, single file (default)
    MEMORY = "memory"  # In-memory fake store for tests and embedding in other processes


MIRROR_STORAGE_BACKEND = 'MIRROR_STORAGE_BACKEND'
DEFAULT_MIRROR_STORAGE_BACKEND = StorageBackendType.SQLITE

MIRROR_SQLITE_STORAGE_PATH = 'MIRROR_SQLITE_STORAGE_PATH'
DEFAULT_MIRROR_SQLITE_STORAGE_PATH = "mirror.db"


# ============================================
# Embedding Providers
# ============================================
class EmbeddingProviderType(str, Enum):
    """Available embedding provider types."""

    OPENAI = "openai"  # OpenAI API (also works with any OpenAI-compatible endpoint)
    MOCK = "mock"  # Mock provider for testing only (deterministic hash-based)


MIRROR_EMBEDDING_PROVIDER = 'MIRROR_EMBEDDING_PROVIDER'
DEFAULT_MIRROR_EMBEDDING_PROVIDER = EmbeddingProviderType.OPENAI
MIRROR_EMBEDDING_MODEL = 'MIRROR_EMBEDDING_MODEL'
MIRROR_EMBEDDING_DIMENSIONS = 'MIRROR_EMBEDDING_DIMENSIONS'

# ============================================
# Text Extractor / Task Classifier
# ============================================
MIRROR_TEXT_EXTRACTOR = 'MIRROR_TEXT_EXTRACTOR'
DEFAULT_MIRROR_TEXT_EXTRACTOR = 'heuristic'

MIRROR_TASK_CLASSIFIER = 'MIRROR_TASK_CLASSIFIER'
DEFAULT_MIRROR_TASK_CLASSIFIER = 'default'

# ============================================
# Retrieval Engine
# ============================================
MIRROR_RETRIEVAL_ENGINE = 'MIRROR_RETRIEVAL_ENGINE'
DEFAULT_MIRROR_RETRIEVAL_ENGINE = 'default'

# ============================================
# Relevance Scorer
# ============================================
MIRROR_RELEVANCE_SCORER = 'MIRROR_RELEVANCE_SCORER'
DEFAULT_MIRROR_RELEVANCE_SCORER = 'default'

# Similarity threshold on the rescaled [0, 1] similarity scale
MIRROR_MATCH_THRESHOLD = 'MIRROR_MATCH_THRESHOLD'
DEFAULT_MIRROR_MATCH_THRESHOLD = 0.65

# ============================================
# Graph Traversal
# ============================================
MIRROR_GRAPH_TRAVERSAL = 'MIRROR_GRAPH_TRAVERSAL'
DEFAULT_MIRROR_GRAPH_TRAVERSAL = 'default'

MIRROR_TRAVERSAL_MAX_DEPTH = 'MIRROR_TRAVERSAL_MAX_DEPTH'
DEFAULT_MIRROR_TRAVERSAL_MAX_DEPTH = 2

# ============================================
# Context Assembler / Context Service
# ============================================
MIRROR_CONTEXT_ASSEMBLER = 'MIRROR_CONTEXT_ASSEMBLER'
DEFAULT_MIRROR_CONTEXT_ASSEMBLER = 'default'

MIRROR_CONTEXT_SERVICE = 'MIRROR_CONTEXT_SERVICE'
DEFAULT_MIRROR_CONTEXT_SERVICE = 'default'

# ============================================
# Lifecycle Manager
# ============================================
MIRROR_LIFECYCLE_MANAGER = 'MIRROR_LIFECYCLE_MANAGER'
DEFAULT_MIRROR_LIFECYCLE_MANAGER = 'default'

MIRROR_RELATIONSHIP_STRENGTH_BOOST = 'MIRROR_RELATIONSHIP_STRENGTH_BOOST'
DEFAULT_MIRROR_RELATIONSHIP_STRENGTH_BOOST = 0.1


# ============================================
# Lifecycle Decision Provider
# ============================================
class DecisionProviderType(str, Enum):
    """Available lifecycle decision providers."""

    HEURISTIC = "heuristic"  # Rule-based, no external calls (default)
    ANTHROPIC = "anthropic"  # Claude tool-use decision


MIRROR_DECISION_PROVIDER = 'MIRROR_DECISION_PROVIDER'
DEFAULT_MIRROR_DECISION_PROVIDER = DecisionProviderType.HEURISTIC

MIRROR_DECISION_ANTHROPIC_API_KEY = 'MIRROR_DECISION_ANTHROPIC_API_KEY'
MIRROR_DECISION_ANTHROPIC_MODEL = 'MIRROR_DECISION_ANTHROPIC_MODEL'

# ============================================
# Temporal Fact Service
# ============================================
MIRROR_TEMPORAL_SERVICE = 'MIRROR_TEMPORAL_SERVICE'
DEFAULT_MIRROR_TEMPORAL_SERVICE = 'default'
