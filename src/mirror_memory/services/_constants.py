"""
Centralized extension point constants for all MIRROR memory services.

All EXT_* constants are defined here to avoid circular import issues.
Individual service base modules re-export the relevant constants.
"""

# ============================================
# Storage
# ============================================
EXT_STORAGE_BACKEND = 'mirror-primary-storage'

# ============================================
# Embedding
# ============================================
EXT_EMBEDDING_PROVIDER = 'mirror-embedding-provider'

# ============================================
# Text Extraction & Classification
# ============================================
EXT_TEXT_EXTRACTOR = 'mirror-text-extractor'
EXT_TASK_CLASSIFIER = 'mirror-task-classifier'

# ============================================
# Retrieval
# ============================================
EXT_RELEVANCE_SCORER = 'mirror-relevance-scorer'
EXT_GRAPH_TRAVERSAL = 'mirror-graph-traversal'
EXT_RETRIEVAL_ENGINE = 'mirror-retrieval-engine'

# ============================================
# Context
# ============================================
EXT_CONTEXT_ASSEMBLER = 'mirror-context-assembler'
EXT_CONTEXT_SERVICE = 'mirror-context-service'

# ============================================
# Lifecycle
# ============================================
EXT_DECISION_PROVIDER = 'mirror-decision-provider'
EXT_LIFECYCLE_MANAGER = 'mirror-lifecycle-manager'
EXT_TEMPORAL_SERVICE = 'mirror-temporal-service'
