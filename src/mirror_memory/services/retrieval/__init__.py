"""Retrieval engine package."""
from .base import RetrievalEngine, RetrievalEnginePluginBase
from .strategies import STRATEGIES, strategy_for
from .._constants import EXT_RETRIEVAL_ENGINE

from scitrera_app_framework import Variables, get_extension


def get_retrieval_engine(v: Variables = None) -> RetrievalEngine:
    """Get the retrieval engine instance."""
    return get_extension(EXT_RETRIEVAL_ENGINE, v)


__all__ = (
    'RetrievalEngine',
    'RetrievalEnginePluginBase',
    'STRATEGIES',
    'strategy_for',
    'get_retrieval_engine',
    'EXT_RETRIEVAL_ENGINE',
)
