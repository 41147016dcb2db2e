from .base import EmbeddingProvider
from .._constants import EXT_EMBEDDING_PROVIDER

from scitrera_app_framework import Variables, get_extension


def get_embedding_provider(v: Variables = None) -> EmbeddingProvider:
    return get_extension(EXT_EMBEDDING_PROVIDER, v)


__all__ = (
    'EmbeddingProvider',
    'get_embedding_provider',
    'EXT_EMBEDDING_PROVIDER',
)
