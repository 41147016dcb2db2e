import hashlib
import math
import random

from logging import Logger

from scitrera_app_framework import Variables

from ...config import EmbeddingProviderType, MIRROR_EMBEDDING_DIMENSIONS

from .base import EmbeddingProvider, EmbeddingProviderPluginBase

DEFAULT_EMBEDDING_DIMENSIONS = 384


class MockEmbeddingProvider(EmbeddingProvider):
    """
    Simple mock embedding provider for testing without an embedding API.

    Generates deterministic embeddings based on content hash using a seeded PRNG. Values are
    signed, so unrelated texts land near cosine 0 (0.5 after rescaling, below the default
    match threshold) while identical texts have cosine 1.

    Not suitable for production - use for testing only.
    """

    def __init__(self, v: Variables = None, dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS):
        super().__init__(v, dimensions)
        self.logger.info("Initialized MockEmbeddingProvider with dimensions=%d", dimensions)

    async def embed(self, text: str) -> list[float]:
        """Generate deterministic embedding based on text hash."""

        # Use hash as PRNG seed for full-dimensional unique values
        text_hash = hashlib.sha256(text.strip().lower().encode()).digest()
        seed = int.from_bytes(text_hash[:8], byteorder="big")
        rng = random.Random(seed)

        embedding = [rng.uniform(-1.0, 1.0) for _ in range(self._dimensions)]

        # L2-normalize
        norm = math.sqrt(sum(x * x for x in embedding))
        if norm > 0:
            embedding = [x / norm for x in embedding]

        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for batch."""
        return [await self.embed(text) for text in texts]


class MockEmbeddingProviderPlugin(EmbeddingProviderPluginBase):
    PROVIDER_NAME = EmbeddingProviderType.MOCK

    def initialize(self, v: Variables, logger: Logger) -> MockEmbeddingProvider:
        return MockEmbeddingProvider(
            v=v,
            dimensions=v.environ(MIRROR_EMBEDDING_DIMENSIONS, default=DEFAULT_EMBEDDING_DIMENSIONS, type_fn=int)
        )
