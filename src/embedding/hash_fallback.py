"""Degraded-mode embedding provider.

Maps text to a fixed-size vector by accumulating character codes. It needs no
credentials and never fails, but its vectors carry almost no semantics and
its dimension (384) does not match the primary 768-dimension collection, so
the vector index rejects them.
"""

from src.embedding.provider import EmbeddingProvider
from src.runtime.deadline import Deadline

FALLBACK_DIMENSION = 384


def hash_embedding(text: str, dimension: int = FALLBACK_DIMENSION) -> list[float]:
    vector = [0.0] * dimension
    if not text or not isinstance(text, str):
        return vector
    for i, char in enumerate(text):
        vector[i % dimension] += ord(char) / 255
    return vector


class HashEmbeddingProvider(EmbeddingProvider):
    def __init__(self, dimension: int = FALLBACK_DIMENSION):
        self._dimension = dimension

    async def embed(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        return [hash_embedding(text, self._dimension) for text in texts]

    @property
    def dimension(self) -> int:
        return self._dimension
