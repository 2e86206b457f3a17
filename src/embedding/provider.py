"""Abstract embedding provider interface."""

from abc import ABC, abstractmethod

from src.runtime.deadline import Deadline


class EmbeddingProvider(ABC):
    """Interface for text embedding generation.

    Implementations wrap a specific embedding backend (a remote service or a
    local function). Calls are coroutines so remote backends can suspend
    without blocking other requests.
    """

    @abstractmethod
    async def embed(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        """Generate embeddings for a batch of text strings.

        Args:
            texts: List of text strings to embed.
            deadline: Optional deadline for the external calls involved.

        Returns:
            List of embedding vectors, one per input text and in input
            order, each of length `dimension`.
        """
        ...

    async def embed_query(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        """Generate embeddings for query texts.

        Override to add query-specific preprocessing. Default delegates to embed().
        """
        return await self.embed(texts, deadline=deadline)

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension (e.g., 768)."""
        ...

    @property
    def configured(self) -> bool:
        """Whether the provider has what it needs (e.g. credentials) to run."""
        return True

    async def aclose(self) -> None:
        """Release any resources held by the provider."""
