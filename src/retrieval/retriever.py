"""Query-time retrieval of grounding context for chat requests."""

import logging

from src.embedding.provider import EmbeddingProvider
from src.errors import FinChatError
from src.runtime.deadline import Deadline
from src.vectorstore.chroma_store import VectorIndex

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n---\n"


class ContextRetriever:
    """Embeds a question, searches the vector index and joins the hits.

    Retrieval is best-effort: any failure degrades to an empty context so the
    chat turn can still be answered without grounding.
    """

    def __init__(
        self,
        vector_index: VectorIndex,
        embedder: EmbeddingProvider,
        fallback_embedder: EmbeddingProvider,
        limit: int = 5,
    ):
        self._vector_index = vector_index
        self._embedder = embedder
        self._fallback = fallback_embedder
        self._limit = limit

    async def embed_question(self, question: str, deadline: Deadline | None = None) -> list[float]:
        """Embed with the primary embedder, falling back to the degraded one."""
        if self._embedder.configured:
            try:
                return (await self._embedder.embed_query([question], deadline=deadline))[0]
            except FinChatError as e:
                logger.warning("Primary embedding failed, using fallback embedder: %s", e)
        return (await self._fallback.embed_query([question]))[0]

    async def retrieve_chunks(
        self,
        question: str,
        document_id: str | None = None,
        deadline: Deadline | None = None,
    ) -> list[str]:
        """Return the chunk texts of the top results, best first."""
        vector = await self.embed_question(question, deadline=deadline)
        results = await self._vector_index.search(
            vector, limit=self._limit, document_id=document_id, deadline=deadline,
        )
        chunks = [r.payload.get("chunk") for r in results]
        chunks = [c for c in chunks if isinstance(c, str) and c]
        logger.info("Found %d relevant chunks for question", len(chunks))
        return chunks[:self._limit]

    async def retrieve(
        self,
        question: str,
        document_id: str | None = None,
        deadline: Deadline | None = None,
    ) -> str:
        """Return the joined context string, or "" when nothing was found."""
        try:
            chunks = await self.retrieve_chunks(question, document_id=document_id, deadline=deadline)
        except FinChatError as e:
            logger.warning("Retrieval failed, continuing without context: %s", e)
            return ""
        return CHUNK_SEPARATOR.join(chunks)
