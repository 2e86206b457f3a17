"""Process-wide collaborators, built once at startup and passed explicitly."""

import logging
from dataclasses import dataclass

from langchain_core.language_models.chat_models import BaseChatModel

from config.settings import Settings, get_settings
from src.embedding.google import GoogleEmbeddingClient
from src.embedding.hash_fallback import HashEmbeddingProvider
from src.embedding.provider import EmbeddingProvider
from src.llm.config import get_llm, has_llm_credentials
from src.metadata.store import MetadataStore
from src.vectorstore.chroma_store import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    vector_index: VectorIndex
    metadata_store: MetadataStore
    embedder: EmbeddingProvider
    fallback_embedder: EmbeddingProvider
    llm: BaseChatModel | None = None

    async def aclose(self) -> None:
        await self.embedder.aclose()
        await self.fallback_embedder.aclose()
        self.metadata_store.close()


def build_context(settings: Settings | None = None) -> AppContext:
    """Wire every collaborator from settings. No network calls are made here."""
    settings = settings or get_settings()

    vector_index = VectorIndex(
        path=settings.finchat_chroma_path,
        host=settings.finchat_chroma_host or None,
        port=settings.finchat_chroma_port,
        token=settings.finchat_chroma_token or None,
        collection_name=settings.finchat_collection_name,
        dimension=settings.finchat_embedding_dimension,
        upsert_batch_size=settings.finchat_upsert_batch_size,
    )
    embedder = GoogleEmbeddingClient(
        api_key=settings.google_genai_api_key,
        model=settings.finchat_embedding_model,
        base_url=settings.finchat_embedding_base_url,
        dimension=settings.finchat_embedding_dimension,
        batch_size=settings.finchat_embedding_batch_size,
        batch_delay=settings.embedding_batch_delay,
        timeout=settings.finchat_request_timeout,
    )
    if not embedder.configured:
        logger.warning("GOOGLE_GENAI_API_KEY is not set; queries will use the fallback embedder")

    llm = None
    if has_llm_credentials(settings):
        llm = get_llm(settings)
    else:
        logger.warning("No API key for LLM provider %s", settings.finchat_llm_provider)

    return AppContext(
        settings=settings,
        vector_index=vector_index,
        metadata_store=MetadataStore(settings.finchat_database_url),
        embedder=embedder,
        fallback_embedder=HashEmbeddingProvider(),
        llm=llm,
    )
