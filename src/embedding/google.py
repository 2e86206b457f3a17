"""Google Generative AI embedding client (batchEmbedContents REST API)."""

import asyncio
import logging
import math

import httpx

from src.embedding.batching import batch_texts
from src.embedding.provider import EmbeddingProvider
from src.errors import (
    EmbeddingCountMismatchError,
    EmbeddingServiceError,
    InvalidEmbeddingError,
)
from src.runtime.deadline import Deadline

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "models/text-embedding-004"


def validate_embedding(embedding: object, dimension: int, position: int) -> list[float]:
    """Check one `{"values": [...]}` entry of a batch response and return its values."""
    values = embedding.get("values") if isinstance(embedding, dict) else None
    if not isinstance(values, list):
        raise InvalidEmbeddingError(
            f"Invalid embedding at batch index {position}: missing or invalid values"
        )
    if len(values) != dimension:
        raise InvalidEmbeddingError(
            f"Invalid embedding dimension at batch index {position}: "
            f"expected {dimension}, got {len(values)}",
            {"expected": dimension, "actual": len(values)},
        )
    for j, value in enumerate(values):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise InvalidEmbeddingError(
                f"Invalid embedding value at batch index {position}, position {j}: {value!r}"
            )
    return [float(value) for value in values]


class GoogleEmbeddingClient(EmbeddingProvider):
    """Embeds texts with a Google embedding model, one request per batch.

    Batches are sent strictly one after another with a pause between them to
    stay under the service rate limit. Failed batches are not re-requested.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        dimension: int = 768,
        batch_size: int = 100,
        batch_delay: float = 0.2,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._url = f"{base_url.rstrip('/')}/{model}:batchEmbedContents"
        self._dimension = dimension
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._timeout = timeout
        self._client = http_client

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_request(self, batch: list[str]) -> dict:
        return {
            "requests": [
                {"model": self._model, "content": {"parts": [{"text": text.strip()}]}}
                for text in batch
            ]
        }

    async def _embed_batch(self, batch: list[str], deadline: Deadline) -> list[list[float]]:
        try:
            response = await deadline.run(
                self._get_client().post(
                    self._url,
                    params={"key": self._api_key},
                    json=self._build_request(batch),
                    headers={"Accept": "application/json"},
                )
            )
        except httpx.HTTPError as e:
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e

        if response.is_error:
            logger.error("Embedding API error %d: %s", response.status_code, response.text)
            raise EmbeddingServiceError(
                f"Embedding request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingServiceError("Invalid response format: body is not JSON") from e

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list):
            raise EmbeddingServiceError("Invalid response format: missing embeddings array")
        if len(embeddings) != len(batch):
            raise EmbeddingServiceError(
                f"Embedding count mismatch: expected {len(batch)}, got {len(embeddings)}",
                details={"expected": len(batch), "actual": len(embeddings)},
            )

        return [
            validate_embedding(embedding, self._dimension, i)
            for i, embedding in enumerate(embeddings)
        ]

    async def embed(self, texts: list[str], deadline: Deadline | None = None) -> list[list[float]]:
        """Embed texts, preserving length and order.

        Raises:
            EmbeddingServiceError: Missing credential, failed request or malformed response.
            InvalidEmbeddingError: A returned vector is malformed.
            EmbeddingCountMismatchError: Texts were dropped by batching so the
                output is shorter than the input.
        """
        if not self._api_key:
            raise EmbeddingServiceError("GOOGLE_GENAI_API_KEY environment variable is not set")
        deadline = deadline or Deadline.never()

        logger.info("Processing %d texts for embeddings", len(texts))
        batches = batch_texts(texts, self._batch_size)
        all_embeddings: list[list[float]] = []

        for batch_index, batch in enumerate(batches):
            logger.info(
                "Processing batch %d/%d with %d items",
                batch_index + 1, len(batches), len(batch),
            )
            all_embeddings.extend(await self._embed_batch(batch, deadline))
            logger.debug(
                "Processed batch %d, total embeddings: %d",
                batch_index + 1, len(all_embeddings),
            )

            if batch_index < len(batches) - 1:
                await deadline.run(asyncio.sleep(self._batch_delay))

        if len(all_embeddings) != len(texts):
            raise EmbeddingCountMismatchError(expected=len(texts), actual=len(all_embeddings))

        logger.info("Generated %d embeddings", len(all_embeddings))
        return all_embeddings
