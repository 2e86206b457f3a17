"""Error hierarchy for the FinChat ingestion and retrieval pipeline.

Ingestion-time errors are caught per file by the orchestrator; query-time
errors are absorbed by the retriever; generation errors reach the HTTP
caller as a JSON envelope with the status held on the exception.
"""

from typing import Any


class FinChatError(Exception):
    """Base exception for all FinChat errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(FinChatError):
    """Malformed caller input (maps to a 4xx response)."""


class EmptyDocumentError(FinChatError):
    """A source produced no text or no usable chunks."""


class DeadlineExceededError(FinChatError):
    """An external call did not finish before its deadline."""


# Embedding


class EmbeddingError(FinChatError):
    """Base class for failures of the embedding service path."""


class EmbeddingServiceError(EmbeddingError):
    """The embedding request failed or returned an unusable response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class InvalidEmbeddingError(EmbeddingError):
    """An embedding vector is missing values, has the wrong size or is not finite."""


class EmbeddingCountMismatchError(EmbeddingError):
    """The number of vectors produced differs from the number of input texts."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding count mismatch: expected {expected}, got {actual}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


# Vector index


class VectorIndexError(FinChatError):
    """Base class for vector index failures."""


class CollectionNotFoundError(VectorIndexError):
    """The configured collection does not exist."""


class SchemaMismatchError(VectorIndexError):
    """The collection exists with a schema incompatible with the pipeline."""


class UpsertError(VectorIndexError):
    """A point batch failed to persist. Earlier batches remain stored."""

    def __init__(self, offset: int, message: str):
        super().__init__(
            f"Failed to upsert batch starting at index {offset}: {message}",
            {"offset": offset},
        )
        self.offset = offset


# Generation


class GenerationServiceError(FinChatError):
    """The chat model call failed; status_code is the HTTP status to respond with."""

    def __init__(self, status_code: int, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.status_code = status_code
