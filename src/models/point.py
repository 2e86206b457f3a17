"""Vector index record models."""

import uuid
from dataclasses import dataclass, field
from typing import Any

from src.models.chunk import DocumentChunk
from src.models.document import Document
from src.models.enums import Distance

# Namespace for deterministic point ids derived from (documentId, chunkIndex)
POINT_ID_NAMESPACE = uuid.UUID("6f1c2a9e-4b7d-5e3f-9a21-c0d8e7b6a514")


def point_id_for(document_id: str, chunk_index: int) -> str:
    """Derive a stable point id so re-upserting a chunk overwrites it."""
    return str(uuid.uuid5(POINT_ID_NAMESPACE, f"{document_id}:{chunk_index}"))


@dataclass
class Point:
    """A persisted (id, vector, payload) triple."""

    id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk, document: Document) -> "Point":
        if not chunk.embedding:
            raise ValueError(f"chunk {chunk.chunk_index} has no embedding")
        return cls(
            id=point_id_for(document.id, chunk.chunk_index),
            vector=chunk.embedding,
            payload={
                "documentId": document.id,
                "chunk": chunk.chunk_text,
                "chunkIndex": chunk.chunk_index,
                "filename": document.filename,
                "createdAt": document.created_at.isoformat(),
            },
        )


@dataclass
class ScoredPoint:
    """A search hit. score is cosine similarity (1 - cosine distance)."""

    id: str
    score: float
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class CollectionSchema:
    name: str
    dimension: int
    distance: Distance | str
    points_count: int = 0
