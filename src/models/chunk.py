"""Document Chunk data model."""

from dataclasses import dataclass, field


@dataclass
class DocumentChunk:
    """A bounded-length slice of a document's text, the unit of embedding."""

    document_id: str
    chunk_text: str
    chunk_index: int
    embedding: list[float] = field(default_factory=list)

    def __post_init__(self):
        if not self.chunk_text.strip():
            raise ValueError("chunk_text must not be empty")
        if self.chunk_index < 0:
            raise ValueError("chunk_index must be >= 0")
