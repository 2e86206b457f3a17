"""Overlapping character chunker for ingested document text."""

from src.errors import EmptyDocumentError, InvalidInputError
from src.models.chunk import DocumentChunk
from src.models.document import Document

# Natural boundaries, strongest first
SEPARATORS = ["\n\n", "\n", ". ", " "]


def _find_break(text: str, min_end: int, end: int) -> int:
    """Return the position just after the strongest separator in text[min_end:end].

    Falls back to end when the window holds no separator.
    """
    window = text[min_end:end]
    for separator in SEPARATORS:
        idx = window.rfind(separator)
        if idx != -1:
            return min_end + idx + len(separator)
    return end


def split_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> list[str]:
    """Split text into overlapping chunks of at most chunk_size characters.

    Each chunk after the first starts exactly chunk_overlap characters before
    the end of its predecessor, so the chunks cover the whole input. A
    non-final chunk ends at the last paragraph, line, sentence or word break
    in its second half when one exists. Blank chunks are dropped.
    """
    if chunk_size <= 0:
        raise InvalidInputError("chunk_size must be > 0", {"chunk_size": chunk_size})
    if not 0 <= chunk_overlap < chunk_size:
        raise InvalidInputError(
            "chunk_overlap must be >= 0 and smaller than chunk_size",
            {"chunk_size": chunk_size, "chunk_overlap": chunk_overlap},
        )

    length = len(text)
    # Breaks before this offset would stall the window or produce tiny chunks
    min_advance = max(chunk_overlap + 1, chunk_size // 2)

    chunks = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            end = _find_break(text, start + min_advance, end)
        chunks.append(text[start:end])
        if end >= length:
            break
        start = end - chunk_overlap

    chunks = [chunk for chunk in chunks if chunk.strip()]
    if not chunks:
        raise EmptyDocumentError("No valid text chunks found")
    return chunks


def chunk_document(
    document: Document,
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
) -> list[DocumentChunk]:
    """Split a document's text into sequentially indexed chunks."""
    raw_chunks = split_text(text, chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    return [
        DocumentChunk(
            document_id=document.id,
            chunk_text=chunk_text,
            chunk_index=idx,
        )
        for idx, chunk_text in enumerate(raw_chunks)
    ]
