"""Ingestion pipeline orchestrator.

Wires together: reader → chunker → embedding → metadata store → vector index.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from src.errors import SchemaMismatchError
from src.ingestion.chunker import chunk_document
from src.ingestion.readers import read_source
from src.models.document import Document
from src.models.point import Point
from src.runtime.context import AppContext
from src.runtime.deadline import Deadline

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    document: Document
    chunk_count: int
    vector_count: int
    embedding_dimension: int


async def _forget_document(context: AppContext, document: Document) -> None:
    # Runs outside the caller's deadline, which may be what just expired
    try:
        await context.metadata_store.remove_document(document.id, deadline=Deadline.never())
    except Exception as e:
        logger.error("Could not remove record of %s (document %s): %s", document.filename, document.id, e)


async def ingest_text(
    context: AppContext,
    text: str,
    filename: str,
    deadline: Deadline | None = None,
) -> IngestionResult:
    """Chunk, embed and store one document's text.

    The collection must already be verified. If writing points fails, the
    document record is removed again so the next run re-ingests the file;
    points from batches that did succeed stay in the index.
    """
    settings = context.settings
    document = Document(filename=filename)

    chunks = chunk_document(
        document,
        text,
        chunk_size=settings.finchat_chunk_size,
        chunk_overlap=settings.finchat_chunk_overlap,
    )
    logger.info("Processing %d text chunks for %s", len(chunks), filename)

    vectors = await context.embedder.embed([c.chunk_text for c in chunks], deadline=deadline)
    for chunk, vector in zip(chunks, vectors):
        chunk.embedding = vector

    await context.metadata_store.add_document(document, deadline=deadline)

    points = [Point.from_chunk(chunk, document) for chunk in chunks]
    try:
        await context.vector_index.upsert(points, deadline=deadline)
    except Exception:
        logger.warning(
            "Partial ingestion of %s (document %s); removing its record so it is retried",
            filename, document.id,
        )
        await _forget_document(context, document)
        raise

    logger.info("Uploaded %s with %d chunks (ID: %s)", filename, len(points), document.id)
    return IngestionResult(
        document=document,
        chunk_count=len(chunks),
        vector_count=len(vectors),
        embedding_dimension=len(vectors[0]) if vectors else 0,
    )


async def ingest_file(
    context: AppContext,
    path: Path,
    deadline: Deadline | None = None,
) -> IngestionResult:
    text = await asyncio.to_thread(read_source, path)
    return await ingest_text(context, text, path.name, deadline=deadline)


async def run_ingestion_pipeline(
    context: AppContext,
    sources: list[Path] | None = None,
) -> dict:
    """Run batch ingestion over the configured source files.

    Steps:
    1. Verify (or create) the collection; a schema mismatch halts the run
    2. For each source, skip it if its filename is already recorded
    3. Read, chunk, embed and store it
    4. Log and count per-file failures, then move on

    Returns a summary dict with counts.
    """
    settings = context.settings
    if sources is None:
        sources = settings.source_paths

    await context.vector_index.ensure_collection()
    existing = await context.metadata_store.list_filenames()

    documents_ingested = 0
    documents_skipped = 0
    chunks_stored = 0
    errors = 0

    for path in sources:
        if path.name in existing:
            logger.info("Skipping already ingested: %s", path.name)
            documents_skipped += 1
            continue

        deadline = Deadline.after(settings.finchat_request_timeout)
        try:
            result = await ingest_file(context, path, deadline=deadline)
        except SchemaMismatchError:
            raise
        except Exception as e:
            logger.error("Failed to process %s: %s", path, e)
            errors += 1
            continue

        existing.add(path.name)
        documents_ingested += 1
        chunks_stored += result.chunk_count

    try:
        points_in_collection = await context.vector_index.count()
        logger.info("Collection now has %d points", points_in_collection)
    except Exception as e:
        logger.warning("Could not verify collection state: %s", e)
        points_in_collection = None

    return {
        "documents_ingested": documents_ingested,
        "documents_skipped": documents_skipped,
        "chunks_stored": chunks_stored,
        "errors": errors,
        "total_documents": len(sources),
        "points_in_collection": points_in_collection,
    }


async def find_missing_sources(context: AppContext) -> list[Path]:
    """Configured sources that exist on disk but are not yet recorded."""
    existing = await context.metadata_store.list_filenames()
    return [
        path for path in context.settings.source_paths
        if path.name not in existing and path.exists()
    ]


async def ensure_documents_loaded(context: AppContext) -> bool:
    """Startup check: ingest the configured sources if any is missing.

    Never raises; failures are logged and the service starts without them.
    Returns True when a batch ingestion was run.
    """
    try:
        missing = await find_missing_sources(context)
        if not missing:
            logger.info("All documents are already loaded")
            return False

        logger.info("Found %d missing documents, running loader", len(missing))
        summary = await run_ingestion_pipeline(context)
        logger.info("Documents loaded: %s", summary)
        return True
    except Exception as e:
        logger.error("Error initializing documents: %s", e)
        return False
