"""Integration tests for the ingestion pipeline.

Runs the full flow (read, chunk, embed, record, upsert) against an
in-process Chroma index and in-memory SQLite, with a fake embedding model.
"""

import time
from unittest.mock import patch

import fitz
import pytest

from src.errors import EmptyDocumentError, InvalidEmbeddingError, SchemaMismatchError, UpsertError
from src.ingestion.pipeline import (
    ensure_documents_loaded,
    find_missing_sources,
    ingest_text,
    run_ingestion_pipeline,
)
from src.models.point import point_id_for
from src.runtime.deadline import Deadline
from src.vectorstore.chroma_store import VectorIndex
from tests.fakes import FakeEmbedder, fake_vector, make_context

LOAN_TEXT = (
    "Personal loans are available from 1 lakh to 40 lakh with tenures up to 84 months. "
    "Interest rates start at 10.5% per annum and depend on the applicant's credit score.\n\n"
)


@pytest.fixture
def sources(tmp_path):
    pdf_path = tmp_path / "01.pdf"
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Gold loans are disbursed within 30 minutes.")
    doc.save(pdf_path)
    doc.close()

    csv_path = tmp_path / "BFS_Share_Price.csv"
    csv_path.write_text("Date,Close\n2024-01-01,7200.5\n2024-01-02,7180\n", encoding="utf-8")
    return [pdf_path, csv_path]


class TestIngestText:
    @pytest.mark.asyncio
    async def test_stores_points_and_record(self, context):
        await context.vector_index.ensure_collection()

        result = await ingest_text(context, LOAN_TEXT * 20, "loans.pdf")

        assert result.chunk_count > 1
        assert result.vector_count == result.chunk_count
        assert result.embedding_dimension == 768
        assert await context.vector_index.count() == result.chunk_count
        assert await context.metadata_store.list_filenames() == {"loans.pdf"}

    @pytest.mark.asyncio
    async def test_points_are_searchable_by_document(self, context):
        await context.vector_index.ensure_collection()
        first = await ingest_text(context, LOAN_TEXT, "loans.pdf")
        await ingest_text(context, LOAN_TEXT, "copy.pdf")

        hits = await context.vector_index.search(
            fake_vector(LOAN_TEXT), limit=5, document_id=first.document.id,
        )

        assert hits
        assert hits[0].id == point_id_for(first.document.id, 0)
        assert all(h.payload["documentId"] == first.document.id for h in hits)
        assert hits[0].payload["filename"] == "loans.pdf"
        assert hits[0].payload["chunkIndex"] == 0

    @pytest.mark.asyncio
    async def test_blank_text(self, context):
        await context.vector_index.ensure_collection()
        with pytest.raises(EmptyDocumentError):
            await ingest_text(context, "   \n  ", "blank.pdf")
        assert await context.metadata_store.list_filenames() == set()

    @pytest.mark.asyncio
    async def test_failed_upsert_removes_record(self, context):
        await context.vector_index.ensure_collection()
        with patch.object(context.vector_index, "_upsert_batch", side_effect=RuntimeError("down")):
            with pytest.raises(UpsertError):
                await ingest_text(context, LOAN_TEXT, "loans.pdf")
        assert await context.metadata_store.list_filenames() == set()

    @pytest.mark.asyncio
    async def test_timed_out_upsert_removes_record(self, context):
        await context.vector_index.ensure_collection()

        def slow_batch(batch):
            time.sleep(0.5)

        with patch.object(context.vector_index, "_upsert_batch", side_effect=slow_batch):
            with pytest.raises(UpsertError):
                await ingest_text(context, LOAN_TEXT, "loans.pdf", deadline=Deadline.after(0.2))

        assert await context.metadata_store.list_filenames() == set()

    @pytest.mark.asyncio
    async def test_rejected_vectors_remove_record(self, settings):
        ctx = make_context(settings, embedder=FakeEmbedder(dimension=384))
        await ctx.metadata_store.create_tables()
        await ctx.vector_index.ensure_collection()

        with pytest.raises(InvalidEmbeddingError):
            await ingest_text(ctx, LOAN_TEXT, "loans.pdf")

        assert await ctx.metadata_store.list_filenames() == set()
        assert await ctx.vector_index.count() == 0
        await ctx.aclose()


class TestRunIngestionPipeline:
    @pytest.mark.asyncio
    async def test_ingests_pdf_and_csv(self, context, sources):
        summary = await run_ingestion_pipeline(context, sources=sources)

        assert summary["documents_ingested"] == 2
        assert summary["documents_skipped"] == 0
        assert summary["errors"] == 0
        assert summary["total_documents"] == 2
        assert summary["points_in_collection"] == summary["chunks_stored"]
        assert await context.metadata_store.list_filenames() == {"01.pdf", "BFS_Share_Price.csv"}

    @pytest.mark.asyncio
    async def test_second_run_skips_everything(self, context, sources, fake_embedder):
        first = await run_ingestion_pipeline(context, sources=sources)
        calls_after_first = len(fake_embedder.calls)

        second = await run_ingestion_pipeline(context, sources=sources)

        assert second["documents_ingested"] == 0
        assert second["documents_skipped"] == 2
        assert second["points_in_collection"] == first["points_in_collection"]
        assert len(fake_embedder.calls) == calls_after_first

    @pytest.mark.asyncio
    async def test_failed_file_does_not_stop_the_run(self, context, sources, tmp_path):
        summary = await run_ingestion_pipeline(context, sources=[tmp_path / "02.pdf", *sources])

        assert summary["errors"] == 1
        assert summary["documents_ingested"] == 2

    @pytest.mark.asyncio
    async def test_schema_mismatch_halts_before_any_write(self, context, sources, fake_embedder):
        wrong = VectorIndex(
            path=":memory:", collection_name=context.vector_index.collection_name, dimension=384,
        )
        wrong._client = context.vector_index._get_client()
        await wrong.ensure_collection()

        with pytest.raises(SchemaMismatchError):
            await run_ingestion_pipeline(context, sources=sources)

        assert fake_embedder.calls == []
        assert await context.metadata_store.list_filenames() == set()


    @pytest.mark.asyncio
    async def test_file_is_retried_after_failed_upsert(self, context, sources):
        with patch.object(context.vector_index, "_upsert_batch", side_effect=RuntimeError("down")):
            failed = await run_ingestion_pipeline(context, sources=sources)
        assert failed["errors"] == 2

        retried = await run_ingestion_pipeline(context, sources=sources)

        assert retried["documents_ingested"] == 2
        assert retried["documents_skipped"] == 0


class TestEnsureDocumentsLoaded:
    @pytest.mark.asyncio
    async def test_loads_missing_sources(self, context, sources):
        context.settings.finchat_source_dir = str(sources[0].parent)

        assert await find_missing_sources(context) == sources
        assert await ensure_documents_loaded(context)
        assert await find_missing_sources(context) == []
        assert not await ensure_documents_loaded(context)

    @pytest.mark.asyncio
    async def test_nothing_on_disk(self, context, tmp_path):
        context.settings.finchat_source_dir = str(tmp_path)
        assert not await ensure_documents_loaded(context)

    @pytest.mark.asyncio
    async def test_never_raises(self, context, sources):
        context.settings.finchat_source_dir = str(sources[0].parent)
        with patch.object(context.vector_index, "_get_client", side_effect=ConnectionError("refused")):
            assert not await ensure_documents_loaded(context)
