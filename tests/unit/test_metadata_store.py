"""Unit tests for the SQLAlchemy metadata store (in-memory SQLite)."""

import pytest

from src.metadata.store import MetadataStore
from src.models.document import Document


@pytest.fixture
async def store():
    store = MetadataStore("sqlite://")
    await store.create_tables()
    yield store
    store.close()


class TestDocuments:
    @pytest.mark.asyncio
    async def test_add_and_get(self, store):
        doc = Document(filename="01.pdf")
        await store.add_document(doc)

        loaded = await store.get_document(doc.id)

        assert loaded.id == doc.id
        assert loaded.filename == "01.pdf"
        assert loaded.vector_id == doc.id

    @pytest.mark.asyncio
    async def test_get_unknown(self, store):
        assert await store.get_document("missing") is None

    @pytest.mark.asyncio
    async def test_list_and_has_filename(self, store):
        await store.add_document(Document(filename="01.pdf"))
        await store.add_document(Document(filename="BFS_Share_Price.csv"))

        assert await store.list_filenames() == {"01.pdf", "BFS_Share_Price.csv"}
        assert await store.has_filename("01.pdf")
        assert not await store.has_filename("02.pdf")

    @pytest.mark.asyncio
    async def test_remove(self, store):
        doc = Document(filename="01.pdf")
        await store.add_document(doc)
        await store.remove_document(doc.id)
        assert await store.list_filenames() == set()

    @pytest.mark.asyncio
    async def test_create_tables_is_idempotent(self, store):
        await store.create_tables()
        assert await store.list_filenames() == set()


class TestChatLogs:
    @pytest.mark.asyncio
    async def test_log_defaults_to_anonymous(self, store):
        await store.log_chat("What is EMI?", "Equated monthly instalment.")

        logs = await store.chat_logs()

        assert len(logs) == 1
        assert logs[0].user_id == "anonymous"
        assert logs[0].document_id is None
        assert logs[0].message == "What is EMI?"
        assert logs[0].response == "Equated monthly instalment."

    @pytest.mark.asyncio
    async def test_filter_by_user(self, store):
        await store.log_chat("q1", "a1", user_id="alice", document_id="doc-1")
        await store.log_chat("q2", "a2", user_id="bob")

        logs = await store.chat_logs(user_id="alice")

        assert [log.message for log in logs] == ["q1"]
        assert logs[0].document_id == "doc-1"
