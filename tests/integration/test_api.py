"""Integration tests for the HTTP API using FastAPI's TestClient."""

from unittest.mock import AsyncMock, patch

import fitz
import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from tests.fakes import make_context, make_llm, make_settings

ANSWER = "Personal loans start at 10.5% p.a."


class RateLimited(Exception):
    status_code = 429


def pdf_bytes(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def ctx():
    return make_context(make_settings(), llm=make_llm(ANSWER))


@pytest.fixture
def client(ctx):
    with TestClient(create_app(ctx)) as client:
        yield client
    ctx.metadata_store.close()


def ask(client, content="What are personal loan rates?", **extra):
    return client.post("/api/chat", json={"messages": [{"role": "user", "content": content}], **extra})


class TestChatEndpoint:
    def test_answers_question(self, client):
        response = ask(client)
        assert response.status_code == 200
        assert response.json() == {"content": ANSWER}

    def test_answers_when_index_is_unreachable(self, client, ctx):
        with patch.object(ctx.vector_index, "_get_client", side_effect=ConnectionError("refused")):
            response = ask(client)
        assert response.status_code == 200
        assert response.json()["content"] == ANSWER

    def test_chat_is_logged(self, client, ctx):
        ask(client, documentId="doc-1", userId="alice")

        logs = client.portal.call(ctx.metadata_store.chat_logs)

        assert len(logs) == 1
        assert logs[0].user_id == "alice"
        assert logs[0].document_id == "doc-1"

    def test_invalid_json(self, client):
        response = client.post(
            "/api/chat", content=b"{not json", headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    @pytest.mark.parametrize("body", [{}, {"messages": []}, {"messages": "hi"}])
    def test_messages_required(self, client, body):
        response = client.post("/api/chat", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Messages array is required"}

    def test_blank_question(self, client):
        response = ask(client, content="   ")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid question content"}

    def test_rate_limit_is_passed_through(self, client, ctx):
        ctx.llm.ainvoke = AsyncMock(side_effect=RateLimited("slow down"))
        response = ask(client)
        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded. Please try again later."}

    def test_missing_model(self, client, ctx):
        ctx.llm = None
        response = ask(client)
        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration error"}


class TestPdfEndpoint:
    def test_ingests_pdf(self, client, ctx):
        response = client.post(
            "/api/pdf",
            files={"pdf": ("loans.pdf", pdf_bytes("Gold loans are disbursed within 30 minutes."), "application/pdf")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["filename"] == "loans.pdf"
        assert body["chunks"] == 1
        assert body["vectors"] == 1
        assert "Gold loans" in body["content"]
        assert body["processing"] == {"totalChunks": 1, "embeddingDimensions": 768, "storedPoints": 1}

        document = client.portal.call(ctx.metadata_store.get_document, body["documentId"])
        assert document.filename == "loans.pdf"

    def test_no_file(self, client):
        response = client.post("/api/pdf", files={"other": ("notes.txt", b"hello", "text/plain")})
        assert response.status_code == 400
        assert response.json() == {"error": "No PDF file provided"}

    def test_not_a_pdf(self, client):
        response = client.post("/api/pdf", files={"pdf": ("notes.txt", b"hello", "text/plain")})
        assert response.status_code == 400
        assert response.json() == {"error": "File must be a PDF"}

    def test_blank_pdf(self, client):
        response = client.post("/api/pdf", files={"pdf": ("blank.pdf", pdf_bytes(""), "application/pdf")})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_storage_failure_returns_error_envelope(self, client, ctx):
        with patch.object(ctx.vector_index, "_upsert_batch", side_effect=RuntimeError("disk full")):
            response = client.post(
                "/api/pdf",
                files={"pdf": ("loans.pdf", pdf_bytes("Gold loans are disbursed quickly."), "application/pdf")},
            )

        assert response.status_code == 500
        body = response.json()
        assert set(body) == {"error", "details", "stack", "timestamp"}
        assert "disk full" in body["error"]
        assert client.portal.call(ctx.metadata_store.list_filenames) == set()


class TestStartup:
    def test_ingests_configured_sources(self, tmp_path):
        (tmp_path / "BFS_Share_Price.csv").write_text(
            "Date,Close\n2024-01-01,7200.5\n", encoding="utf-8",
        )
        settings = make_settings(finchat_source_dir=str(tmp_path), finchat_ingest_on_startup=True)
        ctx = make_context(settings, llm=make_llm(ANSWER))

        with TestClient(create_app(ctx)) as client:
            filenames = client.portal.call(ctx.metadata_store.list_filenames)

        assert filenames == {"BFS_Share_Price.csv"}
        ctx.metadata_store.close()
