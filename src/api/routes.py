"""Chat and PDF ingestion endpoints."""

import asyncio
import logging
import traceback
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.api.schemas import ChatRequest, ChatResponse, PdfIngestionResponse, ProcessingInfo
from src.chat.service import ChatMessage, ChatService
from src.errors import EmptyDocumentError, GenerationServiceError, InvalidInputError
from src.ingestion.pipeline import ingest_text
from src.ingestion.readers import read_pdf_bytes
from src.retrieval.retriever import ContextRetriever
from src.runtime.context import AppContext
from src.runtime.deadline import Deadline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

PREVIEW_LENGTH = 1000


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_chat_service(context: AppContext = Depends(get_context)) -> ChatService:
    retriever = ContextRetriever(
        context.vector_index,
        context.embedder,
        context.fallback_embedder,
        limit=context.settings.finchat_search_limit,
    )
    return ChatService(
        retriever,
        context.llm,
        metadata_store=context.metadata_store,
        timeout=context.settings.finchat_request_timeout,
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, service: ChatService = Depends(get_chat_service)):
    """Answer the last user message, grounded on indexed documents when possible."""
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Invalid JSON in chat request body")
        return _error(400, "Invalid request body")

    messages = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(messages, list) or not messages:
        return _error(400, "Messages array is required")

    try:
        chat_request = ChatRequest.model_validate(body)
    except ValidationError as e:
        logger.warning("Invalid chat request: %s", e)
        return _error(400, "Invalid question content")

    try:
        answer = await service.reply(
            [ChatMessage(role=m.role, content=m.content) for m in chat_request.messages],
            document_id=chat_request.document_id,
            user_id=chat_request.user_id,
        )
    except GenerationServiceError as e:
        return _error(e.status_code, e.message)
    except Exception:
        logger.exception("Error in chat route")
        return _error(500, "Failed to process your request")

    return ChatResponse(content=answer)


def _failure(context: AppContext, error: Exception) -> JSONResponse:
    message = str(error) or type(error).__name__
    stack = traceback.format_exc() if context.settings.finchat_expose_error_stack else ""
    return JSONResponse(
        {
            "error": message,
            "details": message,
            "stack": stack,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        status_code=500,
    )


@router.post("/pdf", response_model=PdfIngestionResponse)
async def upload_pdf(
    pdf: UploadFile | None = File(default=None),
    context: AppContext = Depends(get_context),
):
    """Ingest an uploaded PDF and return the new document id."""
    if pdf is None:
        return _error(400, "No PDF file provided")
    if "pdf" not in (pdf.content_type or ""):
        return _error(400, "File must be a PDF")

    filename = pdf.filename or "upload.pdf"
    data = await pdf.read()
    logger.info("Processing PDF: %s (%d bytes)", filename, len(data))

    try:
        text = await asyncio.to_thread(read_pdf_bytes, data, filename)
    except (EmptyDocumentError, InvalidInputError) as e:
        return _error(400, e.message)

    deadline = Deadline.after(context.settings.finchat_request_timeout)
    try:
        await context.vector_index.ensure_collection(deadline=deadline)
        result = await ingest_text(context, text, filename, deadline=deadline)
    except EmptyDocumentError:
        return _error(400, "No valid text chunks found in PDF")
    except Exception as e:
        logger.exception("Error processing PDF %s", filename)
        return _failure(context, e)

    preview = text[:PREVIEW_LENGTH] + ("..." if len(text) > PREVIEW_LENGTH else "")
    return PdfIngestionResponse(
        content=preview,
        documentId=result.document.id,
        chunks=result.chunk_count,
        vectors=result.vector_count,
        filename=filename,
        processing=ProcessingInfo(
            totalChunks=result.chunk_count,
            embeddingDimensions=result.embedding_dimension,
            storedPoints=result.chunk_count,
        ),
    )
