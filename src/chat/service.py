"""Chat turn handling: retrieve context, call the chat model, log the exchange."""

import logging
from dataclasses import dataclass

import anthropic
import groq
import httpx
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from src.errors import DeadlineExceededError, GenerationServiceError
from src.metadata.store import MetadataStore
from src.retrieval.retriever import ContextRetriever
from src.runtime.deadline import Deadline

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an AI assistant specialized in financial services.{context}
You help users with queries about loans, insurance, credit cards, EMI, and investments.
1. Answer customer queries on loans, insurance, credit cards, EMI, etc.
2. Ask questions to check user eligibility and suggest suitable loan products.
3. Give investment suggestions based on user preferences, risk profile, or current market trends.
Always keep your responses clear, concise, and helpful. If appropriate, ask follow-up questions to better assist the user."""

CONNECTION_ERRORS = (
    httpx.TransportError,
    groq.APIConnectionError,
    anthropic.APIConnectionError,
    ConnectionError,
)


@dataclass
class ChatMessage:
    role: str
    content: str


@dataclass
class ChatReply:
    """An answer plus the document context it was grounded on ("" if none)."""

    content: str
    context: str


def build_system_prompt(context: str) -> str:
    if context:
        context = f"\n\nRelevant document context:\n{context}"
    return SYSTEM_PROMPT.format(context=context)


def to_langchain_messages(system_prompt: str, messages: list[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for message in messages:
        if message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        elif message.role == "system":
            converted.append(SystemMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def classify_generation_error(error: Exception) -> GenerationServiceError:
    """Map a chat model failure to the status the chat endpoint responds with."""
    status = getattr(error, "status_code", None)
    if status == 401:
        return GenerationServiceError(500, "Invalid API key")
    if status == 429:
        return GenerationServiceError(429, "Rate limit exceeded. Please try again later.")
    if isinstance(error, DeadlineExceededError) or isinstance(error, CONNECTION_ERRORS):
        return GenerationServiceError(503, "Network error. Please check your connection.")
    return GenerationServiceError(500, "Failed to generate response")


def _response_text(content) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return ""


class ChatService:
    def __init__(
        self,
        retriever: ContextRetriever,
        llm: BaseChatModel | None,
        metadata_store: MetadataStore | None = None,
        timeout: float | None = 60.0,
    ):
        self._retriever = retriever
        self._llm = llm
        self._metadata_store = metadata_store
        self._timeout = timeout

    async def reply(
        self,
        messages: list[ChatMessage],
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> str:
        """Answer the last message and return the answer text."""
        result = await self.answer(messages, document_id=document_id, user_id=user_id)
        return result.content

    async def answer(
        self,
        messages: list[ChatMessage],
        document_id: str | None = None,
        user_id: str | None = None,
    ) -> ChatReply:
        """Answer the last message, grounded on retrieved chunks when available.

        Raises:
            GenerationServiceError: The chat model is unavailable or failed.
        """
        if self._llm is None:
            logger.error("Chat model is not configured")
            raise GenerationServiceError(500, "Server configuration error")

        deadline = Deadline.after(self._timeout)
        question = messages[-1].content

        context = await self._retriever.retrieve(question, document_id=document_id, deadline=deadline)
        prompt = to_langchain_messages(build_system_prompt(context), messages)

        try:
            response = await deadline.run(self._llm.ainvoke(prompt))
        except Exception as e:
            logger.error("Chat model error: %s", e)
            raise classify_generation_error(e) from e

        answer = _response_text(response.content)
        if not answer:
            logger.error("Invalid response from chat model: %r", response)
            raise GenerationServiceError(500, "Invalid response from LLM service")

        await self._log_exchange(question, answer, user_id, document_id)
        return ChatReply(content=answer, context=context)

    async def _log_exchange(
        self, question: str, answer: str, user_id: str | None, document_id: str | None
    ) -> None:
        if self._metadata_store is None:
            return
        try:
            await self._metadata_store.log_chat(
                question, answer, user_id=user_id, document_id=document_id,
            )
        except Exception as e:
            logger.error("Error saving chat log: %s", e)
