"""Request and response bodies for the HTTP API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[Message] = Field(min_length=1)
    document_id: str | None = Field(default=None, alias="documentId")
    user_id: str | None = Field(default=None, alias="userId")

    @field_validator("messages")
    @classmethod
    def last_message_has_content(cls, messages: list[Message]) -> list[Message]:
        if not messages[-1].content.strip():
            raise ValueError("Invalid question content")
        return messages


class ChatResponse(BaseModel):
    content: str


class ProcessingInfo(BaseModel):
    totalChunks: int
    embeddingDimensions: int
    storedPoints: int


class PdfIngestionResponse(BaseModel):
    success: bool = True
    content: str
    documentId: str
    chunks: int
    vectors: int
    filename: str
    processing: ProcessingInfo
