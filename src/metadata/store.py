"""Relational metadata store for ingested documents and chat logs.

Records are keyed by document id; filenames are used to detect sources that
were already ingested. SQLAlchemy sessions are synchronous, so each call runs
in a worker thread and is awaited under the caller's deadline.
"""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from src.models.document import Document
from src.runtime.deadline import Deadline

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DocumentRecord(Base):
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    filename: Mapped[str] = mapped_column(String(255), index=True)
    vector_id: Mapped[str] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def to_document(self) -> Document:
        return Document(
            id=self.id,
            filename=self.filename,
            vector_id=self.vector_id,
            created_at=self.created_at,
        )


class ChatLogRecord(Base):
    __tablename__ = "chat_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), default="anonymous")
    document_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    message: Mapped[str] = mapped_column(Text)
    response: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class MetadataStore:
    """Document and chat log records over any SQLAlchemy database URL."""

    def __init__(self, database_url: str = "sqlite:///./data/finchat.db"):
        kwargs = {}
        if database_url.startswith("sqlite"):
            # Worker threads share the connection; in-memory databases need a single one
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url == "sqlite://":
                kwargs["poolclass"] = StaticPool
        self._engine = create_engine(database_url, **kwargs)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    async def _call(self, deadline: Deadline | None, func, *args):
        deadline = deadline or Deadline.never()
        return await deadline.run(asyncio.to_thread(func, *args))

    def _session(self) -> Session:
        return self._session_factory()

    def _create_tables_sync(self) -> None:
        Base.metadata.create_all(self._engine)

    async def create_tables(self, deadline: Deadline | None = None) -> None:
        await self._call(deadline, self._create_tables_sync)

    def _list_filenames_sync(self) -> set[str]:
        with self._session() as session:
            return set(session.scalars(select(DocumentRecord.filename)).all())

    async def list_filenames(self, deadline: Deadline | None = None) -> set[str]:
        """Return the filenames of every ingested document."""
        return await self._call(deadline, self._list_filenames_sync)

    async def has_filename(self, filename: str, deadline: Deadline | None = None) -> bool:
        return filename in await self.list_filenames(deadline=deadline)

    def _add_document_sync(self, document: Document) -> None:
        with self._session() as session, session.begin():
            session.add(DocumentRecord(
                id=document.id,
                filename=document.filename,
                vector_id=document.vector_id,
                created_at=document.created_at,
            ))

    async def add_document(self, document: Document, deadline: Deadline | None = None) -> None:
        await self._call(deadline, self._add_document_sync, document)
        logger.info("Created document record %s for %s", document.id, document.filename)

    def _get_document_sync(self, document_id: str) -> Document | None:
        with self._session() as session:
            record = session.get(DocumentRecord, document_id)
            return record.to_document() if record else None

    async def get_document(self, document_id: str, deadline: Deadline | None = None) -> Document | None:
        return await self._call(deadline, self._get_document_sync, document_id)

    def _remove_document_sync(self, document_id: str) -> None:
        with self._session() as session, session.begin():
            session.execute(delete(DocumentRecord).where(DocumentRecord.id == document_id))

    async def remove_document(self, document_id: str, deadline: Deadline | None = None) -> None:
        await self._call(deadline, self._remove_document_sync, document_id)

    def _log_chat_sync(self, user_id: str, message: str, response: str, document_id: str | None) -> None:
        with self._session() as session, session.begin():
            session.add(ChatLogRecord(
                user_id=user_id,
                message=message,
                response=response,
                document_id=document_id,
            ))

    async def log_chat(
        self,
        message: str,
        response: str,
        user_id: str | None = None,
        document_id: str | None = None,
        deadline: Deadline | None = None,
    ) -> None:
        """Persist one question/answer exchange."""
        await self._call(
            deadline, self._log_chat_sync, user_id or "anonymous", message, response, document_id,
        )

    def _chat_logs_sync(self, user_id: str | None) -> list[ChatLogRecord]:
        with self._session() as session:
            query = select(ChatLogRecord).order_by(ChatLogRecord.id)
            if user_id:
                query = query.where(ChatLogRecord.user_id == user_id)
            return list(session.scalars(query).all())

    async def chat_logs(self, user_id: str | None = None, deadline: Deadline | None = None) -> list[ChatLogRecord]:
        return await self._call(deadline, self._chat_logs_sync, user_id)

    def close(self) -> None:
        self._engine.dispose()
