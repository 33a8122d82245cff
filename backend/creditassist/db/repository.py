"""
Storage backends for chat messages and documents.

Two variants implement the same Repository interface:
- SqlRepository: durable, SQLAlchemy async (SQLite or PostgreSQL)
- MemoryRepository: ephemeral, process memory only (lost on restart)

One of them is built at startup from settings.STORAGE_BACKEND and injected
into the services. Callers never switch backends per call.
"""

import abc
import uuid
import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import select, delete, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from creditassist.core.exceptions import NotFoundError
from creditassist.core.time_utils import get_utc_now
from creditassist.models.chat_message import ChatMessage, SenderRole
from creditassist.models.document import Document, DocumentStatus

logger = structlog.get_logger()

DOCUMENT_UPDATABLE_FIELDS = {"analysis_text", "report_pdf_path", "admin_review", "status"}


class MonotonicClock:
    """
    Hands out strictly increasing UTC timestamps so created_at alone orders a
    conversation, even for messages written within the same clock tick.
    """

    def __init__(self):
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        now = get_utc_now()
        if self._last is not None and now <= self._last:
            now = self._last + timedelta(microseconds=1)
        self._last = now
        return now


class Repository(abc.ABC):
    """Persistent store used by the core services."""

    def __init__(self, support_email: str):
        self.support_email = support_email
        self.clock = MonotonicClock()

    # Chat messages
    @abc.abstractmethod
    async def create_message(
        self,
        sender_name: str,
        sender_email: str,
        body: str,
        sender_role: SenderRole,
        escalation_flag: bool = False,
        thread_email: Optional[str] = None,
    ) -> ChatMessage: ...

    @abc.abstractmethod
    async def list_messages(self) -> List[ChatMessage]:
        """Every stored message, oldest first."""

    @abc.abstractmethod
    async def list_conversation(self, email: str) -> List[ChatMessage]:
        """
        Messages sent by `email` plus support-identity replies in that
        visitor's thread (or with no thread recorded), oldest first.
        """

    # Documents
    @abc.abstractmethod
    async def create_document(
        self,
        visitor_email: str,
        visitor_name: str,
        file_name: str,
        file_type: str,
        stored_file_path: str,
        visitor_time_zone: Optional[str] = None,
        visitor_local_date_label: Optional[str] = None,
    ) -> Document: ...

    @abc.abstractmethod
    async def get_document(self, document_id: str) -> Optional[Document]: ...

    @abc.abstractmethod
    async def list_documents(self, email: Optional[str] = None) -> List[Document]:
        """Documents newest first, optionally for one visitor."""

    @abc.abstractmethod
    async def update_document(self, document_id: str, **fields) -> Document: ...

    @abc.abstractmethod
    async def delete_document(self, document_id: str) -> Optional[Document]: ...

    @abc.abstractmethod
    async def clear_visitor(self, email: str) -> Tuple[int, List[Document]]:
        """
        Delete a visitor's conversation and documents.
        Returns (messages_deleted, deleted_documents).
        """

    @staticmethod
    def _check_fields(fields: dict):
        unknown = set(fields) - DOCUMENT_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update document fields: {sorted(unknown)}")


class SqlRepository(Repository):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], support_email: str, engine=None):
        super().__init__(support_email)
        self.session_factory = session_factory
        self.engine = engine

    def _conversation_clause(self, email: str):
        return or_(
            ChatMessage.sender_email == email,
            and_(
                ChatMessage.sender_email == self.support_email,
                or_(ChatMessage.thread_email == email, ChatMessage.thread_email.is_(None)),
            ),
        )

    async def create_message(self, sender_name, sender_email, body, sender_role,
                             escalation_flag=False, thread_email=None) -> ChatMessage:
        async with self.session_factory() as session:
            message = ChatMessage(
                id=str(uuid.uuid4()),
                sender_name=sender_name,
                sender_email=sender_email,
                body=body,
                sender_role=sender_role,
                escalation_flag=escalation_flag,
                thread_email=thread_email,
                created_at=self.clock.now(),
            )
            session.add(message)
            await session.commit()
            return message

    async def list_messages(self) -> List[ChatMessage]:
        async with self.session_factory() as session:
            stmt = select(ChatMessage).order_by(ChatMessage.created_at)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_conversation(self, email: str) -> List[ChatMessage]:
        async with self.session_factory() as session:
            stmt = select(ChatMessage).where(
                self._conversation_clause(email)
            ).order_by(ChatMessage.created_at)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create_document(self, visitor_email, visitor_name, file_name, file_type,
                              stored_file_path, visitor_time_zone=None,
                              visitor_local_date_label=None) -> Document:
        async with self.session_factory() as session:
            document = Document(
                id=str(uuid.uuid4()),
                visitor_email=visitor_email,
                visitor_name=visitor_name,
                file_name=file_name,
                file_type=file_type,
                stored_file_path=stored_file_path,
                analysis_text=None,
                report_pdf_path=None,
                admin_review=None,
                status=DocumentStatus.PENDING,
                visitor_time_zone=visitor_time_zone,
                visitor_local_date_label=visitor_local_date_label,
                created_at=self.clock.now(),
            )
            session.add(document)
            await session.commit()
            return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        async with self.session_factory() as session:
            return await session.get(Document, document_id)

    async def list_documents(self, email: Optional[str] = None) -> List[Document]:
        async with self.session_factory() as session:
            stmt = select(Document).order_by(Document.created_at.desc())
            if email:
                stmt = stmt.where(Document.visitor_email == email)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_document(self, document_id: str, **fields) -> Document:
        self._check_fields(fields)
        async with self.session_factory() as session:
            document = await session.get(Document, document_id)
            if not document:
                raise NotFoundError(f"Document {document_id} not found")
            for key, value in fields.items():
                setattr(document, key, value)
            await session.commit()
            return document

    async def delete_document(self, document_id: str) -> Optional[Document]:
        async with self.session_factory() as session:
            document = await session.get(Document, document_id)
            if not document:
                return None
            await session.delete(document)
            await session.commit()
            return document

    async def clear_visitor(self, email: str) -> Tuple[int, List[Document]]:
        async with self.session_factory() as session:
            # Only this visitor's thread; legacy unthreaded support rows are shared
            msg_stmt = delete(ChatMessage).where(
                or_(ChatMessage.sender_email == email, ChatMessage.thread_email == email)
            )
            msg_result = await session.execute(msg_stmt)

            doc_result = await session.execute(select(Document).where(Document.visitor_email == email))
            documents = list(doc_result.scalars().all())
            for document in documents:
                await session.delete(document)

            await session.commit()
            return msg_result.rowcount or 0, documents


class MemoryRepository(Repository):
    """
    Ephemeral backend. Same semantics as SqlRepository, nothing survives a
    restart. Used when no database is configured and in tests.
    """

    def __init__(self, support_email: str):
        super().__init__(support_email)
        self._messages: Dict[str, ChatMessage] = {}
        self._documents: Dict[str, Document] = {}
        self._lock = asyncio.Lock()

    def _in_conversation(self, message: ChatMessage, email: str) -> bool:
        if message.sender_email == email:
            return True
        return message.sender_email == self.support_email and message.thread_email in (email, None)

    async def create_message(self, sender_name, sender_email, body, sender_role,
                             escalation_flag=False, thread_email=None) -> ChatMessage:
        async with self._lock:
            message = ChatMessage(
                id=str(uuid.uuid4()),
                sender_name=sender_name,
                sender_email=sender_email,
                body=body,
                sender_role=sender_role,
                escalation_flag=escalation_flag,
                thread_email=thread_email,
                created_at=self.clock.now(),
            )
            self._messages[message.id] = message
            return message

    async def list_messages(self) -> List[ChatMessage]:
        return sorted(self._messages.values(), key=lambda m: m.created_at)

    async def list_conversation(self, email: str) -> List[ChatMessage]:
        return [m for m in await self.list_messages() if self._in_conversation(m, email)]

    async def create_document(self, visitor_email, visitor_name, file_name, file_type,
                              stored_file_path, visitor_time_zone=None,
                              visitor_local_date_label=None) -> Document:
        async with self._lock:
            document = Document(
                id=str(uuid.uuid4()),
                visitor_email=visitor_email,
                visitor_name=visitor_name,
                file_name=file_name,
                file_type=file_type,
                stored_file_path=stored_file_path,
                analysis_text=None,
                report_pdf_path=None,
                admin_review=None,
                status=DocumentStatus.PENDING,
                visitor_time_zone=visitor_time_zone,
                visitor_local_date_label=visitor_local_date_label,
                created_at=self.clock.now(),
            )
            self._documents[document.id] = document
            return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    async def list_documents(self, email: Optional[str] = None) -> List[Document]:
        documents = [d for d in self._documents.values() if not email or d.visitor_email == email]
        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    async def update_document(self, document_id: str, **fields) -> Document:
        self._check_fields(fields)
        async with self._lock:
            document = self._documents.get(document_id)
            if not document:
                raise NotFoundError(f"Document {document_id} not found")
            for key, value in fields.items():
                setattr(document, key, value)
            return document

    async def delete_document(self, document_id: str) -> Optional[Document]:
        async with self._lock:
            return self._documents.pop(document_id, None)

    async def clear_visitor(self, email: str) -> Tuple[int, List[Document]]:
        async with self._lock:
            doomed = [
                m.id for m in self._messages.values()
                if m.sender_email == email or m.thread_email == email
            ]
            for message_id in doomed:
                del self._messages[message_id]

            documents = [d for d in self._documents.values() if d.visitor_email == email]
            for document in documents:
                del self._documents[document.id]
            return len(doomed), documents


async def build_repository(settings) -> Repository:
    """
    Select the storage backend once, at startup.
    """
    if settings.STORAGE_BACKEND == "ephemeral":
        logger.warning("storage_backend_ephemeral", message="Data will not survive a restart.")
        return MemoryRepository(settings.SUPPORT_EMAIL)

    from creditassist.db.session import build_engine, build_session_factory
    from creditassist.db.init_db import create_tables

    engine = build_engine(settings.DATABASE_URL, echo=False)
    await create_tables(engine)
    repository = SqlRepository(build_session_factory(engine), settings.SUPPORT_EMAIL, engine=engine)
    logger.info("storage_backend_durable", url=engine.url.render_as_string(hide_password=True))
    return repository


async def dispose_repository(repository: Repository):
    engine = getattr(repository, "engine", None)
    if engine is not None:
        await engine.dispose()
