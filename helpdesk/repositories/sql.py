from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.models import (
    AiAgentConfig,
    AiFeedback,
    AiResponseRecord,
    AppLog,
    Document,
    DocumentChunk,
    Message,
    Ticket,
)
from helpdesk.repositories.base import Stores
from helpdesk.utils.time import utc_now


class _SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _merge(self, item):
        async with self._session_factory() as session:
            merged = await session.merge(item)
            await session.commit()
            return merged


class SqlTicketStore(_SqlStore):
    async def add(self, ticket: Ticket) -> Ticket:
        return await self._merge(ticket)

    async def get(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            return await session.get(Ticket, ticket_id)

    async def find(
        self,
        *,
        status: str | None = None,
        agent_id: str | None = None,
        customer_id: str | None = None,
        ai_disabled_reason: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Ticket], int]:
        query = select(Ticket)
        if status is not None:
            query = query.where(Ticket.status == status)
        if agent_id is not None:
            query = query.where(Ticket.agent_id == agent_id)
        if customer_id is not None:
            query = query.where(Ticket.customer_id == customer_id)
        if ai_disabled_reason is not None:
            query = query.where(Ticket.ai_disabled_reason == ai_disabled_reason)
        query = query.order_by(Ticket.created_at.desc())
        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(query.subquery())
            )
            result = await session.execute(query.offset(skip).limit(limit))
            return list(result.scalars().all()), total or 0

    async def latest_ticket_number(self, prefix: str) -> str | None:
        query = select(func.max(Ticket.ticket_number)).where(
            Ticket.ticket_number.startswith(prefix)
        )
        async with self._session_factory() as session:
            return await session.scalar(query)

    async def save(self, ticket: Ticket) -> Ticket:
        ticket.updated_at = utc_now()
        return await self._merge(ticket)


class SqlMessageStore(_SqlStore):
    async def add(self, message: Message) -> Message:
        return await self._merge(message)

    async def get(self, message_id: str) -> Message | None:
        async with self._session_factory() as session:
            return await session.get(Message, message_id)

    async def list_for_ticket(
        self, ticket_id: str, limit: int | None = None
    ) -> list[Message]:
        query = (
            select(Message)
            .where(Message.ticket_id == ticket_id)
            .order_by(Message.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(query)
            items = list(result.scalars().all())
        items.reverse()
        return items


class SqlChunkStore(_SqlStore):
    async def add_document(self, document: Document) -> Document:
        return await self._merge(document)

    async def get_document(self, document_id: str) -> Document | None:
        async with self._session_factory() as session:
            return await session.get(Document, document_id)

    async def list_documents(self) -> list[Document]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document).order_by(Document.created_at.desc())
            )
            return list(result.scalars().all())

    async def save_document(self, document: Document) -> Document:
        return await self._merge(document)

    async def delete_document(self, document_id: str) -> bool:
        async with self._session_factory() as session:
            document = await session.get(Document, document_id)
            if not document:
                return False
            await session.execute(
                delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
            )
            await session.delete(document)
            await session.commit()
            return True

    async def add_chunks(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        async with self._session_factory() as session:
            session.add_all(chunks)
            await session.commit()

    async def list_chunks(self, document_id: str | None = None) -> list[DocumentChunk]:
        query = select(DocumentChunk).order_by(
            DocumentChunk.document_id, DocumentChunk.index
        )
        if document_id is not None:
            query = query.where(DocumentChunk.document_id == document_id)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())


class SqlAiResponseStore(_SqlStore):
    async def add(self, record: AiResponseRecord) -> AiResponseRecord:
        return await self._merge(record)

    async def list_for_ticket(self, ticket_id: str) -> list[AiResponseRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AiResponseRecord)
                .where(AiResponseRecord.ticket_id == ticket_id)
                .order_by(AiResponseRecord.created_at.asc())
            )
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._session_factory() as session:
            total = await session.scalar(select(func.count(AiResponseRecord.id)))
            return total or 0


class SqlFeedbackStore(_SqlStore):
    async def add(self, feedback: AiFeedback) -> AiFeedback:
        return await self._merge(feedback)

    async def list_for_ticket(self, ticket_id: str) -> list[AiFeedback]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AiFeedback)
                .where(AiFeedback.ticket_id == ticket_id)
                .order_by(AiFeedback.created_at.asc())
            )
            return list(result.scalars().all())


class SqlAgentConfigStore(_SqlStore):
    async def get_active(self) -> AiAgentConfig | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AiAgentConfig).order_by(AiAgentConfig.created_at.desc())
            )
            return result.scalars().first()

    async def save(self, config: AiAgentConfig) -> AiAgentConfig:
        return await self._merge(config)


class SqlAppLogStore(_SqlStore):
    async def add(self, log: AppLog) -> AppLog:
        async with self._session_factory() as session:
            session.add(log)
            await session.commit()
            return log

    async def recent(
        self, event_type: str | None = None, limit: int = 50
    ) -> list[AppLog]:
        query = select(AppLog)
        if event_type is not None:
            query = query.where(AppLog.event_type == event_type)
        query = query.order_by(AppLog.created_at.desc()).limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())


def build_sql_stores(session_factory: async_sessionmaker[AsyncSession]) -> Stores:
    return Stores(
        tickets=SqlTicketStore(session_factory),
        messages=SqlMessageStore(session_factory),
        chunks=SqlChunkStore(session_factory),
        ai_responses=SqlAiResponseStore(session_factory),
        feedback=SqlFeedbackStore(session_factory),
        agent_configs=SqlAgentConfigStore(session_factory),
        app_logs=SqlAppLogStore(session_factory),
    )
