from __future__ import annotations

from datetime import datetime, timezone

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


def _created_key(item) -> datetime:
    return item.created_at or datetime.min.replace(tzinfo=timezone.utc)


class InMemoryTicketStore:
    def __init__(self) -> None:
        self._tickets: dict[str, Ticket] = {}

    async def add(self, ticket: Ticket) -> Ticket:
        self._tickets[ticket.id] = ticket
        return ticket

    async def get(self, ticket_id: str) -> Ticket | None:
        return self._tickets.get(ticket_id)

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
        items = [
            ticket
            for ticket in self._tickets.values()
            if (status is None or ticket.status == status)
            and (agent_id is None or ticket.agent_id == agent_id)
            and (customer_id is None or ticket.customer_id == customer_id)
            and (
                ai_disabled_reason is None
                or ticket.ai_disabled_reason == ai_disabled_reason
            )
        ]
        items.sort(key=_created_key, reverse=True)
        return items[skip : skip + limit], len(items)

    async def latest_ticket_number(self, prefix: str) -> str | None:
        numbers = [
            ticket.ticket_number
            for ticket in self._tickets.values()
            if ticket.ticket_number.startswith(prefix)
        ]
        return max(numbers, default=None)

    async def save(self, ticket: Ticket) -> Ticket:
        ticket.updated_at = utc_now()
        self._tickets[ticket.id] = ticket
        return ticket


class InMemoryMessageStore:
    def __init__(self) -> None:
        self._messages: list[Message] = []

    async def add(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    async def get(self, message_id: str) -> Message | None:
        return next((item for item in self._messages if item.id == message_id), None)

    async def list_for_ticket(
        self, ticket_id: str, limit: int | None = None
    ) -> list[Message]:
        items = sorted(
            (item for item in self._messages if item.ticket_id == ticket_id),
            key=_created_key,
        )
        if limit is not None:
            items = items[-limit:]
        return items


class InMemoryChunkStore:
    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._chunks: list[DocumentChunk] = []

    async def add_document(self, document: Document) -> Document:
        self._documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def list_documents(self) -> list[Document]:
        return sorted(self._documents.values(), key=_created_key, reverse=True)

    async def save_document(self, document: Document) -> Document:
        self._documents[document.id] = document
        return document

    async def delete_document(self, document_id: str) -> bool:
        if self._documents.pop(document_id, None) is None:
            return False
        self._chunks = [chunk for chunk in self._chunks if chunk.document_id != document_id]
        return True

    async def add_chunks(self, chunks: list[DocumentChunk]) -> None:
        self._chunks.extend(chunks)

    async def list_chunks(self, document_id: str | None = None) -> list[DocumentChunk]:
        if document_id is None:
            return list(self._chunks)
        return [chunk for chunk in self._chunks if chunk.document_id == document_id]


class InMemoryAiResponseStore:
    def __init__(self) -> None:
        self._records: list[AiResponseRecord] = []

    async def add(self, record: AiResponseRecord) -> AiResponseRecord:
        self._records.append(record)
        return record

    async def list_for_ticket(self, ticket_id: str) -> list[AiResponseRecord]:
        return [record for record in self._records if record.ticket_id == ticket_id]

    async def count(self) -> int:
        return len(self._records)


class InMemoryFeedbackStore:
    def __init__(self) -> None:
        self._items: list[AiFeedback] = []

    async def add(self, feedback: AiFeedback) -> AiFeedback:
        self._items.append(feedback)
        return feedback

    async def list_for_ticket(self, ticket_id: str) -> list[AiFeedback]:
        return [item for item in self._items if item.ticket_id == ticket_id]


class InMemoryAgentConfigStore:
    def __init__(self, config: AiAgentConfig | None = None) -> None:
        self._config = config

    async def get_active(self) -> AiAgentConfig | None:
        return self._config

    async def save(self, config: AiAgentConfig) -> AiAgentConfig:
        self._config = config
        return config


class InMemoryAppLogStore:
    def __init__(self) -> None:
        self._logs: list[AppLog] = []

    async def add(self, log: AppLog) -> AppLog:
        if log.id is None:
            log.id = len(self._logs) + 1
        if log.created_at is None:
            log.created_at = utc_now()
        self._logs.append(log)
        return log

    async def recent(
        self, event_type: str | None = None, limit: int = 50
    ) -> list[AppLog]:
        items = [
            log for log in self._logs if event_type is None or log.event_type == event_type
        ]
        return list(reversed(items))[:limit]


def build_memory_stores(agent_config: AiAgentConfig | None = None) -> Stores:
    return Stores(
        tickets=InMemoryTicketStore(),
        messages=InMemoryMessageStore(),
        chunks=InMemoryChunkStore(),
        ai_responses=InMemoryAiResponseStore(),
        feedback=InMemoryFeedbackStore(),
        agent_configs=InMemoryAgentConfigStore(agent_config),
        app_logs=InMemoryAppLogStore(),
    )
