"""Persistence seams used by the services.

Services only talk to these protocols; `memory` backs tests and
single-process demos, `sql` backs production with async SQLAlchemy.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

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


class TicketStore(Protocol):
    async def add(self, ticket: Ticket) -> Ticket: ...

    async def get(self, ticket_id: str) -> Ticket | None: ...

    async def find(
        self,
        *,
        status: str | None = None,
        agent_id: str | None = None,
        customer_id: str | None = None,
        ai_disabled_reason: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Ticket], int]: ...

    async def save(self, ticket: Ticket) -> Ticket: ...

    async def latest_ticket_number(self, prefix: str) -> str | None: ...


class MessageStore(Protocol):
    async def add(self, message: Message) -> Message: ...

    async def get(self, message_id: str) -> Message | None: ...

    async def list_for_ticket(
        self, ticket_id: str, limit: int | None = None
    ) -> list[Message]: ...


class ChunkStore(Protocol):
    async def add_document(self, document: Document) -> Document: ...

    async def get_document(self, document_id: str) -> Document | None: ...

    async def list_documents(self) -> list[Document]: ...

    async def save_document(self, document: Document) -> Document: ...

    async def delete_document(self, document_id: str) -> bool: ...

    async def add_chunks(self, chunks: list[DocumentChunk]) -> None: ...

    async def list_chunks(self, document_id: str | None = None) -> list[DocumentChunk]: ...


class AiResponseStore(Protocol):
    async def add(self, record: AiResponseRecord) -> AiResponseRecord: ...

    async def list_for_ticket(self, ticket_id: str) -> list[AiResponseRecord]: ...

    async def count(self) -> int: ...


class FeedbackStore(Protocol):
    async def add(self, feedback: AiFeedback) -> AiFeedback: ...

    async def list_for_ticket(self, ticket_id: str) -> list[AiFeedback]: ...


class AgentConfigStore(Protocol):
    """Holds the current agent config; its `active` flag switches the AI agent on or off."""

    async def get_active(self) -> AiAgentConfig | None: ...

    async def save(self, config: AiAgentConfig) -> AiAgentConfig: ...


class AppLogStore(Protocol):
    async def add(self, log: AppLog) -> AppLog: ...

    async def recent(
        self, event_type: str | None = None, limit: int = 50
    ) -> list[AppLog]: ...


@dataclass
class Stores:
    tickets: TicketStore
    messages: MessageStore
    chunks: ChunkStore
    ai_responses: AiResponseStore
    feedback: FeedbackStore
    agent_configs: AgentConfigStore
    app_logs: AppLogStore
