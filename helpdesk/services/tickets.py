from __future__ import annotations

import uuid
from datetime import datetime

import structlog

from helpdesk.core.config import settings
from helpdesk.models import Message, Ticket
from helpdesk.repositories import Stores
from helpdesk.schemas.agent_config import AgentConfig
from helpdesk.schemas.message import MessageCreate
from helpdesk.schemas.ticket import TicketCreate, TicketUpdate
from helpdesk.services.ai_responder import AiResponder
from helpdesk.services.assignment import TicketNotFound
from helpdesk.services.context_memory import ContextMemoryStore
from helpdesk.services.llm_clients import CompletionClient, LLMError
from helpdesk.services.realtime import AGENTS_ROOM, Broadcaster, message_event, ticket_room
from helpdesk.services.summaries import (
    DEFAULT_DESCRIPTION,
    ResolutionSummary,
    TicketDetails,
    generate_resolution_summary,
    generate_ticket_details,
)
from helpdesk.utils.time import isoformat, utc_now

logger = structlog.get_logger(__name__)

REOPENABLE_STATUSES = ("resolved",)


class TicketNumberSequence:
    """YYMMDD followed by a four digit per-day counter, e.g. 2506190001."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}

    @staticmethod
    def day_key(now: datetime | None = None) -> str:
        return (now or utc_now()).strftime("%y%m%d")

    def observe(self, number: str | None) -> None:
        """Never hand out ``number`` or anything below it for the same day."""
        if not number or not number[6:].isdigit():
            return
        key = number[:6]
        self._counters[key] = max(self._counters.get(key, 0), int(number[6:]))

    def next(self, now: datetime | None = None) -> str:
        key = self.day_key(now)
        self._counters[key] = self._counters.get(key, 0) + 1
        return f"{key}{self._counters[key]:04d}"


def ticket_event(ticket: Ticket) -> dict:
    return {
        "id": ticket.id,
        "ticket_number": ticket.ticket_number,
        "title": ticket.title,
        "status": ticket.status,
        "priority": ticket.priority,
        "agent_id": ticket.agent_id,
        "ai_enabled": ticket.ai_enabled,
        "updated_at": isoformat(ticket.updated_at),
    }


class TicketService:
    def __init__(
        self,
        stores: Stores,
        memory: ContextMemoryStore,
        broadcaster: Broadcaster,
        responder: AiResponder | None = None,
        completion: CompletionClient | None = None,
        numbers: TicketNumberSequence | None = None,
    ) -> None:
        self.stores = stores
        self.memory = memory
        self.broadcaster = broadcaster
        self.responder = responder
        self.completion = completion
        self.numbers = numbers or TicketNumberSequence()

    async def create_ticket(self, payload: TicketCreate) -> Ticket:
        now = utc_now()
        self.numbers.observe(
            await self.stores.tickets.latest_ticket_number(self.numbers.day_key(now))
        )
        ticket = Ticket(
            id=str(uuid.uuid4()),
            ticket_number=self.numbers.next(now),
            status="new",
            agent_id=None,
            assigned_at=None,
            ai_enabled=settings.AI_ENABLED,
            ai_disabled_reason=None,
            ai_disabled_at=None,
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        ticket = await self.stores.tickets.add(ticket)
        logger.info("ticket_created", ticket_id=ticket.id, ticket_number=ticket.ticket_number)
        await self.broadcaster.broadcast(AGENTS_ROOM, "new_ticket", ticket_event(ticket))
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self.stores.tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFound(ticket_id)
        return ticket

    async def list_tickets(
        self,
        *,
        status: str | None = None,
        agent_id: str | None = None,
        customer_id: str | None = None,
        ai_disabled_reason: str | None = None,
        skip: int = 0,
        limit: int = 25,
    ) -> tuple[list[Ticket], int]:
        return await self.stores.tickets.find(
            status=status,
            agent_id=agent_id,
            customer_id=customer_id,
            ai_disabled_reason=ai_disabled_reason,
            skip=skip,
            limit=limit,
        )

    async def update_ticket(self, ticket_id: str, payload: TicketUpdate) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(ticket, key, value)
        ticket = await self.stores.tickets.save(ticket)
        if ticket.status == "closed":
            self.memory.evict(ticket.id)
        await self.broadcaster.broadcast(
            ticket_room(ticket.id), "ticket_updated", ticket_event(ticket)
        )
        return ticket

    async def close_ticket(self, ticket_id: str) -> Ticket:
        return await self.update_ticket(ticket_id, TicketUpdate(status="closed"))

    async def list_messages(self, ticket_id: str, limit: int | None = None) -> list[Message]:
        await self.get_ticket(ticket_id)
        return await self.stores.messages.list_for_ticket(ticket_id, limit)

    async def post_message(self, ticket_id: str, payload: MessageCreate) -> Message:
        """Persist and broadcast; the AI reply, if any, arrives later over the socket."""
        ticket = await self.get_ticket(ticket_id)
        message = Message(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            sender_id=payload.sender_id,
            sender_type=payload.sender_type,
            content=payload.content,
            message_type=payload.message_type,
            created_at=utc_now(),
        )
        message = await self.stores.messages.add(message)
        await self.broadcaster.broadcast(
            ticket_room(ticket.id), "new_message", message_event(message)
        )

        if payload.sender_type == "customer" and ticket.status in REOPENABLE_STATUSES:
            ticket.status = "reopened"
            ticket = await self.stores.tickets.save(ticket)
            await self.broadcaster.broadcast(
                ticket_room(ticket.id), "ticket_updated", ticket_event(ticket)
            )

        if (
            payload.sender_type == "customer"
            and payload.message_type == "text"
            and ticket.ai_enabled
            and self.responder is not None
        ):
            self.responder.enqueue(ticket.id, message.id)
        return message

    async def _model(self) -> str:
        return AgentConfig.from_record(await self.stores.agent_configs.get_active()).model

    async def resolution_summary(self, ticket_id: str) -> ResolutionSummary:
        ticket = await self.get_ticket(ticket_id)
        if self.completion is None:
            raise LLMError("Completion client is not configured")
        messages = await self.stores.messages.list_for_ticket(ticket_id)
        return await generate_resolution_summary(
            self.completion, ticket, messages, await self._model()
        )

    async def ticket_details(self, ticket_id: str) -> TicketDetails:
        ticket = await self.get_ticket(ticket_id)
        messages = await self.stores.messages.list_for_ticket(ticket_id)
        if self.completion is None:
            return TicketDetails(
                title=ticket.title,
                description=ticket.description or DEFAULT_DESCRIPTION,
                confidence=0.1,
                response_time_ms=0,
                model_used=await self._model(),
                was_generated=False,
                error="Completion client is not configured",
            )
        return await generate_ticket_details(
            self.completion, messages, await self._model(), existing=ticket
        )
