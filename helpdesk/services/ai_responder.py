"""Background AI turns for customer messages.

Each ticket gets a single consumer, so a customer who sends two messages in a
row gets two answers in order rather than two racing completions.
"""
from __future__ import annotations

import asyncio
import uuid
from collections import deque
from typing import Awaitable, Callable

import structlog

from helpdesk.core.config import settings
from helpdesk.models import AiResponseRecord, Message, Ticket
from helpdesk.repositories import Stores
from helpdesk.schemas.agent_config import AgentConfig
from helpdesk.services.app_log_store import log_event
from helpdesk.services.assignment import AssignmentCoordinator, HumanAgent
from helpdesk.services.realtime import Broadcaster, message_event, ticket_room
from helpdesk.services.response_generator import (
    ESCALATION_MESSAGE,
    FALLBACK_MESSAGE,
    RESPONSE_FALLBACK,
    AiDecision,
    ResponseGenerator,
)
from helpdesk.utils.time import utc_now

logger = structlog.get_logger(__name__)

Job = Callable[[], Awaitable[object]]


class TicketWorkQueue:
    def __init__(self) -> None:
        self._pending: dict[str, deque[Job]] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def submit(self, ticket_id: str, job: Job) -> None:
        self._pending.setdefault(ticket_id, deque()).append(job)
        if ticket_id not in self._workers:
            self._workers[ticket_id] = asyncio.create_task(self._drain(ticket_id))

    def pending(self, ticket_id: str) -> int:
        return len(self._pending.get(ticket_id, ()))

    def busy(self, ticket_id: str) -> bool:
        return ticket_id in self._workers

    async def _drain(self, ticket_id: str) -> None:
        jobs = self._pending[ticket_id]
        try:
            while jobs:
                job = jobs.popleft()
                try:
                    await job()
                except Exception:
                    logger.exception("ticket_job_failed", ticket_id=ticket_id)
        finally:
            self._workers.pop(ticket_id, None)
            if not jobs:
                self._pending.pop(ticket_id, None)

    async def join(self) -> None:
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._pending.clear()


class AiResponder:
    def __init__(
        self,
        stores: Stores,
        generator: ResponseGenerator,
        assignment: AssignmentCoordinator,
        broadcaster: Broadcaster,
        queue: TicketWorkQueue | None = None,
        *,
        ai_agent_id: str | None = None,
        ai_enabled: bool | None = None,
    ) -> None:
        self.stores = stores
        self.generator = generator
        self.assignment = assignment
        self.broadcaster = broadcaster
        self.queue = queue or TicketWorkQueue()
        self.ai_agent_id = settings.AI_AGENT_ID if ai_agent_id is None else ai_agent_id
        self.ai_enabled = settings.AI_ENABLED if ai_enabled is None else ai_enabled

    def enqueue(self, ticket_id: str, message_id: str) -> None:
        self.queue.submit(ticket_id, lambda: self.respond(ticket_id, message_id))

    async def respond(self, ticket_id: str, message_id: str) -> AiDecision | None:
        try:
            return await self._respond(ticket_id, message_id)
        except Exception as exc:
            logger.exception("ai_turn_failed", ticket_id=ticket_id, message_id=message_id)
            await log_event(
                self.stores.app_logs,
                level="error",
                event_type="ai_turn_failed",
                message=str(exc),
                data={"ticket_id": ticket_id, "message_id": message_id},
            )
            return None

    async def _respond(self, ticket_id: str, message_id: str) -> AiDecision | None:
        if not self.ai_enabled:
            return None
        ticket = await self.stores.tickets.get(ticket_id)
        if ticket is None or not ticket.ai_enabled or ticket.status == "closed":
            return None
        if isinstance(self.assignment.current_agent(ticket), HumanAgent):
            logger.info("ai_turn_skipped_human_assigned", ticket_id=ticket_id)
            return None
        message = await self.stores.messages.get(message_id)
        if message is None:
            return None

        config = AgentConfig.from_record(await self.stores.agent_configs.get_active())
        if not config.enabled:
            return None
        history = await self.stores.messages.list_for_ticket(ticket_id)
        chunks = await self.stores.chunks.list_chunks()

        try:
            decision = await self.generator.generate(
                ticket, message.content, history=history, chunks=chunks, config=config
            )
        except Exception as exc:
            logger.warning("ai_generation_failed", ticket_id=ticket_id, error=str(exc))
            await log_event(
                self.stores.app_logs,
                level="warning",
                event_type="ai_generation_failed",
                message=str(exc),
                data={"ticket_id": ticket_id, "message_id": message_id},
            )
            decision = AiDecision(
                response=FALLBACK_MESSAGE,
                confidence=0.0,
                should_escalate=False,
                response_type=RESPONSE_FALLBACK,
                model_used=config.model,
            )
            await self._post(ticket, decision.response, sender_id=self.ai_agent_id, sender_type="ai")
            return decision

        if decision.should_escalate:
            await self._escalate(ticket, decision)
        else:
            await self._reply(ticket, message, decision)
        return decision

    async def _post(
        self,
        ticket: Ticket,
        content: str,
        *,
        sender_id: str | None,
        sender_type: str,
        message_type: str = "text",
    ) -> Message:
        message = Message(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            sender_id=sender_id,
            sender_type=sender_type,
            content=content,
            message_type=message_type,
            created_at=utc_now(),
        )
        message = await self.stores.messages.add(message)
        await self.broadcaster.broadcast(
            ticket_room(ticket.id), "new_message", message_event(message)
        )
        return message

    async def _escalate(self, ticket: Ticket, decision: AiDecision) -> None:
        await self.assignment.escalate(ticket, reason=decision.response_type)
        text = ESCALATION_MESSAGE if decision.used_llm else decision.response
        await self._post(
            ticket, text, sender_id=None, sender_type="system", message_type="system"
        )

    async def _reply(self, ticket: Ticket, inbound: Message, decision: AiDecision) -> None:
        await self.assignment.assign_to_ai(ticket.id)
        reply = await self._post(
            ticket, decision.response, sender_id=self.ai_agent_id, sender_type="ai"
        )
        await self.stores.ai_responses.add(
            AiResponseRecord(
                id=str(uuid.uuid4()),
                ticket_id=ticket.id,
                message_id=reply.id,
                source_chunk_ids=list(decision.source_chunk_ids),
                user_message=inbound.content,
                confidence_score=decision.confidence,
                model_used=decision.model_used,
                response_type=decision.response_type,
                response_time_ms=decision.response_time_ms,
                created_at=utc_now(),
            )
        )
