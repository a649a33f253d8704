from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Union

import structlog

from helpdesk.core.config import settings
from helpdesk.models import Ticket
from helpdesk.repositories import AppLogStore, TicketStore
from helpdesk.services.app_log_store import log_event
from helpdesk.services.realtime import Broadcaster, ticket_room
from helpdesk.utils.time import isoformat, utc_now

logger = structlog.get_logger(__name__)


class TicketNotFound(Exception):
    def __init__(self, ticket_id: str) -> None:
        super().__init__(f"Ticket not found: {ticket_id}")
        self.ticket_id = ticket_id


class AlreadyClaimed(Exception):
    def __init__(self, ticket_id: str, agent_id: str) -> None:
        super().__init__("Ticket already assigned to another agent")
        self.ticket_id = ticket_id
        self.agent_id = agent_id


@dataclass(frozen=True)
class HumanAgent:
    id: str


@dataclass(frozen=True)
class SyntheticAI:
    id: str


AgentIdentity = Union[HumanAgent, SyntheticAI]


def identify_agent(agent_id: str | None, ai_agent_id: str | None) -> AgentIdentity | None:
    if not agent_id:
        return None
    if ai_agent_id and agent_id == ai_agent_id:
        return SyntheticAI(agent_id)
    return HumanAgent(agent_id)


class AssignmentCoordinator:
    def __init__(
        self,
        tickets: TicketStore,
        broadcaster: Broadcaster,
        *,
        app_logs: AppLogStore | None = None,
        ai_agent_id: str | None = None,
        ai_enabled: bool | None = None,
    ) -> None:
        self.tickets = tickets
        self.broadcaster = broadcaster
        self.app_logs = app_logs
        self.ai_agent_id = settings.AI_AGENT_ID if ai_agent_id is None else ai_agent_id
        self.ai_enabled = settings.AI_ENABLED if ai_enabled is None else ai_enabled
        self._lock = asyncio.Lock()

    async def _load(self, ticket_id: str) -> Ticket:
        ticket = await self.tickets.get(ticket_id)
        if ticket is None:
            raise TicketNotFound(ticket_id)
        return ticket

    def current_agent(self, ticket: Ticket) -> AgentIdentity | None:
        return identify_agent(ticket.agent_id, self.ai_agent_id)

    async def assign_to_ai(self, ticket_id: str) -> bool:
        async with self._lock:
            ticket = await self._load(ticket_id)
            if not self.ai_enabled or not self.ai_agent_id or not ticket.ai_enabled:
                return False
            current = self.current_agent(ticket)
            if isinstance(current, HumanAgent):
                return False
            if isinstance(current, SyntheticAI):
                return True
            ticket.agent_id = self.ai_agent_id
            ticket.assigned_at = utc_now()
            ticket = await self.tickets.save(ticket)

        logger.info("ticket_assigned_to_ai", ticket_id=ticket_id)
        await self.broadcaster.broadcast(
            ticket_room(ticket_id),
            "ticket_assigned",
            {
                "ticket_id": ticket_id,
                "agent_id": self.ai_agent_id,
                "agent_type": "ai",
                "assigned_at": isoformat(ticket.assigned_at),
            },
        )
        return True

    async def claim_by_human(self, ticket_id: str, agent_id: str) -> Ticket:
        async with self._lock:
            ticket = await self._load(ticket_id)
            current = self.current_agent(ticket)
            if isinstance(current, HumanAgent) and current.id != agent_id:
                raise AlreadyClaimed(ticket_id, current.id)
            handoff = isinstance(current, SyntheticAI)
            ticket.agent_id = agent_id
            ticket.status = "in_progress"
            ticket.assigned_at = utc_now()
            ticket = await self.tickets.save(ticket)

        logger.info("ticket_claimed", ticket_id=ticket_id, agent_id=agent_id, from_ai=handoff)
        claimed_at = isoformat(ticket.assigned_at)
        await self.broadcaster.broadcast(
            ticket_room(ticket_id),
            "ticket_claimed",
            {"ticket_id": ticket_id, "agent_id": agent_id, "claimed_at": claimed_at},
        )
        if handoff:
            if self.app_logs is not None:
                await log_event(
                    self.app_logs,
                    level="info",
                    event_type="ai_handoff",
                    data={"ticket_id": ticket_id, "agent_id": agent_id},
                )
            await self.broadcaster.broadcast(
                ticket_room(ticket_id),
                "ai_handoff",
                {
                    "ticket_id": ticket_id,
                    "from_agent_id": self.ai_agent_id,
                    "to_agent_id": agent_id,
                    "handed_off_at": claimed_at,
                },
            )
        return ticket

    async def release(self, ticket_id: str) -> Ticket:
        async with self._lock:
            ticket = await self._load(ticket_id)
            previous = ticket.agent_id
            ticket.agent_id = None
            ticket.assigned_at = None
            ticket = await self.tickets.save(ticket)

        logger.info("ticket_released", ticket_id=ticket_id, previous_agent_id=previous)
        await self.broadcaster.broadcast(
            ticket_room(ticket_id),
            "ticket_released",
            {"ticket_id": ticket_id, "previous_agent_id": previous},
        )
        return ticket

    async def escalate(self, ticket: Ticket, reason: str) -> Ticket:
        """Turn the AI off for the ticket and leave it unassigned for humans."""
        async with self._lock:
            ticket = await self._load(ticket.id)
            ticket.ai_enabled = False
            ticket.ai_disabled_reason = "escalation"
            ticket.ai_disabled_at = utc_now()
            if isinstance(self.current_agent(ticket), SyntheticAI):
                ticket.agent_id = None
                ticket.assigned_at = None
            ticket = await self.tickets.save(ticket)

        logger.info("ticket_escalated", ticket_id=ticket.id, reason=reason)
        if self.app_logs is not None:
            await log_event(
                self.app_logs,
                level="info",
                event_type="ticket_escalated",
                message=reason,
                data={"ticket_id": ticket.id},
            )
        await self._broadcast_ai_status(ticket, reason)
        return ticket

    async def set_ai_enabled(self, ticket_id: str, enabled: bool) -> Ticket:
        async with self._lock:
            ticket = await self._load(ticket_id)
            ticket.ai_enabled = enabled
            if enabled:
                ticket.ai_disabled_reason = None
                ticket.ai_disabled_at = None
            else:
                ticket.ai_disabled_reason = "manual"
                ticket.ai_disabled_at = utc_now()
            ticket = await self.tickets.save(ticket)

        logger.info("ticket_ai_toggled", ticket_id=ticket_id, enabled=enabled)
        await self._broadcast_ai_status(ticket, None if enabled else "manual")
        return ticket

    async def _broadcast_ai_status(self, ticket: Ticket, reason: str | None) -> None:
        await self.broadcaster.broadcast(
            ticket_room(ticket.id),
            "ai_status_changed",
            {
                "ticket_id": ticket.id,
                "ai_enabled": ticket.ai_enabled,
                "reason": reason,
                "ai_disabled_reason": ticket.ai_disabled_reason,
                "ai_disabled_at": isoformat(ticket.ai_disabled_at),
            },
        )
