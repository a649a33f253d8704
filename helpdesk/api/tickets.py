from __future__ import annotations

from fastapi import APIRouter, Depends

from helpdesk.api.deps import get_services
from helpdesk.api.utils import list_response, page_bounds, parse_filter
from helpdesk.schemas.ai import AiResponseOut, FeedbackOut
from helpdesk.schemas.message import MessageCreate, MessageOut
from helpdesk.schemas.ticket import (
    AiToggleRequest,
    ClaimRequest,
    TicketCreate,
    TicketOut,
    TicketUpdate,
)
from helpdesk.services.container import Services

router = APIRouter(prefix="/api/tickets", tags=["tickets"])

TICKET_FILTERS = ("status", "agent_id", "customer_id", "ai_disabled_reason")


@router.get("", response_model=dict)
async def list_tickets(
    skip: int = 0,
    limit: int = 25,
    filter: str | None = None,
    services: Services = Depends(get_services),
) -> dict:
    query = parse_filter(filter, TICKET_FILTERS)
    skip, limit = page_bounds(skip, limit)
    tickets, total = await services.tickets.list_tickets(skip=skip, limit=limit, **query)
    return list_response(
        [TicketOut.model_validate(item) for item in tickets], total, skip, limit
    )


@router.post("", response_model=TicketOut, status_code=201)
async def create_ticket(
    payload: TicketCreate,
    services: Services = Depends(get_services),
) -> TicketOut:
    ticket = await services.tickets.create_ticket(payload)
    return TicketOut.model_validate(ticket)


@router.get("/{ticket_id}", response_model=TicketOut)
async def get_ticket(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> TicketOut:
    return TicketOut.model_validate(await services.tickets.get_ticket(ticket_id))


@router.patch("/{ticket_id}", response_model=TicketOut)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdate,
    services: Services = Depends(get_services),
) -> TicketOut:
    ticket = await services.tickets.update_ticket(ticket_id, payload)
    return TicketOut.model_validate(ticket)


@router.post("/{ticket_id}/close", response_model=TicketOut)
async def close_ticket(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> TicketOut:
    return TicketOut.model_validate(await services.tickets.close_ticket(ticket_id))


@router.get("/{ticket_id}/messages", response_model=list[MessageOut])
async def list_messages(
    ticket_id: str,
    limit: int | None = None,
    services: Services = Depends(get_services),
) -> list[MessageOut]:
    messages = await services.tickets.list_messages(ticket_id, limit)
    return [MessageOut.model_validate(item) for item in messages]


@router.post("/{ticket_id}/messages", response_model=MessageOut, status_code=201)
async def post_message(
    ticket_id: str,
    payload: MessageCreate,
    services: Services = Depends(get_services),
) -> MessageOut:
    message = await services.tickets.post_message(ticket_id, payload)
    return MessageOut.model_validate(message)


@router.post("/{ticket_id}/claim", response_model=TicketOut)
async def claim_ticket(
    ticket_id: str,
    payload: ClaimRequest,
    services: Services = Depends(get_services),
) -> TicketOut:
    ticket = await services.assignment.claim_by_human(ticket_id, payload.agent_id)
    return TicketOut.model_validate(ticket)


@router.post("/{ticket_id}/release", response_model=TicketOut)
async def release_ticket(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> TicketOut:
    return TicketOut.model_validate(await services.assignment.release(ticket_id))


@router.post("/{ticket_id}/ai", response_model=TicketOut)
async def toggle_ai(
    ticket_id: str,
    payload: AiToggleRequest,
    services: Services = Depends(get_services),
) -> TicketOut:
    ticket = await services.assignment.set_ai_enabled(ticket_id, payload.enabled)
    return TicketOut.model_validate(ticket)


@router.get("/{ticket_id}/summary", response_model=dict)
async def resolution_summary(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> dict:
    summary = await services.tickets.resolution_summary(ticket_id)
    return summary.to_dict()


@router.post("/{ticket_id}/details", response_model=dict)
async def generate_details(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> dict:
    details = await services.tickets.ticket_details(ticket_id)
    return details.to_dict()


@router.get("/{ticket_id}/ai-responses", response_model=list[AiResponseOut])
async def list_ai_responses(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> list[AiResponseOut]:
    await services.tickets.get_ticket(ticket_id)
    records = await services.stores.ai_responses.list_for_ticket(ticket_id)
    return [AiResponseOut.model_validate(item) for item in records]


@router.get("/{ticket_id}/feedback", response_model=list[FeedbackOut])
async def list_feedback(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> list[FeedbackOut]:
    await services.tickets.get_ticket(ticket_id)
    items = await services.stores.feedback.list_for_ticket(ticket_id)
    return [FeedbackOut.model_validate(item) for item in items]
