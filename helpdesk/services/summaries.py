from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Sequence

import structlog

from helpdesk.models import Message, Ticket
from helpdesk.services.llm_clients import CompletionClient, LLMError
from helpdesk.services.prompts import load_prompt
from helpdesk.utils.time import elapsed_ms

logger = structlog.get_logger(__name__)

SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 300
TITLE_MAX_CHARS = 30
DESCRIPTION_MAX_CHARS = 200
DEFAULT_TITLE = "Support Request"
DEFAULT_DESCRIPTION = "Customer support request"
SUMMARY_TECHNICAL_KEYWORDS = (
    "error",
    "code",
    "device",
    "serial",
    "model",
    "configuration",
    "settings",
)
SENDER_LABELS = {"ai": "AI Assistant", "agent": "Agent", "system": "System"}


@dataclass
class ResolutionSummary:
    summary: str
    confidence: float
    response_time_ms: int
    model_used: str
    message_count: int
    transcript_length: int

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class TicketDetails:
    title: str
    description: str
    confidence: float
    response_time_ms: int
    model_used: str
    was_generated: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


def _ordered(messages: Sequence[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: m.created_at)


def _label(message: Message) -> str:
    return SENDER_LABELS.get(message.sender_type, "Customer")


def summary_confidence(summary: str, transcript_length: int) -> float:
    confidence = 0.7
    if 100 < len(summary) < 500:
        confidence += 0.1
    lowered = summary.lower()
    if "issue" in lowered and "resolution" in lowered:
        confidence += 0.1
    if any(keyword in lowered for keyword in SUMMARY_TECHNICAL_KEYWORDS):
        confidence += 0.05
    if transcript_length > 500:
        confidence += 0.05
    return round(max(0.5, min(0.95, confidence)), 4)


def _summary_request(ticket: Ticket, transcript: str) -> str:
    device = "Not specified"
    if ticket.device_model:
        device = f"{ticket.device_model} ({ticket.device_serial_number or 'N/A'})"
    return (
        "Please summarize this support conversation:\n\n"
        "Ticket Information:\n"
        f"- Ticket ID: {ticket.ticket_number or ticket.id}\n"
        f"- Title: {ticket.title}\n"
        f"- Category: {ticket.category or 'General'}\n"
        f"- Priority: {ticket.priority}\n"
        f"- Customer: {ticket.customer_name or 'Anonymous'}\n"
        f"- Device: {device}\n\n"
        f"Conversation Transcript:\n{transcript}\n\n"
        "Summarize this support conversation in 3-5 sentences. Focus on the issue, "
        "key troubleshooting steps, and outcome."
    )


async def generate_resolution_summary(
    completion: CompletionClient,
    ticket: Ticket,
    messages: Sequence[Message],
    model: str,
) -> ResolutionSummary:
    """Raises LLMError when the model is unavailable or returns nothing."""
    started = time.perf_counter()
    conversation = [
        f"{_label(message)}: {message.content}"
        for message in _ordered(messages)
        if message.message_type != "system"
    ]
    transcript = "\n".join(conversation)
    summary = await completion.complete(
        load_prompt("resolution_summary_system"),
        _summary_request(ticket, transcript),
        model=model,
        temperature=SUMMARY_TEMPERATURE,
        max_tokens=SUMMARY_MAX_TOKENS,
    )
    result = ResolutionSummary(
        summary=summary,
        confidence=summary_confidence(summary, len(transcript)),
        response_time_ms=elapsed_ms(started, time.perf_counter()),
        model_used=model,
        message_count=len(conversation),
        transcript_length=len(transcript),
    )
    logger.info(
        "resolution_summary_generated",
        ticket_id=ticket.id,
        confidence=result.confidence,
        message_count=result.message_count,
    )
    return result


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        confidence = 0.7
    return max(0.1, min(0.95, confidence))


async def generate_ticket_details(
    completion: CompletionClient,
    messages: Sequence[Message],
    model: str,
    existing: Ticket | None = None,
) -> TicketDetails:
    started = time.perf_counter()
    fallback_title = (existing.title if existing else None) or DEFAULT_TITLE
    fallback_description = (existing.description if existing else None) or DEFAULT_DESCRIPTION
    transcript = "\n".join(
        f"[{_label(message)}]: {message.content}"
        for message in _ordered(messages)
        if message.message_type == "text"
    )

    try:
        raw = await completion.complete(
            load_prompt("ticket_details_system"),
            transcript,
            model=model,
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
            json_mode=True,
        )
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise LLMError(f"Failed to parse ticket details: {exc}") from exc
        if not isinstance(parsed, dict):
            raise LLMError("Ticket details response is not an object")
    except LLMError as exc:
        logger.warning("ticket_details_failed", error=str(exc))
        return TicketDetails(
            title=fallback_title,
            description=fallback_description,
            confidence=0.1,
            response_time_ms=elapsed_ms(started, time.perf_counter()),
            model_used=model,
            was_generated=False,
            error=str(exc),
        )

    title = str(parsed.get("title") or "")[:TITLE_MAX_CHARS].strip()
    description = str(parsed.get("description") or "")[:DESCRIPTION_MAX_CHARS].strip()
    if not title or not description:
        return TicketDetails(
            title=fallback_title,
            description=fallback_description,
            confidence=0.3,
            response_time_ms=elapsed_ms(started, time.perf_counter()),
            model_used=model,
            was_generated=False,
        )
    return TicketDetails(
        title=title,
        description=description,
        confidence=_clamp_confidence(parsed.get("confidence", 0.7)),
        response_time_ms=elapsed_ms(started, time.perf_counter()),
        model_used=model,
        was_generated=True,
    )
