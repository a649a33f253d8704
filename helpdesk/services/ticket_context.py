from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Sequence

from helpdesk.models import Message, Ticket
from helpdesk.services.context_memory import (
    FRUSTRATION_CRITICAL,
    FRUSTRATION_HIGH,
    FRUSTRATION_MEDIUM,
    STYLE_DETAILED,
    STYLE_IMPATIENT,
    STYLE_NON_TECHNICAL,
    STYLE_TECHNICAL,
    ContextMemory,
)

STOP_WORDS = frozenset(
    "the a an and or but in on at to for of with by is are was were be been have has "
    "had do does did will would could should may might can i you he she it we they my "
    "your his her our their".split()
)
MAX_KEYWORDS = 10
SUMMARY_PREVIEW_CHARS = 100

KNOWN_ISSUES = {
    "BWMini": ["Power connection issues", "Bluetooth pairing problems"],
    "BWIII": ["WiFi connectivity", "Sensor calibration"],
    "Compass": ["Battery life", "Mobile app sync"],
    "Maxxi": ["USB connection", "Software compatibility"],
}

STAGE_INITIAL = "initial"
STAGE_BASIC = "basic"
STAGE_ADVANCED = "advanced"
STAGE_ESCALATION = "escalation"

FRUSTRATION_GUIDANCE = {
    FRUSTRATION_CRITICAL: "The customer is very upset. Apologise sincerely, keep it short and offer a human agent.",
    FRUSTRATION_HIGH: "The customer is frustrated. Acknowledge the inconvenience and be extra empathetic.",
    FRUSTRATION_MEDIUM: "The customer is asking for help politely. Be warm and reassuring.",
}
STYLE_GUIDANCE = {
    STYLE_TECHNICAL: "The customer is technical; precise terminology is fine.",
    STYLE_IMPATIENT: "The customer is in a hurry; lead with the single most likely fix.",
    STYLE_DETAILED: "The customer writes in detail; a thorough answer is welcome.",
    STYLE_NON_TECHNICAL: "Avoid technical jargon and explain each step plainly.",
}


@dataclass
class DeviceInfo:
    model: str | None
    serial_number: str | None
    known_issues: list[str] = field(default_factory=list)


@dataclass
class TicketContext:
    ticket_id: str | None
    conversation_summary: str = ""
    last_responses: list[str] = field(default_factory=list)
    issue_keywords: list[str] = field(default_factory=list)
    troubleshooting_stage: str = STAGE_INITIAL
    device_info: DeviceInfo | None = None
    customer_name: str | None = None
    tone_guidance: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        device = None
        if self.device_info is not None:
            device = {
                "model": self.device_info.model,
                "serial_number": self.device_info.serial_number,
                "known_issues": list(self.device_info.known_issues),
            }
        return {
            "ticket_id": self.ticket_id,
            "conversation_summary": self.conversation_summary,
            "last_responses": list(self.last_responses),
            "issue_keywords": list(self.issue_keywords),
            "troubleshooting_stage": self.troubleshooting_stage,
            "device_info": device,
            "customer_name": self.customer_name,
            "tone_guidance": list(self.tone_guidance),
        }


def extract_keywords(text: str) -> list[str]:
    words = [
        word
        for word in text.lower().split()
        if len(word) > 3 and word not in STOP_WORDS
    ]
    return [word for word, _count in Counter(words).most_common(MAX_KEYWORDS)]


def determine_troubleshooting_stage(messages: Sequence[Message]) -> str:
    if len(messages) <= 2:
        return STAGE_INITIAL
    if len(messages) <= 5:
        return STAGE_BASIC
    agent_messages = sum(1 for message in messages if message.sender_type == "agent")
    if agent_messages > 3:
        return STAGE_ADVANCED
    return STAGE_ESCALATION


def known_issues(device_model: str | None) -> list[str]:
    return list(KNOWN_ISSUES.get(device_model or "", []))


def build_device_info(ticket: Ticket) -> DeviceInfo:
    return DeviceInfo(
        model=ticket.device_model,
        serial_number=ticket.device_serial_number,
        known_issues=known_issues(ticket.device_model),
    )


def summarize_conversation(messages: Sequence[Message]) -> str:
    if not messages:
        return "New conversation"
    customer_messages = [m for m in messages if m.sender_type == "customer"]
    if not customer_messages:
        return "New conversation"
    return f"Customer issue: {customer_messages[-1].content[:SUMMARY_PREVIEW_CHARS]}..."


def tone_guidance(memory: ContextMemory | None) -> list[str]:
    if memory is None:
        return []
    guidance = []
    if memory.customer_frustration_level in FRUSTRATION_GUIDANCE:
        guidance.append(FRUSTRATION_GUIDANCE[memory.customer_frustration_level])
    if memory.customer_communication_style in STYLE_GUIDANCE:
        guidance.append(STYLE_GUIDANCE[memory.customer_communication_style])
    return guidance


def build_ticket_context(
    ticket: Ticket,
    messages: Sequence[Message],
    memory: ContextMemory | None = None,
) -> TicketContext:
    ordered = sorted(messages, key=lambda m: m.created_at)
    responses = [m.content for m in ordered if m.sender_type in ("agent", "ai")][-5:]
    return TicketContext(
        ticket_id=ticket.id,
        conversation_summary=summarize_conversation(ordered),
        last_responses=responses,
        issue_keywords=extract_keywords(" ".join(m.content for m in ordered)),
        troubleshooting_stage=determine_troubleshooting_stage(ordered),
        device_info=build_device_info(ticket),
        customer_name=ticket.customer_name,
        tone_guidance=tone_guidance(memory),
    )
