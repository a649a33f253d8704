from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from helpdesk.models import Message, Ticket
from helpdesk.services.llm_clients import EmptyCompletion

BASE_TIME = datetime(2025, 6, 19, 9, 0, tzinfo=timezone.utc)


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    async def broadcast(self, room: str, event: str, payload: dict) -> None:
        self.events.append((room, event, payload))

    def names(self) -> list[str]:
        return [event for _room, event, _payload in self.events]


class FakeCompletion:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_message": user_message,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_mode": json_mode,
            }
        )
        if self.error is not None:
            raise self.error
        if not self.reply:
            raise EmptyCompletion("completion returned empty content")
        return self.reply


class KeywordEmbedder:
    """Maps text onto a small keyword space so similarity is predictable."""

    VOCABULARY = ("battery", "charge", "bluetooth", "wifi", "screen", "license")

    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, text: str) -> list[float] | None:
        self.calls += 1
        lowered = text.lower()
        vector = [float(lowered.count(word)) for word in self.VOCABULARY]
        return vector if any(vector) else [0.0] * (len(self.VOCABULARY) - 1) + [0.01]


def make_ticket(**overrides) -> Ticket:
    values = {
        "id": str(uuid.uuid4()),
        "ticket_number": "2506190001",
        "title": "Device problem",
        "description": None,
        "status": "new",
        "priority": "medium",
        "category": None,
        "customer_id": "customer-1",
        "customer_name": "Alex",
        "customer_email": None,
        "agent_id": None,
        "assigned_at": None,
        "ai_enabled": True,
        "ai_disabled_reason": None,
        "ai_disabled_at": None,
        "device_model": None,
        "device_serial_number": None,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    values.update(overrides)
    return Ticket(**values)


def make_message(ticket_id: str, content: str, sender_type: str = "customer", seconds: int = 0) -> Message:
    return Message(
        id=str(uuid.uuid4()),
        ticket_id=ticket_id,
        sender_id=None,
        sender_type=sender_type,
        content=content,
        message_type="text",
        created_at=BASE_TIME + timedelta(seconds=seconds),
    )
