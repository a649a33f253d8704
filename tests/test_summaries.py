import asyncio
import json

from fakes import FakeCompletion, make_message, make_ticket
from helpdesk.services.summaries import (
    DEFAULT_TITLE,
    SUMMARY_MAX_TOKENS,
    SUMMARY_TEMPERATURE,
    generate_resolution_summary,
    generate_ticket_details,
    summary_confidence,
)

SUMMARY = (
    "The customer reported an issue where the EEG-500 device would not pair over bluetooth. "
    "The agent walked through a restart and re-pairing. Resolution: pairing succeeded."
)


def _conversation(ticket_id: str):
    return [
        make_message(ticket_id, "Thanks, that fixed it", seconds=30),
        make_message(ticket_id, "My headset won't pair", seconds=0),
        make_message(ticket_id, "Please restart the headset", sender_type="ai", seconds=10),
        make_message(ticket_id, "Ticket escalated", sender_type="system", seconds=20),
    ]


def test_summary_confidence_rewards_structure() -> None:
    assert summary_confidence("", 0) == 0.7
    assert summary_confidence("Issue: no power. Resolution: replaced the device cable.", 100) == 0.85
    assert summary_confidence(SUMMARY, 900) == 0.95


def test_resolution_summary_uses_ordered_transcript() -> None:
    ticket = make_ticket(device_model="EEG-500")
    completion = FakeCompletion(SUMMARY)
    messages = _conversation(ticket.id)
    messages[-1].message_type = "system"

    summary = asyncio.run(generate_resolution_summary(completion, ticket, messages, "gpt-4o-mini"))

    call = completion.calls[0]
    assert call["temperature"] == SUMMARY_TEMPERATURE
    assert call["max_tokens"] == SUMMARY_MAX_TOKENS
    assert "Device: EEG-500 (N/A)" in call["user_message"]
    transcript = call["user_message"].split("Conversation Transcript:\n", 1)[1]
    assert transcript.index("Customer: My headset") < transcript.index("AI Assistant: Please")
    assert "Ticket escalated" not in transcript
    assert summary.message_count == 3
    assert summary.summary == SUMMARY
    assert summary.model_used == "gpt-4o-mini"


def test_ticket_details_from_valid_json() -> None:
    reply = json.dumps(
        {"title": "Headset pairing", "description": "Bluetooth pairing fails", "confidence": 2}
    )
    ticket = make_ticket()
    completion = FakeCompletion(reply)

    details = asyncio.run(
        generate_ticket_details(completion, _conversation(ticket.id), "gpt-4o-mini", ticket)
    )

    assert completion.calls[0]["json_mode"] is True
    assert details.was_generated
    assert details.title == "Headset pairing"
    assert details.confidence == 0.95


def test_ticket_details_with_missing_fields_keeps_existing_values() -> None:
    ticket = make_ticket(title="Original title")
    completion = FakeCompletion(json.dumps({"title": "Only a title"}))

    details = asyncio.run(
        generate_ticket_details(completion, _conversation(ticket.id), "gpt-4o-mini", ticket)
    )

    assert not details.was_generated
    assert details.title == "Original title"
    assert details.confidence == 0.3


def test_ticket_details_with_invalid_json_falls_back() -> None:
    completion = FakeCompletion("not json at all")

    details = asyncio.run(generate_ticket_details(completion, [], "gpt-4o-mini"))

    assert not details.was_generated
    assert details.title == DEFAULT_TITLE
    assert details.confidence == 0.1
    assert details.error
