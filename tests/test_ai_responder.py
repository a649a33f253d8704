import asyncio

from fakes import FakeCompletion, RecordingBroadcaster
from helpdesk.core.config import settings
from helpdesk.models import AiAgentConfig
from helpdesk.repositories import build_memory_stores
from helpdesk.schemas.message import MessageCreate
from helpdesk.schemas.ticket import TicketCreate
from helpdesk.services.ai_responder import TicketWorkQueue
from helpdesk.services.container import build_services
from helpdesk.services.response_generator import (
    ESCALATION_MESSAGE,
    FALLBACK_MESSAGE,
    HANDOFF_MESSAGE,
    RESPONSE_TROUBLESHOOTING,
)

LONG_REPLY = (
    "The battery reaches a full charge in about two hours when using the supplied adapter. "
) * 4


def _services(reply: str = "unused", agent_config: AiAgentConfig | None = None):
    broadcaster = RecordingBroadcaster()
    services = build_services(
        stores=build_memory_stores(agent_config),
        completion=FakeCompletion(reply),
        realtime=broadcaster,
    )
    return services, broadcaster


async def _conversation(services, *contents: str, before=None):
    ticket = await services.tickets.create_ticket(TicketCreate(title="Support request"))
    if before is not None:
        await before(ticket)
    for content in contents:
        await services.tickets.post_message(ticket.id, MessageCreate(content=content))
        await services.responder.queue.join()
    ticket = await services.tickets.get_ticket(ticket.id)
    messages = await services.tickets.list_messages(ticket.id)
    return ticket, messages


def test_flow_reply_assigns_ticket_to_ai() -> None:
    services, broadcaster = _services()

    async def scenario():
        ticket, messages = await _conversation(services, "My bluetooth headset won't pair")
        records = await services.stores.ai_responses.list_for_ticket(ticket.id)
        return ticket, messages, records

    ticket, messages, records = asyncio.run(scenario())

    assert [m.sender_type for m in messages] == ["customer", "ai"]
    assert messages[1].sender_id == settings.AI_AGENT_ID
    assert ticket.agent_id == settings.AI_AGENT_ID
    assert len(records) == 1
    assert records[0].response_type == RESPONSE_TROUBLESHOOTING
    assert records[0].confidence_score == 0.9
    assert records[0].message_id == messages[1].id
    assert services.completion.calls == []
    assert broadcaster.names() == ["new_ticket", "new_message", "ticket_assigned", "new_message"]


def test_handoff_request_escalates_ticket() -> None:
    services, broadcaster = _services()

    ticket, messages = asyncio.run(_conversation(services, "Can I talk to a human?"))

    assert ticket.ai_enabled is False
    assert ticket.ai_disabled_reason == "escalation"
    assert ticket.agent_id is None
    assert messages[-1].sender_type == "system"
    assert messages[-1].content == HANDOFF_MESSAGE
    assert "ai_status_changed" in broadcaster.names()


def test_low_confidence_answer_escalates_with_handoff_text() -> None:
    services, _ = _services(LONG_REPLY)

    async def scenario():
        ticket, messages = await _conversation(services, "How long should the battery last?")
        return ticket, messages, await services.stores.ai_responses.count()

    ticket, messages, recorded = asyncio.run(scenario())

    assert ticket.ai_enabled is False
    assert messages[-1].content == ESCALATION_MESSAGE
    assert recorded == 0


def test_escalated_ticket_gets_no_more_ai_turns() -> None:
    services, _ = _services()

    ticket, messages = asyncio.run(
        _conversation(services, "I want to talk to a person", "Hello? Anyone there?")
    )

    assert [m.sender_type for m in messages] == ["customer", "system", "customer"]


def test_empty_completion_posts_fallback_and_keeps_ai_on() -> None:
    services, _ = _services("")

    async def scenario():
        ticket, messages = await _conversation(services, "How do I export a report?")
        return ticket, messages, await services.stores.app_logs.recent("ai_generation_failed")

    ticket, messages, logs = asyncio.run(scenario())

    assert messages[-1].sender_type == "ai"
    assert messages[-1].content == FALLBACK_MESSAGE
    assert ticket.ai_enabled is True
    assert len(logs) == 1


def test_human_assigned_ticket_is_left_to_the_human() -> None:
    services, _ = _services()

    async def claim(ticket):
        await services.assignment.claim_by_human(ticket.id, "agent-7")

    ticket, messages = asyncio.run(
        _conversation(services, "My bluetooth headset won't pair", before=claim)
    )

    assert [m.sender_type for m in messages] == ["customer"]
    assert ticket.agent_id == "agent-7"


def test_inactive_agent_config_silences_the_ai() -> None:
    services, _ = _services(agent_config=AiAgentConfig(active=False))

    _, messages = asyncio.run(_conversation(services, "My bluetooth headset won't pair"))

    assert [m.sender_type for m in messages] == ["customer"]


def test_resolved_ticket_reopens_on_customer_message() -> None:
    services, broadcaster = _services()

    async def resolve(ticket):
        ticket.status = "resolved"
        await services.stores.tickets.save(ticket)

    ticket, _ = asyncio.run(_conversation(services, "It broke again", before=resolve))

    assert ticket.status == "reopened"
    assert "ticket_updated" in broadcaster.names()


def test_work_queue_runs_jobs_for_a_ticket_one_at_a_time() -> None:
    queue = TicketWorkQueue()
    running = {"t1": 0}
    peak = {"t1": 0}
    order = []

    def job(label: str):
        async def run():
            running["t1"] += 1
            peak["t1"] = max(peak["t1"], running["t1"])
            await asyncio.sleep(0)
            order.append(label)
            running["t1"] -= 1

        return run

    async def scenario():
        for label in ("first", "second", "third"):
            queue.submit("t1", job(label))
        assert queue.busy("t1")
        await queue.join()

    asyncio.run(scenario())

    assert order == ["first", "second", "third"]
    assert peak["t1"] == 1
    assert not queue.busy("t1")


def test_work_queue_survives_a_failing_job() -> None:
    queue = TicketWorkQueue()
    done = []

    async def broken():
        raise RuntimeError("boom")

    async def fine():
        done.append(True)

    async def scenario():
        queue.submit("t1", broken)
        queue.submit("t1", fine)
        await queue.join()

    asyncio.run(scenario())

    assert done == [True]


def test_failed_troubleshooting_flow_escalates_the_ticket() -> None:
    services, broadcaster = _services()

    ticket, messages = asyncio.run(
        _conversation(
            services,
            "My bluetooth headset won't pair",
            "Bluetooth",
            "No, still not pairing",
            "Yes, both show up",
            "No, still failing",
        )
    )

    assert ticket.ai_enabled is False
    assert ticket.ai_disabled_reason == "escalation"
    assert ticket.agent_id is None
    assert messages[-1].sender_type == "system"
    assert messages[-1].content == ESCALATION_MESSAGE
    assert "ai_status_changed" in broadcaster.names()
    assert services.completion.calls == []
