import asyncio
from datetime import timedelta

from fakes import BASE_TIME, FakeCompletion, RecordingBroadcaster, make_ticket
from helpdesk.repositories import build_memory_stores
from helpdesk.schemas.message import MessageCreate
from helpdesk.schemas.ticket import TicketCreate, TicketUpdate
from helpdesk.services.container import build_services
from helpdesk.services.tickets import TicketNumberSequence


def test_ticket_numbers_count_per_day() -> None:
    numbers = TicketNumberSequence()

    assert numbers.next(BASE_TIME) == "2506190001"
    assert numbers.next(BASE_TIME) == "2506190002"
    assert numbers.next(BASE_TIME + timedelta(days=1)) == "2506200001"


def test_observed_numbers_only_move_the_counter_forward() -> None:
    numbers = TicketNumberSequence()
    numbers.observe("2506190005")
    numbers.observe("2506190002")
    numbers.observe(None)

    assert numbers.next(BASE_TIME) == "2506190006"


def test_new_ticket_numbers_continue_after_stored_ones() -> None:
    stores = build_memory_stores()
    services = build_services(
        stores=stores, completion=FakeCompletion(), realtime=RecordingBroadcaster()
    )
    today = TicketNumberSequence.day_key()

    async def scenario():
        await stores.tickets.add(make_ticket(ticket_number=f"{today}0007"))
        return await services.tickets.create_ticket(TicketCreate(title="Cable fault"))

    ticket = asyncio.run(scenario())

    assert ticket.ticket_number == f"{today}0008"


def test_agent_messages_do_not_wake_the_ai() -> None:
    completion = FakeCompletion("should not be used")
    services = build_services(
        stores=build_memory_stores(), completion=completion, realtime=RecordingBroadcaster()
    )

    async def scenario():
        ticket = await services.tickets.create_ticket(TicketCreate(title="Screen flicker"))
        await services.tickets.post_message(
            ticket.id, MessageCreate(content="Checking on this", sender_type="agent")
        )
        await services.responder.queue.join()
        return await services.tickets.list_messages(ticket.id)

    messages = asyncio.run(scenario())

    assert [m.sender_type for m in messages] == ["agent"]
    assert completion.calls == []


def test_closing_a_ticket_drops_its_memory() -> None:
    services = build_services(
        stores=build_memory_stores(), completion=FakeCompletion(), realtime=RecordingBroadcaster()
    )

    async def scenario():
        ticket = await services.tickets.create_ticket(TicketCreate(title="Battery drain"))
        services.memory.get(ticket.id)
        closed = await services.tickets.close_ticket(ticket.id)
        return ticket, closed

    ticket, closed = asyncio.run(scenario())

    assert closed.status == "closed"
    assert not services.memory.has(ticket.id)


def test_list_tickets_filters_by_status() -> None:
    services = build_services(
        stores=build_memory_stores(), completion=FakeCompletion(), realtime=RecordingBroadcaster()
    )

    async def scenario():
        first = await services.tickets.create_ticket(TicketCreate(title="First"))
        await services.tickets.create_ticket(TicketCreate(title="Second"))
        await services.tickets.update_ticket(first.id, TicketUpdate(status="resolved"))
        return await services.tickets.list_tickets(status="resolved")

    tickets, total = asyncio.run(scenario())

    assert total == 1
    assert tickets[0].title == "First"
