import asyncio

import pytest

from fakes import FakeCompletion, KeywordEmbedder, make_message, make_ticket
from helpdesk.models import DocumentChunk
from helpdesk.schemas.agent_config import AgentConfig
from helpdesk.services.clarity import ClarityOptimizer, PhrasePool
from helpdesk.services.context_memory import ContextMemoryStore
from helpdesk.services.llm_clients import EmptyCompletion, LLMError
from helpdesk.services.response_generator import (
    HANDOFF_MESSAGE,
    RESPONSE_CONTEXTUAL,
    RESPONSE_DUPLICATE,
    RESPONSE_FLOW_ESCALATED,
    RESPONSE_HANDOFF,
    RESPONSE_LICENSE,
    RESPONSE_STANDARD,
    RESPONSE_TROUBLESHOOTING,
    ResponseGenerator,
    calculate_confidence,
    proposed_questions,
    wants_human,
)
from helpdesk.services.retrieval import RetrievalIndex
from helpdesk.services.troubleshooting import (
    RESOLVED,
    Flow,
    NextStep,
    Step,
    TroubleshootingFlowEngine,
    pattern_matcher,
)

BATTERY_REPLY = (
    "The battery reaches a full charge in about two hours when using the supplied adapter. "
) * 4
BATTERY_CHUNK = DocumentChunk(
    id="chunk-battery",
    document_id="doc-1",
    index=0,
    text="A full battery charge takes two hours with the supplied adapter.",
    embedding=[1.0, 1.0, 0.0, 0.0, 0.0, 0.0],
)


def _generator(completion=None, *, enhanced=False, duplicate_escalation=False, embedder=None):
    memory = ContextMemoryStore()
    return ResponseGenerator(
        completion,
        RetrievalIndex(embedder),
        memory,
        TroubleshootingFlowEngine(memory),
        clarity=ClarityOptimizer(PhrasePool({"Perhaps": ("Let's try:",)})),
        enhanced=enhanced,
        duplicate_escalation=duplicate_escalation,
    )


def test_confidence_is_clamped() -> None:
    assert calculate_confidence("word " * 200, 10) == 0.95
    assert calculate_confidence("I'm not sure", 0) == 0.1
    assert calculate_confidence("word " * 30, 0) == 0.5
    assert calculate_confidence("word " * 60, 1) == 0.9


def test_human_requests_are_detected_on_word_boundaries() -> None:
    assert wants_human("Can I talk to a human please?")
    assert wants_human("I'd rather talk to someone")
    assert wants_human("I need a refund", ["refund"])
    assert not wants_human("That seems humane enough")


def test_proposed_questions_are_extracted() -> None:
    reply = "Restart it first. Is the light green? Then tell me.\nDid that help?"

    assert proposed_questions(reply) == ["Is the light green?", "Did that help?"]


def test_license_question_short_circuits_the_model() -> None:
    completion = FakeCompletion("should not be used")
    generator = _generator(completion)

    decision = asyncio.run(generator.generate(make_ticket(), "My license key was rejected"))

    assert completion.calls == []
    assert decision.response_type == RESPONSE_LICENSE
    assert decision.license_category == "key"
    assert decision.confidence == 1.0
    assert not decision.should_escalate


def test_handoff_request_escalates_without_the_model() -> None:
    completion = FakeCompletion("should not be used")
    generator = _generator(completion)

    decision = asyncio.run(generator.generate(make_ticket(), "I want to talk to a person"))

    assert completion.calls == []
    assert decision.response == HANDOFF_MESSAGE
    assert decision.response_type == RESPONSE_HANDOFF
    assert decision.should_escalate


def test_configured_keywords_trigger_handoff() -> None:
    generator = _generator(FakeCompletion(BATTERY_REPLY))
    config = AgentConfig(exceptions_behavior="refund, lawyer")

    decision = asyncio.run(
        generator.generate(make_ticket(), "I want a REFUND for this unit", config=config)
    )

    assert decision.should_escalate
    assert decision.response_type == RESPONSE_HANDOFF


def test_bluetooth_issue_starts_the_connectivity_flow() -> None:
    completion = FakeCompletion("should not be used")
    generator = _generator(completion)
    ticket = make_ticket()

    first = asyncio.run(generator.generate(ticket, "My bluetooth headset won't pair"))
    second = asyncio.run(generator.generate(ticket, "Bluetooth"))

    assert completion.calls == []
    assert first.response_type == RESPONSE_TROUBLESHOOTING
    assert first.flow_id == "connectivity"
    assert first.current_step == 1
    assert first.confidence == 0.9
    assert not first.should_escalate
    assert second.flow_id == "connectivity"
    assert second.current_step == 2
    assert second.response.endswith("Did this solve your issue?")


def test_failed_final_flow_step_escalates() -> None:
    generator = _generator(FakeCompletion("should not be used"))
    ticket = make_ticket()
    generator.flows.execute_step(ticket.id, "connectivity", 4)

    decision = asyncio.run(generator.generate(ticket, "No, it still fails"))

    assert decision.should_escalate
    assert decision.flow_id == "connectivity"


def test_grounded_answer_is_scored_and_kept() -> None:
    completion = FakeCompletion(BATTERY_REPLY)
    generator = _generator(completion, embedder=KeywordEmbedder())

    decision = asyncio.run(
        generator.generate(
            make_ticket(), "How long does the battery take to charge?", chunks=[BATTERY_CHUNK]
        )
    )

    assert len(completion.calls) == 1
    assert "Knowledge Base:" in completion.calls[0]["system_prompt"]
    assert BATTERY_CHUNK.text in completion.calls[0]["system_prompt"]
    assert decision.response_type == RESPONSE_STANDARD
    assert decision.source_chunk_ids == ["chunk-battery"]
    assert decision.confidence == 0.9
    assert not decision.should_escalate


def test_ungrounded_answer_below_threshold_escalates() -> None:
    generator = _generator(FakeCompletion(BATTERY_REPLY))

    decision = asyncio.run(
        generator.generate(make_ticket(), "How long does the battery take to charge?")
    )

    assert decision.confidence == 0.6
    assert decision.should_escalate
    assert decision.used_llm


def test_escalation_is_monotonic_in_threshold() -> None:
    outcomes = []
    for threshold in (0.0, 0.3, 0.59, 0.6, 0.61, 0.9, 1.0):
        generator = _generator(FakeCompletion(BATTERY_REPLY))
        decision = asyncio.run(
            generator.generate(
                make_ticket(),
                "How long does the battery take to charge?",
                config=AgentConfig(confidence_threshold=threshold),
            )
        )
        outcomes.append(decision.should_escalate)

    assert outcomes == sorted(outcomes)
    assert outcomes[0] is False and outcomes[-1] is True


def test_enhanced_path_uses_ticket_context_and_clarity() -> None:
    completion = FakeCompletion(
        "Perhaps check the firmware version. Try restarting the unit. Check the cable."
    )
    generator = _generator(completion, enhanced=True)
    ticket = make_ticket(device_model="EEG-500")
    history = [make_message(ticket.id, "The recorder keeps freezing during a study")]

    decision = asyncio.run(
        generator.generate(ticket, "The recorder keeps freezing during a study", history=history)
    )

    system_prompt = completion.calls[0]["system_prompt"]
    assert "Device: EEG-500" in system_prompt
    assert "Customer issue: The recorder keeps freezing" in system_prompt
    assert decision.response_type == RESPONSE_CONTEXTUAL
    assert "device software" in decision.response
    assert "1. " in decision.response
    assert decision.clarity_score is not None
    assert "formatting_added" in decision.optimizations


def test_repeated_question_is_flagged_and_optionally_escalated() -> None:
    reply = "Is the charging light on when the adapter is plugged in?"
    config = AgentConfig(confidence_threshold=0.0)

    quiet = _generator(FakeCompletion(reply))
    ticket = make_ticket()
    asyncio.run(quiet.generate(ticket, "The battery is flat", config=config))
    repeated = asyncio.run(quiet.generate(ticket, "The battery is still flat", config=config))
    assert repeated.duplicate is not None and repeated.duplicate.is_duplicate
    assert not repeated.should_escalate

    strict = _generator(FakeCompletion(reply), duplicate_escalation=True)
    asyncio.run(strict.generate(ticket, "The battery is flat", config=config))
    escalated = asyncio.run(strict.generate(ticket, "The battery is still flat", config=config))
    assert escalated.should_escalate
    assert escalated.response_type == RESPONSE_DUPLICATE


def test_empty_completion_propagates() -> None:
    generator = _generator(FakeCompletion(""))

    with pytest.raises(EmptyCompletion):
        asyncio.run(generator.generate(make_ticket(), "How do I export a report?"))


def test_missing_completion_client_raises() -> None:
    generator = _generator(None)

    with pytest.raises(LLMError):
        asyncio.run(generator.generate(make_ticket(), "How do I export a report?"))


def test_unrelated_question_leaves_the_flow_for_the_model() -> None:
    completion = FakeCompletion(BATTERY_REPLY)
    generator = _generator(completion)
    ticket = make_ticket()
    config = AgentConfig(confidence_threshold=0.0)
    asyncio.run(generator.generate(ticket, "My bluetooth headset won't pair"))
    asyncio.run(generator.generate(ticket, "Bluetooth"))
    step_three = asyncio.run(generator.generate(ticket, "nope"))
    assert step_three.current_step == 3

    decision = asyncio.run(
        generator.generate(
            ticket, "Unrelated: how long does the battery take to charge?", config=config
        )
    )

    assert len(completion.calls) == 1
    assert decision.response_type == RESPONSE_STANDARD
    assert not decision.should_escalate
    assert generator.memory.get(ticket.id).active_flow_id is None


def test_goto_to_a_missing_step_escalates() -> None:
    completion = FakeCompletion("should not be used")
    generator = _generator(completion)
    generator.flows.register_flow(
        Flow(
            id="display",
            name="Display",
            matcher=pattern_matcher(r"screen"),
            steps=[
                Step(1, "Reseat the monitor cable.", "Is the screen back?", RESOLVED, NextStep.goto(7))
            ],
        )
    )
    ticket = make_ticket()
    asyncio.run(generator.generate(ticket, "The screen stays black"))

    decision = asyncio.run(generator.generate(ticket, "No, still black"))

    assert completion.calls == []
    assert decision.should_escalate
    assert decision.response_type == RESPONSE_FLOW_ESCALATED
