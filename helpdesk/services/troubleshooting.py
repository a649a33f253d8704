"""Guided diagnostic flows.

A flow is a small graph of numbered steps. Each step points to the next step
for a positive and a negative customer reply, or ends the flow as resolved or
escalated.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

import structlog

from helpdesk.services.context_memory import ContextMemoryStore, StepLogEntry
from helpdesk.utils.time import utc_now

logger = structlog.get_logger(__name__)

POSITIVE_KEYWORDS = ("yes", "yeah", "ok", "okay", "done", "completed", "works", "fixed", "solved")
NEGATIVE_KEYWORDS = ("no", "nope", "not", "still", "doesn't work", "failed", "error")
CHECK_SOLVED = "Did this solve your issue?"


class Transition(str, Enum):
    RESOLVED = "resolved"
    ESCALATE = "escalate"
    GOTO = "goto"


@dataclass(frozen=True)
class NextStep:
    kind: Transition
    step: int | None = None

    @classmethod
    def goto(cls, step: int) -> "NextStep":
        return cls(Transition.GOTO, step)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not Transition.GOTO


RESOLVED = NextStep(Transition.RESOLVED)
ESCALATE = NextStep(Transition.ESCALATE)


@dataclass(frozen=True)
class Step:
    number: int
    instruction: str
    check_phrase: str
    on_success: NextStep
    on_failure: NextStep

    @property
    def prompt(self) -> str:
        return f"{self.instruction}\n\n{self.check_phrase}"


@dataclass
class Flow:
    id: str
    name: str
    matcher: Callable[[str], bool]
    steps: list[Step] = field(default_factory=list)
    device_model: str | None = None
    description: str | None = None

    def step(self, number: int) -> Step | None:
        return next((item for item in self.steps if item.number == number), None)

    def matches(self, text: str, device_model: str | None = None) -> bool:
        if self.device_model and device_model and self.device_model != device_model:
            return False
        return self.matcher(text)


@dataclass(frozen=True)
class StepResult:
    flow_id: str
    current_step: Step
    next_step: NextStep | None

    @property
    def is_complete(self) -> bool:
        return self.next_step is not None and self.next_step.kind is Transition.RESOLVED

    @property
    def should_escalate(self) -> bool:
        return self.next_step is not None and self.next_step.kind is Transition.ESCALATE

    def to_dict(self) -> dict:
        return {
            "flow_id": self.flow_id,
            "current_step": {
                "step": self.current_step.number,
                "instruction": self.current_step.instruction,
                "check_phrase": self.current_step.check_phrase,
            },
            "next_step": None
            if self.next_step is None
            else {"kind": self.next_step.kind.value, "step": self.next_step.step},
            "is_complete": self.is_complete,
            "should_escalate": self.should_escalate,
        }


def pattern_matcher(pattern: str) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda text: bool(compiled.search(text or ""))


def _response_votes(text: str) -> tuple[int, int]:
    lowered = text.lower()
    words = set(re.findall(r"[a-z']+", lowered))
    positive = sum(1 for keyword in POSITIVE_KEYWORDS if keyword in words)
    negative = sum(
        1
        for keyword in NEGATIVE_KEYWORDS
        if (keyword in lowered if " " in keyword else keyword in words)
    )
    return positive, negative


def is_positive_response(text: str) -> bool:
    positive, negative = _response_votes(text)
    return positive > negative


def is_step_reply(text: str) -> bool:
    """A message answers a pending check only when it says yes or no in some form."""
    return any(_response_votes(text))


def default_flows() -> list[Flow]:
    return [
        Flow(
            id="power-issues",
            name="Device Power Issues",
            matcher=pattern_matcher(
                r"won't power on|not turning on|no power|dead|not starting|won't start"
            ),
            steps=[
                Step(
                    1,
                    "Let's walk through a few quick checks to power on your device. "
                    "Step 1: Make sure the power cord is firmly connected to both your "
                    "device and the wall outlet.",
                    CHECK_SOLVED,
                    RESOLVED,
                    NextStep.goto(2),
                ),
                Step(
                    2,
                    "Step 2: Try a different power outlet to rule out outlet issues.",
                    CHECK_SOLVED,
                    RESOLVED,
                    NextStep.goto(3),
                ),
                Step(
                    3,
                    "Step 3: Look for any LED lights or indicators on your device. "
                    "Are you seeing any lights at all?",
                    "Are you seeing any lights?",
                    NextStep.goto(4),
                    NextStep.goto(5),
                ),
                Step(
                    4,
                    "If you're seeing lights, your device is getting power but may have "
                    "a different issue. Let's try a factory reset. Can you locate the "
                    "reset button on your device?",
                    "Did the reset resolve the issue?",
                    RESOLVED,
                    ESCALATE,
                ),
                Step(
                    5,
                    "If there are no lights and we've tried different outlets, this "
                    "suggests a hardware issue. To proceed with warranty or repair "
                    "options, I'll need your device's serial number. Can you provide that?",
                    "Can you provide the serial number?",
                    ESCALATE,
                    ESCALATE,
                ),
            ],
        ),
        Flow(
            id="connectivity",
            name="Connectivity Issues",
            matcher=pattern_matcher(
                r"connection|connect|wifi|network|bluetooth|pairing|can't connect|won't connect"
            ),
            steps=[
                Step(
                    1,
                    "I can help you with connection issues. First, what type of "
                    "connection are you trying to establish - WiFi, Bluetooth, or USB?",
                    "What type of connection?",
                    NextStep.goto(2),
                    NextStep.goto(2),
                ),
                Step(
                    2,
                    "Let's start by restarting your device and the device you're trying "
                    "to connect to. Please power both devices off for 10 seconds, then "
                    "power them back on.",
                    CHECK_SOLVED,
                    RESOLVED,
                    NextStep.goto(3),
                ),
                Step(
                    3,
                    "Now let's check if your devices are in range and that "
                    "Bluetooth/WiFi is enabled on both devices. Are both devices "
                    "showing as available for connection?",
                    "Are both devices showing as available?",
                    NextStep.goto(4),
                    ESCALATE,
                ),
                Step(
                    4,
                    "Try forgetting/removing the connection and re-pairing the devices "
                    "from scratch. This often resolves connection conflicts.",
                    CHECK_SOLVED,
                    RESOLVED,
                    ESCALATE,
                ),
            ],
        ),
    ]


class TroubleshootingFlowEngine:
    def __init__(
        self,
        memory: ContextMemoryStore,
        flows: Iterable[Flow] | None = None,
    ) -> None:
        self.memory = memory
        self._flows: dict[str, Flow] = {}
        for flow in default_flows() if flows is None else flows:
            self.register_flow(flow)

    def register_flow(self, flow: Flow) -> Flow:
        self._flows[flow.id] = flow
        return flow

    def register_pattern_flow(
        self,
        flow_id: str,
        name: str,
        pattern: str,
        steps: list[Step],
        device_model: str | None = None,
        description: str | None = None,
    ) -> Flow:
        try:
            matcher = pattern_matcher(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid issue pattern: {exc}") from exc
        if not steps:
            raise ValueError("A flow needs at least one step")
        numbers = {step.number for step in steps}
        for step in steps:
            for target in (step.on_success, step.on_failure):
                if target.kind is Transition.GOTO and target.step not in numbers:
                    raise ValueError(f"Step {step.number} points to missing step {target.step}")
        return self.register_flow(
            Flow(
                id=flow_id,
                name=name,
                matcher=matcher,
                steps=steps,
                device_model=device_model,
                description=description,
            )
        )

    def get_flow(self, flow_id: str) -> Flow | None:
        return self._flows.get(flow_id)

    def list_flows(self) -> list[Flow]:
        return list(self._flows.values())

    def match(self, text: str, device_model: str | None = None) -> Flow | None:
        for flow in self._flows.values():
            if flow.matches(text, device_model):
                return flow
        return None

    def execute_step(
        self,
        ticket_id: str,
        flow_id: str,
        step_number: int,
        user_response: str | None = None,
    ) -> StepResult | None:
        flow = self._flows.get(flow_id)
        if flow is None:
            return None
        step = flow.step(step_number)
        if step is None:
            return None

        memory = self.memory.get(ticket_id)
        memory.troubleshooting_steps_completed.append(
            StepLogEntry(
                flow_id=flow_id,
                step=step_number,
                instruction=step.instruction,
                user_response=user_response,
                timestamp=utc_now(),
            )
        )

        next_step = None
        if user_response:
            next_step = step.on_success if is_positive_response(user_response) else step.on_failure

        if next_step is None:
            memory.active_flow_id, memory.active_step = flow_id, step_number
        elif next_step.is_terminal:
            memory.active_flow_id, memory.active_step = None, None
        else:
            memory.active_flow_id, memory.active_step = flow_id, next_step.step
        memory.touch()

        logger.info(
            "troubleshooting_step_executed",
            ticket_id=ticket_id,
            flow_id=flow_id,
            step=step_number,
            next_step=None if next_step is None else next_step.kind.value,
        )
        return StepResult(flow_id=flow_id, current_step=step, next_step=next_step)

    def advance(self, ticket_id: str, user_response: str) -> StepResult | None:
        """Answer the pending step of the ticket's active flow.

        Steps that branch on the reply only accept a yes/no style answer. Any
        other message drops the active flow and returns None so the caller can
        treat it as a fresh question.
        """
        memory = self.memory.get(ticket_id)
        if not memory.active_flow_id or memory.active_step is None:
            return None
        flow = self._flows.get(memory.active_flow_id)
        step = flow.step(memory.active_step) if flow is not None else None
        branches = step is not None and step.on_success != step.on_failure
        if step is None or (branches and not is_step_reply(user_response)):
            logger.info(
                "troubleshooting_flow_abandoned",
                ticket_id=ticket_id,
                flow_id=memory.active_flow_id,
                step=memory.active_step,
            )
            memory.active_flow_id, memory.active_step = None, None
            memory.touch()
            return None
        return self.execute_step(
            ticket_id, memory.active_flow_id, memory.active_step, user_response
        )
