from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from helpdesk.utils.time import isoformat, utc_now

MAX_QUESTIONS = 5
DUPLICATE_SIMILARITY = 0.9

TECHNICAL_KEYWORDS = ("api", "firmware", "protocol", "configuration", "error code")
IMPATIENT_KEYWORDS = ("urgent", "immediately", "asap", "right now", "quickly")
FRUSTRATED_KEYWORDS = ("frustrated", "annoyed", "terrible", "awful", "hate", "stupid")
ANGRY_KEYWORDS = ("angry", "furious", "ridiculous", "unacceptable", "worst")
DETAILED_MESSAGE_CHARS = 200

STYLE_UNKNOWN = "unknown"
STYLE_TECHNICAL = "technical"
STYLE_IMPATIENT = "impatient"
STYLE_DETAILED = "detailed"
STYLE_NON_TECHNICAL = "non_technical"

FRUSTRATION_LOW = "low"
FRUSTRATION_MEDIUM = "medium"
FRUSTRATION_HIGH = "high"
FRUSTRATION_CRITICAL = "critical"

WORD_RE = re.compile(r"\s+")


@dataclass
class StepLogEntry:
    flow_id: str
    step: int
    instruction: str
    user_response: str | None
    timestamp: datetime


@dataclass
class ContextMemory:
    ticket_id: str
    questions_asked: deque[str] = field(default_factory=lambda: deque(maxlen=MAX_QUESTIONS))
    troubleshooting_steps_completed: list[StepLogEntry] = field(default_factory=list)
    active_flow_id: str | None = None
    active_step: int | None = None
    customer_communication_style: str = STYLE_UNKNOWN
    customer_frustration_level: str = FRUSTRATION_LOW
    resolution_attempts: int = 0
    last_updated: datetime = field(default_factory=utc_now)

    def touch(self) -> None:
        self.last_updated = utc_now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "questions_asked": list(self.questions_asked),
            "troubleshooting_steps_completed": [
                {
                    "flow_id": entry.flow_id,
                    "step": entry.step,
                    "instruction": entry.instruction,
                    "user_response": entry.user_response,
                    "timestamp": isoformat(entry.timestamp),
                }
                for entry in self.troubleshooting_steps_completed
            ],
            "active_flow_id": self.active_flow_id,
            "active_step": self.active_step,
            "customer_communication_style": self.customer_communication_style,
            "customer_frustration_level": self.customer_frustration_level,
            "resolution_attempts": self.resolution_attempts,
            "last_updated": isoformat(self.last_updated),
        }


def detect_communication_style(text: str) -> str:
    lowered = text.lower()
    if any(word in lowered for word in TECHNICAL_KEYWORDS):
        return STYLE_TECHNICAL
    if any(word in lowered for word in IMPATIENT_KEYWORDS):
        return STYLE_IMPATIENT
    if len(text) > DETAILED_MESSAGE_CHARS:
        return STYLE_DETAILED
    return STYLE_NON_TECHNICAL


def detect_frustration_level(text: str) -> str:
    lowered = text.lower()
    if any(word in lowered for word in ANGRY_KEYWORDS):
        return FRUSTRATION_CRITICAL
    if any(word in lowered for word in FRUSTRATED_KEYWORDS):
        return FRUSTRATION_HIGH
    if "please" in lowered and "help" in lowered:
        return FRUSTRATION_MEDIUM
    return FRUSTRATION_LOW


def jaccard_similarity(first: str, second: str) -> float:
    words_first = {word for word in WORD_RE.split(first.lower().strip()) if word}
    words_second = {word for word in WORD_RE.split(second.lower().strip()) if word}
    union = words_first | words_second
    if not union:
        return 0.0
    return len(words_first & words_second) / len(union)


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    similarity: float = 0.0
    matched_question: str | None = None
    suggestion: str | None = None


class ContextMemoryStore:
    """Per-ticket conversation memory kept for the life of the process."""

    def __init__(self) -> None:
        self._memories: dict[str, ContextMemory] = {}

    def get(self, ticket_id: str) -> ContextMemory:
        memory = self._memories.get(ticket_id)
        if memory is None:
            memory = ContextMemory(ticket_id=ticket_id)
            self._memories[ticket_id] = memory
        return memory

    def has(self, ticket_id: str) -> bool:
        return ticket_id in self._memories

    def evict(self, ticket_id: str) -> None:
        self._memories.pop(ticket_id, None)

    def __len__(self) -> int:
        return len(self._memories)

    def check_duplicate(self, ticket_id: str, question: str) -> DuplicateCheck:
        memory = self.get(ticket_id)
        best_score = 0.0
        best_match = None
        for asked in memory.questions_asked:
            score = jaccard_similarity(question, asked)
            if score > best_score:
                best_score, best_match = score, asked
        if best_score > DUPLICATE_SIMILARITY:
            return DuplicateCheck(
                is_duplicate=True,
                similarity=best_score,
                matched_question=best_match,
                suggestion=(
                    "I've asked about this before. Let me approach this differently: "
                    f"{question}"
                ),
            )
        return DuplicateCheck(is_duplicate=False, similarity=best_score)

    def remember_question(self, ticket_id: str, question: str) -> None:
        memory = self.get(ticket_id)
        memory.questions_asked.append(question)
        memory.touch()

    def record_turn(self, ticket_id: str, user_message: str) -> ContextMemory:
        memory = self.get(ticket_id)
        memory.customer_communication_style = detect_communication_style(user_message)
        memory.customer_frustration_level = detect_frustration_level(user_message)
        memory.resolution_attempts += 1
        memory.touch()
        return memory
