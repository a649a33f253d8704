"""Deterministic rewrites that make AI replies easier to follow.

The passes run in a fixed order: plain words for jargon, long sentences split
at a conjunction, passive phrasing turned active, hedging replaced with direct
phrasing, then a numbered layout when the reply is a list of instructions.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

JARGON_MAP = {
    "API": "connection interface",
    "firmware": "device software",
    "protocol": "communication method",
    "initialize": "start up",
    "authenticate": "verify identity",
    "configuration": "settings",
    "parameters": "settings",
    "execute": "run",
    "terminate": "stop",
}
SCORED_JARGON = ("api", "firmware", "protocol", "initialize", "authenticate", "configuration")

PASSIVE_PATTERNS = (
    (re.compile(r"(\w+) is recommended"), r"I recommend \1"),
    (re.compile(r"it is suggested"), "I suggest"),
    (re.compile(r"this can be done"), "you can do this"),
    (re.compile(r"(\w+) should be (\w+)"), r"you should \2 \1"),
)

DEFAULT_VAGUE_PHRASES: dict[str, tuple[str, ...]] = {
    "It seems like": ("Here's what we can try next:", "Here's the next thing to try:"),
    "It appears that": ("The issue is likely:", "Most likely:"),
    "You might want to": ("Try this:", "Please try this:"),
    "It could be": ("This is probably:", "The likely cause is:"),
    "Perhaps": ("Let's try:",),
    "Maybe": ("Let's try:",),
    "Possibly": ("This might be:",),
}

CONJUNCTIONS = (" and ", " but ", " or ", " so ", " because ")
LONG_SENTENCE_WORDS = 20
INSTRUCTION_RE = re.compile(r"\b(try|check|make sure|verify|test|click|press)\b", re.IGNORECASE)
DIRECT_PHRASES = ("try", "let's", "here's", "you can", "we can")
SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
NUMBERED_RE = re.compile(r"^\d+\. ", re.MULTILINE)


class PhrasePool:
    """Replacement phrases for hedging language, picked with an injectable RNG."""

    def __init__(
        self,
        phrases: Mapping[str, Sequence[str]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.phrases = {
            key: tuple(values)
            for key, values in (DEFAULT_VAGUE_PHRASES if phrases is None else phrases).items()
            if values
        }
        self.rng = rng or random.Random()

    def choose(self, phrase: str) -> str:
        return self.rng.choice(self.phrases[phrase])


@dataclass
class ClarityResult:
    original_response: str
    optimized_response: str
    clarity_score: float
    optimizations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_response": self.original_response,
            "optimized_response": self.optimized_response,
            "clarity_score": self.clarity_score,
            "optimizations": list(self.optimizations),
        }


def simplify_jargon(text: str) -> str:
    for jargon, plain in JARGON_MAP.items():
        text = re.sub(rf"\b{jargon}\b", plain, text, flags=re.IGNORECASE)
    return text


def _split_sentence(sentence: str) -> str:
    if len(sentence.split()) <= LONG_SENTENCE_WORDS:
        return sentence
    for conjunction in CONJUNCTIONS:
        position = sentence.find(conjunction)
        if position != -1:
            word = conjunction.strip()
            return (
                sentence[:position].rstrip()
                + ". "
                + word.capitalize()
                + " "
                + sentence[position + len(conjunction):]
            )
    return sentence


def break_long_sentences(text: str) -> str:
    lines = []
    for line in text.split("\n"):
        sentences = SENTENCE_RE.findall(line)
        if not sentences:
            lines.append(line)
            continue
        lines.append("".join(_split_sentence(sentence) for sentence in sentences))
    return "\n".join(lines)


def convert_to_active_voice(text: str) -> str:
    for pattern, replacement in PASSIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def replace_vague_phrases(text: str, pool: PhrasePool) -> str:
    for phrase in pool.phrases:
        text = re.sub(
            re.escape(phrase),
            lambda _match, phrase=phrase: pool.choose(phrase),
            text,
            flags=re.IGNORECASE,
        )
    return text


def _sentences(text: str) -> list[str]:
    return [part.strip() for part in SENTENCE_SPLIT_RE.split(text) if part.strip()]


def add_step_formatting(text: str) -> str:
    sentences = _sentences(text)
    if len(sentences) <= 2:
        return text
    instructions = sum(1 for sentence in sentences if INSTRUCTION_RE.search(sentence))
    if instructions < 2:
        return text
    lines = [sentences[0] + ":"]
    lines.extend(f"{number}. {sentence}" for number, sentence in enumerate(sentences[1:], 1))
    return "\n".join(lines)


def calculate_clarity_score(text: str) -> float:
    score = 0.5
    sentences = _sentences(text)
    if sentences:
        average = sum(len(sentence.split()) for sentence in sentences) / len(sentences)
        if average < 15:
            score += 0.2
        elif average > 25:
            score -= 0.2

    lowered = text.lower()
    score -= 0.1 * sum(1 for word in SCORED_JARGON if word in lowered)
    if NUMBERED_RE.search(text) or "Step" in text:
        score += 0.1
    score += 0.05 * sum(1 for phrase in DIRECT_PHRASES if phrase in lowered)
    return round(max(0.1, min(1.0, score)), 4)


def identify_optimizations(original: str, optimized: str) -> list[str]:
    optimizations = []
    if original != optimized:
        optimizations.append("clarity_improved")
    if NUMBERED_RE.search(optimized) and not NUMBERED_RE.search(original):
        optimizations.append("formatting_added")
    if len(optimized) < len(original):
        optimizations.append("text_simplified")
    return optimizations


class ClarityOptimizer:
    def __init__(self, phrases: PhrasePool | None = None) -> None:
        self.phrases = phrases or PhrasePool()

    def optimize(self, response: str) -> ClarityResult:
        optimized = simplify_jargon(response)
        optimized = break_long_sentences(optimized)
        optimized = convert_to_active_voice(optimized)
        optimized = replace_vague_phrases(optimized, self.phrases)
        optimized = add_step_formatting(optimized)
        return ClarityResult(
            original_response=response,
            optimized_response=optimized,
            clarity_score=calculate_clarity_score(optimized),
            optimizations=identify_optimizations(response, optimized),
        )
