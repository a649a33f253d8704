"""Decide what the AI agent says to an inbound customer message.

Scripted short-circuits run first (human handoff keywords, license rules,
troubleshooting flows) and never call the model. Otherwise relevant knowledge
base chunks are retrieved, a completion is requested, the reply is cleaned up
and scored, and a low score hands the ticket to a human.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Sequence

import structlog

from helpdesk.core.config import settings
from helpdesk.models import DocumentChunk, Message, Ticket
from helpdesk.schemas.agent_config import AgentConfig
from helpdesk.services.clarity import ClarityOptimizer
from helpdesk.services.context_memory import ContextMemoryStore, DuplicateCheck
from helpdesk.services.license_rules import LicenseRuleEngine
from helpdesk.services.llm_clients import CompletionClient, LLMError
from helpdesk.services.prompts import render_prompt
from helpdesk.services.retrieval import RetrievalIndex, RetrievedChunk
from helpdesk.services.ticket_context import TicketContext, build_ticket_context
from helpdesk.services.troubleshooting import (
    StepResult,
    Transition,
    TroubleshootingFlowEngine,
)
from helpdesk.utils.time import elapsed_ms

logger = structlog.get_logger(__name__)

RESPONSE_HANDOFF = "handoff_rule"
RESPONSE_LICENSE = "license_rule"
RESPONSE_TROUBLESHOOTING = "troubleshooting_flow"
RESPONSE_FLOW_RESOLVED = "troubleshooting_resolved"
RESPONSE_FLOW_ESCALATED = "troubleshooting_escalation"
RESPONSE_STANDARD = "standard_response"
RESPONSE_CONTEXTUAL = "contextual_response"
RESPONSE_DUPLICATE = "duplicate_question"
RESPONSE_FALLBACK = "fallback"

MODEL_HANDOFF = "escalation-rule"
MODEL_LICENSE = "license-rule"
MODEL_FLOW = "troubleshooting-flow"

HANDOFF_MESSAGE = (
    "I understand you'd like to speak with a human agent. Let me connect you with "
    "one of our support specialists who can assist you further."
)
ESCALATION_MESSAGE = (
    "I want to make sure you get the right answer, so I'm connecting you with one "
    "of our support specialists. They will continue with you here shortly."
)
FALLBACK_MESSAGE = (
    "I'm having trouble processing your request right now. Let me connect you "
    "with a human agent who can help you further."
)
FLOW_RESOLVED_MESSAGE = (
    "Great, I'm glad that solved it! Is there anything else I can help you with?"
)

HANDOFF_PATTERNS = (
    re.compile(r"\bhuman\b", re.IGNORECASE),
    re.compile(r"\bperson\b", re.IGNORECASE),
    re.compile(r"talk to someone", re.IGNORECASE),
)
UNCERTAINTY_PHRASES = ("i'm not sure", "i don't know", "might be", "possibly", "perhaps")
QUESTION_RE = re.compile(r"[^.!?\n]*\?")

FLOW_CONFIDENCE = 0.9
RULE_CONFIDENCE = 1.0


@dataclass
class AiDecision:
    response: str
    confidence: float
    should_escalate: bool
    response_type: str
    model_used: str
    source_chunk_ids: list[str] = field(default_factory=list)
    response_time_ms: int = 0
    flow_id: str | None = None
    current_step: int | None = None
    license_category: str | None = None
    clarity_score: float | None = None
    optimizations: list[str] = field(default_factory=list)
    duplicate: DuplicateCheck | None = None

    @property
    def used_llm(self) -> bool:
        return self.response_type in (RESPONSE_STANDARD, RESPONSE_CONTEXTUAL, RESPONSE_DUPLICATE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "confidence": self.confidence,
            "should_escalate": self.should_escalate,
            "response_type": self.response_type,
            "model_used": self.model_used,
            "source_chunk_ids": list(self.source_chunk_ids),
            "response_time_ms": self.response_time_ms,
            "flow_id": self.flow_id,
            "current_step": self.current_step,
            "license_category": self.license_category,
            "clarity_score": self.clarity_score,
            "optimizations": list(self.optimizations),
            "is_duplicate_question": bool(self.duplicate and self.duplicate.is_duplicate),
        }


def calculate_confidence(response: str, doc_count: int) -> float:
    confidence = 0.5
    if doc_count > 0:
        confidence += 0.2 + doc_count * 0.1

    word_count = len(response.split())
    if word_count > 50:
        confidence += 0.1
    if word_count > 100:
        confidence += 0.1
    if word_count < 20:
        confidence -= 0.2

    lowered = response.lower()
    if any(phrase in lowered for phrase in UNCERTAINTY_PHRASES):
        confidence -= 0.2

    return round(max(0.1, min(0.95, confidence)), 4)


def wants_human(message: str, keywords: Sequence[str] = ()) -> bool:
    lowered = message.lower()
    if any(keyword and keyword in lowered for keyword in keywords):
        return True
    return any(pattern.search(message) for pattern in HANDOFF_PATTERNS)


def proposed_questions(response: str) -> list[str]:
    return [match.strip() for match in QUESTION_RE.findall(response) if match.strip(" ?")]


def _format_documents(documents: Sequence[RetrievedChunk]) -> str:
    return "\n".join(f"- {doc.text}" for doc in documents)


def _format_instructions(config: AgentConfig) -> str:
    if not config.instructions:
        return ""
    return f"\n\nAdditional instructions:\n{config.instructions}"


def build_base_prompt(config: AgentConfig, documents: Sequence[RetrievedChunk]) -> str:
    knowledge_base = ""
    if documents:
        knowledge_base = f"\n\nKnowledge Base:\n{_format_documents(documents)}"
    return render_prompt(
        "base_system",
        agent_name=config.agent_name,
        tone_lower=config.response_tone.lower(),
        instructions=_format_instructions(config),
        knowledge_base=knowledge_base,
    )


def build_enhanced_prompt(
    config: AgentConfig,
    context: TicketContext,
    documents: Sequence[RetrievedChunk],
) -> str:
    context_info = ""
    if context.conversation_summary:
        context_info += f"\nConversation context: {context.conversation_summary}"
    device = context.device_info
    if device is not None and device.model:
        context_info += f"\nDevice: {device.model}"
        if device.known_issues:
            context_info += f" (Known issues: {', '.join(device.known_issues)})"
    if context.troubleshooting_stage:
        context_info += f"\nTroubleshooting stage: {context.troubleshooting_stage}"
    if context.issue_keywords:
        context_info += f"\nIssue keywords: {', '.join(context.issue_keywords)}"
    for guidance in context.tone_guidance:
        context_info += f"\nTone guidance: {guidance}"

    document_info = ""
    if documents:
        document_info = f"\nRelevant Documentation:\n{_format_documents(documents)}\n"
    return render_prompt(
        "enhanced_system",
        agent_name=config.agent_name,
        tone=config.response_tone,
        attitude=config.attitude_style,
        context_info=context_info,
        instructions=_format_instructions(config),
        document_info=document_info,
    )


class ResponseGenerator:
    def __init__(
        self,
        completion: CompletionClient | None,
        retrieval: RetrievalIndex,
        memory: ContextMemoryStore,
        flows: TroubleshootingFlowEngine,
        license_rules: LicenseRuleEngine | None = None,
        clarity: ClarityOptimizer | None = None,
        *,
        enhanced: bool = True,
        duplicate_escalation: bool | None = None,
    ) -> None:
        self.completion = completion
        self.retrieval = retrieval
        self.memory = memory
        self.flows = flows
        self.license_rules = license_rules or LicenseRuleEngine()
        self.clarity = clarity or ClarityOptimizer()
        self.enhanced = enhanced
        self.duplicate_escalation = (
            settings.DUPLICATE_ESCALATION_ENABLED
            if duplicate_escalation is None
            else duplicate_escalation
        )

    async def generate(
        self,
        ticket: Ticket,
        user_message: str,
        *,
        history: Sequence[Message] = (),
        chunks: Sequence[DocumentChunk] = (),
        config: AgentConfig | None = None,
    ) -> AiDecision:
        started = time.perf_counter()
        config = config or AgentConfig()
        self.memory.record_turn(ticket.id, user_message)

        decision = self._scripted(ticket, user_message, config)
        if decision is None:
            decision = await self._generated(ticket, user_message, history, chunks, config)
        decision.response_time_ms = elapsed_ms(started, time.perf_counter())

        logger.info(
            "ai_response_generated",
            ticket_id=ticket.id,
            response_type=decision.response_type,
            confidence=decision.confidence,
            should_escalate=decision.should_escalate,
            response_time_ms=decision.response_time_ms,
        )
        return decision

    def _scripted(
        self, ticket: Ticket, user_message: str, config: AgentConfig
    ) -> AiDecision | None:
        if wants_human(user_message, config.escalation_keywords):
            return AiDecision(
                response=HANDOFF_MESSAGE,
                confidence=RULE_CONFIDENCE,
                should_escalate=True,
                response_type=RESPONSE_HANDOFF,
                model_used=MODEL_HANDOFF,
            )

        license_match = self.license_rules.check(user_message)
        if license_match is not None:
            return AiDecision(
                response=license_match.response,
                confidence=RULE_CONFIDENCE,
                should_escalate=False,
                response_type=RESPONSE_LICENSE,
                model_used=MODEL_LICENSE,
                license_category=license_match.category,
            )

        return self._troubleshooting(ticket, user_message)

    def _troubleshooting(self, ticket: Ticket, user_message: str) -> AiDecision | None:
        result = self.flows.advance(ticket.id, user_message)
        if result is not None:
            return self._continue_flow(ticket, result)

        flow = self.flows.match(user_message, ticket.device_model)
        if flow is None:
            return None
        first = self.flows.execute_step(ticket.id, flow.id, flow.steps[0].number)
        if first is None:
            return None
        return self._flow_step(first)

    def _continue_flow(self, ticket: Ticket, result: StepResult) -> AiDecision:
        next_step = result.next_step
        if next_step is None:
            return self._flow_step(result)
        if next_step.kind is Transition.RESOLVED:
            return AiDecision(
                response=FLOW_RESOLVED_MESSAGE,
                confidence=FLOW_CONFIDENCE,
                should_escalate=False,
                response_type=RESPONSE_FLOW_RESOLVED,
                model_used=MODEL_FLOW,
                flow_id=result.flow_id,
                current_step=result.current_step.number,
            )
        if next_step.kind is Transition.ESCALATE:
            return self._flow_escalation(result)
        following = self.flows.execute_step(ticket.id, result.flow_id, next_step.step)
        if following is None:
            logger.warning(
                "troubleshooting_step_missing",
                ticket_id=ticket.id,
                flow_id=result.flow_id,
                step=next_step.step,
            )
            return self._flow_escalation(result)
        return self._flow_step(following)

    @staticmethod
    def _flow_escalation(result: StepResult) -> AiDecision:
        return AiDecision(
            response=ESCALATION_MESSAGE,
            confidence=FLOW_CONFIDENCE,
            should_escalate=True,
            response_type=RESPONSE_FLOW_ESCALATED,
            model_used=MODEL_FLOW,
            flow_id=result.flow_id,
            current_step=result.current_step.number,
        )

    @staticmethod
    def _flow_step(result: StepResult) -> AiDecision:
        return AiDecision(
            response=result.current_step.prompt,
            confidence=FLOW_CONFIDENCE,
            should_escalate=False,
            response_type=RESPONSE_TROUBLESHOOTING,
            model_used=MODEL_FLOW,
            flow_id=result.flow_id,
            current_step=result.current_step.number,
        )

    async def _generated(
        self,
        ticket: Ticket,
        user_message: str,
        history: Sequence[Message],
        chunks: Sequence[DocumentChunk],
        config: AgentConfig,
    ) -> AiDecision:
        if self.completion is None:
            raise LLMError("Completion client is not configured")

        documents = await self.retrieval.search(user_message, chunks)
        if self.enhanced:
            context = build_ticket_context(ticket, history, self.memory.get(ticket.id))
            system_prompt = build_enhanced_prompt(config, context, documents)
        else:
            system_prompt = build_base_prompt(config, documents)

        response = await self.completion.complete(
            system_prompt,
            user_message,
            model=config.model,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
        )

        clarity_score = None
        optimizations: list[str] = []
        if self.enhanced:
            optimized = self.clarity.optimize(response)
            response = optimized.optimized_response
            clarity_score = optimized.clarity_score
            optimizations = optimized.optimizations

        confidence = calculate_confidence(response, len(documents))
        decision = AiDecision(
            response=response,
            confidence=confidence,
            should_escalate=confidence < config.confidence_threshold,
            response_type=RESPONSE_CONTEXTUAL if self.enhanced else RESPONSE_STANDARD,
            model_used=config.model,
            source_chunk_ids=[doc.chunk_id for doc in documents],
            clarity_score=clarity_score,
            optimizations=optimizations,
        )
        self._check_questions(ticket, decision)
        return decision

    def _check_questions(self, ticket: Ticket, decision: AiDecision) -> None:
        for question in proposed_questions(decision.response):
            check = self.memory.check_duplicate(ticket.id, question)
            if check.is_duplicate:
                decision.duplicate = check
                logger.info(
                    "duplicate_question_detected",
                    ticket_id=ticket.id,
                    similarity=round(check.similarity, 4),
                    escalation_enabled=self.duplicate_escalation,
                )
                if self.duplicate_escalation:
                    decision.should_escalate = True
                    decision.response_type = RESPONSE_DUPLICATE
                    return
            self.memory.remember_question(ticket.id, question)
