from __future__ import annotations

from dataclasses import dataclass

from helpdesk.core.config import settings
from helpdesk.repositories import Stores, build_memory_stores
from helpdesk.services.ai_responder import AiResponder, TicketWorkQueue
from helpdesk.services.assignment import AssignmentCoordinator
from helpdesk.services.clarity import ClarityOptimizer
from helpdesk.services.context_memory import ContextMemoryStore
from helpdesk.services.knowledge_base import KnowledgeBase
from helpdesk.services.license_rules import LicenseRuleEngine
from helpdesk.services.llm_clients import CompletionClient, EmbeddingClient, OpenAIClient
from helpdesk.services.realtime import ConnectionManager
from helpdesk.services.response_generator import ResponseGenerator
from helpdesk.services.retrieval import RetrievalIndex
from helpdesk.services.tickets import TicketService
from helpdesk.services.troubleshooting import TroubleshootingFlowEngine


@dataclass
class Services:
    stores: Stores
    completion: CompletionClient | None
    memory: ContextMemoryStore
    flows: TroubleshootingFlowEngine
    clarity: ClarityOptimizer
    generator: ResponseGenerator
    realtime: ConnectionManager
    assignment: AssignmentCoordinator
    responder: AiResponder
    tickets: TicketService
    knowledge_base: KnowledgeBase


def build_stores() -> Stores:
    if settings.STORAGE_BACKEND == "memory":
        return build_memory_stores()
    from helpdesk.core.database import AsyncSessionLocal
    from helpdesk.repositories.sql import build_sql_stores

    return build_sql_stores(AsyncSessionLocal)


def build_services(
    stores: Stores | None = None,
    completion: CompletionClient | None = None,
    embedder: EmbeddingClient | None = None,
    realtime: ConnectionManager | None = None,
) -> Services:
    """Wire the service graph. Without explicit clients an OpenAI client is used when a key is set."""
    stores = stores or build_stores()
    if completion is None and embedder is None:
        client = OpenAIClient()
        if client.enabled:
            completion = embedder = client

    realtime = realtime or ConnectionManager()
    memory = ContextMemoryStore()
    flows = TroubleshootingFlowEngine(memory)
    clarity = ClarityOptimizer()
    generator = ResponseGenerator(
        completion,
        RetrievalIndex(embedder),
        memory,
        flows,
        LicenseRuleEngine(),
        clarity,
    )
    assignment = AssignmentCoordinator(stores.tickets, realtime, app_logs=stores.app_logs)
    responder = AiResponder(stores, generator, assignment, realtime, TicketWorkQueue())
    return Services(
        stores=stores,
        completion=completion,
        memory=memory,
        flows=flows,
        clarity=clarity,
        generator=generator,
        realtime=realtime,
        assignment=assignment,
        responder=responder,
        tickets=TicketService(stores, memory, realtime, responder, completion),
        knowledge_base=KnowledgeBase(stores.chunks, embedder, app_logs=stores.app_logs),
    )
