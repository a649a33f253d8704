from helpdesk.repositories.base import (
    AgentConfigStore,
    AiResponseStore,
    AppLogStore,
    ChunkStore,
    FeedbackStore,
    MessageStore,
    Stores,
    TicketStore,
)
from helpdesk.repositories.memory import build_memory_stores

__all__ = [
    "AgentConfigStore",
    "AiResponseStore",
    "AppLogStore",
    "ChunkStore",
    "FeedbackStore",
    "MessageStore",
    "Stores",
    "TicketStore",
    "build_memory_stores",
]
