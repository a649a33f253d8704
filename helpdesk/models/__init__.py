from helpdesk.models.ai_agent_config import AiAgentConfig
from helpdesk.models.ai_feedback import AiFeedback
from helpdesk.models.ai_response import AiResponseRecord
from helpdesk.models.app_log import AppLog
from helpdesk.models.base import Base, TimestampMixin
from helpdesk.models.document import Document, DocumentChunk
from helpdesk.models.message import Message
from helpdesk.models.ticket import Ticket

__all__ = [
    "AiAgentConfig",
    "AiFeedback",
    "AiResponseRecord",
    "AppLog",
    "Base",
    "TimestampMixin",
    "Document",
    "DocumentChunk",
    "Message",
    "Ticket",
]
