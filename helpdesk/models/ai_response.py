from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.models.base import Base


class AiResponseRecord(Base):
    __tablename__ = "ai_responses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id"), index=True)
    message_id: Mapped[str] = mapped_column(ForeignKey("messages.id"))
    source_chunk_ids: Mapped[list[str] | None] = mapped_column(JSON)
    user_message: Mapped[str] = mapped_column(Text)
    confidence_score: Mapped[float] = mapped_column(Float)
    model_used: Mapped[str] = mapped_column(String(64))
    response_type: Mapped[str] = mapped_column(String(32))
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
