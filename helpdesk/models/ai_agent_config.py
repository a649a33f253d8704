from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.models.base import Base, TimestampMixin


class AiAgentConfig(TimestampMixin, Base):
    __tablename__ = "ai_agent_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    agent_name: Mapped[str | None] = mapped_column(String(64))
    model: Mapped[str | None] = mapped_column(String(64))
    response_tone: Mapped[str | None] = mapped_column(String(32))
    attitude_style: Mapped[str | None] = mapped_column(String(32))
    instructions: Mapped[str | None] = mapped_column(Text)
    exceptions_behavior: Mapped[str | None] = mapped_column(Text)
    confidence_threshold: Mapped[float | None] = mapped_column(Float)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
