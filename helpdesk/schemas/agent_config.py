from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from helpdesk.core.config import settings
from helpdesk.models import AiAgentConfig

DEFAULT_TONE = "Professional"
DEFAULT_ATTITUDE = "Helpful"


class AgentConfig(BaseModel):
    """Runtime persona of the AI agent. Missing or invalid values use defaults."""

    agent_name: str = Field(default_factory=lambda: settings.AI_AGENT_NAME)
    model: str = Field(default_factory=lambda: settings.OPENAI_MODEL)
    response_tone: str = DEFAULT_TONE
    attitude_style: str = DEFAULT_ATTITUDE
    instructions: str | None = None
    exceptions_behavior: str | None = None
    confidence_threshold: float = Field(
        default_factory=lambda: settings.DEFAULT_CONFIDENCE_THRESHOLD
    )
    enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def _drop_invalid(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for key, value in data.items():
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            cleaned[key] = value
        if "confidence_threshold" in cleaned:
            try:
                threshold = float(cleaned["confidence_threshold"])
            except (TypeError, ValueError):
                threshold = -1.0
            if 0.0 <= threshold <= 1.0:
                cleaned["confidence_threshold"] = threshold
            else:
                cleaned.pop("confidence_threshold")
        return cleaned

    @property
    def escalation_keywords(self) -> list[str]:
        if not self.exceptions_behavior:
            return []
        return [
            keyword.strip().lower()
            for keyword in self.exceptions_behavior.split(",")
            if keyword.strip()
        ]

    @classmethod
    def from_record(cls, record: AiAgentConfig | None) -> "AgentConfig":
        if record is None:
            return cls()
        return cls.model_validate(
            {
                "agent_name": record.agent_name,
                "model": record.model,
                "response_tone": record.response_tone,
                "attitude_style": record.attitude_style,
                "instructions": record.instructions,
                "exceptions_behavior": record.exceptions_behavior,
                "confidence_threshold": record.confidence_threshold,
                "enabled": record.active,
            }
        )


class AgentConfigUpdate(BaseModel):
    agent_name: str | None = Field(default=None, max_length=64)
    model: str | None = Field(default=None, max_length=64)
    response_tone: str | None = Field(default=None, max_length=32)
    attitude_style: str | None = Field(default=None, max_length=32)
    instructions: str | None = None
    exceptions_behavior: str | None = None
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    active: bool | None = None


class AgentConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    agent_name: str | None = None
    model: str | None = None
    response_tone: str | None = None
    attitude_style: str | None = None
    instructions: str | None = None
    exceptions_behavior: str | None = None
    confidence_threshold: float | None = None
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
