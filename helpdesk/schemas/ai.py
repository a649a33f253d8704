from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

TransitionKind = Literal["resolved", "escalate", "goto"]


class NextStepIn(BaseModel):
    kind: TransitionKind
    step: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _goto_needs_step(self) -> "NextStepIn":
        if self.kind == "goto" and self.step is None:
            raise ValueError("goto transitions need a target step")
        return self


class FlowStepIn(BaseModel):
    step: int = Field(ge=1)
    instruction: str = Field(min_length=1, max_length=2000)
    check_phrase: str = Field(min_length=1, max_length=500)
    on_success: NextStepIn
    on_failure: NextStepIn


class FlowCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=120)
    pattern: str = Field(min_length=1, max_length=500)
    device_model: str | None = Field(default=None, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    steps: list[FlowStepIn] = Field(min_length=1)


class ExecuteStepRequest(BaseModel):
    ticket_id: str = Field(min_length=1)
    flow_id: str = Field(min_length=1)
    step: int = Field(ge=1)
    user_response: str | None = Field(default=None, max_length=4000)


class DuplicateCheckRequest(BaseModel):
    ticket_id: str = Field(min_length=1)
    question: str = Field(min_length=1, max_length=4000)


class ClarityRequest(BaseModel):
    text: str = Field(min_length=1, max_length=10000)


class FeedbackCreate(BaseModel):
    message_id: str = Field(min_length=1)
    ticket_id: str = Field(min_length=1)
    feedback: Literal["helpful", "unhelpful", "needs_improvement"]
    agent_rewrite: str | None = Field(default=None, max_length=10000)


class FeedbackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    message_id: str
    ticket_id: str
    feedback: str
    agent_rewrite: str | None = None
    created_at: datetime | None = None


class AiResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    message_id: str
    source_chunk_ids: list[str] | None = None
    user_message: str
    confidence_score: float
    model_used: str
    response_type: str
    response_time_ms: int
    created_at: datetime | None = None
