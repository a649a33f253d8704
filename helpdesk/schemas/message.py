from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=10000)
    sender_id: str | None = Field(default=None, max_length=64)
    sender_type: Literal["customer", "agent"] = "customer"
    message_type: Literal["text", "file", "image"] = "text"


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    sender_id: str | None = None
    sender_type: str
    content: str
    message_type: str
    created_at: datetime | None = None
