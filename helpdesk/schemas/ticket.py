from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TicketStatus = Literal["new", "in_progress", "resolved", "reopened", "closed"]
TicketPriority = Literal["low", "medium", "high", "urgent"]


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    priority: TicketPriority = "medium"
    category: str | None = Field(default=None, max_length=64)
    customer_id: str | None = Field(default=None, max_length=64)
    customer_name: str | None = Field(default=None, max_length=255)
    customer_email: str | None = Field(default=None, max_length=255)
    device_model: str | None = Field(default=None, max_length=64)
    device_serial_number: str | None = Field(default=None, max_length=64)


class TicketUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    category: str | None = Field(default=None, max_length=64)
    device_model: str | None = Field(default=None, max_length=64)
    device_serial_number: str | None = Field(default=None, max_length=64)


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_number: str
    title: str
    description: str | None = None
    status: str
    priority: str
    category: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    agent_id: str | None = None
    assigned_at: datetime | None = None
    ai_enabled: bool
    ai_disabled_reason: str | None = None
    ai_disabled_at: datetime | None = None
    device_model: str | None = None
    device_serial_number: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ClaimRequest(BaseModel):
    agent_id: str = Field(min_length=1, max_length=64)


class AiToggleRequest(BaseModel):
    enabled: bool
