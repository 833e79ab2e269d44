"""Pydantic schemas for notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    """Notification response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    profile_id: UUID
    type: str
    status: str
    scheduled_for: datetime
    sent_at: datetime | None
    provider_message_id: str | None
    visit_slot_id: UUID | None
    message: str | None
    error: str | None
    created_at: datetime


class NudgeCreate(BaseModel):
    profile_id: UUID
    message: str | None = Field(default=None, max_length=1000)
