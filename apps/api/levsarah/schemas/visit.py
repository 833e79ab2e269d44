"""Pydantic schemas for visit slots."""

from datetime import date as date_type, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from levsarah.db.enums import TimeSlot
from levsarah.schemas.family import ProfileSummary


class SlotBook(BaseModel):
    """Book a slot for yourself."""
    date: date_type
    slot: TimeSlot
    notes: str | None = Field(default=None, max_length=1000)
    hebrew_date: str | None = Field(default=None, max_length=100)


class SlotBookForMember(SlotBook):
    """Coordinator books on behalf of a member."""
    profile_id: UUID


class SlotRead(BaseModel):
    """Visit slot response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: str
    slot: str
    hebrew_date: str
    booked_by_id: UUID | None
    booked_by: ProfileSummary | None = None
    booked_at: datetime | None
    notes: str | None
    is_shabbat: bool
    is_holiday: bool
    holiday_name: str | None


class DayCoverage(BaseModel):
    """One day of the coordinator gap analysis."""
    date: str
    display_date: str
    is_shabbat: bool
    is_gap: bool
    coverage: int | None
    slots: dict[str, SlotRead | None]
