"""Pydantic schemas for family profiles and invites."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from levsarah.db.enums import Relationship


class ProfileSummary(BaseModel):
    """Minimal profile, embedded in slots and notifications."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    relationship: str
    avatar_gradient: str | None = None


class ProfileRead(BaseModel):
    """Profile response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    hebrew_name: str | None
    phone: str
    relationship: str
    is_admin: bool
    avatar_gradient: str | None
    profile_completed: bool
    last_visit_at: datetime | None
    created_at: datetime


class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    hebrew_name: str | None = Field(default=None, max_length=255)
    avatar_gradient: str | None = Field(default=None, max_length=100)
    profile_completed: bool | None = None


class AdminFlagUpdate(BaseModel):
    is_admin: bool


class FamilyMemberRead(BaseModel):
    """Profile with booking activity (coordinator view)."""
    profile: ProfileRead
    total_bookings: int
    days_since_last_visit: int | None
    is_active: bool


class InviteCreate(BaseModel):
    phone: str = Field(min_length=3, max_length=32)
    name: str = Field(min_length=1, max_length=255)
    relationship: Relationship
    is_admin_invite: bool = False


class InviteRead(BaseModel):
    """Invite response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    phone: str
    name: str
    relationship: str
    status: str
    invite_code: str
    is_admin_invite: bool
    invited_by_id: UUID | None
    invited_at: datetime
    accepted_at: datetime | None
    error: str | None


class InvitePublicRead(BaseModel):
    """What an invitee sees before signing in."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    relationship: str
    status: str
