"""Family profile, invite and registration request models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm import relationship as orm_relationship

from levsarah.core.clock import utcnow
from levsarah.db.base import Base
from levsarah.db.enums import InviteStatus, RegistrationStatus


class FamilyProfile(Base):
    """
    A family member who can book visits.

    Created on invite acceptance. ``last_visit_at`` is stamped by the booking
    engine and drives the weekly activity nudge.
    """

    __tablename__ = "family_profiles"
    __table_args__ = (
        Index("idx_family_profiles_phone", "phone"),
        Index("idx_family_profiles_admin", "is_admin"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hebrew_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    relationship: Mapped[str] = mapped_column(String(20), nullable=False)
    is_admin: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), default=False, nullable=False
    )
    avatar_gradient: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_completed: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), default=False, nullable=False
    )
    last_visit_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    user: Mapped["User"] = orm_relationship(back_populates="profile")  # noqa: F821


class Invite(Base):
    """Admin-issued (or approval-issued) invitation to join the family."""

    __tablename__ = "invites"
    __table_args__ = (
        Index("idx_invites_phone", "phone"),
        Index("idx_invites_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InviteStatus.PENDING.value, nullable=False
    )
    invite_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    is_admin_invite: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), default=False, nullable=False
    )
    invited_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("family_profiles.id", ondelete="SET NULL"), nullable=True
    )
    invited_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)


class RegistrationRequest(Base):
    """
    Conversation state for an unregistered phone.

    One row per phone. ``approved`` is terminal; a ``rejected`` row is reset
    to ``pending_details`` when the phone writes in again.
    """

    __tablename__ = "registration_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    relationship: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=RegistrationStatus.PENDING_DETAILS.value, nullable=False
    )
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("family_profiles.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )
