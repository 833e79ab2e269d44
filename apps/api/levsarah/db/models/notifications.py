"""Outbound notification queue model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from levsarah.core.clock import utcnow
from levsarah.db.base import Base
from levsarah.db.enums import NotificationStatus


class Notification(Base):
    """
    Queued WhatsApp message.

    The dispatcher picks up pending rows whose ``scheduled_for`` has passed
    and moves each to sent or failed exactly once. Failed rows are not retried.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_due", "status", "scheduled_for"),
        Index("idx_notifications_profile", "profile_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("family_profiles.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=NotificationStatus.PENDING.value, nullable=False
    )
    scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    provider_message_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    visit_slot_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("visit_slots.id", ondelete="SET NULL"), nullable=True
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    profile: Mapped["FamilyProfile"] = relationship()  # noqa: F821
    visit_slot: Mapped["VisitSlot | None"] = relationship()  # noqa: F821
