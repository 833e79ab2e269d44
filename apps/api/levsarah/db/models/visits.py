"""Visit slot model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from levsarah.core.clock import utcnow
from levsarah.db.base import Base


class VisitSlot(Base):
    """
    One (date, slot) cell of the calendar.

    Rows are created on first booking and kept after cancellation with the
    booking fields cleared. The unique constraint on (date, slot) is what
    turns two concurrent first-bookings into a conflict.
    """

    __tablename__ = "visit_slots"
    __table_args__ = (
        UniqueConstraint("date", "slot", name="uq_visit_slots_date_slot"),
        Index("idx_visit_slots_booked_by", "booked_by_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    slot: Mapped[str] = mapped_column(String(20), nullable=False)
    hebrew_date: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    booked_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("family_profiles.id", ondelete="SET NULL"), nullable=True
    )
    booked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_shabbat: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), default=False, nullable=False
    )
    is_holiday: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), default=False, nullable=False
    )
    holiday_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    booked_by: Mapped["FamilyProfile | None"] = relationship()  # noqa: F821

    @property
    def is_booked(self) -> bool:
        return self.booked_by_id is not None
