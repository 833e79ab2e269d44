"""Visit service - slot booking engine.

A slot is one (date, time-of-day) cell. Booking rules:
- at most one active booking per cell
- no bookings in the Sabbath window (Friday evening, all of Saturday)
- every booking queues a confirmation, and a reminder 24h before the
  visit when that moment is still in the future
"""

from __future__ import annotations

import logging
from datetime import date as date_type, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from levsarah.core.clock import utcnow
from levsarah.db.enums import SLOT_ORDER, SLOT_START_HOURS, TimeSlot
from levsarah.db.models import FamilyProfile, User, VisitSlot
from levsarah.services import notification_service
from levsarah.services.calendar_service import FRIDAY, SATURDAY, get_day_flags, parse_iso_date

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(hours=24)


class VisitServiceError(Exception):
    """Base exception for booking errors."""
    pass


class UnauthenticatedError(VisitServiceError):
    """Raised when no signed-in user is present."""
    pass


class ProfileMissingError(VisitServiceError):
    """Raised when the signed-in user has no family profile yet."""
    pass


class NotSlotOwnerError(VisitServiceError):
    """Raised when cancelling someone else's booking without admin rights."""
    pass


class CoordinatorRequiredError(VisitServiceError):
    """Raised when a coordinator-only override is attempted by a member."""
    pass


class SlotConflictError(VisitServiceError):
    """Raised when the slot already has an active booking."""
    pass


class SabbathBlockedError(VisitServiceError):
    """Raised when the slot falls in the Sabbath window."""
    pass


class SlotNotFoundError(VisitServiceError):
    """Raised when a slot (or target profile) does not exist."""
    pass


# =============================================================================
# Pure helpers
# =============================================================================

def is_sabbath_blocked(date: str | date_type, slot: TimeSlot) -> bool:
    """Friday evening and every Saturday slot are blocked. Weekday comes from the calendar date."""
    day = parse_iso_date(date) if isinstance(date, str) else date
    weekday = day.weekday()
    if weekday == SATURDAY:
        return True
    return weekday == FRIDAY and slot == TimeSlot.EVENING


def visit_start(date: str, slot: TimeSlot) -> datetime:
    """Visit start instant (UTC) from the slot hour table."""
    day = parse_iso_date(date)
    return datetime.combine(day, time(hour=SLOT_START_HOURS[slot]), tzinfo=timezone.utc)


def _require_profile(user: User | None) -> FamilyProfile:
    if user is None:
        raise UnauthenticatedError("Must be logged in")
    if user.profile is None:
        raise ProfileMissingError("Profile not found. Complete your profile first.")
    return user.profile


# =============================================================================
# Booking
# =============================================================================

def book_slot(
    db: Session,
    user: User | None,
    date: str,
    slot: TimeSlot,
    notes: str | None = None,
    hebrew_date: str | None = None,
    now: datetime | None = None,
) -> VisitSlot:
    """
    Book a slot for the signed-in member.

    Raises:
        UnauthenticatedError, ProfileMissingError, SlotConflictError,
        SabbathBlockedError, ValueError (malformed date)
    """
    profile = _require_profile(user)
    return _book_for_profile(db, profile, date, slot, notes, hebrew_date, now)


def book_for_member(
    db: Session,
    coordinator: User | None,
    profile_id: UUID,
    date: str,
    slot: TimeSlot,
    notes: str | None = None,
    hebrew_date: str | None = None,
    now: datetime | None = None,
) -> VisitSlot:
    """
    Coordinator books on behalf of a family member.

    Same conflict and Sabbath rules and same notifications as a self-booking.
    """
    admin = _require_profile(coordinator)
    if not admin.is_admin:
        raise CoordinatorRequiredError("Only coordinators can book for others")

    target = db.get(FamilyProfile, profile_id)
    if not target:
        raise SlotNotFoundError("Profile not found")

    logger.info("Coordinator %s booking %s %s for profile %s", admin.id, date, slot.value, target.id)
    return _book_for_profile(db, target, date, slot, notes, hebrew_date, now)


def _book_for_profile(
    db: Session,
    profile: FamilyProfile,
    date: str,
    slot: TimeSlot,
    notes: str | None,
    hebrew_date: str | None,
    now: datetime | None,
) -> VisitSlot:
    now = now or utcnow()
    day = parse_iso_date(date)
    date = day.isoformat()

    existing = get_slot(db, date, slot)
    if existing and existing.is_booked:
        raise SlotConflictError("This slot is already booked")

    if is_sabbath_blocked(day, slot):
        raise SabbathBlockedError("This slot falls during Shabbat")

    if existing:
        # Conditional claim: only succeeds while the row is still unbooked
        result = db.execute(
            update(VisitSlot)
            .where(VisitSlot.id == existing.id, VisitSlot.booked_by_id.is_(None))
            .values(booked_by_id=profile.id, booked_at=now, notes=notes)
        )
        if result.rowcount != 1:
            db.rollback()
            raise SlotConflictError("This slot is already booked")
        visit_slot = existing
    else:
        flags = get_day_flags(day)
        visit_slot = VisitSlot(
            date=date,
            slot=slot.value,
            hebrew_date=hebrew_date or flags.hebrew_date,
            booked_by_id=profile.id,
            booked_at=now,
            notes=notes,
            is_shabbat=flags.is_shabbat,
            is_holiday=flags.is_holiday,
            holiday_name=flags.holiday_name,
        )
        db.add(visit_slot)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise SlotConflictError("This slot is already booked")

    profile.last_visit_at = now

    notification_service.queue_booking_confirmation(
        db, profile.id, visit_slot.id, now=now, commit=False
    )
    reminder_at = visit_start(date, slot) - REMINDER_LEAD
    if reminder_at > now:
        notification_service.queue_reminder(
            db, profile.id, visit_slot.id, scheduled_for=reminder_at, commit=False
        )

    db.commit()
    db.refresh(visit_slot)
    logger.info("Slot %s %s booked by profile %s", date, slot.value, profile.id)
    return visit_slot


def cancel_slot(db: Session, user: User | None, slot_id: UUID) -> VisitSlot:
    """
    Clear a booking. The row stays as an unbooked slot; queued notifications are untouched.

    Raises:
        UnauthenticatedError, ProfileMissingError, SlotNotFoundError, NotSlotOwnerError
    """
    profile = _require_profile(user)

    visit_slot = db.get(VisitSlot, slot_id)
    if not visit_slot:
        raise SlotNotFoundError("Slot not found")

    if visit_slot.booked_by_id != profile.id and not profile.is_admin:
        raise NotSlotOwnerError("Can only cancel your own bookings")

    visit_slot.booked_by_id = None
    visit_slot.booked_at = None
    visit_slot.notes = None
    db.commit()
    db.refresh(visit_slot)
    return visit_slot


def cancel_any_booking(db: Session, coordinator: User | None, slot_id: UUID) -> VisitSlot:
    """Coordinator override of cancel_slot."""
    admin = _require_profile(coordinator)
    if not admin.is_admin:
        raise CoordinatorRequiredError("Only coordinators can cancel other bookings")
    return cancel_slot(db, coordinator, slot_id)


# =============================================================================
# Reads
# =============================================================================

def _sorted(slots: list[VisitSlot]) -> list[VisitSlot]:
    return sorted(slots, key=lambda s: (s.date, SLOT_ORDER[TimeSlot(s.slot)]))


def get_slot(db: Session, date: str, slot: TimeSlot) -> VisitSlot | None:
    return (
        db.query(VisitSlot)
        .filter(VisitSlot.date == date, VisitSlot.slot == slot.value)
        .first()
    )


def get_slots_by_date(db: Session, date: str) -> list[VisitSlot]:
    slots = (
        db.query(VisitSlot)
        .options(joinedload(VisitSlot.booked_by))
        .filter(VisitSlot.date == date)
        .all()
    )
    return _sorted(slots)


def get_schedule(db: Session, start_date: str, end_date: str) -> list[VisitSlot]:
    """Slots with start_date <= date <= end_date. ISO dates sort lexically."""
    slots = (
        db.query(VisitSlot)
        .options(joinedload(VisitSlot.booked_by))
        .filter(VisitSlot.date >= start_date, VisitSlot.date <= end_date)
        .all()
    )
    return _sorted(slots)


def get_my_bookings(db: Session, user: User | None) -> list[VisitSlot]:
    if user is None or user.profile is None:
        return []
    slots = db.query(VisitSlot).filter(VisitSlot.booked_by_id == user.profile.id).all()
    return _sorted(slots)


def count_bookings_by_profile(db: Session) -> dict[UUID, int]:
    rows = (
        db.query(VisitSlot.booked_by_id, func.count(VisitSlot.id))
        .filter(VisitSlot.booked_by_id.is_not(None))
        .group_by(VisitSlot.booked_by_id)
        .all()
    )
    return {profile_id: count for profile_id, count in rows}
