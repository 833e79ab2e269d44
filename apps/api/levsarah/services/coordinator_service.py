"""Coordinator dashboard reads: coverage stats, gap analysis, member activity."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from levsarah.core.clock import ensure_aware, utcnow
from levsarah.db.enums import NotificationStatus, TimeSlot, WEEKDAY_NAMES_HE
from levsarah.db.models import FamilyProfile
from levsarah.services import notification_service, visit_service
from levsarah.services.calendar_service import parse_iso_date
from levsarah.services.scheduler_service import bookable_slots, upcoming_dates

ACTIVITY_WINDOW_DAYS = 14
UPCOMING_WINDOW_DAYS = 7


def get_stats(db: Session, now: datetime | None = None) -> dict:
    now = now or utcnow()
    today = now.date()
    end = today + timedelta(days=UPCOMING_WINDOW_DAYS)

    upcoming = visit_service.get_schedule(db, today.isoformat(), end.isoformat())
    booked = sum(1 for slot in upcoming if slot.is_booked)
    total_slots = UPCOMING_WINDOW_DAYS * len(TimeSlot)

    profiles = db.query(FamilyProfile).all()
    cutoff = now - timedelta(days=ACTIVITY_WINDOW_DAYS)
    active = sum(
        1 for p in profiles
        if p.last_visit_at is not None and ensure_aware(p.last_visit_at) > cutoff
    )

    return {
        "upcoming_week": {
            "total_slots": total_slots,
            "booked": booked,
            "coverage": round(booked / total_slots * 100),
        },
        "family_activity": {
            "total_members": len(profiles),
            "active_members": active,
            "inactive_members": len(profiles) - active,
        },
        "notifications": {
            "pending": notification_service.count_by_status(db, NotificationStatus.PENDING),
            "failed": notification_service.count_by_status(db, NotificationStatus.FAILED),
        },
    }


def _display_date(day: date) -> str:
    return f"{WEEKDAY_NAMES_HE[day.weekday()]} {day.day}/{day.month}"


def get_gap_analysis(db: Session, days_ahead: int = 14, today: date | None = None) -> list[dict]:
    """
    Day-by-day coverage for the coming days.

    Each entry: date, display_date, is_shabbat, is_gap, coverage (booked
    count, None on fully blocked days) and the three slots (None when the
    slot row does not exist).
    """
    today = today or utcnow().date()
    dates = upcoming_dates(today, days_ahead)
    if not dates:
        return []

    slots = visit_service.get_schedule(db, dates[0], dates[-1])
    by_cell = {(s.date, s.slot): s for s in slots}

    analysis = []
    for day in dates:
        cells = {slot.value: by_cell.get((day, slot.value)) for slot in TimeSlot}
        open_slots = bookable_slots(day)
        is_shabbat = not open_slots
        booked = sum(1 for s in cells.values() if s is not None and s.is_booked)
        analysis.append({
            "date": day,
            "display_date": _display_date(parse_iso_date(day)),
            "is_shabbat": is_shabbat,
            "is_gap": not is_shabbat and booked == 0,
            "coverage": None if is_shabbat else booked,
            "slots": cells,
        })
    return analysis


def get_family_members(db: Session, now: datetime | None = None) -> list[dict]:
    now = now or utcnow()
    counts = visit_service.count_bookings_by_profile(db)
    members = []
    for profile in db.query(FamilyProfile).order_by(FamilyProfile.name).all():
        days_since = None
        if profile.last_visit_at is not None:
            days_since = (now - ensure_aware(profile.last_visit_at)).days
        members.append({
            "profile": profile,
            "total_bookings": counts.get(profile.id, 0),
            "days_since_last_visit": days_since,
            "is_active": days_since is not None and days_since < ACTIVITY_WINDOW_DAYS,
        })
    return members
