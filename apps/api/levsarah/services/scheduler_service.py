"""Scheduled scans: visit gap detection and the weekly activity nudge.

Both functions are triggered from the internal cron endpoints and the CLI.
Neither deduplicates against earlier runs, so a trigger firing twice in a
day queues duplicate alerts.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from levsarah.core.clock import ensure_aware, utcnow
from levsarah.db.enums import TimeSlot
from levsarah.db.models import FamilyProfile, VisitSlot
from levsarah.services import notification_service
from levsarah.services.visit_service import is_sabbath_blocked

logger = logging.getLogger(__name__)

GAP_LOOKAHEAD_DAYS = 7
INACTIVITY_THRESHOLD_DAYS = 14
NEVER_VISITED_TEXT = "לא מתועד"


def upcoming_dates(start: date, days: int) -> list[str]:
    return [(start + timedelta(days=offset)).isoformat() for offset in range(days)]


def bookable_slots(day: str) -> list[TimeSlot]:
    """Slots of a date outside the Sabbath window."""
    return [slot for slot in TimeSlot if not is_sabbath_blocked(day, slot)]


def find_gaps(db: Session, dates: list[str]) -> list[str]:
    """Dates (in order) with no active booking in any bookable slot. Fully blocked dates are skipped."""
    if not dates:
        return []

    booked = (
        db.query(VisitSlot.date, VisitSlot.slot)
        .filter(
            VisitSlot.date >= dates[0],
            VisitSlot.date <= dates[-1],
            VisitSlot.booked_by_id.is_not(None),
        )
        .all()
    )
    booked_cells = {(row.date, row.slot) for row in booked}

    gaps = []
    for day in dates:
        slots = bookable_slots(day)
        if not slots:
            continue
        if not any((day, slot.value) in booked_cells for slot in slots):
            gaps.append(day)
    return gaps


def detect_gaps(db: Session, today: date | None = None, now: datetime | None = None) -> dict:
    """
    Scan the next 7 days and alert every coordinator about each gap.

    Returns:
        {"dates_checked": int, "gaps_found": int, "alerts_sent": int, "gaps": list[str]}
    """
    now = now or utcnow()
    today = today or now.date()
    dates = upcoming_dates(today, GAP_LOOKAHEAD_DAYS)
    gaps = find_gaps(db, dates)

    alerts_sent = 0
    for gap in gaps:
        alerts_sent += len(notification_service.queue_gap_alert(db, gap, now=now))

    if gaps:
        logger.info("Gap detection: %s gaps, %s alerts queued", len(gaps), alerts_sent)
    return {
        "dates_checked": len(dates),
        "gaps_found": len(gaps),
        "alerts_sent": alerts_sent,
        "gaps": gaps,
    }


def get_inactive_members(
    db: Session, threshold_days: int = INACTIVITY_THRESHOLD_DAYS, now: datetime | None = None
) -> list[FamilyProfile]:
    """Non-coordinator profiles that never visited or last visited before the cutoff."""
    now = now or utcnow()
    cutoff = now - timedelta(days=threshold_days)
    members = (
        db.query(FamilyProfile)
        .filter(FamilyProfile.is_admin.is_(False))
        .order_by(FamilyProfile.created_at)
        .all()
    )
    return [
        member for member in members
        if member.last_visit_at is None or ensure_aware(member.last_visit_at) < cutoff
    ]


def nudge_message(member: FamilyProfile, now: datetime) -> str:
    if member.last_visit_at is None:
        days = NEVER_VISITED_TEXT
    else:
        days = str((now - ensure_aware(member.last_visit_at)).days)
    return f"שלום {member.name}! אבא מחכה לביקור שלך. ביקור אחרון: לפני {days} ימים"


def weekly_activity_nudge(db: Session, now: datetime | None = None) -> dict:
    """
    Queue an immediate nudge for each inactive member.

    Returns:
        {"inactive_members_found": int, "nudges_sent": int}
    """
    now = now or utcnow()
    inactive = get_inactive_members(db, now=now)

    for member in inactive:
        notification_service.queue_nudge(
            db, member.id, nudge_message(member, now), now=now, commit=False
        )
    db.commit()

    logger.info("Activity nudge: %s inactive members", len(inactive))
    return {"inactive_members_found": len(inactive), "nudges_sent": len(inactive)}
