"""Tests for the slot booking engine."""
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from levsarah.core.clock import ensure_aware
from levsarah.db.enums import NotificationStatus, NotificationType, TimeSlot
from levsarah.db.models import Notification, User, VisitSlot
from levsarah.services import visit_service
from levsarah.services.calendar_service import (
    DayFlags,
    get_day_flags,
    set_calendar_provider,
    weekday_calendar,
)

# 2026-11-02 is a Monday; 11-06 Friday, 11-07 Saturday
MONDAY = "2026-11-02"
FRIDAY = "2026-11-06"
SATURDAY = "2026-11-07"
NOW = datetime(2026, 10, 30, 10, 0, tzinfo=timezone.utc)


def _notifications(db, profile_id):
    return (
        db.query(Notification)
        .filter(Notification.profile_id == profile_id)
        .order_by(Notification.scheduled_for)
        .all()
    )


# =============================================================================
# Sabbath window
# =============================================================================

def test_sabbath_window_covers_friday_evening_and_saturday():
    assert visit_service.is_sabbath_blocked(FRIDAY, TimeSlot.EVENING)
    assert not visit_service.is_sabbath_blocked(FRIDAY, TimeSlot.MORNING)
    assert not visit_service.is_sabbath_blocked(FRIDAY, TimeSlot.AFTERNOON)
    for slot in TimeSlot:
        assert visit_service.is_sabbath_blocked(SATURDAY, slot)
        assert not visit_service.is_sabbath_blocked(MONDAY, slot)


def test_visit_start_uses_slot_hours():
    assert visit_service.visit_start(MONDAY, TimeSlot.MORNING) == datetime(
        2026, 11, 2, 7, 0, tzinfo=timezone.utc
    )
    assert visit_service.visit_start(MONDAY, TimeSlot.EVENING).hour == 16


# =============================================================================
# Booking
# =============================================================================

def test_book_slot_records_booking_and_queues_notifications(db, member):
    slot = visit_service.book_slot(
        db, member.user, MONDAY, TimeSlot.MORNING, notes="bringing soup", now=NOW
    )

    assert slot.date == MONDAY
    assert slot.slot == TimeSlot.MORNING.value
    assert slot.booked_by_id == member.id
    assert slot.notes == "bringing soup"
    assert not slot.is_shabbat

    db.refresh(member)
    assert ensure_aware(member.last_visit_at) == NOW

    confirmation, reminder = _notifications(db, member.id)
    assert confirmation.type == NotificationType.CONFIRMATION.value
    assert confirmation.status == NotificationStatus.PENDING.value
    assert confirmation.visit_slot_id == slot.id
    assert ensure_aware(confirmation.scheduled_for) == NOW

    assert reminder.type == NotificationType.REMINDER.value
    assert ensure_aware(reminder.scheduled_for) == datetime(
        2026, 11, 1, 7, 0, tzinfo=timezone.utc
    )


def test_book_slot_skips_reminder_inside_24_hours(db, member):
    now = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)
    visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=now)

    types = [n.type for n in _notifications(db, member.id)]
    assert types == [NotificationType.CONFIRMATION.value]


def test_book_slot_conflict(db, member, make_member):
    other = make_member(name="רחל")
    visit_service.book_slot(db, member.user, MONDAY, TimeSlot.AFTERNOON, now=NOW)

    with pytest.raises(visit_service.SlotConflictError):
        visit_service.book_slot(db, other.user, MONDAY, TimeSlot.AFTERNOON, now=NOW)

    # The loser gets no notifications
    assert _notifications(db, other.id) == []


def test_book_slot_rejects_sabbath(db, member):
    with pytest.raises(visit_service.SabbathBlockedError):
        visit_service.book_slot(db, member.user, SATURDAY, TimeSlot.MORNING, now=NOW)
    with pytest.raises(visit_service.SabbathBlockedError):
        visit_service.book_slot(db, member.user, FRIDAY, TimeSlot.EVENING, now=NOW)

    assert db.query(VisitSlot).count() == 0

    slot = visit_service.book_slot(db, member.user, FRIDAY, TimeSlot.AFTERNOON, now=NOW)
    assert slot.is_booked


def test_conflict_is_reported_before_sabbath(db, member, make_member):
    other = make_member(name="רחל")
    db.add(VisitSlot(date=SATURDAY, slot=TimeSlot.MORNING.value, booked_by_id=other.id))
    db.commit()

    with pytest.raises(visit_service.SlotConflictError):
        visit_service.book_slot(db, member.user, SATURDAY, TimeSlot.MORNING, now=NOW)


def test_book_slot_requires_signed_in_member(db):
    with pytest.raises(visit_service.UnauthenticatedError):
        visit_service.book_slot(db, None, MONDAY, TimeSlot.MORNING, now=NOW)

    user = User(phone="+972529999999")
    db.add(user)
    db.commit()
    with pytest.raises(visit_service.ProfileMissingError):
        visit_service.book_slot(db, user, MONDAY, TimeSlot.MORNING, now=NOW)


def test_book_slot_rejects_malformed_date(db, member):
    with pytest.raises(ValueError):
        visit_service.book_slot(db, member.user, "2026-13-45", TimeSlot.MORNING, now=NOW)


def test_rebooking_a_cancelled_slot_reuses_the_row(db, member, make_member):
    other = make_member(name="רחל")
    slot = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.EVENING, now=NOW)
    slot_id = slot.id

    cancelled = visit_service.cancel_slot(db, member.user, slot_id)
    assert cancelled.booked_by_id is None
    assert cancelled.booked_at is None
    assert cancelled.notes is None

    rebooked = visit_service.book_slot(db, other.user, MONDAY, TimeSlot.EVENING, now=NOW)
    assert rebooked.id == slot_id
    assert rebooked.booked_by_id == other.id
    assert db.query(VisitSlot).count() == 1


def test_cancel_leaves_queued_notifications(db, member):
    slot = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)
    visit_service.cancel_slot(db, member.user, slot.id)

    assert len(_notifications(db, member.id)) == 2


# =============================================================================
# Cancellation permissions
# =============================================================================

def test_cancel_someone_elses_booking_is_forbidden(db, member, make_member):
    other = make_member(name="רחל")
    slot = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)

    with pytest.raises(visit_service.NotSlotOwnerError):
        visit_service.cancel_slot(db, other.user, slot.id)


def test_admin_can_cancel_any_booking(db, member, admin):
    slot = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)

    result = visit_service.cancel_any_booking(db, admin.user, slot.id)
    assert result.booked_by_id is None


def test_cancel_any_booking_requires_coordinator(db, member, make_member):
    other = make_member(name="רחל")
    slot = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)

    with pytest.raises(visit_service.CoordinatorRequiredError):
        visit_service.cancel_any_booking(db, other.user, slot.id)


def test_cancel_unknown_slot(db, member):
    with pytest.raises(visit_service.SlotNotFoundError):
        visit_service.cancel_slot(db, member.user, uuid.uuid4())


# =============================================================================
# Coordinator booking
# =============================================================================

def test_book_for_member_books_and_notifies_target(db, member, admin):
    slot = visit_service.book_for_member(
        db, admin.user, member.id, MONDAY, TimeSlot.AFTERNOON, now=NOW
    )

    assert slot.booked_by_id == member.id
    assert len(_notifications(db, member.id)) == 2
    assert _notifications(db, admin.id) == []


def test_book_for_member_requires_coordinator(db, member, make_member):
    other = make_member(name="רחל")
    with pytest.raises(visit_service.CoordinatorRequiredError):
        visit_service.book_for_member(
            db, other.user, member.id, MONDAY, TimeSlot.AFTERNOON, now=NOW
        )


def test_book_for_member_obeys_sabbath(db, member, admin):
    with pytest.raises(visit_service.SabbathBlockedError):
        visit_service.book_for_member(
            db, admin.user, member.id, SATURDAY, TimeSlot.AFTERNOON, now=NOW
        )


# =============================================================================
# Reads
# =============================================================================

def test_schedule_is_ordered_by_date_then_slot(db, member):
    visit_service.book_slot(db, member.user, "2026-11-03", TimeSlot.MORNING, now=NOW)
    visit_service.book_slot(db, member.user, MONDAY, TimeSlot.EVENING, now=NOW)
    visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)
    visit_service.book_slot(db, member.user, "2026-11-10", TimeSlot.MORNING, now=NOW)

    schedule = visit_service.get_schedule(db, MONDAY, "2026-11-03")
    assert [(s.date, s.slot) for s in schedule] == [
        (MONDAY, "morning"),
        (MONDAY, "evening"),
        ("2026-11-03", "morning"),
    ]

    assert len(visit_service.get_slots_by_date(db, MONDAY)) == 2
    assert visit_service.get_slot(db, MONDAY, TimeSlot.AFTERNOON) is None
    assert len(visit_service.get_my_bookings(db, member.user)) == 4
    assert visit_service.get_my_bookings(db, None) == []


def test_count_bookings_by_profile(db, member, make_member):
    other = make_member(name="רחל")
    visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)
    visit_service.book_slot(db, member.user, MONDAY, TimeSlot.EVENING, now=NOW)
    visit_service.book_slot(db, other.user, MONDAY, TimeSlot.AFTERNOON, now=NOW)

    counts = visit_service.count_bookings_by_profile(db)
    assert counts == {member.id: 2, other.id: 1}


def test_booking_timestamp_defaults_to_now(db, member):
    before = datetime.now(timezone.utc) - timedelta(seconds=5)
    slot = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING)
    assert ensure_aware(slot.booked_at) >= before


@pytest.fixture
def holiday_calendar():
    def provider(day):
        if day.isoformat() == "2026-11-03":
            return DayFlags(is_holiday=True, holiday_name="יום הזיכרון", hebrew_date="כ״ב חשוון")
        return weekday_calendar(day)

    set_calendar_provider(provider)
    yield provider
    set_calendar_provider(None)


def test_installed_calendar_provider_flags_new_slots(db, member, holiday_calendar):
    holiday = visit_service.book_slot(db, member.user, "2026-11-03", TimeSlot.MORNING, now=NOW)
    assert holiday.is_holiday is True
    assert holiday.holiday_name == "יום הזיכרון"
    assert holiday.hebrew_date == "כ״ב חשוון"

    # An explicit Hebrew date from the client wins over the provider
    explicit = visit_service.book_slot(
        db, member.user, "2026-11-03", TimeSlot.EVENING, hebrew_date="custom", now=NOW
    )
    assert explicit.hebrew_date == "custom"

    ordinary = visit_service.book_slot(db, member.user, MONDAY, TimeSlot.MORNING, now=NOW)
    assert ordinary.is_holiday is False
    assert ordinary.hebrew_date == ""


def test_default_calendar_is_restored():
    set_calendar_provider(None)
    assert get_day_flags(date(2026, 11, 7)).is_shabbat is True
    assert get_day_flags(date(2026, 11, 3)).is_holiday is False
