"""Notification service - WhatsApp message queue and dispatcher.

Rows are queued by the booking engine, the gap detector and coordinator
actions, then drained by the scheduled dispatcher. Each row is sent at most
once: pending → sent, or pending → failed with the error text kept for
history. Failed rows are never retried automatically.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from levsarah.core.clock import utcnow
from levsarah.core.config import settings
from levsarah.core.structured_logging import build_log_context
from levsarah.db.enums import (
    NotificationStatus,
    NotificationType,
    SLOT_LABELS_HE,
    TimeSlot,
    WEEKDAY_NAMES_HE,
)
from levsarah.db.models import FamilyProfile, Notification, User
from levsarah.services.calendar_service import parse_iso_date
from levsarah.services.whatsapp_client import (
    WhatsAppClient,
    WhatsAppNotConfiguredError,
    WhatsAppSendError,
    get_whatsapp_client,
)
from levsarah.utils.normalization import mask_phone

logger = logging.getLogger(__name__)

DEFAULT_GAP_ALERT_TEXT = "תאריך לא ידוע"
DEFAULT_NUDGE_TEXT = "בבקשה להירשם לביקור"
DEFAULT_COORDINATOR_NUDGE = "אבא מחכה לביקור שלך!"

ERROR_NO_PHONE = "No phone number"
ERROR_NOT_CONFIGURED = "WhatsApp credentials not configured"
ERROR_UNKNOWN_TYPE = "Unknown notification type"


class NotificationServiceError(Exception):
    """Base exception for notification queue errors."""
    pass


class NotificationNotFoundError(NotificationServiceError):
    """Raised when a notification (or its target profile) does not exist."""
    pass


class InvalidNotificationStateError(NotificationServiceError):
    """Raised when cancelling a notification that already left pending."""
    pass


class NudgeForbiddenError(NotificationServiceError):
    """Raised when a non-coordinator tries to send a nudge."""
    pass


# =============================================================================
# Queueing
# =============================================================================

def enqueue_notification(
    db: Session,
    profile_id: UUID,
    notification_type: NotificationType,
    scheduled_for: datetime | None = None,
    visit_slot_id: UUID | None = None,
    message: str | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> Notification:
    """
    Insert a pending notification.

    If scheduled_for is None, the notification is due immediately.
    """
    notification = Notification(
        profile_id=profile_id,
        type=notification_type.value,
        status=NotificationStatus.PENDING.value,
        scheduled_for=scheduled_for or now or utcnow(),
        visit_slot_id=visit_slot_id,
        message=message,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    else:
        db.flush()
    return notification


def queue_booking_confirmation(
    db: Session, profile_id: UUID, slot_id: UUID, now: datetime | None = None, commit: bool = True
) -> Notification:
    return enqueue_notification(
        db, profile_id, NotificationType.CONFIRMATION,
        visit_slot_id=slot_id, now=now, commit=commit,
    )


def queue_reminder(
    db: Session,
    profile_id: UUID,
    slot_id: UUID,
    scheduled_for: datetime,
    commit: bool = True,
) -> Notification:
    """Queue a pre-visit reminder unless one is already pending for this profile+slot."""
    existing = (
        db.query(Notification)
        .filter(
            Notification.profile_id == profile_id,
            Notification.visit_slot_id == slot_id,
            Notification.type == NotificationType.REMINDER.value,
            Notification.status == NotificationStatus.PENDING.value,
        )
        .first()
    )
    if existing:
        return existing
    return enqueue_notification(
        db, profile_id, NotificationType.REMINDER,
        scheduled_for=scheduled_for, visit_slot_id=slot_id, commit=commit,
    )


def get_admin_profiles(db: Session) -> list[FamilyProfile]:
    """Current administrators, resolved from profiles on every call."""
    return (
        db.query(FamilyProfile)
        .filter(FamilyProfile.is_admin.is_(True))
        .order_by(FamilyProfile.created_at)
        .all()
    )


def queue_gap_alert(db: Session, date: str, now: datetime | None = None) -> list[Notification]:
    """Queue one gap alert per administrator. The ISO date is the message text."""
    notifications = [
        enqueue_notification(
            db, admin.id, NotificationType.GAP_ALERT,
            message=date, now=now, commit=False,
        )
        for admin in get_admin_profiles(db)
    ]
    db.commit()
    return notifications


def queue_nudge(
    db: Session, profile_id: UUID, message: str, now: datetime | None = None, commit: bool = True
) -> Notification:
    return enqueue_notification(
        db, profile_id, NotificationType.NUDGE, message=message, now=now, commit=commit,
    )


def send_nudge(
    db: Session,
    coordinator: User | None,
    target_profile_id: UUID,
    message: str | None = None,
    now: datetime | None = None,
) -> Notification:
    """
    Coordinator-initiated nudge, due immediately.

    Raises:
        NudgeForbiddenError: Caller is not an administrator
        NotificationNotFoundError: Target profile does not exist
    """
    if coordinator is None or coordinator.profile is None or not coordinator.profile.is_admin:
        raise NudgeForbiddenError("Only coordinators can send nudges")

    target = db.get(FamilyProfile, target_profile_id)
    if not target:
        raise NotificationNotFoundError("Profile not found")

    return queue_nudge(db, target.id, message or DEFAULT_COORDINATOR_NUDGE, now=now)


def cancel_notification(db: Session, notification_id: UUID) -> None:
    """
    Hard-delete a notification that is still pending.

    Raises:
        NotificationNotFoundError: No such notification
        InvalidNotificationStateError: Notification already sent or failed
    """
    notification = db.get(Notification, notification_id)
    if not notification:
        raise NotificationNotFoundError("Notification not found")
    if notification.status != NotificationStatus.PENDING.value:
        raise InvalidNotificationStateError("Can only cancel pending notifications")
    db.delete(notification)
    db.commit()


# =============================================================================
# Reads
# =============================================================================

def get_due_notifications(
    db: Session, limit: int = 50, now: datetime | None = None
) -> list[Notification]:
    """
    Pending notifications whose due time has passed, oldest first.

    Recipient profile and linked slot are loaded with each row.
    """
    now = now or utcnow()
    return (
        db.query(Notification)
        .options(joinedload(Notification.profile), joinedload(Notification.visit_slot))
        .filter(
            Notification.status == NotificationStatus.PENDING.value,
            Notification.scheduled_for <= now,
        )
        .order_by(Notification.scheduled_for)
        .limit(limit)
        .all()
    )


def list_my_notifications(db: Session, user: User | None, limit: int = 20) -> list[Notification]:
    """Latest notifications for the caller's profile; empty when signed out or profile-less."""
    if user is None or user.profile is None:
        return []
    return (
        db.query(Notification)
        .filter(Notification.profile_id == user.profile.id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .all()
    )


def list_notifications(
    db: Session, status: NotificationStatus | None = None, limit: int = 100
) -> list[Notification]:
    query = db.query(Notification).options(joinedload(Notification.profile))
    if status:
        query = query.filter(Notification.status == status.value)
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def count_by_status(db: Session, status: NotificationStatus) -> int:
    return db.query(Notification).filter(Notification.status == status.value).count()


# =============================================================================
# Dispatch
# =============================================================================

def build_template(notification: Notification) -> tuple[str, dict[str, str]] | None:
    """
    Map a notification to (template_sid, variables).

    Returns None for types that are not templated.
    """
    slot = notification.visit_slot
    variables: dict[str, str] = {}

    if notification.type == NotificationType.CONFIRMATION.value:
        if slot:
            weekday = parse_iso_date(slot.date).weekday()
            variables = {
                "1": notification.profile.name,
                "2": WEEKDAY_NAMES_HE[weekday],
                "3": SLOT_LABELS_HE[TimeSlot(slot.slot)],
            }
        return settings.WHATSAPP_TEMPLATE_CONFIRMATION, variables

    if notification.type == NotificationType.REMINDER.value:
        if slot:
            variables = {"1": SLOT_LABELS_HE[TimeSlot(slot.slot)]}
        return settings.WHATSAPP_TEMPLATE_REMINDER, variables

    if notification.type == NotificationType.GAP_ALERT.value:
        return settings.WHATSAPP_TEMPLATE_GAP_ALERT, {
            "1": notification.message or DEFAULT_GAP_ALERT_TEXT
        }

    if notification.type == NotificationType.NUDGE.value:
        # Nudges reuse the gap alert template with their own text
        return settings.WHATSAPP_TEMPLATE_GAP_ALERT, {
            "1": notification.message or DEFAULT_NUDGE_TEXT
        }

    return None


def mark_notification_sent(
    db: Session, notification: Notification, provider_message_id: str, now: datetime | None = None
) -> Notification:
    notification.status = NotificationStatus.SENT.value
    notification.provider_message_id = provider_message_id
    notification.sent_at = now or utcnow()
    notification.error = None
    db.commit()
    return notification


def mark_notification_failed(db: Session, notification: Notification, error: str) -> Notification:
    notification.status = NotificationStatus.FAILED.value
    notification.error = error
    db.commit()
    return notification


async def dispatch_notification(
    db: Session,
    notification: Notification,
    client: WhatsAppClient,
    now: datetime | None = None,
) -> bool:
    """
    Deliver one notification and record the outcome.

    Makes at most one provider send and exactly one status write.
    Returns True when the message was accepted by the provider.
    """
    profile = notification.profile
    if profile is None or not profile.phone:
        mark_notification_failed(db, notification, ERROR_NO_PHONE)
        return False

    if not client.is_configured:
        logger.warning("WhatsApp not configured; notification %s marked failed", notification.id)
        mark_notification_failed(db, notification, ERROR_NOT_CONFIGURED)
        return False

    try:
        if notification.type == NotificationType.INVITE.value:
            if not notification.message:
                mark_notification_failed(db, notification, "Invite message is empty")
                return False
            message_sid = await client.send_text(profile.phone, notification.message)
        else:
            template = build_template(notification)
            if template is None:
                mark_notification_failed(db, notification, ERROR_UNKNOWN_TYPE)
                return False
            template_sid, variables = template
            message_sid = await client.send_template(profile.phone, template_sid, variables)
    except WhatsAppNotConfiguredError:
        mark_notification_failed(db, notification, ERROR_NOT_CONFIGURED)
        return False
    except WhatsAppSendError as e:
        logger.info(
            "Notification %s to %s failed: %s",
            notification.id,
            mask_phone(profile.phone),
            e,
            extra=build_log_context(profile_id=str(profile.id), phone=profile.phone),
        )
        mark_notification_failed(db, notification, str(e))
        return False

    mark_notification_sent(db, notification, message_sid, now=now)
    return True


async def process_pending_notifications(
    db: Session,
    client: WhatsAppClient | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Drain due notifications once.

    Individual failures are recorded on their row and never abort the batch.

    Returns:
        {"processed": int, "sent": int, "failed": int}
    """
    if client is None:
        client = get_whatsapp_client()

    now = now or utcnow()
    due = get_due_notifications(db, limit=limit or settings.NOTIFICATION_BATCH_SIZE, now=now)

    sent = 0
    failed = 0
    for notification in due:
        notification_id = notification.id
        try:
            delivered = await dispatch_notification(db, notification, client, now=now)
        except Exception as e:
            db.rollback()
            logger.exception("Notification %s dispatch crashed", notification_id)
            mark_notification_failed(db, notification, str(e) or type(e).__name__)
            delivered = False

        if delivered:
            sent += 1
        else:
            failed += 1

    if due:
        logger.info("Notification dispatch: processed=%s sent=%s failed=%s", len(due), sent, failed)
    return {"processed": len(due), "sent": sent, "failed": failed}
