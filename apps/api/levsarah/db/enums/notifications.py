"""Notification enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Kinds of outbound WhatsApp notifications."""

    CONFIRMATION = "confirmation"
    REMINDER = "reminder"
    GAP_ALERT = "gap_alert"
    NUDGE = "nudge"
    INVITE = "invite"


class NotificationStatus(str, Enum):
    """Delivery lifecycle: pending → sent | failed. Terminal states are final."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
