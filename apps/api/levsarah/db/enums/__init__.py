"""Enum definitions for application constants."""

from levsarah.db.enums.family import (
    InviteStatus,
    RELATIONSHIP_LABELS_HE,
    RELATIONSHIP_MENU,
    RegistrationStatus,
    Relationship,
)
from levsarah.db.enums.notifications import NotificationStatus, NotificationType
from levsarah.db.enums.visits import (
    SLOT_LABELS_HE,
    SLOT_ORDER,
    SLOT_START_HOURS,
    TimeSlot,
    WEEKDAY_NAMES_HE,
)

__all__ = [
    "InviteStatus",
    "NotificationStatus",
    "NotificationType",
    "RELATIONSHIP_LABELS_HE",
    "RELATIONSHIP_MENU",
    "RegistrationStatus",
    "Relationship",
    "SLOT_LABELS_HE",
    "SLOT_ORDER",
    "SLOT_START_HOURS",
    "TimeSlot",
    "WEEKDAY_NAMES_HE",
]
