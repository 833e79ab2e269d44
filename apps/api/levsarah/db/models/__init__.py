"""SQLAlchemy ORM models."""

from levsarah.db.models.auth import MagicLinkToken, User
from levsarah.db.models.family import FamilyProfile, Invite, RegistrationRequest
from levsarah.db.models.notifications import Notification
from levsarah.db.models.visits import VisitSlot

__all__ = [
    "FamilyProfile",
    "Invite",
    "MagicLinkToken",
    "Notification",
    "RegistrationRequest",
    "User",
    "VisitSlot",
]
