"""Pydantic schemas for API request/response models."""

from levsarah.schemas.auth import MagicLinkToken, MagicLinkValidation, MeResponse, StoreMagicToken
from levsarah.schemas.family import (
    AdminFlagUpdate,
    FamilyMemberRead,
    InviteCreate,
    InvitePublicRead,
    InviteRead,
    ProfileRead,
    ProfileSummary,
    ProfileUpdate,
)
from levsarah.schemas.notification import NotificationRead, NudgeCreate
from levsarah.schemas.visit import DayCoverage, SlotBook, SlotBookForMember, SlotRead

__all__ = [
    # Auth
    "MagicLinkToken",
    "MagicLinkValidation",
    "MeResponse",
    "StoreMagicToken",
    # Family
    "AdminFlagUpdate",
    "FamilyMemberRead",
    "InviteCreate",
    "InvitePublicRead",
    "InviteRead",
    "ProfileRead",
    "ProfileSummary",
    "ProfileUpdate",
    # Notifications
    "NotificationRead",
    "NudgeCreate",
    # Visits
    "DayCoverage",
    "SlotBook",
    "SlotBookForMember",
    "SlotRead",
]
