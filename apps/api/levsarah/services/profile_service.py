"""Profile service - family profile reads and administrator edits."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from levsarah.db.models import FamilyProfile, Notification, VisitSlot
from levsarah.utils.normalization import phone_variants


def get_profile(db: Session, profile_id: UUID) -> FamilyProfile | None:
    return db.get(FamilyProfile, profile_id)


def list_profiles(db: Session) -> list[FamilyProfile]:
    return db.query(FamilyProfile).order_by(FamilyProfile.name).all()


def find_profile_by_phone(db: Session, phone: str) -> FamilyProfile | None:
    """First profile stored under any normalization variant of the phone."""
    for variant in phone_variants(phone):
        profile = db.query(FamilyProfile).filter(FamilyProfile.phone == variant).first()
        if profile:
            return profile
    return None


def update_profile(
    db: Session,
    profile: FamilyProfile,
    *,
    name: str | None = None,
    hebrew_name: str | None = None,
    avatar_gradient: str | None = None,
    profile_completed: bool | None = None,
) -> FamilyProfile:
    """Update the member-editable fields. ``None`` leaves a field unchanged."""
    if name is not None:
        name = name.strip()
        if not name:
            raise ValueError("Name cannot be empty")
        profile.name = name
    if hebrew_name is not None:
        profile.hebrew_name = hebrew_name.strip() or None
    if avatar_gradient is not None:
        profile.avatar_gradient = avatar_gradient or None
    if profile_completed is not None:
        profile.profile_completed = profile_completed
    db.commit()
    db.refresh(profile)
    return profile


def set_admin(db: Session, profile: FamilyProfile, is_admin: bool) -> FamilyProfile:
    profile.is_admin = is_admin
    db.commit()
    db.refresh(profile)
    return profile


def delete_profile(db: Session, admin: FamilyProfile, profile: FamilyProfile) -> None:
    """
    Remove a family member. Their bookings become unbooked slots.

    Raises:
        ValueError: Administrator tried to delete their own profile
    """
    if profile.id == admin.id:
        raise ValueError("לא ניתן למחוק את עצמך")

    db.query(VisitSlot).filter(VisitSlot.booked_by_id == profile.id).update(
        {"booked_by_id": None, "booked_at": None, "notes": None}, synchronize_session=False
    )
    db.query(Notification).filter(Notification.profile_id == profile.id).delete(
        synchronize_session=False
    )
    db.delete(profile)
    db.commit()
