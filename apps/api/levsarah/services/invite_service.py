"""Invite service - family invitations and their acceptance.

Invites come from three places: an administrator in the dashboard, the
approval of a WhatsApp registration request, and the CLI bootstrap of the
first administrator. Accepting an invite is the only way a FamilyProfile is
created.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from levsarah.core.clock import utcnow
from levsarah.core.config import settings
from levsarah.core.security import generate_invite_code
from levsarah.db.enums import InviteStatus, Relationship
from levsarah.db.models import FamilyProfile, Invite, User
from levsarah.services.whatsapp_client import WhatsAppClient, WhatsAppError
from levsarah.utils.normalization import mask_phone, normalize_phone, phone_variants

logger = logging.getLogger(__name__)

INVITE_MESSAGE = (
    "שלום {name}! הוזמנת להצטרף למערכת הביקורים המשפחתית אצל אבא. "
    "לחץ כאן להצטרפות: {url}"
)

OPEN_STATUSES = (InviteStatus.PENDING.value, InviteStatus.SENT.value)


def _unique_invite_code(db: Session) -> str:
    while True:
        code = generate_invite_code()
        if not db.query(Invite.id).filter(Invite.invite_code == code).first():
            return code


def build_invite_url(invite: Invite) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/invite/{invite.invite_code}"


def build_invite_message(invite: Invite) -> str:
    return INVITE_MESSAGE.format(name=invite.name, url=build_invite_url(invite))


# =============================================================================
# Reads
# =============================================================================

def get_invite(db: Session, invite_id: UUID) -> Invite | None:
    return db.get(Invite, invite_id)


def get_invite_by_code(db: Session, invite_code: str) -> Invite | None:
    return db.query(Invite).filter(Invite.invite_code == invite_code).first()


def list_invites(db: Session) -> list[Invite]:
    return db.query(Invite).order_by(Invite.invited_at.desc()).all()


def find_open_invite_for_phone(db: Session, phone: str) -> Invite | None:
    """Most recent pending/sent invite for any stored form of the phone."""
    return (
        db.query(Invite)
        .filter(Invite.phone.in_(phone_variants(phone)), Invite.status.in_(OPEN_STATUSES))
        .order_by(Invite.invited_at.desc())
        .first()
    )


# =============================================================================
# Admin operations
# =============================================================================

def create_invite(
    db: Session,
    phone: str,
    name: str,
    relationship: Relationship,
    invited_by_id: UUID | None = None,
    is_admin_invite: bool = False,
    now: datetime | None = None,
) -> Invite:
    """
    Create a pending invite.

    Raises:
        ValueError: Invalid phone, an open invite already exists, or the
            phone already belongs to a profile
    """
    phone = normalize_phone(phone)
    if not phone:
        raise ValueError("Phone is required")

    existing = db.query(Invite).filter(Invite.phone == phone).first()
    if existing and existing.status != InviteStatus.FAILED.value:
        raise ValueError("הזמנה כבר נשלחה למספר זה")

    profile = (
        db.query(FamilyProfile.id)
        .filter(FamilyProfile.phone.in_(phone_variants(phone)))
        .first()
    )
    if profile:
        raise ValueError("משתמש עם מספר זה כבר קיים במערכת")

    invite = Invite(
        phone=phone,
        name=name.strip(),
        relationship=relationship.value,
        status=InviteStatus.PENDING.value,
        invite_code=_unique_invite_code(db),
        is_admin_invite=is_admin_invite,
        invited_by_id=invited_by_id,
        invited_at=now or utcnow(),
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    return invite


def delete_invite(db: Session, invite: Invite) -> None:
    db.delete(invite)
    db.commit()


def resend_invite(db: Session, invite: Invite, now: datetime | None = None) -> Invite:
    """Put the invite back to pending so it can be sent again."""
    invite.status = InviteStatus.PENDING.value
    invite.error = None
    invite.invited_at = now or utcnow()
    db.commit()
    db.refresh(invite)
    return invite


def regenerate_invite_code(db: Session, invite: Invite) -> Invite:
    invite.invite_code = _unique_invite_code(db)
    db.commit()
    db.refresh(invite)
    return invite


def mark_invite_sent(db: Session, invite: Invite) -> Invite:
    invite.status = InviteStatus.SENT.value
    invite.error = None
    db.commit()
    return invite


def mark_invite_failed(db: Session, invite: Invite, error: str) -> Invite:
    invite.status = InviteStatus.FAILED.value
    invite.error = error
    db.commit()
    return invite


async def send_invite(db: Session, invite: Invite, client: WhatsAppClient) -> dict:
    """
    Deliver the invite link over WhatsApp.

    Without provider credentials the invite is marked sent and nothing goes
    out, so local setups can still walk through acceptance.
    """
    if not client.is_configured:
        logger.info("WhatsApp not configured; invite %s marked sent without delivery", invite.id)
        mark_invite_sent(db, invite)
        return {"success": True, "dev": True}

    try:
        message_id = await client.send_text(invite.phone, build_invite_message(invite))
    except WhatsAppError as e:
        logger.warning("Invite to %s failed: %s", mask_phone(invite.phone), e)
        mark_invite_failed(db, invite, str(e))
        return {"success": False, "error": str(e)}

    mark_invite_sent(db, invite)
    return {"success": True, "message_id": message_id}


# =============================================================================
# Registration approval and bootstrap
# =============================================================================

def upsert_invite_for_approved_registration(
    db: Session,
    phone: str,
    name: str,
    relationship: Relationship,
    approver_id: UUID | None,
    now: datetime | None = None,
) -> Invite:
    """Refresh the existing invite for the phone, or create one. Status is sent."""
    invite = db.query(Invite).filter(Invite.phone == phone).first()
    if invite:
        invite.status = InviteStatus.SENT.value
        invite.name = name
        invite.relationship = relationship.value
        invite.error = None
    else:
        invite = Invite(
            phone=phone,
            name=name,
            relationship=relationship.value,
            status=InviteStatus.SENT.value,
            invite_code=_unique_invite_code(db),
            invited_by_id=approver_id,
            invited_at=now or utcnow(),
        )
        db.add(invite)
    db.commit()
    db.refresh(invite)
    return invite


def seed_admin_invite(
    db: Session, phone: str, name: str, relationship: Relationship
) -> tuple[Invite, bool]:
    """
    Administrator invite for bootstrapping an empty install.

    Returns (invite, created). An existing invite for the phone is returned as is.
    """
    phone = normalize_phone(phone)
    existing = db.query(Invite).filter(Invite.phone == phone).first()
    if existing:
        return existing, False

    invite = Invite(
        phone=phone,
        name=name,
        relationship=relationship.value,
        status=InviteStatus.PENDING.value,
        invite_code=_unique_invite_code(db),
        is_admin_invite=True,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    return invite, True


# =============================================================================
# Acceptance
# =============================================================================

def accept_invite(
    db: Session, user: User, invite: Invite, now: datetime | None = None
) -> FamilyProfile:
    """
    Create the user's family profile from an invite.

    Returns the existing profile if the user already has one.

    Raises:
        ValueError: Invite already accepted or issued to another phone
    """
    if user.profile is not None:
        return user.profile

    if invite.status == InviteStatus.ACCEPTED.value:
        raise ValueError("Invite already accepted")
    if invite.phone not in phone_variants(user.phone):
        raise ValueError("Invite was issued to a different phone number")

    now = now or utcnow()
    profile = FamilyProfile(
        user_id=user.id,
        name=invite.name,
        phone=invite.phone,
        relationship=invite.relationship,
        is_admin=invite.is_admin_invite,
        created_at=now,
    )
    db.add(profile)
    invite.status = InviteStatus.ACCEPTED.value
    invite.accepted_at = now
    db.commit()
    db.refresh(user)
    logger.info("Invite %s accepted; profile %s created", invite.id, profile.id)
    return profile
