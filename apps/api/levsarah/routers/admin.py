"""Administrator endpoints: family members, invites and registration requests."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from levsarah.core.deps import get_db, require_admin, require_csrf_header
from levsarah.db.enums import RegistrationStatus
from levsarah.db.models import FamilyProfile
from levsarah.schemas.family import AdminFlagUpdate, InviteCreate, InviteRead, ProfileRead
from levsarah.services import invite_service, profile_service, registration_service
from levsarah.services.whatsapp_client import WhatsAppClient, get_whatsapp_client

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)
logger = logging.getLogger(__name__)


# =============================================================================
# Family members
# =============================================================================

@router.get("/profiles", response_model=list[ProfileRead])
def list_profiles(db: Session = Depends(get_db)):
    return profile_service.list_profiles(db)


@router.patch(
    "/profiles/{profile_id}/admin",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_admin(profile_id: UUID, body: AdminFlagUpdate, db: Session = Depends(get_db)):
    profile = profile_service.get_profile(db, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile_service.set_admin(db, profile, body.is_admin)


@router.delete(
    "/profiles/{profile_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_profile(
    profile_id: UUID,
    db: Session = Depends(get_db),
    admin: FamilyProfile = Depends(require_admin),
):
    profile = profile_service.get_profile(db, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    try:
        profile_service.delete_profile(db, admin, profile)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Invites
# =============================================================================

def _get_invite_or_404(db: Session, invite_id: UUID):
    invite = invite_service.get_invite(db, invite_id)
    if not invite:
        raise HTTPException(status_code=404, detail="Invite not found")
    return invite


@router.get("/invites", response_model=list[InviteRead])
def list_invites(db: Session = Depends(get_db)):
    return invite_service.list_invites(db)


@router.post(
    "/invites",
    response_model=InviteRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
async def create_invite(
    body: InviteCreate,
    db: Session = Depends(get_db),
    admin: FamilyProfile = Depends(require_admin),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    """Create an invite and send it over WhatsApp (best-effort)."""
    try:
        invite = invite_service.create_invite(
            db,
            phone=body.phone,
            name=body.name,
            relationship=body.relationship,
            invited_by_id=admin.id,
            is_admin_invite=body.is_admin_invite,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = await invite_service.send_invite(db, invite, client)
    if not result.get("success"):
        logger.warning("Invite %s created but not delivered: %s", invite.id, result.get("error"))
    db.refresh(invite)
    return invite


@router.post(
    "/invites/{invite_id}/send",
    dependencies=[Depends(require_csrf_header)],
)
async def send_invite(
    invite_id: UUID,
    db: Session = Depends(get_db),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    invite = _get_invite_or_404(db, invite_id)
    return await invite_service.send_invite(db, invite, client)


@router.post(
    "/invites/{invite_id}/resend",
    dependencies=[Depends(require_csrf_header)],
)
async def resend_invite(
    invite_id: UUID,
    db: Session = Depends(get_db),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    invite = _get_invite_or_404(db, invite_id)
    invite_service.resend_invite(db, invite)
    return await invite_service.send_invite(db, invite, client)


@router.post(
    "/invites/{invite_id}/regenerate-code",
    response_model=InviteRead,
    dependencies=[Depends(require_csrf_header)],
)
def regenerate_invite_code(invite_id: UUID, db: Session = Depends(get_db)):
    invite = _get_invite_or_404(db, invite_id)
    return invite_service.regenerate_invite_code(db, invite)


@router.delete(
    "/invites/{invite_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_invite(invite_id: UUID, db: Session = Depends(get_db)):
    invite = _get_invite_or_404(db, invite_id)
    invite_service.delete_invite(db, invite)


# =============================================================================
# Registration requests
# =============================================================================

@router.get("/registrations")
def list_registration_requests(
    status: RegistrationStatus | None = None,
    db: Session = Depends(get_db),
):
    return [
        {
            "id": str(r.id),
            "phone": r.phone,
            "name": r.name,
            "relationship": r.relationship,
            "status": r.status,
            "approved_by_id": str(r.approved_by_id) if r.approved_by_id else None,
            "approved_at": r.approved_at.isoformat() if r.approved_at else None,
            "created_at": r.created_at.isoformat(),
        }
        for r in registration_service.list_requests(db, status)
    ]
