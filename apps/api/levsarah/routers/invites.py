"""Invite landing endpoints: public lookup by code and acceptance."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from levsarah.core.deps import get_current_user, get_db, require_csrf_header
from levsarah.schemas.family import InvitePublicRead, ProfileRead
from levsarah.services import invite_service

router = APIRouter()


@router.get("/{invite_code}", response_model=InvitePublicRead)
def get_invite_by_code(invite_code: str, db: Session = Depends(get_db)):
    invite = invite_service.get_invite_by_code(db, invite_code)
    if not invite:
        raise HTTPException(status_code=404, detail="Invite not found")
    return invite


@router.post(
    "/{invite_code}/accept",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def accept_invite(
    invite_code: str,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Create my family profile from an invite issued to my phone."""
    invite = invite_service.get_invite_by_code(db, invite_code)
    if not invite:
        raise HTTPException(status_code=404, detail="Invite not found")
    try:
        return invite_service.accept_invite(db, user, invite)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
