"""Family profile endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from levsarah.core.deps import get_current_profile, get_current_user, get_db, require_csrf_header
from levsarah.db.models import FamilyProfile
from levsarah.schemas.family import ProfileRead, ProfileUpdate
from levsarah.services import profile_service

router = APIRouter()


@router.get("", response_model=list[ProfileRead], dependencies=[Depends(get_current_user)])
def list_profiles(db: Session = Depends(get_db)):
    return profile_service.list_profiles(db)


@router.get("/me", response_model=ProfileRead)
def get_my_profile(profile: FamilyProfile = Depends(get_current_profile)):
    return profile


@router.patch(
    "/me",
    response_model=ProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_my_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    profile: FamilyProfile = Depends(get_current_profile),
):
    try:
        return profile_service.update_profile(db, profile, **body.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{profile_id}", response_model=ProfileRead, dependencies=[Depends(get_current_user)])
def get_profile(profile_id: UUID, db: Session = Depends(get_db)):
    profile = profile_service.get_profile(db, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile
