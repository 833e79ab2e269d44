"""Coordinator dashboard endpoints (administrators only)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from levsarah.core.deps import get_current_user, get_db, require_admin, require_csrf_header
from levsarah.db.enums import NotificationStatus
from levsarah.routers.visits import raise_for_visit_error
from levsarah.schemas.family import FamilyMemberRead
from levsarah.schemas.notification import NotificationRead
from levsarah.schemas.visit import DayCoverage, SlotBookForMember, SlotRead
from levsarah.services import coordinator_service, notification_service, visit_service

router = APIRouter(
    prefix="/coordinator",
    tags=["coordinator"],
    dependencies=[Depends(require_admin)],
)


@router.get("/stats")
def get_stats(db: Session = Depends(get_db)):
    """Upcoming-week coverage, member activity and notification backlog."""
    return coordinator_service.get_stats(db)


@router.get("/gaps", response_model=list[DayCoverage])
def get_gaps(
    days_ahead: int = Query(14, ge=1, le=60),
    db: Session = Depends(get_db),
):
    return coordinator_service.get_gap_analysis(db, days_ahead=days_ahead)


@router.get("/members", response_model=list[FamilyMemberRead])
def get_family_members(db: Session = Depends(get_db)):
    return coordinator_service.get_family_members(db)


@router.get("/notifications", response_model=list[NotificationRead])
def get_notification_history(
    status: NotificationStatus | None = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return notification_service.list_notifications(db, status=status, limit=limit)


@router.post(
    "/book",
    response_model=SlotRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def book_for_member(
    body: SlotBookForMember,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    try:
        return visit_service.book_for_member(
            db,
            user,
            profile_id=body.profile_id,
            date=body.date.isoformat(),
            slot=body.slot,
            notes=body.notes,
            hebrew_date=body.hebrew_date,
        )
    except visit_service.VisitServiceError as e:
        raise_for_visit_error(e)


@router.delete(
    "/slots/{slot_id}",
    response_model=SlotRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_any_booking(
    slot_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    try:
        return visit_service.cancel_any_booking(db, user, slot_id)
    except visit_service.VisitServiceError as e:
        raise_for_visit_error(e)
