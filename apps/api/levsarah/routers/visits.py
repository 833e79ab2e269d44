"""Visit slot endpoints: schedule reads, booking and cancellation."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from levsarah.core.deps import get_db, get_optional_user, require_csrf_header
from levsarah.db.enums import TimeSlot
from levsarah.schemas.visit import SlotBook, SlotRead
from levsarah.services import visit_service

router = APIRouter()


def raise_for_visit_error(e: visit_service.VisitServiceError):
    """Map booking errors to HTTP status codes."""
    if isinstance(e, visit_service.UnauthenticatedError):
        raise HTTPException(status_code=401, detail=str(e))
    if isinstance(e, (visit_service.ProfileMissingError, visit_service.SlotNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (visit_service.NotSlotOwnerError, visit_service.CoordinatorRequiredError)):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(e, visit_service.SlotConflictError):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, visit_service.SabbathBlockedError):
        raise HTTPException(status_code=422, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=list[SlotRead])
def get_schedule(
    start: str = Query(..., description="YYYY-MM-DD"),
    end: str = Query(..., description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
):
    """Slots between two dates (inclusive) with their bookers."""
    return visit_service.get_schedule(db, start, end)


@router.get("/mine", response_model=list[SlotRead])
def get_my_bookings(
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
):
    return visit_service.get_my_bookings(db, user)


@router.get("/date/{date}", response_model=list[SlotRead])
def get_slots_by_date(date: str, db: Session = Depends(get_db)):
    return visit_service.get_slots_by_date(db, date)


@router.get("/date/{date}/{slot}", response_model=SlotRead | None)
def get_slot(date: str, slot: TimeSlot, db: Session = Depends(get_db)):
    return visit_service.get_slot(db, date, slot)


@router.post(
    "",
    response_model=SlotRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def book_slot(
    body: SlotBook,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
):
    """
    Book a slot for the signed-in member.

    Queues a confirmation now and a reminder 24h before the visit.
    """
    try:
        return visit_service.book_slot(
            db,
            user,
            date=body.date.isoformat(),
            slot=body.slot,
            notes=body.notes,
            hebrew_date=body.hebrew_date,
        )
    except visit_service.VisitServiceError as e:
        raise_for_visit_error(e)


@router.delete(
    "/{slot_id}",
    response_model=SlotRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_slot(
    slot_id: UUID,
    db: Session = Depends(get_db),
    user=Depends(get_optional_user),
):
    """Cancel your own booking (coordinators may cancel any)."""
    try:
        return visit_service.cancel_slot(db, user, slot_id)
    except visit_service.VisitServiceError as e:
        raise_for_visit_error(e)
