"""Notification endpoints: member history, coordinator nudges and cancellation."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from levsarah.core.deps import get_current_user, get_db, require_admin, require_csrf_header
from levsarah.schemas.notification import NotificationRead, NudgeCreate
from levsarah.services import notification_service

router = APIRouter()


@router.get("/mine", response_model=list[NotificationRead])
def list_my_notifications(
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Latest 20 notifications sent (or queued) to me."""
    return notification_service.list_my_notifications(db, user)


@router.post(
    "/nudge",
    response_model=NotificationRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def send_nudge(
    body: NudgeCreate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    try:
        return notification_service.send_nudge(db, user, body.profile_id, body.message)
    except notification_service.NudgeForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except notification_service.NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete(
    "/{notification_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header), Depends(require_admin)],
)
def cancel_notification(notification_id: UUID, db: Session = Depends(get_db)):
    """Delete a notification that has not been sent yet."""
    try:
        notification_service.cancel_notification(db, notification_id)
    except notification_service.NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except notification_service.InvalidNotificationStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
