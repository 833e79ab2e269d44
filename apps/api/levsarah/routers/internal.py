"""
Internal endpoints for scheduled/cron operations and token storage.

Protected by X-Internal-Secret header.
Call from external cron:
- process-notifications: every 5 minutes
- detect-gaps: daily 06:00 UTC
- activity-nudge: Sundays 07:00 UTC
- cleanup-magic-tokens: daily
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from levsarah.core.config import settings
from levsarah.db.session import SessionLocal
from levsarah.schemas.auth import StoreMagicToken
from levsarah.services import magic_link_service, notification_service, scheduler_service
from levsarah.services.whatsapp_client import WhatsAppClient, get_whatsapp_client
from levsarah.utils.normalization import normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])
token_router = APIRouter(prefix="/api/internal", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


class DispatchResponse(BaseModel):
    processed: int
    sent: int
    failed: int


class GapDetectionResponse(BaseModel):
    dates_checked: int
    gaps_found: int
    alerts_sent: int
    gaps: list[str]


class ActivityNudgeResponse(BaseModel):
    inactive_members_found: int
    nudges_sent: int


class TokenCleanupResponse(BaseModel):
    deleted: int


@router.post("/process-notifications", response_model=DispatchResponse)
async def process_notifications(
    x_internal_secret: str = Header(...),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    """Send every due pending notification (up to one batch)."""
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = await notification_service.process_pending_notifications(db, client)
    return DispatchResponse(**result)


@router.post("/detect-gaps", response_model=GapDetectionResponse)
def detect_gaps(x_internal_secret: str = Header(...)):
    """Alert coordinators about unbooked days in the coming week."""
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = scheduler_service.detect_gaps(db)
    return GapDetectionResponse(**result)


@router.post("/activity-nudge", response_model=ActivityNudgeResponse)
def activity_nudge(x_internal_secret: str = Header(...)):
    """Nudge members who have not visited in two weeks."""
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = scheduler_service.weekly_activity_nudge(db)
    return ActivityNudgeResponse(**result)


@router.post("/cleanup-magic-tokens", response_model=TokenCleanupResponse)
def cleanup_magic_tokens(x_internal_secret: str = Header(...)):
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = magic_link_service.cleanup_expired_tokens(db)
    return TokenCleanupResponse(**result)


@token_router.post("/store-magic-token")
async def store_magic_token(request: Request):
    """
    Store a token minted by the sign-in provider.

    401 on a missing or wrong secret, 400 on a malformed body.
    """
    secret = request.headers.get("X-Internal-Secret")
    if not settings.INTERNAL_SECRET or secret != settings.INTERNAL_SECRET:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = StoreMagicToken.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not payload.phone or not payload.token:
        raise HTTPException(status_code=400, detail="Missing phone or token")

    try:
        phone = normalize_phone(payload.phone)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid phone")

    try:
        with SessionLocal() as db:
            magic_link_service.store_token(db, phone, payload.token, return_url=payload.return_url)
    except SQLAlchemyError:
        logger.exception("Failed to store magic link token")
        raise HTTPException(status_code=500, detail="Internal error")

    return {"success": True}
