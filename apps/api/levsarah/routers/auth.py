"""Authentication endpoints: WhatsApp magic-link sign-in and session."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from levsarah.core.config import settings
from levsarah.core.deps import COOKIE_NAME, get_current_user, get_db
from levsarah.core.rate_limit import limiter
from levsarah.schemas.auth import MagicLinkToken, MagicLinkValidation, MeResponse
from levsarah.schemas.family import ProfileRead
from levsarah.services import auth_service, magic_link_service
from levsarah.services.whatsapp_client import WhatsAppClient, get_whatsapp_client
from levsarah.utils.normalization import mask_phone

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_response(outcome: magic_link_service.TokenValidation) -> MagicLinkValidation:
    if outcome.valid:
        return MagicLinkValidation(valid=True, phone=outcome.phone, return_url=outcome.return_url)
    return MagicLinkValidation(valid=False, error=outcome.status.value, phone=outcome.phone)


@router.get("/magic-link/validate", response_model=MagicLinkValidation)
@limiter.limit(f"{settings.RATE_LIMIT_AUTH * 3}/minute")
def validate_magic_link(request: Request, token: str, db: Session = Depends(get_db)):
    """
    Check a magic-link token without using it.

    Safe to poll while the landing page loads.
    """
    return _to_response(magic_link_service.validate_token(db, token))


@router.post("/magic-link/consume")
@limiter.limit(f"{settings.RATE_LIMIT_AUTH}/minute")
def consume_magic_link(
    request: Request,
    body: MagicLinkToken,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Use a magic-link token and start a session.

    The token is marked used before the session is created, so a second
    attempt with the same token fails with TOKEN_ALREADY_USED.
    """
    outcome = magic_link_service.consume_token(db, body.token)
    if not outcome.valid:
        raise HTTPException(status_code=400, detail=outcome.status.value)

    try:
        user, session_token = auth_service.sign_in_with_phone(db, outcome.phone)
    except ValueError as e:
        raise HTTPException(status_code=403, detail=str(e))

    response.set_cookie(
        key=COOKIE_NAME,
        value=session_token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    logger.info("Magic-link sign-in for %s", mask_phone(outcome.phone))
    return {
        "user_id": str(user.id),
        "has_profile": user.profile is not None,
        "return_url": outcome.return_url,
    }


@router.post("/magic-link/resend")
@limiter.limit(f"{settings.RATE_LIMIT_AUTH}/minute")
async def resend_magic_link(
    request: Request,
    body: MagicLinkToken,
    db: Session = Depends(get_db),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    """Send a fresh link to the phone behind an expired or used token."""
    phone = magic_link_service.get_phone_from_token(db, body.token)
    if not phone:
        raise HTTPException(status_code=404, detail="TOKEN_NOT_FOUND")
    delivered = await magic_link_service.send_login_link(db, phone, client)
    return {"sent": delivered}


@router.get("/me", response_model=MeResponse)
def me(user=Depends(get_current_user)):
    profile = ProfileRead.model_validate(user.profile) if user.profile else None
    return MeResponse(user_id=user.id, phone=user.phone, profile=profile)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}
