"""Webhooks router - inbound WhatsApp messages."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.orm import Session

from levsarah.core.config import settings
from levsarah.core.deps import get_db
from levsarah.core.rate_limit import limiter
from levsarah.services import registration_service
from levsarah.services.whatsapp_client import (
    WhatsAppClient,
    get_whatsapp_client,
    validate_webhook_signature,
)
from levsarah.utils.normalization import mask_phone

router = APIRouter()
logger = logging.getLogger(__name__)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


@router.get("/whatsapp/webhook")
async def whatsapp_webhook_status():
    return PlainTextResponse("WhatsApp webhook is active")


@router.post("/whatsapp/webhook")
@limiter.limit(f"{settings.RATE_LIMIT_WEBHOOK}/minute")
async def receive_whatsapp_message(
    request: Request,
    db: Session = Depends(get_db),
    client: WhatsAppClient = Depends(get_whatsapp_client),
):
    """
    Receive an inbound WhatsApp message.

    Messages starting with an approval/rejection command go to the admin
    handler; everything else drives the registration or login flow.
    Always answers with an empty TwiML document.
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}
    sender = params.get("From")
    body = params.get("Body")

    if settings.WHATSAPP_VALIDATE_SIGNATURE:
        url = settings.WHATSAPP_WEBHOOK_URL or str(request.url)
        signature = request.headers.get("X-Twilio-Signature")
        if not validate_webhook_signature(url, params, signature):
            logger.warning("WhatsApp webhook signature mismatch")
            raise HTTPException(status_code=403, detail="Invalid signature")

    if not sender or not body:
        raise HTTPException(status_code=400, detail="Missing From or Body")

    try:
        if registration_service.is_admin_command(body):
            result = await registration_service.handle_admin_response(db, sender, body, client)
        else:
            result = await registration_service.handle_incoming_message(db, sender, body, client)
    except Exception:
        logger.exception("WhatsApp webhook handling failed (message %s)", params.get("MessageSid"))
        raise HTTPException(status_code=500, detail="Internal error")

    logger.info(
        "WhatsApp message from %s handled: %s", mask_phone(sender), result.action
    )
    return Response(content=EMPTY_TWIML, media_type="application/xml")
