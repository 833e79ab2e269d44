"""Registration service - WhatsApp onboarding conversation.

An unregistered phone walks through:

    (no request) → pending_details → pending_details + name
                 → pending_approval → approved | rejected

Administrators answer approval requests from their own WhatsApp with
``אשר <phone>`` or ``דחה <phone>``. A phone that already has a family profile
skips the conversation and gets a login link instead.

All replies are plain text. A failed send is logged and never undoes the
state change that preceded it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from levsarah.core.clock import utcnow
from levsarah.core.config import settings
from levsarah.db.enums import (
    RELATIONSHIP_LABELS_HE,
    RELATIONSHIP_MENU,
    RegistrationStatus,
    Relationship,
)
from levsarah.db.models import FamilyProfile, RegistrationRequest
from levsarah.services import invite_service, magic_link_service
from levsarah.services.notification_service import get_admin_profiles
from levsarah.services.profile_service import find_profile_by_phone
from levsarah.services.whatsapp_client import WhatsAppClient, WhatsAppError
from levsarah.utils.normalization import mask_phone, strip_channel_prefix

logger = logging.getLogger(__name__)

APPROVE_COMMAND = "אשר"
REJECT_COMMAND = "דחה"
APPROVE_PATTERN = re.compile(rf"^{APPROVE_COMMAND}\s+(\+?\d+)")
REJECT_PATTERN = re.compile(rf"^{REJECT_COMMAND}\s+(\+?\d+)")

RELATIONSHIP_MENU_TEXT = "\n".join(
    f"{key}. {RELATIONSHIP_LABELS_HE[relationship]}"
    for key, relationship in RELATIONSHIP_MENU.items()
)

MSG_ASK_NAME = "שלום! נראה שאתה לא רשום עדיין במערכת לב שרה.\n\nכדי להירשם, אנא שלח את השם המלא שלך."
MSG_ASK_RELATIONSHIP = "תודה {name}!\n\nמה הקשר שלך לאבא?\nשלח את המספר המתאים:\n\n" + RELATIONSHIP_MENU_TEXT
MSG_INVALID_RELATIONSHIP = "אנא שלח מספר בין 1-7:\n\n" + RELATIONSHIP_MENU_TEXT
MSG_APPROVAL_REQUEST = (
    "בקשת הרשמה חדשה ללב שרה:\n\n"
    "שם: {name}\n"
    "קשר: {label}\n"
    "טלפון: {phone}\n\n"
    f"לאישור, שלח: {APPROVE_COMMAND} {{phone}}\n"
    f"לדחייה, שלח: {REJECT_COMMAND} {{phone}}"
)
MSG_SUBMITTED = "תודה! הבקשה שלך נשלחה לאישור.\nתקבל הודעה ברגע שהבקשה תאושר."
MSG_STILL_PENDING = "הבקשה שלך ממתינה לאישור. תקבל הודעה בקרוב!"
MSG_ALREADY_APPROVED = (
    "הבקשה שלך כבר אושרה!\n"
    "לחץ על הקישור שנשלח אליך כדי להתחבר למערכת, או היכנס דרך האתר: {url}"
)
MSG_APPROVED_USER = "מזל טוב! הבקשה שלך אושרה!\nלחץ על הקישור שנשלח אליך כדי להתחבר למערכת."
MSG_APPROVED_ADMIN = "הבקשה של {name} ({phone}) אושרה בהצלחה!"
MSG_REQUEST_NOT_FOUND = "לא נמצאה בקשה ממתינה עבור {phone}"
MSG_REJECTED_USER = "מצטערים, הבקשה שלך לא אושרה. פנה למנהל המערכת לפרטים."
MSG_REJECTED_ADMIN = "הבקשה של {phone} נדחתה."


@dataclass
class HandlerResult:
    """What the inbound handler did, for logs and tests."""

    action: str
    phone: str | None = None
    name: str | None = None
    target_phone: str | None = None
    error: str | None = None


def is_admin_command(body: str) -> bool:
    text = body.strip()
    return text.startswith(APPROVE_COMMAND) or text.startswith(REJECT_COMMAND)


def _plus_form(phone: str) -> str:
    return phone if phone.startswith("+") else f"+{phone}"


async def _reply(client: WhatsAppClient, phone: str, body: str) -> bool:
    try:
        await client.send_text(phone, body)
        return True
    except WhatsAppError as e:
        logger.warning("Reply to %s not delivered: %s", mask_phone(phone), e)
        return False


# =============================================================================
# Request store
# =============================================================================

def get_request(db: Session, phone: str) -> RegistrationRequest | None:
    return db.query(RegistrationRequest).filter(RegistrationRequest.phone == phone).first()


def create_request(db: Session, phone: str) -> RegistrationRequest:
    request = RegistrationRequest(phone=phone, status=RegistrationStatus.PENDING_DETAILS.value)
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def restart_request(db: Session, request: RegistrationRequest) -> RegistrationRequest:
    """Reset a rejected request to a fresh pending_details one."""
    request.status = RegistrationStatus.PENDING_DETAILS.value
    request.name = None
    request.relationship = None
    request.approved_by_id = None
    request.approved_at = None
    db.commit()
    return request


def list_requests(
    db: Session, status: RegistrationStatus | None = None
) -> list[RegistrationRequest]:
    query = db.query(RegistrationRequest)
    if status:
        query = query.filter(RegistrationRequest.status == status.value)
    return query.order_by(RegistrationRequest.created_at.desc()).all()


# =============================================================================
# Inbound message from a member or stranger
# =============================================================================

async def handle_incoming_message(
    db: Session, sender: str, body: str, client: WhatsAppClient
) -> HandlerResult:
    phone = _plus_form(strip_channel_prefix(sender))
    message = body.strip()

    if find_profile_by_phone(db, phone):
        delivered = await magic_link_service.send_login_link(db, phone, client)
        if delivered:
            return HandlerResult("magic_link_sent", phone=phone)
        return HandlerResult("error", phone=phone, error="Login link not delivered")

    request = get_request(db, phone)

    if request is None:
        create_request(db, phone)
        await _reply(client, phone, MSG_ASK_NAME)
        return HandlerResult("registration_started", phone=phone)

    if request.status == RegistrationStatus.REJECTED.value:
        restart_request(db, request)
        await _reply(client, phone, MSG_ASK_NAME)
        return HandlerResult("registration_restarted", phone=phone)

    if request.status == RegistrationStatus.PENDING_DETAILS.value:
        if not request.name:
            return await _receive_name(db, request, message, client)
        return await _receive_relationship(db, request, message, client)

    if request.status == RegistrationStatus.PENDING_APPROVAL.value:
        await _reply(client, phone, MSG_STILL_PENDING)
        return HandlerResult("still_pending", phone=phone)

    # Approved but not signed in yet. The login link went out on approval.
    await _reply(client, phone, MSG_ALREADY_APPROVED.format(url=settings.FRONTEND_URL))
    return HandlerResult("already_approved", phone=phone)


async def _receive_name(
    db: Session, request: RegistrationRequest, message: str, client: WhatsAppClient
) -> HandlerResult:
    if not message:
        await _reply(client, request.phone, MSG_ASK_NAME)
        return HandlerResult("registration_started", phone=request.phone)

    request.name = message
    db.commit()
    await _reply(client, request.phone, MSG_ASK_RELATIONSHIP.format(name=message))
    return HandlerResult("name_received", phone=request.phone, name=message)


async def _receive_relationship(
    db: Session, request: RegistrationRequest, message: str, client: WhatsAppClient
) -> HandlerResult:
    relationship = RELATIONSHIP_MENU.get(message)
    if relationship is None:
        await _reply(client, request.phone, MSG_INVALID_RELATIONSHIP)
        return HandlerResult("invalid_relationship", phone=request.phone)

    request.relationship = relationship.value
    request.status = RegistrationStatus.PENDING_APPROVAL.value
    db.commit()

    approval_text = MSG_APPROVAL_REQUEST.format(
        name=request.name,
        label=RELATIONSHIP_LABELS_HE[relationship],
        phone=request.phone,
    )
    admins = get_admin_profiles(db)
    if not admins:
        logger.warning("Registration from %s awaits approval but no administrators exist",
                       mask_phone(request.phone))
    for admin in admins:
        await _reply(client, admin.phone, approval_text)

    await _reply(client, request.phone, MSG_SUBMITTED)
    return HandlerResult("pending_approval", phone=request.phone, name=request.name)


# =============================================================================
# Administrator commands
# =============================================================================

async def handle_admin_response(
    db: Session, sender: str, body: str, client: WhatsAppClient
) -> HandlerResult:
    admin_phone = _plus_form(strip_channel_prefix(sender))
    message = body.strip()

    admin = find_profile_by_phone(db, admin_phone)
    if admin is None or not admin.is_admin:
        return HandlerResult("not_admin", phone=admin_phone)

    approve_match = APPROVE_PATTERN.match(message)
    if approve_match:
        return await approve_registration(db, admin, _plus_form(approve_match.group(1)), client)

    reject_match = REJECT_PATTERN.match(message)
    if reject_match:
        return await reject_registration(db, admin, _plus_form(reject_match.group(1)), client)

    return HandlerResult("not_admin_command", phone=admin_phone)


async def approve_registration(
    db: Session,
    admin: FamilyProfile,
    target_phone: str,
    client: WhatsAppClient,
    now: datetime | None = None,
) -> HandlerResult:
    request = get_request(db, target_phone)
    if request is None or request.status != RegistrationStatus.PENDING_APPROVAL.value:
        await _reply(client, admin.phone, MSG_REQUEST_NOT_FOUND.format(phone=target_phone))
        return HandlerResult("request_not_found", target_phone=target_phone)

    request.status = RegistrationStatus.APPROVED.value
    request.approved_by_id = admin.id
    request.approved_at = now or utcnow()
    db.commit()

    invite_service.upsert_invite_for_approved_registration(
        db,
        phone=target_phone,
        name=request.name,
        relationship=Relationship(request.relationship),
        approver_id=admin.id,
        now=now,
    )

    await magic_link_service.send_login_link(db, target_phone, client)
    await _reply(client, target_phone, MSG_APPROVED_USER)
    await _reply(client, admin.phone, MSG_APPROVED_ADMIN.format(name=request.name, phone=target_phone))

    logger.info("Registration %s approved by profile %s", mask_phone(target_phone), admin.id)
    return HandlerResult("approved", target_phone=target_phone, name=request.name)


async def reject_registration(
    db: Session, admin: FamilyProfile, target_phone: str, client: WhatsAppClient
) -> HandlerResult:
    request = get_request(db, target_phone)
    if request is None or request.status == RegistrationStatus.APPROVED.value:
        await _reply(client, admin.phone, MSG_REQUEST_NOT_FOUND.format(phone=target_phone))
        return HandlerResult("request_not_found", target_phone=target_phone)

    request.status = RegistrationStatus.REJECTED.value
    db.commit()

    await _reply(client, target_phone, MSG_REJECTED_USER)
    await _reply(client, admin.phone, MSG_REJECTED_ADMIN.format(phone=target_phone))

    logger.info("Registration %s rejected by profile %s", mask_phone(target_phone), admin.id)
    return HandlerResult("rejected", target_phone=target_phone)
