"""Magic link service - single-use WhatsApp sign-in tokens.

Lifecycle of a token:
- issue: every earlier token for the phone is deleted, so at most one is live
- validate: read-only, safe to poll while the landing page loads
- consume: flips ``used`` with a conditional update before returning, so two
  concurrent consumers cannot both succeed
- cleanup: tokens expired for more than 24h are deleted
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from urllib.parse import urlencode

from sqlalchemy import update
from sqlalchemy.orm import Session

from levsarah.core.clock import ensure_aware, utcnow
from levsarah.core.config import settings
from levsarah.core.security import generate_magic_token
from levsarah.db.models import MagicLinkToken
from levsarah.services.whatsapp_client import WhatsAppClient, WhatsAppError
from levsarah.utils.normalization import mask_phone

logger = logging.getLogger(__name__)

TOKEN_TTL = timedelta(minutes=10)
CLEANUP_GRACE = timedelta(hours=24)

LOGIN_LINK_MESSAGE = "שלום! לחץ כאן להתחברות ללב שרה:\n{url}\n\nהקישור בתוקף ל-10 דקות."
LOGIN_FALLBACK_MESSAGE = "שלום! נסה שוב בעוד כמה דקות או התחבר דרך האתר: {url}"


class TokenStatus(str, Enum):
    VALID = "valid"
    NOT_FOUND = "TOKEN_NOT_FOUND"
    ALREADY_USED = "TOKEN_ALREADY_USED"
    EXPIRED = "TOKEN_EXPIRED"


@dataclass(frozen=True)
class TokenValidation:
    status: TokenStatus
    phone: str | None = None
    return_url: str | None = None
    code: str | None = None

    @property
    def valid(self) -> bool:
        return self.status == TokenStatus.VALID


# =============================================================================
# Issue / store
# =============================================================================

def store_token(
    db: Session,
    phone: str,
    token: str,
    return_url: str | None = None,
    now: datetime | None = None,
) -> MagicLinkToken:
    """Replace every token for the phone with the given one, valid for 10 minutes."""
    now = now or utcnow()
    db.query(MagicLinkToken).filter(MagicLinkToken.phone == phone).delete(
        synchronize_session=False
    )
    record = MagicLinkToken(
        phone=phone,
        token=token,
        expires_at=now + TOKEN_TTL,
        used=False,
        return_url=return_url,
        created_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def issue_token(
    db: Session, phone: str, return_url: str | None = None, now: datetime | None = None
) -> MagicLinkToken:
    return store_token(db, phone, generate_magic_token(), return_url=return_url, now=now)


# =============================================================================
# Validate / consume
# =============================================================================

def _evaluate(record: MagicLinkToken | None, now: datetime) -> TokenValidation:
    if record is None:
        return TokenValidation(TokenStatus.NOT_FOUND)
    if record.used:
        return TokenValidation(TokenStatus.ALREADY_USED, phone=record.phone)
    if ensure_aware(record.expires_at) < now:
        return TokenValidation(TokenStatus.EXPIRED, phone=record.phone)
    return TokenValidation(TokenStatus.VALID, phone=record.phone, return_url=record.return_url)


def validate_token(db: Session, token: str, now: datetime | None = None) -> TokenValidation:
    """Read-only check. Never writes."""
    record = db.query(MagicLinkToken).filter(MagicLinkToken.token == token).first()
    return _evaluate(record, now or utcnow())


def consume_token(db: Session, token: str, now: datetime | None = None) -> TokenValidation:
    """
    Mark a valid token used and return its phone.

    The used flag is committed before this returns, ahead of any sign-in work.
    """
    now = now or utcnow()
    record = db.query(MagicLinkToken).filter(MagicLinkToken.token == token).first()
    outcome = _evaluate(record, now)
    if not outcome.valid:
        return outcome

    result = db.execute(
        update(MagicLinkToken)
        .where(MagicLinkToken.id == record.id, MagicLinkToken.used.is_(False))
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        return TokenValidation(TokenStatus.ALREADY_USED, phone=record.phone)

    return TokenValidation(
        TokenStatus.VALID, phone=record.phone, return_url=record.return_url, code=token
    )


def get_phone_from_token(db: Session, token: str) -> str | None:
    """Phone behind an existing token (any state), for requesting a fresh link."""
    record = db.query(MagicLinkToken).filter(MagicLinkToken.token == token).first()
    return record.phone if record else None


def cleanup_expired_tokens(db: Session, now: datetime | None = None) -> dict:
    """Delete tokens whose expiry passed more than 24h ago."""
    cutoff = (now or utcnow()) - CLEANUP_GRACE
    deleted = (
        db.query(MagicLinkToken)
        .filter(MagicLinkToken.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Deleted %s expired magic link tokens", deleted)
    return {"deleted": deleted}


# =============================================================================
# Delivery
# =============================================================================

def build_magic_link_url(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/auth/magic-link?{urlencode({'token': token})}"


async def send_login_link(
    db: Session,
    phone: str,
    client: WhatsAppClient,
    return_url: str | None = None,
) -> bool:
    """
    Issue a token and deliver the login link over WhatsApp.

    On delivery failure a plain fallback pointing at the website is attempted.
    Returns True when the link itself was delivered.
    """
    record = issue_token(db, phone, return_url=return_url)
    try:
        if settings.WHATSAPP_MAGIC_LINK_TEMPLATE_SID:
            await client.send_template(
                phone, settings.WHATSAPP_MAGIC_LINK_TEMPLATE_SID, {"1": record.token}
            )
        else:
            url = build_magic_link_url(record.token)
            await client.send_text(phone, LOGIN_LINK_MESSAGE.format(url=url))
        return True
    except WhatsAppError as e:
        logger.warning("Login link to %s not delivered: %s", mask_phone(phone), e)

    try:
        await client.send_text(phone, LOGIN_FALLBACK_MESSAGE.format(url=settings.FRONTEND_URL))
    except WhatsAppError as e:
        logger.warning("Login fallback to %s not delivered: %s", mask_phone(phone), e)
    return False
