"""Security utilities for JWT session tokens and random codes."""

import secrets
import string
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from levsarah.core.config import settings


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(user_id: UUID, token_version: int) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains user identity and revocation version.
    """
    payload = {
        "sub": str(user_id),
        "token_version": token_version,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Random codes
# =============================================================================

MAGIC_TOKEN_LENGTH = 32
MAGIC_TOKEN_ALPHABET = string.ascii_letters + string.digits
INVITE_CODE_LENGTH = 8
INVITE_CODE_ALPHABET = string.ascii_lowercase + string.digits


def generate_magic_token() -> str:
    """32 characters from [A-Za-z0-9], cryptographically random."""
    return "".join(secrets.choice(MAGIC_TOKEN_ALPHABET) for _ in range(MAGIC_TOKEN_LENGTH))


def generate_invite_code() -> str:
    """8 characters from [a-z0-9]."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
