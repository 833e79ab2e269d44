"""Auth service - turns a verified phone into a signed-in session."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from levsarah.core.security import create_session_token
from levsarah.db.models import User
from levsarah.services import invite_service
from levsarah.utils.normalization import mask_phone, normalize_phone

logger = logging.getLogger(__name__)


def get_or_create_user(db: Session, phone: str) -> User:
    phone = normalize_phone(phone)
    user = db.query(User).filter(User.phone == phone).first()
    if user:
        return user

    user = User(phone=phone)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user for %s", mask_phone(phone))
    return user


def sign_in_with_phone(db: Session, phone: str) -> tuple[User, str]:
    """
    Resolve the user for a verified phone and mint a session token.

    A user without a profile who holds an open invite for this phone has the
    invite accepted here, so an approved registration lands signed in with a
    profile.

    Raises:
        ValueError: Account disabled
    """
    user = get_or_create_user(db, phone)
    if not user.is_active:
        raise ValueError("Account disabled")

    if user.profile is None:
        invite = invite_service.find_open_invite_for_phone(db, user.phone)
        if invite:
            invite_service.accept_invite(db, user, invite)

    token = create_session_token(user_id=user.id, token_version=user.token_version)
    return user, token


def revoke_sessions(db: Session, user: User) -> None:
    """Invalidate every session token issued to the user."""
    user.token_version += 1
    db.commit()
