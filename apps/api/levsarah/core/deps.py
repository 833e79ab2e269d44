"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from levsarah.core.security import decode_session_token
from levsarah.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "levsarah_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    from levsarah.db.models import User

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Like get_current_user, but returns None instead of raising.

    Used where the service layer reports the unauthenticated case itself.
    """
    try:
        return get_current_user(request, db)
    except HTTPException:
        return None


def get_current_profile(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get the family profile of the signed-in user.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 404: Signed in but no family profile yet
    """
    user = get_current_user(request, db)
    if user.profile is None:
        raise HTTPException(status_code=404, detail="Profile not found. Complete your profile first.")
    return user.profile


def require_admin(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Require an administrator profile.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Not an administrator
    """
    profile = get_current_profile(request, db)
    if not profile.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return profile


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
