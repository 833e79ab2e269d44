"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created per test
- Member/admin factories (User + FamilyProfile)
- Fake WhatsApp client recording outbound messages
- HTTPX AsyncClients (anonymous, member, admin) with proper headers
"""
import os
import uuid
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "dev"
os.environ["TWILIO_SID"] = ""
os.environ["TWILIO_TOKEN"] = ""
os.environ["WHATSAPP_SENDER"] = ""
os.environ["WHATSAPP_VALIDATE_SIGNATURE"] = "false"

from levsarah.main import app
from levsarah.core.deps import COOKIE_NAME, get_db
from levsarah.core.security import create_session_token
from levsarah.db.base import Base
from levsarah.db.enums import Relationship
from levsarah.db.models import FamilyProfile, User
from levsarah.db.session import SessionLocal, engine
from levsarah.services.whatsapp_client import (
    WhatsAppClient,
    WhatsAppSendError,
    get_whatsapp_client,
)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    The in-memory engine shares one connection, so sessions opened by app
    code see the same data as this one.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


# =============================================================================
# Family Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def make_member(db: Session):
    """Factory: create a signed-up family member (User + FamilyProfile)."""

    def _make(
        name: str = "Test Member",
        phone: str | None = None,
        is_admin: bool = False,
        relationship: Relationship = Relationship.SON,
    ) -> FamilyProfile:
        phone = phone or f"+97252{uuid.uuid4().int % 10_000_000:07d}"
        user = User(phone=phone)
        db.add(user)
        db.flush()
        profile = FamilyProfile(
            user_id=user.id,
            name=name,
            phone=phone,
            relationship=relationship.value,
            is_admin=is_admin,
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    return _make


@pytest.fixture(scope="function")
def member(make_member) -> FamilyProfile:
    return make_member(name="דוד", phone="+972521111111")


@pytest.fixture(scope="function")
def admin(make_member) -> FamilyProfile:
    return make_member(name="שרה", phone="+972500000001", is_admin=True)


# =============================================================================
# WhatsApp Fake
# =============================================================================

class FakeWhatsAppClient(WhatsAppClient):
    """Records every outbound message instead of calling Twilio."""

    def __init__(self, configured: bool = True, fail_with: str | None = None):
        super().__init__("ACtest", "token", "+15550000000")
        self.configured = configured
        self.fail_with = fail_with
        self.sent_text: list[tuple[str, str]] = []
        self.sent_templates: list[tuple[str, str, dict]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def _next_sid(self) -> str:
        if self.fail_with:
            raise WhatsAppSendError(self.fail_with)
        return f"SM{uuid.uuid4().hex[:30]}"

    async def send_text(self, phone: str, body: str) -> str:
        sid = self._next_sid()
        self.sent_text.append((phone, body))
        return sid

    async def send_template(self, phone: str, template_sid: str, variables) -> str:
        sid = self._next_sid()
        self.sent_templates.append((phone, template_sid, dict(variables)))
        return sid

    def texts_to(self, phone: str) -> list[str]:
        return [body for to, body in self.sent_text if to == phone]


@pytest.fixture(scope="function")
def whatsapp() -> FakeWhatsAppClient:
    return FakeWhatsAppClient()


# =============================================================================
# Client Fixtures
# =============================================================================

def _override(db: Session, whatsapp: FakeWhatsAppClient) -> None:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_whatsapp_client] = lambda: whatsapp


def _session_cookie(profile: FamilyProfile) -> dict[str, str]:
    token = create_session_token(
        user_id=profile.user.id, token_version=profile.user.token_version
    )
    return {COOKIE_NAME: token}


@pytest.fixture(scope="function")
async def client(
    db: Session, whatsapp: FakeWhatsAppClient
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    _override(db, whatsapp)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def member_client(
    db: Session, whatsapp: FakeWhatsAppClient, member: FamilyProfile
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient signed in as a regular member, with CSRF header."""
    _override(db, whatsapp)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=_session_cookie(member),
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(
    db: Session, whatsapp: FakeWhatsAppClient, admin: FamilyProfile
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient signed in as an administrator, with CSRF header."""
    _override(db, whatsapp)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=_session_cookie(admin),
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()
