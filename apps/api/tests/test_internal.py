"""Tests for the internal cron and token storage endpoints."""
from datetime import timedelta

import pytest

from levsarah.core.clock import utcnow
from levsarah.core.config import settings
from levsarah.db.enums import NotificationStatus, NotificationType
from levsarah.db.models import MagicLinkToken, Notification
from levsarah.routers import internal as internal_router
from levsarah.services import magic_link_service, notification_service


@pytest.fixture
def internal_db(db, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "secret")

    class _TestSession:
        def __enter__(self):
            return db

        def __exit__(self, exc_type, exc, tb):
            return False

    monkeypatch.setattr(internal_router, "SessionLocal", lambda: _TestSession())
    return db


HEADERS = {"X-Internal-Secret": "secret"}


@pytest.mark.asyncio
async def test_detect_gaps_endpoint(client, internal_db, admin):
    response = await client.post("/internal/scheduled/detect-gaps", headers=HEADERS)

    assert response.status_code == 200
    data = response.json()
    # Seven days always contain exactly one Saturday
    assert data["dates_checked"] == 7
    assert data["gaps_found"] == 6
    assert data["alerts_sent"] == 6
    assert len(data["gaps"]) == 6


@pytest.mark.asyncio
async def test_process_notifications_endpoint(client, internal_db, member, whatsapp):
    notification = notification_service.enqueue_notification(
        internal_db, member.id, NotificationType.NUDGE, message="בוא לבקר"
    )

    response = await client.post("/internal/scheduled/process-notifications", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"processed": 1, "sent": 1, "failed": 0}
    internal_db.refresh(notification)
    assert notification.status == NotificationStatus.SENT.value
    assert notification.provider_message_id.startswith("SM")


@pytest.mark.asyncio
async def test_activity_nudge_endpoint(client, internal_db, admin, member):
    response = await client.post("/internal/scheduled/activity-nudge", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"inactive_members_found": 1, "nudges_sent": 1}
    (nudge,) = internal_db.query(Notification).all()
    assert nudge.profile_id == member.id


@pytest.mark.asyncio
async def test_cleanup_magic_tokens_endpoint(client, internal_db):
    magic_link_service.issue_token(
        internal_db, "+972523333333", now=utcnow() - timedelta(days=2)
    )

    response = await client.post("/internal/scheduled/cleanup-magic-tokens", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"deleted": 1}


@pytest.mark.asyncio
async def test_scheduled_endpoints_check_secret(client, db, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_SECRET", "")
    unconfigured = await client.post("/internal/scheduled/detect-gaps", headers=HEADERS)
    assert unconfigured.status_code == 501

    monkeypatch.setattr(settings, "INTERNAL_SECRET", "secret")
    wrong = await client.post(
        "/internal/scheduled/detect-gaps", headers={"X-Internal-Secret": "nope"}
    )
    assert wrong.status_code == 403

    missing = await client.post("/internal/scheduled/detect-gaps")
    assert missing.status_code == 422


# =============================================================================
# Token storage
# =============================================================================

@pytest.mark.asyncio
async def test_store_magic_token(client, internal_db):
    response = await client.post(
        "/api/internal/store-magic-token",
        headers=HEADERS,
        json={"phone": "052-111-1111", "token": "abc123", "returnUrl": "/visits"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    record = internal_db.query(MagicLinkToken).one()
    assert record.phone == "+972521111111"
    assert record.token == "abc123"
    assert record.return_url == "/visits"
    assert magic_link_service.validate_token(internal_db, "abc123").valid


@pytest.mark.asyncio
async def test_store_magic_token_rejects_bad_requests(client, internal_db):
    unauthorized = await client.post(
        "/api/internal/store-magic-token",
        headers={"X-Internal-Secret": "nope"},
        json={"phone": "+972521111111", "token": "abc123"},
    )
    assert unauthorized.status_code == 401

    not_json = await client.post(
        "/api/internal/store-magic-token",
        headers={**HEADERS, "Content-Type": "application/json"},
        content=b"{not json",
    )
    assert not_json.status_code == 400

    missing_token = await client.post(
        "/api/internal/store-magic-token",
        headers=HEADERS,
        json={"phone": "+972521111111"},
    )
    assert missing_token.status_code == 400
    assert internal_db.query(MagicLinkToken).count() == 0
