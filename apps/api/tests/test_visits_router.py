"""Tests for visit, profile and notification endpoints."""
import pytest
from httpx import AsyncClient

from levsarah.db.enums import NotificationType
from levsarah.db.models import Notification, VisitSlot

MONDAY = "2026-11-02"
SATURDAY = "2026-11-07"


@pytest.mark.asyncio
async def test_book_slot_requires_session(client: AsyncClient):
    response = await client.post(
        "/visits",
        json={"date": MONDAY, "slot": "morning"},
        headers={"X-Requested-With": "XMLHttpRequest"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_slot_requires_csrf_header(member_client: AsyncClient):
    response = await member_client.post(
        "/visits",
        json={"date": MONDAY, "slot": "morning"},
        headers={"X-Requested-With": ""},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_book_and_read_back(member_client: AsyncClient, member, db):
    response = await member_client.post(
        "/visits", json={"date": MONDAY, "slot": "morning", "notes": "עם עוגה"}
    )
    assert response.status_code == 201
    data = response.json()
    assert data["date"] == MONDAY
    assert data["slot"] == "morning"
    assert data["booked_by_id"] == str(member.id)
    assert data["booked_by"]["name"] == "דוד"
    assert data["notes"] == "עם עוגה"

    schedule = await member_client.get("/visits", params={"start": MONDAY, "end": MONDAY})
    assert [s["id"] for s in schedule.json()] == [data["id"]]

    mine = await member_client.get("/visits/mine")
    assert len(mine.json()) == 1

    single = await member_client.get(f"/visits/date/{MONDAY}/morning")
    assert single.json()["id"] == data["id"]

    empty = await member_client.get(f"/visits/date/{MONDAY}/evening")
    assert empty.status_code == 200
    assert empty.json() is None

    confirmation = (
        db.query(Notification)
        .filter(Notification.type == NotificationType.CONFIRMATION.value)
        .one()
    )
    assert confirmation.profile_id == member.id


@pytest.mark.asyncio
async def test_double_booking_conflicts(member_client: AsyncClient, admin_client: AsyncClient):
    first = await member_client.post("/visits", json={"date": MONDAY, "slot": "evening"})
    assert first.status_code == 201

    second = await admin_client.post("/visits", json={"date": MONDAY, "slot": "evening"})
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_sabbath_booking_rejected(member_client: AsyncClient, db):
    response = await member_client.post("/visits", json={"date": SATURDAY, "slot": "morning"})
    assert response.status_code == 422
    assert db.query(VisitSlot).count() == 0


@pytest.mark.asyncio
async def test_invalid_slot_name_is_validation_error(member_client: AsyncClient):
    response = await member_client.post("/visits", json={"date": MONDAY, "slot": "night"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cancel_own_and_others(member_client: AsyncClient, admin_client: AsyncClient):
    booked = (await admin_client.post("/visits", json={"date": MONDAY, "slot": "afternoon"})).json()

    forbidden = await member_client.delete(f"/visits/{booked['id']}")
    assert forbidden.status_code == 403

    own = (await member_client.post("/visits", json={"date": MONDAY, "slot": "morning"})).json()
    cancelled = await member_client.delete(f"/visits/{own['id']}")
    assert cancelled.status_code == 200
    assert cancelled.json()["booked_by_id"] is None


# =============================================================================
# Profiles
# =============================================================================

@pytest.mark.asyncio
async def test_profile_me_and_update(member_client: AsyncClient):
    me = await member_client.get("/profiles/me")
    assert me.status_code == 200
    assert me.json()["name"] == "דוד"

    updated = await member_client.patch(
        "/profiles/me", json={"hebrew_name": "דוד בן שרה", "profile_completed": True}
    )
    assert updated.status_code == 200
    assert updated.json()["hebrew_name"] == "דוד בן שרה"
    assert updated.json()["profile_completed"] is True
    assert updated.json()["name"] == "דוד"


@pytest.mark.asyncio
async def test_signed_in_without_profile_gets_404(client: AsyncClient, db):
    from levsarah.core.deps import COOKIE_NAME
    from levsarah.core.security import create_session_token
    from levsarah.db.models import User

    user = User(phone="+972526666666")
    db.add(user)
    db.commit()
    client.cookies.set(COOKIE_NAME, create_session_token(user.id, user.token_version))

    response = await client.get("/profiles/me")
    assert response.status_code == 404

    booking = await client.post(
        "/visits",
        json={"date": MONDAY, "slot": "morning"},
        headers={"X-Requested-With": "XMLHttpRequest"},
    )
    assert booking.status_code == 404


# =============================================================================
# Notifications
# =============================================================================

@pytest.mark.asyncio
async def test_nudge_is_coordinator_only(
    member_client: AsyncClient, admin_client: AsyncClient, member
):
    forbidden = await member_client.post("/notifications/nudge", json={"profile_id": str(member.id)})
    assert forbidden.status_code == 403

    created = await admin_client.post(
        "/notifications/nudge", json={"profile_id": str(member.id), "message": "מתי תבוא?"}
    )
    assert created.status_code == 201
    assert created.json()["type"] == "nudge"
    assert created.json()["message"] == "מתי תבוא?"

    mine = await member_client.get("/notifications/mine")
    assert [n["id"] for n in mine.json()] == [created.json()["id"]]


@pytest.mark.asyncio
async def test_cancel_pending_notification(admin_client: AsyncClient, member):
    created = (
        await admin_client.post("/notifications/nudge", json={"profile_id": str(member.id)})
    ).json()

    deleted = await admin_client.delete(f"/notifications/{created['id']}")
    assert deleted.status_code == 204

    missing = await admin_client.delete(f"/notifications/{created['id']}")
    assert missing.status_code == 404
