"""Tests for invites, sign-in and profile administration."""
import pytest

from levsarah.core.security import decode_session_token
from levsarah.db.enums import InviteStatus, Relationship, TimeSlot
from levsarah.db.models import FamilyProfile, Notification, User, VisitSlot
from levsarah.services import auth_service, invite_service, profile_service, visit_service


# =============================================================================
# Invites
# =============================================================================

def test_create_invite_normalizes_phone(db, admin):
    invite = invite_service.create_invite(
        db, "052-555-1234", "  נועה  ", Relationship.GRANDDAUGHTER, invited_by_id=admin.id
    )

    assert invite.phone == "+972525551234"
    assert invite.name == "נועה"
    assert invite.status == InviteStatus.PENDING.value
    assert len(invite.invite_code) == 8
    assert invite.invited_by_id == admin.id


def test_create_invite_rejects_duplicates_and_members(db, member):
    invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)

    with pytest.raises(ValueError, match="הזמנה כבר נשלחה"):
        invite_service.create_invite(db, "+972525551234", "נועה", Relationship.GRANDDAUGHTER)

    with pytest.raises(ValueError, match="כבר קיים במערכת"):
        invite_service.create_invite(db, member.phone, "דוד", Relationship.SON)


def test_failed_invite_can_be_recreated(db):
    invite = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)
    invite_service.mark_invite_failed(db, invite, "bad number")

    again = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)
    assert again.status == InviteStatus.PENDING.value


def test_regenerate_and_resend(db):
    invite = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)
    old_code = invite.invite_code
    invite_service.mark_invite_failed(db, invite, "bad number")

    invite_service.regenerate_invite_code(db, invite)
    assert invite.invite_code != old_code
    assert invite_service.get_invite_by_code(db, old_code) is None

    invite_service.resend_invite(db, invite)
    assert invite.status == InviteStatus.PENDING.value
    assert invite.error is None


@pytest.mark.asyncio
async def test_send_invite_delivers_link(db, whatsapp):
    invite = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)

    result = await invite_service.send_invite(db, invite, whatsapp)

    assert result["success"] is True
    (body,) = whatsapp.texts_to("+972525551234")
    assert body.startswith("שלום נועה!")
    assert f"/invite/{invite.invite_code}" in body
    assert invite.status == InviteStatus.SENT.value


@pytest.mark.asyncio
async def test_send_invite_failure_marks_failed(db, whatsapp):
    whatsapp.fail_with = "Invalid 'To' Phone Number"
    invite = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)

    result = await invite_service.send_invite(db, invite, whatsapp)

    assert result == {"success": False, "error": "Invalid 'To' Phone Number"}
    assert invite.status == InviteStatus.FAILED.value
    assert invite.error == "Invalid 'To' Phone Number"


@pytest.mark.asyncio
async def test_send_invite_without_credentials(db, whatsapp):
    whatsapp.configured = False
    invite = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)

    result = await invite_service.send_invite(db, invite, whatsapp)

    assert result == {"success": True, "dev": True}
    assert invite.status == InviteStatus.SENT.value
    assert whatsapp.sent_text == []


def test_seed_admin_invite_is_idempotent(db):
    invite, created = invite_service.seed_admin_invite(db, "0501234567", "שרה", Relationship.DAUGHTER)
    assert created is True
    assert invite.is_admin_invite is True
    assert invite.phone == "+972501234567"

    same, created_again = invite_service.seed_admin_invite(
        db, "+972501234567", "שרה", Relationship.DAUGHTER
    )
    assert created_again is False
    assert same.id == invite.id


# =============================================================================
# Acceptance and sign-in
# =============================================================================

def test_sign_in_accepts_open_invite(db):
    invite, _ = invite_service.seed_admin_invite(db, "0501234567", "שרה", Relationship.DAUGHTER)

    user, token = auth_service.sign_in_with_phone(db, "+972501234567")

    assert user.profile.is_admin is True
    assert user.profile.name == "שרה"
    db.refresh(invite)
    assert invite.status == InviteStatus.ACCEPTED.value
    assert invite.accepted_at is not None

    payload = decode_session_token(token)
    assert payload["sub"] == str(user.id)
    assert payload["token_version"] == user.token_version


def test_sign_in_without_invite_has_no_profile(db):
    user, _ = auth_service.sign_in_with_phone(db, "+972526666666")

    assert user.profile is None
    assert db.query(FamilyProfile).count() == 0

    # Signing in again reuses the same user
    again, _ = auth_service.sign_in_with_phone(db, "0526666666")
    assert again.id == user.id


def test_sign_in_disabled_account(db):
    db.add(User(phone="+972526666666", is_active=False))
    db.commit()

    with pytest.raises(ValueError, match="Account disabled"):
        auth_service.sign_in_with_phone(db, "+972526666666")


def test_accept_invite_checks_phone_and_status(db):
    invite = invite_service.create_invite(db, "0525551234", "נועה", Relationship.GRANDDAUGHTER)
    stranger = auth_service.get_or_create_user(db, "+972526666666")

    with pytest.raises(ValueError, match="different phone"):
        invite_service.accept_invite(db, stranger, invite)

    invitee = auth_service.get_or_create_user(db, "+972525551234")
    profile = invite_service.accept_invite(db, invitee, invite)
    assert profile.relationship == Relationship.GRANDDAUGHTER.value

    # Accepting again returns the existing profile
    assert invite_service.accept_invite(db, invitee, invite).id == profile.id

    other = auth_service.get_or_create_user(db, "0525551234")
    assert other.id == invitee.id


def test_revoke_sessions_bumps_version(db, member):
    before = member.user.token_version
    auth_service.revoke_sessions(db, member.user)
    assert member.user.token_version == before + 1


# =============================================================================
# Profiles
# =============================================================================

def test_update_profile(db, member):
    profile_service.update_profile(
        db, member, name=" דוד כהן ", hebrew_name="", profile_completed=True
    )
    assert member.name == "דוד כהן"
    assert member.hebrew_name is None
    assert member.profile_completed is True

    with pytest.raises(ValueError):
        profile_service.update_profile(db, member, name="   ")


def test_delete_profile_frees_bookings(db, admin, member):
    slot = visit_service.book_slot(db, member.user, "2026-11-02", TimeSlot.MORNING)
    slot_id = slot.id

    profile_service.delete_profile(db, admin, member)

    assert db.get(VisitSlot, slot_id).booked_by_id is None
    assert db.query(Notification).count() == 0
    assert db.query(FamilyProfile).filter(FamilyProfile.name == "דוד").count() == 0


def test_admin_cannot_delete_self(db, admin):
    with pytest.raises(ValueError):
        profile_service.delete_profile(db, admin, admin)


def test_find_profile_by_phone_variants(db, make_member):
    # Stored before normalization, without country code
    legacy = make_member(name="ותיק", phone="528888888")

    assert profile_service.find_profile_by_phone(db, "+972528888888").id == legacy.id
    assert profile_service.find_profile_by_phone(db, "whatsapp:+972528888888").id == legacy.id
    assert profile_service.find_profile_by_phone(db, "+972500000000") is None
