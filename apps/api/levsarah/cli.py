"""CLI tools for Lev Sarah administration and scheduled jobs."""

import asyncio
import logging

import click

from levsarah.db.enums import Relationship
from levsarah.db.models import User
from levsarah.db.session import SessionLocal
from levsarah.services import (
    auth_service,
    invite_service,
    magic_link_service,
    notification_service,
    scheduler_service,
)
from levsarah.services.whatsapp_client import get_whatsapp_client
from levsarah.utils.normalization import normalize_phone


@click.group()
@click.option("--verbose", is_flag=True, help="Debug logging")
def cli(verbose: bool):
    """Lev Sarah CLI tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


@cli.command()
@click.option("--phone", required=True, help="Administrator phone (05x... or +972...)")
@click.option("--name", required=True, help="Administrator full name")
@click.option(
    "--relationship",
    type=click.Choice([r.value for r in Relationship]),
    default=Relationship.SON.value,
    show_default=True,
)
@click.option("--send/--no-send", default=True, help="Send the invite over WhatsApp")
def seed_admin(phone: str, name: str, relationship: str, send: bool):
    """
    Create the first administrator invite.

    This is the bootstrap command for an empty install. The administrator
    signs in with a WhatsApp magic link and the invite is accepted on first
    sign-in.

    Example:
        python -m levsarah.cli seed-admin --phone 0501234567 --name "ישראל ישראלי"
    """
    db = SessionLocal()
    try:
        invite, created = invite_service.seed_admin_invite(
            db, phone, name, Relationship(relationship)
        )
        if not created:
            click.echo(f"Invite already exists for {invite.phone} (status: {invite.status})")
            return

        click.echo(f"✓ Created admin invite for {invite.phone}")
        click.echo(f"  Code: {invite.invite_code}")

        if send:
            result = asyncio.run(invite_service.send_invite(db, invite, get_whatsapp_client()))
            if result.get("dev"):
                click.echo("→ WhatsApp not configured; invite marked sent without delivery")
            elif result.get("success"):
                click.echo("✓ Invite sent over WhatsApp")
            else:
                click.echo(f"❌ Invite not delivered: {result.get('error')}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--phone", required=True, help="User phone to revoke sessions for")
def revoke_sessions(phone: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m levsarah.cli revoke-sessions --phone 0501234567
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.phone == normalize_phone(phone)).first()
        if not user:
            click.echo(f"❌ User not found: {phone}")
            return

        old_version = user.token_version
        auth_service.revoke_sessions(db, user)

        click.echo(f"✓ Revoked all sessions for {user.phone}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--limit", type=int, default=None, help="Batch size (default from settings)")
def process_notifications(limit: int | None):
    """Send due pending notifications once."""
    with SessionLocal() as db:
        result = asyncio.run(
            notification_service.process_pending_notifications(db, limit=limit)
        )
    click.echo(f"processed={result['processed']} sent={result['sent']} failed={result['failed']}")


@cli.command()
def detect_gaps():
    """Queue gap alerts for unbooked days in the coming week."""
    with SessionLocal() as db:
        result = scheduler_service.detect_gaps(db)
    click.echo(
        f"dates_checked={result['dates_checked']} gaps_found={result['gaps_found']} "
        f"alerts_sent={result['alerts_sent']}"
    )
    for gap in result["gaps"]:
        click.echo(f"  gap: {gap}")


@cli.command()
def activity_nudge():
    """Queue nudges for members inactive for two weeks."""
    with SessionLocal() as db:
        result = scheduler_service.weekly_activity_nudge(db)
    click.echo(
        f"inactive_members_found={result['inactive_members_found']} "
        f"nudges_sent={result['nudges_sent']}"
    )


@cli.command()
def cleanup_tokens():
    """Delete magic-link tokens expired for more than 24 hours."""
    with SessionLocal() as db:
        result = magic_link_service.cleanup_expired_tokens(db)
    click.echo(f"deleted={result['deleted']}")


if __name__ == "__main__":
    cli()
