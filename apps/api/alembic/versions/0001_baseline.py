"""Baseline migration - identity, family, visits and notification tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates every table of the visit coordination backend. Column types stay
portable so the same revision runs on SQLite (local) and PostgreSQL.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users and magic-link tokens
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('phone', sa.String(32), nullable=False, unique=True),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'magic_link_tokens',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('token', sa.String(64), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('return_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_magic_link_tokens_phone', 'magic_link_tokens', ['phone'])
    op.create_index('idx_magic_link_tokens_expires', 'magic_link_tokens', ['expires_at'])

    # ==========================================================================
    # Family profiles, invites, registration requests
    # ==========================================================================
    op.create_table(
        'family_profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'user_id', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False, unique=True,
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('hebrew_name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('relationship', sa.String(20), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('avatar_gradient', sa.String(100), nullable=True),
        sa.Column('profile_completed', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('last_visit_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_family_profiles_phone', 'family_profiles', ['phone'])
    op.create_index('idx_family_profiles_admin', 'family_profiles', ['is_admin'])

    op.create_table(
        'invites',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('relationship', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('invite_code', sa.String(16), nullable=False, unique=True),
        sa.Column('is_admin_invite', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column(
            'invited_by_id', sa.Uuid(),
            sa.ForeignKey('family_profiles.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('invited_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
    )
    op.create_index('idx_invites_phone', 'invites', ['phone'])
    op.create_index('idx_invites_status', 'invites', ['status'])

    op.create_table(
        'registration_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('phone', sa.String(32), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('relationship', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column(
            'approved_by_id', sa.Uuid(),
            sa.ForeignKey('family_profiles.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    # ==========================================================================
    # Visit slots
    # ==========================================================================
    op.create_table(
        'visit_slots',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('date', sa.String(10), nullable=False),
        sa.Column('slot', sa.String(20), nullable=False),
        sa.Column('hebrew_date', sa.String(100), nullable=False),
        sa.Column(
            'booked_by_id', sa.Uuid(),
            sa.ForeignKey('family_profiles.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('booked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_shabbat', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('is_holiday', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('holiday_name', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('date', 'slot', name='uq_visit_slots_date_slot'),
    )
    op.create_index('idx_visit_slots_booked_by', 'visit_slots', ['booked_by_id'])

    # ==========================================================================
    # Notification queue
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'profile_id', sa.Uuid(),
            sa.ForeignKey('family_profiles.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('provider_message_id', sa.String(64), nullable=True),
        sa.Column(
            'visit_slot_id', sa.Uuid(),
            sa.ForeignKey('visit_slots.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_notifications_due', 'notifications', ['status', 'scheduled_for'])
    op.create_index('idx_notifications_profile', 'notifications', ['profile_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('notifications')
    op.drop_table('visit_slots')
    op.drop_table('registration_requests')
    op.drop_table('invites')
    op.drop_table('family_profiles')
    op.drop_table('magic_link_tokens')
    op.drop_table('users')
