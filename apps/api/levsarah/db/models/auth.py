"""Identity and sign-in models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from levsarah.core.clock import utcnow
from levsarah.db.base import Base


class User(Base):
    """
    Signed-in identity, keyed by verified phone.

    Created on first successful magic-link sign-in. The family profile is
    linked one-to-one and only exists once an invite has been accepted.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    token_version: Mapped[int] = mapped_column(
        Integer, server_default=text("1"), default=1, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, server_default=text("true"), default=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    profile: Mapped["FamilyProfile | None"] = relationship(  # noqa: F821
        back_populates="user", uselist=False
    )


class MagicLinkToken(Base):
    """
    Single-use sign-in token delivered over WhatsApp.

    At most one live token per phone: issuing deletes the phone's earlier
    tokens. ``used`` flips once, through a conditional update.
    """

    __tablename__ = "magic_link_tokens"
    __table_args__ = (
        Index("idx_magic_link_tokens_phone", "phone"),
        Index("idx_magic_link_tokens_expires", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    used: Mapped[bool] = mapped_column(
        Boolean, server_default=text("false"), default=False, nullable=False
    )
    return_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
