"""Pydantic schemas for magic-link sign-in."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from levsarah.schemas.family import ProfileRead


class MagicLinkToken(BaseModel):
    token: str = Field(min_length=1, max_length=128)


class MagicLinkValidation(BaseModel):
    valid: bool
    error: str | None = None
    phone: str | None = None
    return_url: str | None = None


class StoreMagicToken(BaseModel):
    """Body of the internal token storage endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    phone: str | None = None
    token: str | None = None
    return_url: str | None = Field(default=None, alias="returnUrl")


class MeResponse(BaseModel):
    user_id: UUID
    phone: str
    profile: ProfileRead | None
