"""Pydantic schemas for Profile API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.entities.avatar import AvatarState


class ProfileUpdate(BaseModel):
    """Schema for saving profile fields.

    Omitted fields are left as stored; an empty string clears a field.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(None, max_length=200)
    username: str | None = Field(None, max_length=50, pattern=r"^[A-Za-z0-9_.]*$")
    instagram_handle: str | None = Field(None, max_length=100)

    @field_validator("instagram_handle")
    @classmethod
    def strip_at_prefix(cls, v: str | None) -> str | None:
        return v.lstrip("@") if v is not None else None


class ProfileResponse(BaseModel):
    """Schema for Profile response."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "0b7c1d2e-3f40-4a5b-8c6d-7e8f9a0b1c2d",
                "email": "ann@example.com",
                "full_name": "Ann B",
                "username": "annb",
                "instagram_handle": "ann.b",
                "avatar_url": "https://xyz.supabase.co/storage/v1/object/public/avatars/0b7c1d2e-3f40-4a5b-8c6d-7e8f9a0b1c2d/avatar.jpg",
                "avatar_display_url": "https://xyz.supabase.co/storage/v1/object/public/avatars/0b7c1d2e-3f40-4a5b-8c6d-7e8f9a0b1c2d/avatar.jpg?t=1767225600000",
                "updated_at": "2026-01-01T00:00:00Z",
            }
        },
    )

    id: str
    email: str
    full_name: str | None = None
    username: str | None = None
    instagram_handle: str | None = None
    avatar_url: str | None = None
    avatar_display_url: str | None = None
    updated_at: datetime | None = None


class ProfileDetailResponse(BaseModel):
    """Schema for single Profile response."""

    data: ProfileResponse


class NoticeResponse(BaseModel):
    """A user-facing notice raised while handling the request."""

    kind: str
    message: str


class AvatarResponse(BaseModel):
    """Schema for a published avatar."""

    state: AvatarState
    avatar_url: str
    avatar_display_url: str
    content_type: str


class AvatarDetailResponse(BaseModel):
    """Schema for avatar upload response."""

    data: AvatarResponse
    notices: list[NoticeResponse] = Field(default_factory=list)
