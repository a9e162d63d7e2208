"""API schemas for user administration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    display_name: str | None = Field(default=None, max_length=200)
    external_auth_id: str | None = Field(default=None, max_length=255)
    is_system_admin: bool = False


class UserUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are changed."""

    email: str | None = Field(default=None, min_length=3, max_length=255)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    display_name: str | None = Field(default=None, max_length=200)
    avatar_media_id: UUID | None = None
    is_active: bool | None = None
    is_system_admin: bool | None = None


class UserResponse(BaseModel):
    user_id: UUID
    email: str
    external_auth_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    avatar_media_id: UUID | None = None
    is_active: bool
    is_system_admin: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
