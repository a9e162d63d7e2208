"""API schemas for tenant administration."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class TenantCreateRequest(BaseModel):
    """Request body for creating a tenant directly.

    The slug is derived from the name when omitted.
    """

    name: str = Field(..., min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=100)
    description: str | None = None
    owner_user_id: UUID | None = Field(
        default=None, description="User who receives an owner membership"
    )
    is_personal: bool = False
    settings: dict[str, Any] | None = None


class TenantUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=100)
    description: str | None = None
    logo_media_id: UUID | None = None
    is_active: bool | None = None
    settings: dict[str, Any] | None = None


class TenantResponse(BaseModel):
    tenant_id: UUID
    name: str
    slug: str
    description: str | None = None
    logo_media_id: UUID | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    is_personal: bool
    is_active: bool
    owner_user_id: UUID | None = None
    onboarding_completed: bool
    onboarding_step: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TenantUserAddRequest(BaseModel):
    user_id: UUID
    role: str = Field(default="member", description="owner or member")


class TenantUserResponse(BaseModel):
    user_id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    avatar_media_id: UUID | None = None
    role: str
    granted_at: datetime


class MembershipResponse(BaseModel):
    membership_id: UUID
    user_id: UUID
    tenant_id: UUID
    role: str
    is_active: bool
    granted_by: UUID | None = None
    granted_at: datetime
    revoked_by: UUID | None = None
    revoked_at: datetime | None = None

    model_config = {"from_attributes": True}
