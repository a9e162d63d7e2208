"""API schemas for login sync and tenant access."""

from uuid import UUID

from pydantic import BaseModel, Field

from fabrica.core.access import TenantAccess
from fabrica.core.login import LoginSyncResult


class LoginSyncRequest(BaseModel):
    """Identity asserted by the identity provider after sign-in.

    Example:
        {
            "email": "ada@example.com",
            "external_auth_id": "auth0|5f7c8ec7c33c6c004bbafe82",
            "first_name": "Ada",
            "last_name": "Lovelace"
        }
    """

    email: str = Field(..., min_length=3, max_length=255, description="Email address")
    external_auth_id: str | None = Field(
        default=None, max_length=255, description="Identity provider user id"
    )
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    display_name: str | None = Field(default=None, max_length=200)


class TenantAccessResponse(BaseModel):
    tenant_id: UUID
    name: str
    slug: str
    role: str = Field(..., description="owner, member or system_admin")
    is_personal: bool = False


class LoginSyncResponse(BaseModel):
    user_id: UUID
    email: str
    external_auth_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    avatar_media_id: UUID | None = None
    is_system_admin: bool
    is_new_user: bool
    requires_onboarding: bool
    onboarding_step: int
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    tenants: list[TenantAccessResponse] = Field(default_factory=list)


class CurrentTenantsResponse(BaseModel):
    tenants: list[TenantAccessResponse] = Field(default_factory=list)
    requires_onboarding: bool = False
    onboarding_step: int = 0


class UserPermissionsResponse(BaseModel):
    user_id: UUID
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)


def tenant_access_response(entry: TenantAccess) -> TenantAccessResponse:
    return TenantAccessResponse(
        tenant_id=entry.tenant_id,
        name=entry.name,
        slug=entry.slug,
        role=entry.role.value,
        is_personal=entry.is_personal,
    )


def login_sync_response(result: LoginSyncResult) -> LoginSyncResponse:
    """Convert the login sync result to the API response."""
    payload = result.model_dump(exclude={"tenants"})
    return LoginSyncResponse(
        **payload,
        tenants=[tenant_access_response(entry) for entry in result.tenants],
    )
