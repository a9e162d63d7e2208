"""API schemas for request/response validation."""

from .auth import (
    CurrentTenantsResponse,
    LoginSyncRequest,
    LoginSyncResponse,
    TenantAccessResponse,
    UserPermissionsResponse,
)
from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from .invitations import InvitationCreateRequest, InvitationResponse
from .tenants import (
    MembershipResponse,
    TenantCreateRequest,
    TenantResponse,
    TenantUpdateRequest,
    TenantUserAddRequest,
    TenantUserResponse,
)
from .users import UserCreateRequest, UserResponse, UserUpdateRequest

__all__ = [
    # Error schemas
    "APIError",
    "ErrorCode",
    # Health schemas
    "ComponentHealth",
    "HealthStatus",
    "HealthResponse",
    "HealthDetailResponse",
    # Auth schemas
    "CurrentTenantsResponse",
    "LoginSyncRequest",
    "LoginSyncResponse",
    "TenantAccessResponse",
    "UserPermissionsResponse",
    # Tenant schemas
    "MembershipResponse",
    "TenantCreateRequest",
    "TenantResponse",
    "TenantUpdateRequest",
    "TenantUserAddRequest",
    "TenantUserResponse",
    # User schemas
    "UserCreateRequest",
    "UserResponse",
    "UserUpdateRequest",
    # Invitation schemas
    "InvitationCreateRequest",
    "InvitationResponse",
]
