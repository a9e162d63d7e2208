"""FastAPI dependencies for API endpoints."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.access import TenantAccessAggregator
from fabrica.core.authorization import require_system_admin
from fabrica.core.context import CallerContext, get_current_caller
from fabrica.core.invitations import InvitationService
from fabrica.core.login import LoginSyncService
from fabrica.core.onboarding import OnboardingService
from fabrica.core.plans import PlanLookup
from fabrica.core.tenant import TenantService
from fabrica.core.users import UserService
from fabrica.db.config import get_db

# Re-export database dependency for convenience
__all__ = [
    "get_db",
    "get_caller_context",
    "get_system_admin_caller",
    "get_access_aggregator",
    "get_invitation_service",
    "get_login_service",
    "get_onboarding_service",
    "get_plan_lookup",
    "get_tenant_service",
    "get_user_service",
]

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_caller_context(request: Request) -> CallerContext:
    """Get the CallerContext resolved by CallerContextMiddleware.

    Raises:
        ContextNotSetError: If the middleware did not run for this request
    """
    ctx = getattr(request.state, "caller", None)
    if ctx is None:
        return get_current_caller()
    return ctx


def get_system_admin_caller(
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    request: Request,
) -> CallerContext:
    """Caller context of a system administrator.

    Raises:
        ForbiddenError: If the caller is not a system administrator
    """
    require_system_admin(ctx, f"{request.method} {request.url.path}")
    return ctx


def get_login_service(db: DbSession) -> LoginSyncService:
    return LoginSyncService(db)


def get_access_aggregator(db: DbSession) -> TenantAccessAggregator:
    return TenantAccessAggregator(db)


def get_onboarding_service(db: DbSession) -> OnboardingService:
    return OnboardingService(db)


def get_plan_lookup(db: DbSession) -> PlanLookup:
    return PlanLookup(db)


def get_invitation_service(db: DbSession) -> InvitationService:
    return InvitationService(db)


def get_tenant_service(db: DbSession) -> TenantService:
    return TenantService(db)


def get_user_service(db: DbSession) -> UserService:
    return UserService(db)
