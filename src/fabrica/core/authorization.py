"""Authorization predicates for tenant management.

can_manage() answers one question: may the caller administer the
currently selected tenant? It is evaluated against the store on every
call and denies whenever any input is missing.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.context import CallerContext
from fabrica.core.exceptions import ForbiddenError
from fabrica.db.models.membership import TenantRole
from fabrica.db.repositories.membership import MembershipRepository
from fabrica.observability.metrics import record_authorization_decision

logger = structlog.get_logger()


async def can_manage(db: AsyncSession, ctx: CallerContext) -> bool:
    """Whether the caller may manage the selected tenant.

    System admins may manage any tenant, including when "All Tenants" is
    selected. Everyone else needs an active owner membership in the one
    selected tenant.

    Args:
        db: Database session
        ctx: Resolved caller context

    Returns:
        True if management is allowed
    """
    allowed = await _evaluate(db, ctx)
    record_authorization_decision(allowed)
    return allowed


async def _evaluate(db: AsyncSession, ctx: CallerContext) -> bool:
    if ctx.is_system_admin:
        return True
    if ctx.user_id is None or ctx.tenant_id is None:
        return False

    membership = await MembershipRepository(db).get_active(ctx.user_id, ctx.tenant_id)
    if membership is None:
        return False
    return membership.role == TenantRole.OWNER.value


async def require_can_manage(db: AsyncSession, ctx: CallerContext, action: str) -> None:
    """Raise unless the caller may manage the selected tenant.

    Raises:
        ForbiddenError: If can_manage() is False
    """
    if await can_manage(db, ctx):
        return

    logger.warning(
        "authorization_denied",
        action=action,
        user_id=str(ctx.user_id) if ctx.user_id else None,
        tenant_scope=str(ctx.tenant_scope),
    )
    raise ForbiddenError(action=action, tenant_id=ctx.tenant_id)


def require_system_admin(ctx: CallerContext, action: str) -> None:
    """Raise unless the caller is a system admin.

    Raises:
        ForbiddenError: For every other caller
    """
    if ctx.is_system_admin:
        return
    logger.warning(
        "authorization_denied",
        action=action,
        user_id=str(ctx.user_id) if ctx.user_id else None,
        reason="system_admin_required",
    )
    raise ForbiddenError("System administrator access is required", action=action)
