"""Login synchronization.

Called by the shell after the identity provider has authenticated a
user. Provisions or refreshes the user record, turns pending invitations
into memberships and returns everything the shell needs to render the
tenant switcher.
"""

from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.access import TenantAccess, TenantAccessAggregator
from fabrica.core.reconciler import InvitationReconciler, ReconcileReport
from fabrica.core.users import UserService
from fabrica.db.repositories.rbac import RoleRepository
from fabrica.observability.metrics import record_login_sync

logger = structlog.get_logger()


class LoginSyncResult(BaseModel):
    user_id: UUID
    email: str
    external_auth_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    avatar_media_id: UUID | None = None
    is_system_admin: bool = False
    is_new_user: bool = False
    requires_onboarding: bool = False
    onboarding_step: int = 0
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    tenants: list[TenantAccess] = Field(default_factory=list)


class LoginSyncService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserService(db)
        self.reconciler = InvitationReconciler(db)
        self.access = TenantAccessAggregator(db)
        self.roles = RoleRepository(db)

    async def sync(
        self,
        email: str,
        external_auth_id: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        display_name: str | None = None,
    ) -> LoginSyncResult:
        """Synchronize a signed-in user.

        Invitation failures never fail the login; they are logged by the
        reconciler and the user simply does not see that tenant yet.

        Args:
            email: Email asserted by the identity provider
            external_auth_id: Identity provider's user id
            first_name: Given name, used to backfill an empty profile
            last_name: Family name, used to backfill an empty profile
            display_name: Preferred display name

        Raises:
            BadRequestError: If the email is invalid
        """
        user, is_new = await self.users.upsert_for_login(
            email,
            external_auth_id=external_auth_id,
            first_name=first_name,
            last_name=last_name,
            display_name=display_name,
        )
        report: ReconcileReport = await self.reconciler.reconcile(user)

        tenants = await self.access.tenants_for(user.user_id, user.is_system_admin)
        decision = await self.access.onboarding_decision(user, tenants)

        result = LoginSyncResult(
            user_id=user.user_id,
            email=user.email,
            external_auth_id=user.external_auth_id,
            first_name=user.first_name,
            last_name=user.last_name,
            display_name=user.display_name,
            avatar_media_id=user.avatar_media_id,
            is_system_admin=user.is_system_admin,
            is_new_user=is_new,
            requires_onboarding=decision.requires_onboarding,
            onboarding_step=decision.current_step,
            roles=await self.roles.role_names_for_user(user.user_id),
            permissions=await self.roles.permission_names_for_user(user.user_id),
            tenants=tenants,
        )

        record_login_sync(is_new)
        logger.info(
            "login_synced",
            user_id=str(user.user_id),
            is_new_user=is_new,
            tenants=len(tenants),
            invitations_accepted=len(report.accepted),
            requires_onboarding=decision.requires_onboarding,
        )
        return result

    async def permissions(self, user_id: UUID) -> tuple[list[str], list[str]]:
        """Global role and permission names of a user.

        Unknown users have neither, so both lists are empty.
        """
        return (
            await self.roles.role_names_for_user(user_id),
            await self.roles.permission_names_for_user(user_id),
        )
