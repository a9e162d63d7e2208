"""Tenant access aggregation.

Computes the tenants a caller can switch between in the shell, and
whether a freshly signed-in user still has to go through onboarding.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.context import ALL_TENANTS_ID
from fabrica.db.models.membership import TenantRole
from fabrica.db.models.user import User
from fabrica.db.repositories.invitation import InvitationRepository
from fabrica.db.repositories.membership import MembershipRepository
from fabrica.db.repositories.tenant import TenantRepository
from fabrica.db.repositories.user import UserRepository

ALL_TENANTS_NAME = "All Tenants"
ALL_TENANTS_SLUG = "all"


class TenantAccess(BaseModel):
    """One tenant the caller may act in, with the caller's role there."""

    tenant_id: UUID
    name: str
    slug: str
    role: TenantRole
    is_personal: bool = False

    @property
    def is_synthetic(self) -> bool:
        return self.tenant_id == ALL_TENANTS_ID


class OnboardingDecision(BaseModel):
    requires_onboarding: bool
    current_step: int = 0
    tenant_id: UUID | None = None


def all_tenants_entry() -> TenantAccess:
    """The pseudo-tenant that selects every tenant for system admins."""
    return TenantAccess(
        tenant_id=ALL_TENANTS_ID,
        name=ALL_TENANTS_NAME,
        slug=ALL_TENANTS_SLUG,
        role=TenantRole.SYSTEM_ADMIN,
        is_personal=False,
    )


class TenantAccessAggregator:
    def __init__(self, db: AsyncSession):
        self.memberships = MembershipRepository(db)
        self.tenants = TenantRepository(db)
        self.invitations = InvitationRepository(db)
        self.users = UserRepository(db)

    async def tenants_for(
        self, user_id: UUID | None, is_system_admin: bool = False
    ) -> list[TenantAccess]:
        """Tenants where the user holds an active membership.

        Only active tenants are included, ordered by name. System admins
        get the "All Tenants" entry first. A caller without a user id
        gets no memberships.

        Args:
            user_id: The caller, if known
            is_system_admin: Whether to prepend the "All Tenants" entry
        """
        entries: list[TenantAccess] = []
        if is_system_admin:
            entries.append(all_tenants_entry())
        if user_id is None:
            return entries

        for membership, tenant in await self.memberships.active_for_user(user_id):
            entries.append(
                TenantAccess(
                    tenant_id=tenant.tenant_id,
                    name=tenant.name,
                    slug=tenant.slug,
                    role=TenantRole(membership.role),
                    is_personal=tenant.is_personal,
                )
            )
        return entries

    async def onboarding_decision(
        self,
        user: User,
        tenants: list[TenantAccess],
        now: datetime | None = None,
    ) -> OnboardingDecision:
        """Decide whether the user must be sent through onboarding.

        Onboarding is required when the user is not a system admin, has
        no tenant to work in and has no pending invitation that will give
        them one. The owner membership of the user's own unfinished
        onboarding tenant does not count as a tenant to work in, so an
        interrupted onboarding resumes at its recorded step.

        Args:
            user: The signed-in user
            tenants: Result of tenants_for() for that user
            now: Reference time for invitation expiry
        """
        if user.is_system_admin:
            return OnboardingDecision(requires_onboarding=False)

        in_progress = await self.tenants.find_incomplete_onboarding(user.user_id)
        step = in_progress.onboarding_step if in_progress is not None else 0
        in_progress_id = in_progress.tenant_id if in_progress is not None else None

        usable = [
            entry
            for entry in tenants
            if not entry.is_synthetic and entry.tenant_id != in_progress_id
        ]
        if usable:
            return OnboardingDecision(
                requires_onboarding=False, current_step=step, tenant_id=in_progress_id
            )

        if await self.invitations.has_pending_for_email(user.email, now):
            return OnboardingDecision(
                requires_onboarding=False, current_step=step, tenant_id=in_progress_id
            )

        return OnboardingDecision(
            requires_onboarding=True, current_step=step, tenant_id=in_progress_id
        )

    async def current(
        self, user_id: UUID | None, is_system_admin: bool = False
    ) -> tuple[list[TenantAccess], OnboardingDecision]:
        """Tenant list and onboarding flags for the calling user.

        A caller without a user id, or whose user record does not exist,
        is never sent to onboarding.
        """
        tenants = await self.tenants_for(user_id, is_system_admin)
        user = await self.users.get(user_id) if user_id is not None else None
        if user is None:
            return tenants, OnboardingDecision(requires_onboarding=False)
        return tenants, await self.onboarding_decision(user, tenants)
