"""Repository for user-tenant memberships."""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from fabrica.core.exceptions import MembershipNotFoundError
from fabrica.db.models.base import utcnow
from fabrica.db.models.membership import Membership, TenantRole
from fabrica.db.models.tenant import Tenant
from fabrica.db.models.user import User

from .base import BaseRepository

logger = structlog.get_logger()


class MembershipRepository(BaseRepository[Membership, UUID]):
    """Memberships keyed on (user_id, tenant_id).

    The pair is unique at the storage level, so grant() behaves as an
    upsert: it reactivates an inactive row instead of inserting a second.
    """

    not_found_error = MembershipNotFoundError

    async def get_pair(self, user_id: UUID, tenant_id: UUID) -> Membership | None:
        stmt = select(Membership).where(
            Membership.user_id == user_id,
            Membership.tenant_id == tenant_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active(self, user_id: UUID, tenant_id: UUID) -> Membership | None:
        membership = await self.get_pair(user_id, tenant_id)
        if membership is None or not membership.is_active:
            return None
        return membership

    async def active_for_user(self, user_id: UUID) -> list[tuple[Membership, Tenant]]:
        """Active memberships of a user in active tenants, by tenant name."""
        stmt = (
            select(Membership, Tenant)
            .join(Tenant, Tenant.tenant_id == Membership.tenant_id)
            .where(
                Membership.user_id == user_id,
                Membership.is_active.is_(True),
                Tenant.is_active.is_(True),
            )
            .order_by(Tenant.name, Tenant.tenant_id)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def active_for_tenant(self, tenant_id: UUID) -> list[tuple[Membership, User]]:
        """Active members of a tenant with their user records, by email."""
        stmt = (
            select(Membership, User)
            .join(User, User.user_id == Membership.user_id)
            .where(
                Membership.tenant_id == tenant_id,
                Membership.is_active.is_(True),
                User.is_active.is_(True),
            )
            .order_by(User.email)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def grant(
        self,
        user_id: UUID,
        tenant_id: UUID,
        role: TenantRole,
        granted_by: UUID | None,
    ) -> tuple[Membership, bool]:
        """Ensure the user holds an active membership in the tenant.

        Args:
            user_id: Member being granted access
            tenant_id: Tenant being joined
            role: Role for a new or reactivated membership
            granted_by: User responsible for the grant

        Returns:
            (membership, changed) where changed is False when an active
            membership already existed and nothing was written
        """
        membership = await self.get_pair(user_id, tenant_id)
        if membership is None:
            membership = Membership(
                user_id=user_id,
                tenant_id=tenant_id,
                role=role,
                granted_by=granted_by,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(membership)
                return membership, True
            except IntegrityError:
                # Another request inserted the pair first; converge on its row
                logger.info(
                    "membership_insert_raced",
                    user_id=str(user_id),
                    tenant_id=str(tenant_id),
                )
                membership = await self.get_pair(user_id, tenant_id)
                if membership is None:
                    raise

        if membership.is_active:
            return membership, False

        membership.is_active = True
        membership.role = role
        membership.granted_by = granted_by
        membership.granted_at = utcnow()
        membership.revoked_by = None
        membership.revoked_at = None
        await self.db.flush()
        return membership, True

    async def revoke(self, membership: Membership, revoked_by: UUID | None) -> Membership:
        membership.is_active = False
        membership.revoked_by = revoked_by
        membership.revoked_at = utcnow()
        await self.db.flush()
        return membership
