"""Repository for tenants."""

from uuid import UUID

from sqlalchemy import func, select

from fabrica.core.exceptions import TenantNotFoundError
from fabrica.db.models.tenant import Tenant

from .base import BaseRepository


class TenantRepository(BaseRepository[Tenant, UUID]):
    not_found_error = TenantNotFoundError

    async def get_by_slug(self, slug: str) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.slug == slug.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def slug_exists(self, slug: str, exclude_tenant_id: UUID | None = None) -> bool:
        """Whether another tenant already holds the slug.

        Args:
            slug: Candidate slug
            exclude_tenant_id: Tenant whose own slug should not count
        """
        stmt = select(func.count(Tenant.tenant_id)).where(Tenant.slug == slug)
        if exclude_tenant_id is not None:
            stmt = stmt.where(Tenant.tenant_id != exclude_tenant_id)
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def list_tenants(self, *, include_inactive: bool = False) -> list[Tenant]:
        stmt = select(Tenant).order_by(Tenant.name, Tenant.tenant_id)
        if not include_inactive:
            stmt = stmt.where(Tenant.is_active.is_(True))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_incomplete_onboarding(self, owner_user_id: UUID) -> Tenant | None:
        """The owner's in-progress onboarding tenant, if any.

        Only one is expected; the most recent wins if that ever breaks.
        """
        stmt = (
            select(Tenant)
            .where(
                Tenant.owner_user_id == owner_user_id,
                Tenant.onboarding_completed.is_(False),
                Tenant.is_active.is_(True),
            )
            .order_by(Tenant.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
