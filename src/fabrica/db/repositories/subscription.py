"""Repositories for subscription plans and tenant subscriptions."""

from uuid import UUID

from sqlalchemy import select

from fabrica.core.exceptions import PlanNotFoundError, SubscriptionNotFoundError
from fabrica.db.models.subscription import Subscription, SubscriptionPlan

from .base import BaseRepository


class PlanRepository(BaseRepository[SubscriptionPlan, UUID]):
    not_found_error = PlanNotFoundError

    async def list_active(self) -> list[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.display_order, SubscriptionPlan.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class SubscriptionRepository(BaseRepository[Subscription, UUID]):
    not_found_error = SubscriptionNotFoundError

    async def get_for_tenant(self, tenant_id: UUID) -> Subscription | None:
        stmt = select(Subscription).where(Subscription.tenant_id == tenant_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
