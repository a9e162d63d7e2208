"""Read-only access to subscription plans."""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.db.models.subscription import SubscriptionPlan
from fabrica.db.repositories.subscription import PlanRepository


@dataclass(frozen=True)
class PlanInfo:
    """The plan facts onboarding depends on."""

    plan_id: UUID
    name: str
    is_active: bool
    max_users: int | None
    max_products: int | None


class PlanLookup:
    def __init__(self, db: AsyncSession):
        self.plans = PlanRepository(db)

    async def get_plan(self, plan_id: UUID) -> PlanInfo:
        """Look up a plan by id.

        Raises:
            PlanNotFoundError: If no such plan exists
        """
        plan = await self.plans.get_or_raise(plan_id)
        return PlanInfo(
            plan_id=plan.plan_id,
            name=plan.name,
            is_active=plan.is_active,
            max_users=plan.max_users,
            max_products=plan.max_products,
        )

    async def list_active_plans(self) -> list[SubscriptionPlan]:
        return await self.plans.list_active()
