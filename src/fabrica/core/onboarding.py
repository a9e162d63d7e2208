"""Self-service onboarding of a new tenant.

A signed-in user with no tenant walks through four steps: create the
tenant and pick a plan, invite colleagues, attach a payment method and
complete. Progress is recorded on the tenant as ``onboarding_step`` and
only ever moves forward, so a step can be retried or revisited without
losing later progress.

Every step validates first and writes second. A step that fails
validation leaves nothing behind; a step that succeeds is audit-logged
and committed as one unit.
"""

import calendar
from datetime import datetime
from enum import IntEnum
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.config.settings import get_settings
from fabrica.core.audit import AuditLogger
from fabrica.core.context import CallerContext
from fabrica.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    InvalidPlanError,
    PaymentMethodRequiredError,
    PlanNotFoundError,
    SubscriptionNotFoundError,
    TenantNotFoundError,
)
from fabrica.core.invitations import invitation_expiry
from fabrica.core.plans import PlanLookup
from fabrica.core.slug import assign_unique_slug, slug_of
from fabrica.core.users import validate_email
from fabrica.db.models.audit import AuditEventType
from fabrica.db.models.base import utcnow
from fabrica.db.models.invitation import Invitation
from fabrica.db.models.membership import TenantRole
from fabrica.db.models.subscription import Subscription, SubscriptionStatus
from fabrica.db.models.tenant import Tenant
from fabrica.db.repositories.invitation import InvitationRepository
from fabrica.db.repositories.membership import MembershipRepository
from fabrica.db.repositories.subscription import PlanRepository, SubscriptionRepository
from fabrica.db.repositories.tenant import TenantRepository
from fabrica.db.repositories.user import UserRepository, normalize_email
from fabrica.observability.metrics import record_onboarding_transition

logger = structlog.get_logger()


class OnboardingStep(IntEnum):
    NOT_STARTED = 0
    TENANT_CREATED = 1
    INVITATIONS_SENT = 2
    PAYMENT_ATTACHED = 3
    COMPLETE = 4


class OnboardingTenantResult(BaseModel):
    tenant_id: UUID
    name: str
    slug: str
    description: str | None = None
    onboarding_step: int


class OnboardingInvitationsResult(BaseModel):
    invitations_created: int
    emails: list[str] = Field(default_factory=list)
    failed_emails: list[str] = Field(default_factory=list)


class OnboardingPaymentResult(BaseModel):
    tenant_id: UUID
    subscription_status: str
    onboarding_step: int


class OnboardingCompletion(BaseModel):
    tenant_id: UUID
    tenant_slug: str


class OnboardingStatus(BaseModel):
    requires_onboarding: bool
    current_step: int = 0
    tenant_id: UUID | None = None
    tenant_name: str | None = None
    plan_id: UUID | None = None
    plan_name: str | None = None


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month.

    >>> add_months(datetime(2024, 1, 31), 1)
    datetime.datetime(2024, 2, 29, 0, 0)
    """
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def advance(tenant: Tenant, target: OnboardingStep) -> int:
    """Move the tenant's step forward to target; never backwards."""
    tenant.onboarding_step = max(tenant.onboarding_step or 0, int(target))
    return tenant.onboarding_step


class OnboardingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tenants = TenantRepository(db)
        self.users = UserRepository(db)
        self.memberships = MembershipRepository(db)
        self.invitations = InvitationRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.plans = PlanRepository(db)
        self.audit = AuditLogger(db)

    async def status(self, ctx: CallerContext) -> OnboardingStatus:
        """Where the caller stands in onboarding.

        A caller who can already work in a tenant, or who has a pending
        invitation, does not need onboarding. Otherwise an unfinished
        onboarding tenant is resumed at its step, or onboarding starts
        from scratch.

        Raises:
            BadRequestError: If the caller presented no user id
        """
        user_id = ctx.require_user_id()
        if ctx.is_system_admin:
            return OnboardingStatus(requires_onboarding=False)

        in_progress = await self.tenants.find_incomplete_onboarding(user_id)
        in_progress_id = in_progress.tenant_id if in_progress is not None else None
        usable = [
            tenant
            for _, tenant in await self.memberships.active_for_user(user_id)
            if tenant.tenant_id != in_progress_id
        ]

        user = await self.users.get(user_id)
        has_pending = user is not None and await self.invitations.has_pending_for_email(
            user.email
        )

        if usable or has_pending:
            first = usable[0] if usable else None
            return OnboardingStatus(
                requires_onboarding=False,
                current_step=0,
                tenant_id=first.tenant_id if first else None,
                tenant_name=first.name if first else None,
            )

        if in_progress is None:
            return OnboardingStatus(requires_onboarding=True, current_step=0)

        result = OnboardingStatus(
            requires_onboarding=True,
            current_step=in_progress.onboarding_step,
            tenant_id=in_progress.tenant_id,
            tenant_name=in_progress.name,
        )
        subscription = await self.subscriptions.get_for_tenant(in_progress.tenant_id)
        if subscription is not None:
            plan = await self.plans.get(subscription.plan_id)
            result.plan_id = subscription.plan_id
            result.plan_name = plan.name if plan is not None else None
        return result

    async def create_or_update_tenant(
        self,
        ctx: CallerContext,
        name: str,
        plan_id: UUID,
        description: str | None = None,
    ) -> OnboardingTenantResult:
        """Step 1: create the caller's tenant, or update the unfinished one.

        Args:
            ctx: Caller context
            name: Tenant display name; the slug is derived from it
            plan_id: Chosen subscription plan
            description: Optional description

        Raises:
            BadRequestError: If the caller or name is missing
            InvalidPlanError: If the plan does not exist or is inactive
            UserNotFoundError: If the caller has no user record
        """
        user_id = ctx.require_user_id()
        name = (name or "").strip()
        if not name:
            raise BadRequestError("Tenant name is required", field="name")
        await self._require_active_plan(plan_id)
        await self.users.get_or_raise(user_id)

        tenant = await self.tenants.find_incomplete_onboarding(user_id)
        if tenant is not None:
            tenant.name = name
            tenant.description = description
            tenant.updated_by = user_id
            advance(tenant, OnboardingStep.TENANT_CREATED)
            await assign_unique_slug(self.db, tenant, slug_of(name))

            subscription = await self.subscriptions.get_for_tenant(tenant.tenant_id)
            if subscription is not None:
                subscription.plan_id = plan_id
            else:
                self.db.add(self._pending_subscription(tenant.tenant_id, plan_id))
            await self.db.flush()
            created = False
        else:
            tenant = Tenant(
                name=name,
                description=description,
                is_personal=False,
                owner_user_id=user_id,
                onboarding_completed=False,
                onboarding_step=int(OnboardingStep.TENANT_CREATED),
                created_by=user_id,
                updated_by=user_id,
            )
            await assign_unique_slug(self.db, tenant, slug_of(name))
            await self.memberships.grant(
                user_id, tenant.tenant_id, TenantRole.OWNER, granted_by=user_id
            )
            self.db.add(self._pending_subscription(tenant.tenant_id, plan_id))
            await self.db.flush()
            created = True

        await self._commit_step(
            ctx,
            tenant,
            OnboardingStep.TENANT_CREATED,
            {"slug": tenant.slug, "plan_id": str(plan_id), "created": created},
        )
        if created:
            logger.info(
                "onboarding_tenant_created",
                tenant_id=str(tenant.tenant_id),
                user_id=str(user_id),
            )

        return OnboardingTenantResult(
            tenant_id=tenant.tenant_id,
            name=tenant.name,
            slug=tenant.slug,
            description=tenant.description,
            onboarding_step=tenant.onboarding_step,
        )

    async def create_invitations(
        self, ctx: CallerContext, tenant_id: UUID, emails: list[str]
    ) -> OnboardingInvitationsResult:
        """Step 2: invite colleagues to the new tenant.

        Addresses beyond the configured maximum are ignored. Invalid
        addresses, the caller's own address and addresses that already
        have a pending invitation are reported as failed instead of
        aborting the step.

        Raises:
            BadRequestError: If the caller presented no user id
            TenantNotFoundError: If the tenant does not exist
            ForbiddenError: If the caller does not own the tenant
        """
        tenant = await self._owned_tenant(ctx, tenant_id, "onboarding_invitations")
        user_id = ctx.require_user_id()
        caller = await self.users.get(user_id)
        caller_email = normalize_email(caller.email) if caller is not None else None

        limit = get_settings().MAX_ONBOARDING_INVITATIONS
        created: list[str] = []
        failed: list[str] = []
        expires_at = invitation_expiry()

        for raw in emails[:limit]:
            try:
                email = validate_email(raw)
            except BadRequestError:
                failed.append(raw)
                continue
            if email == caller_email or email in created:
                failed.append(raw)
                continue
            if await self.invitations.pending_exists(email, tenant_id):
                failed.append(raw)
                continue

            self.db.add(
                Invitation(
                    email=email,
                    tenant_id=tenant_id,
                    invited_by=user_id,
                    expires_at=expires_at,
                )
            )
            created.append(email)

        advance(tenant, OnboardingStep.INVITATIONS_SENT)
        tenant.updated_by = user_id
        await self.db.flush()

        await self._commit_step(
            ctx,
            tenant,
            OnboardingStep.INVITATIONS_SENT,
            {"invited": created, "failed": failed},
        )
        return OnboardingInvitationsResult(
            invitations_created=len(created), emails=created, failed_emails=failed
        )

    async def attach_payment(
        self,
        ctx: CallerContext,
        tenant_id: UUID,
        payment_method_ref: str,
        billing_email: str | None = None,
        payment_customer_ref: str | None = None,
    ) -> OnboardingPaymentResult:
        """Step 3: record the payment processor references.

        The references are stored as given; no payment processor is
        contacted.

        Raises:
            BadRequestError: If the payment method reference is empty
            TenantNotFoundError: If the tenant does not exist
            ForbiddenError: If the caller does not own the tenant
            SubscriptionNotFoundError: If step 1 never created a subscription
        """
        tenant = await self._owned_tenant(ctx, tenant_id, "onboarding_payment")
        payment_method_ref = (payment_method_ref or "").strip()
        if not payment_method_ref:
            raise BadRequestError(
                "Payment method reference is required", field="payment_method_ref"
            )
        if billing_email:
            billing_email = validate_email(billing_email)

        subscription = await self.subscriptions.get_for_tenant(tenant_id)
        if subscription is None:
            raise SubscriptionNotFoundError(tenant_id)

        subscription.payment_method_ref = payment_method_ref
        subscription.payment_customer_ref = payment_customer_ref
        subscription.billing_email = billing_email
        subscription.status = SubscriptionStatus.ACTIVE.value
        advance(tenant, OnboardingStep.PAYMENT_ATTACHED)
        tenant.updated_by = ctx.user_id
        await self.db.flush()

        await self._commit_step(
            ctx, tenant, OnboardingStep.PAYMENT_ATTACHED, {"status": subscription.status}
        )
        return OnboardingPaymentResult(
            tenant_id=tenant.tenant_id,
            subscription_status=subscription.status,
            onboarding_step=tenant.onboarding_step,
        )

    async def complete(self, ctx: CallerContext, tenant_id: UUID) -> OnboardingCompletion:
        """Step 4: finish onboarding and start the first billing period.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            ForbiddenError: If the caller does not own the tenant
            PaymentMethodRequiredError: If no payment method was attached
        """
        tenant = await self._owned_tenant(ctx, tenant_id, "onboarding_complete")
        subscription = await self.subscriptions.get_for_tenant(tenant_id)
        if subscription is None or not subscription.has_payment_method:
            raise PaymentMethodRequiredError(tenant_id)

        now = utcnow()
        tenant.onboarding_completed = True
        advance(tenant, OnboardingStep.COMPLETE)
        tenant.updated_by = ctx.user_id
        subscription.current_period_start = now
        subscription.current_period_end = add_months(now, 1)
        await self.db.flush()

        await self.audit.log_event(
            AuditEventType.ONBOARDING_COMPLETED,
            {"slug": tenant.slug},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="tenant",
            resource_id=tenant_id,
        )
        await self._commit_step(ctx, tenant, OnboardingStep.COMPLETE, {"slug": tenant.slug})

        logger.info("onboarding_completed", tenant_id=str(tenant_id), slug=tenant.slug)
        return OnboardingCompletion(tenant_id=tenant.tenant_id, tenant_slug=tenant.slug)

    async def _require_active_plan(self, plan_id: UUID) -> None:
        try:
            plan = await PlanLookup(self.db).get_plan(plan_id)
        except PlanNotFoundError:
            raise InvalidPlanError(plan_id) from None
        if not plan.is_active:
            raise InvalidPlanError(plan_id)

    async def _owned_tenant(self, ctx: CallerContext, tenant_id: UUID, action: str) -> Tenant:
        user_id = ctx.require_user_id()
        tenant = await self.tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        if tenant.owner_user_id != user_id:
            logger.warning(
                "onboarding_ownership_denied",
                action=action,
                tenant_id=str(tenant_id),
                user_id=str(user_id),
            )
            raise ForbiddenError(
                "Only the tenant owner can perform onboarding steps",
                action=action,
                tenant_id=tenant_id,
            )
        return tenant

    @staticmethod
    def _pending_subscription(tenant_id: UUID, plan_id: UUID) -> Subscription:
        return Subscription(
            tenant_id=tenant_id,
            plan_id=plan_id,
            status=SubscriptionStatus.PENDING.value,
            current_period_start=utcnow(),
        )

    async def _commit_step(
        self,
        ctx: CallerContext,
        tenant: Tenant,
        step: OnboardingStep,
        details: dict,
    ) -> None:
        await self.audit.log_event(
            AuditEventType.ONBOARDING_STEP_COMPLETED,
            {"step": int(step), "onboarding_step": tenant.onboarding_step, **details},
            ctx=ctx,
            tenant_id=tenant.tenant_id,
            resource_type="tenant",
            resource_id=tenant.tenant_id,
        )
        await self.db.commit()
        record_onboarding_transition(int(step))
