"""Self-service onboarding endpoints.

- GET /v1/onboarding/plans - Active subscription plans
- GET /v1/onboarding/status - Where the caller stands
- POST /v1/onboarding/tenant - Step 1: create tenant and pick a plan
- POST /v1/onboarding/invitations - Step 2: invite colleagues
- POST /v1/onboarding/payment - Step 3: attach a payment method
- POST /v1/onboarding/complete - Step 4: finish onboarding
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from fabrica.api.dependencies import get_caller_context, get_onboarding_service, get_plan_lookup
from fabrica.api.schemas.errors import APIError
from fabrica.api.schemas.onboarding import (
    OnboardingCompleteRequest,
    OnboardingCompleteResponse,
    OnboardingInvitationsRequest,
    OnboardingInvitationsResult,
    OnboardingPaymentRequest,
    OnboardingPaymentResult,
    OnboardingStatus,
    OnboardingTenantRequest,
    OnboardingTenantResult,
    PlanResponse,
)
from fabrica.core.context import CallerContext
from fabrica.core.onboarding import OnboardingService
from fabrica.core.plans import PlanLookup

router = APIRouter(prefix="/onboarding", tags=["onboarding"])

OWNER_ERRORS = {
    400: {"model": APIError, "description": "Missing caller or invalid input"},
    403: {"model": APIError, "description": "Caller does not own the tenant"},
    404: {"model": APIError, "description": "Tenant not found"},
}


@router.get("/plans", response_model=list[PlanResponse], summary="Active subscription plans")
async def list_plans(
    plans: Annotated[PlanLookup, Depends(get_plan_lookup)],
) -> list[PlanResponse]:
    return [PlanResponse.model_validate(plan) for plan in await plans.list_active_plans()]


@router.get(
    "/status",
    response_model=OnboardingStatus,
    summary="Onboarding status of the caller",
    responses={400: {"model": APIError, "description": "Missing caller"}},
)
async def get_status(
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[OnboardingService, Depends(get_onboarding_service)],
) -> OnboardingStatus:
    return await service.status(ctx)


@router.post(
    "/tenant",
    response_model=OnboardingTenantResult,
    summary="Step 1: create the tenant",
    description="""
    Creates the caller's tenant with a slug derived from its name, an
    owner membership and a pending subscription to the chosen plan.
    Calling it again before onboarding completes updates the same tenant.
    """,
    responses={
        400: {"model": APIError, "description": "Missing caller or name"},
        412: {"model": APIError, "description": "Plan missing or inactive"},
    },
)
async def create_tenant(
    request: OnboardingTenantRequest,
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[OnboardingService, Depends(get_onboarding_service)],
) -> OnboardingTenantResult:
    return await service.create_or_update_tenant(
        ctx,
        name=request.name,
        plan_id=request.plan_id,
        description=request.description,
    )


@router.post(
    "/invitations",
    response_model=OnboardingInvitationsResult,
    summary="Step 2: invite colleagues",
    responses=OWNER_ERRORS,
)
async def create_invitations(
    request: OnboardingInvitationsRequest,
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[OnboardingService, Depends(get_onboarding_service)],
) -> OnboardingInvitationsResult:
    return await service.create_invitations(ctx, request.tenant_id, request.emails)


@router.post(
    "/payment",
    response_model=OnboardingPaymentResult,
    summary="Step 3: attach a payment method",
    responses=OWNER_ERRORS,
)
async def attach_payment(
    request: OnboardingPaymentRequest,
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[OnboardingService, Depends(get_onboarding_service)],
) -> OnboardingPaymentResult:
    return await service.attach_payment(
        ctx,
        request.tenant_id,
        payment_method_ref=request.payment_method_ref,
        billing_email=request.billing_email,
        payment_customer_ref=request.payment_customer_ref,
    )


@router.post(
    "/complete",
    response_model=OnboardingCompleteResponse,
    summary="Step 4: complete onboarding",
    responses={
        **OWNER_ERRORS,
        412: {"model": APIError, "description": "No payment method attached"},
    },
)
async def complete_onboarding(
    request: OnboardingCompleteRequest,
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[OnboardingService, Depends(get_onboarding_service)],
) -> OnboardingCompleteResponse:
    completion = await service.complete(ctx, request.tenant_id)
    return OnboardingCompleteResponse(
        tenant_id=completion.tenant_id, tenant_slug=completion.tenant_slug
    )
