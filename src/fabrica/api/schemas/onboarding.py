"""API schemas for the onboarding workflow.

Responses for steps 1, 2 and the status endpoint are the workflow's own
result models; they are re-exported here next to the request bodies.
"""

from uuid import UUID

from pydantic import BaseModel, Field

from fabrica.core.onboarding import (
    OnboardingInvitationsResult,
    OnboardingPaymentResult,
    OnboardingStatus,
    OnboardingTenantResult,
)

__all__ = [
    "OnboardingCompleteRequest",
    "OnboardingCompleteResponse",
    "OnboardingInvitationsRequest",
    "OnboardingInvitationsResult",
    "OnboardingPaymentRequest",
    "OnboardingPaymentResult",
    "OnboardingStatus",
    "OnboardingTenantRequest",
    "OnboardingTenantResult",
    "PlanResponse",
]


class PlanResponse(BaseModel):
    plan_id: UUID
    name: str
    description: str | None = None
    price_cents: int
    billing_interval: str
    max_users: int | None = None
    max_products: int | None = None
    display_order: int

    model_config = {"from_attributes": True}


class OnboardingTenantRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    plan_id: UUID


class OnboardingInvitationsRequest(BaseModel):
    tenant_id: UUID
    emails: list[str] = Field(default_factory=list)


class OnboardingPaymentRequest(BaseModel):
    """Opaque references produced by the payment processor's client SDK."""

    tenant_id: UUID
    payment_method_ref: str = Field(..., min_length=1, max_length=255)
    payment_customer_ref: str | None = Field(default=None, max_length=255)
    billing_email: str | None = Field(default=None, max_length=255)


class OnboardingCompleteRequest(BaseModel):
    tenant_id: UUID


class OnboardingCompleteResponse(BaseModel):
    success: bool = True
    tenant_id: UUID
    tenant_slug: str
