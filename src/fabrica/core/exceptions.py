"""Core exceptions for tenant membership and onboarding.

The hierarchy mirrors the HTTP taxonomy the API exposes: not-found,
conflict, forbidden, precondition-failed and bad-request. Each family
has a base class the error middleware maps to a status code.
"""

from uuid import UUID

from fabrica.utils.exceptions import FabricaError


class ContextNotSetError(FabricaError):
    """Raised when caller context is read outside a request.

    This error indicates a programming error: an operation needing the
    caller context ran without CallerContextMiddleware or caller_context().
    """

    def __init__(self, message: str = "Caller context is not set"):
        super().__init__(message)


class AuthenticationError(FabricaError):
    """Raised when the upstream gateway token is missing or wrong.

    Attributes:
        reason: Why authentication failed
    """

    def __init__(self, reason: str = "Authentication failed"):
        super().__init__(reason)
        self.reason = reason


class BadRequestError(FabricaError):
    """Raised when a required field is missing or invalid.

    Attributes:
        field: Name of the offending field, if known
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(FabricaError):
    """Raised when a referenced record does not exist.

    Attributes:
        resource: Kind of record (tenant, user, plan, ...)
        identifier: The id or key that was looked up
    """

    resource = "resource"

    def __init__(self, identifier: UUID | str, resource: str | None = None):
        if resource is not None:
            self.resource = resource
        super().__init__(f"{self.resource.capitalize()} not found: {identifier}")
        self.identifier = identifier

    def __str__(self) -> str:
        return self.args[0]


class TenantNotFoundError(NotFoundError):
    resource = "tenant"

    @property
    def tenant_id(self) -> UUID | str:
        return self.identifier


class UserNotFoundError(NotFoundError):
    resource = "user"


class PlanNotFoundError(NotFoundError):
    resource = "plan"


class InvitationNotFoundError(NotFoundError):
    resource = "invitation"


class MembershipNotFoundError(NotFoundError):
    resource = "membership"


class SubscriptionNotFoundError(NotFoundError):
    resource = "subscription"


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(FabricaError):
    """Raised when a write would duplicate an existing record."""

    pass


class SlugConflictError(ConflictError):
    """Raised when a tenant slug is already taken.

    Attributes:
        slug: The conflicting slug
    """

    def __init__(self, slug: str, message: str | None = None):
        super().__init__(message or f"A tenant with slug '{slug}' already exists")
        self.slug = slug


class EmailConflictError(ConflictError):
    """Raised when a user email is already registered."""

    def __init__(self, email: str):
        super().__init__(f"A user with email '{email}' already exists")
        self.email = email


class DuplicateInvitationError(ConflictError):
    """Raised when a pending invitation already exists for email and tenant."""

    def __init__(self, email: str, tenant_id: UUID):
        super().__init__("An invitation has already been sent to this email")
        self.email = email
        self.tenant_id = tenant_id


class DuplicateMembershipError(ConflictError):
    """Raised when a user already holds an active membership in the tenant."""

    def __init__(self, user_id: UUID | None, tenant_id: UUID):
        super().__init__("User is already a member of this tenant")
        self.user_id = user_id
        self.tenant_id = tenant_id


class SelfInvitationError(ConflictError):
    """Raised when a caller invites their own email address."""

    def __init__(self, email: str):
        super().__init__("You cannot invite yourself")
        self.email = email


# =============================================================================
# Forbidden
# =============================================================================


class ForbiddenError(FabricaError):
    """Raised when the caller is not allowed to perform an action.

    Attributes:
        action: What the caller attempted
        tenant_id: The tenant the action targeted, if any
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        action: str | None = None,
        tenant_id: UUID | None = None,
    ):
        super().__init__(message)
        self.action = action
        self.tenant_id = tenant_id


class TenantInactiveError(ForbiddenError):
    """Raised when attempting to use a deactivated tenant."""

    def __init__(self, tenant_id: UUID):
        super().__init__(f"Tenant is inactive: {tenant_id}", tenant_id=tenant_id)


# =============================================================================
# Precondition failed
# =============================================================================


class PreconditionFailedError(FabricaError):
    """Raised when a workflow step runs before its prerequisites hold."""

    pass


class InvalidPlanError(PreconditionFailedError):
    """Raised when a subscription plan is missing or inactive."""

    def __init__(self, plan_id: UUID):
        super().__init__("Invalid or inactive subscription plan")
        self.plan_id = plan_id


class PaymentMethodRequiredError(PreconditionFailedError):
    """Raised when onboarding completes without an attached payment method."""

    def __init__(self, tenant_id: UUID):
        super().__init__("Payment method is required before completing onboarding")
        self.tenant_id = tenant_id


class InvalidInvitationStateError(PreconditionFailedError):
    """Raised when an invitation transition is not legal from its status."""

    def __init__(self, invitation_id: UUID, status: str):
        super().__init__(f"Only pending invitations can be revoked (status: {status})")
        self.invitation_id = invitation_id
        self.status = status


class ProtectedTenantError(PreconditionFailedError):
    """Raised when deleting a tenant the platform depends on."""

    def __init__(self, slug: str):
        super().__init__(f"Cannot delete the {slug} tenant")
        self.slug = slug
