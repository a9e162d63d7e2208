"""Tenant management service."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.audit import AuditLogger
from fabrica.core.authorization import require_can_manage, require_system_admin
from fabrica.core.context import CallerContext, TenantScope
from fabrica.core.exceptions import (
    BadRequestError,
    DuplicateMembershipError,
    MembershipNotFoundError,
    ProtectedTenantError,
    SlugConflictError,
    TenantInactiveError,
    TenantNotFoundError,
)
from fabrica.core.slug import assign_unique_slug, slug_of
from fabrica.db.models.audit import AuditEventType, AuditSeverity
from fabrica.db.models.membership import STORED_ROLES, Membership, TenantRole
from fabrica.db.models.tenant import SYSTEM_TENANT_SLUG, Tenant
from fabrica.db.models.user import User
from fabrica.db.repositories.membership import MembershipRepository
from fabrica.db.repositories.tenant import TenantRepository
from fabrica.db.repositories.user import UserRepository

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset(
    {"name", "slug", "description", "logo_media_id", "is_active", "settings"}
)


def normalize_slug(slug: str) -> str:
    """Validate an explicitly chosen slug.

    Raises:
        BadRequestError: If the slug is not already in canonical form
    """
    candidate = slug.strip().lower()
    if not candidate or slug_of(candidate) != candidate:
        raise BadRequestError(
            "Slug may only contain lowercase letters, digits and single hyphens",
            field="slug",
        )
    return candidate


def parse_role(role: TenantRole | str) -> TenantRole:
    try:
        parsed = TenantRole(role)
    except ValueError:
        raise BadRequestError(f"Unknown role: {role}", field="role") from None
    if parsed not in STORED_ROLES:
        raise BadRequestError(f"Role cannot be assigned: {parsed.value}", field="role")
    return parsed


class TenantService:
    """Service for tenant CRUD and membership management.

    Tenant CRUD is reserved for system admins. Managing the users of a
    tenant requires can_manage() for that tenant. All mutations are
    audit-logged and committed before returning.
    """

    def __init__(self, db: AsyncSession):
        """Initialize tenant service with database session.

        Args:
            db: Async SQLAlchemy session for database operations
        """
        self.db = db
        self.tenants = TenantRepository(db)
        self.memberships = MembershipRepository(db)
        self.users = UserRepository(db)
        self.audit = AuditLogger(db)

    async def list_tenants(self, include_inactive: bool = False) -> list[Tenant]:
        return await self.tenants.list_tenants(include_inactive=include_inactive)

    async def get_tenant(self, tenant_id: UUID) -> Tenant:
        """Get a tenant by ID.

        Raises:
            TenantNotFoundError: If tenant does not exist
        """
        return await self.tenants.get_or_raise(tenant_id)

    async def get_tenant_by_slug(self, slug: str) -> Tenant:
        tenant = await self.tenants.get_by_slug(slug)
        if tenant is None:
            raise TenantNotFoundError(slug)
        return tenant

    async def validate_tenant_active(self, tenant_id: UUID) -> Tenant:
        """Get a tenant that must be usable.

        Raises:
            TenantNotFoundError: If tenant does not exist
            TenantInactiveError: If tenant is deactivated
        """
        tenant = await self.get_tenant(tenant_id)
        if not tenant.is_active:
            raise TenantInactiveError(tenant_id)
        return tenant

    async def create_tenant(
        self,
        ctx: CallerContext,
        name: str,
        slug: str | None = None,
        description: str | None = None,
        owner_user_id: UUID | None = None,
        is_personal: bool = False,
        settings: dict[str, Any] | None = None,
    ) -> Tenant:
        """Create a tenant directly, outside the onboarding flow.

        An explicit slug must be free; without one a unique slug is
        derived from the name. Tenants created here skip onboarding.

        Args:
            ctx: Caller context (must be a system admin)
            name: Display name
            slug: Explicit URL-safe identifier
            description: Optional description
            owner_user_id: User to receive an owner membership
            is_personal: Whether this is a single-user workspace
            settings: Free-form tenant settings

        Returns:
            Created Tenant instance

        Raises:
            ForbiddenError: If the caller is not a system admin
            BadRequestError: If the name or slug is invalid
            SlugConflictError: If the explicit slug is taken
            UserNotFoundError: If owner_user_id does not exist
        """
        require_system_admin(ctx, "create_tenant")
        name = (name or "").strip()
        if not name:
            raise BadRequestError("Tenant name is required", field="name")
        if owner_user_id is not None:
            await self.users.get_or_raise(owner_user_id)

        tenant = Tenant(
            name=name,
            description=description,
            is_personal=is_personal,
            settings=settings or {},
            owner_user_id=owner_user_id,
            onboarding_completed=True,
            onboarding_step=4,
            created_by=ctx.user_id,
            updated_by=ctx.user_id,
        )

        if slug is not None:
            tenant.slug = normalize_slug(slug)
            if await self.tenants.slug_exists(tenant.slug):
                raise SlugConflictError(tenant.slug)
            try:
                async with self.db.begin_nested():
                    self.db.add(tenant)
            except IntegrityError:
                raise SlugConflictError(tenant.slug) from None
        else:
            await assign_unique_slug(self.db, tenant, slug_of(name))

        if owner_user_id is not None:
            await self.memberships.grant(
                owner_user_id, tenant.tenant_id, TenantRole.OWNER, granted_by=ctx.user_id
            )

        await self.audit.log_event(
            AuditEventType.TENANT_CREATED,
            {
                "name": tenant.name,
                "slug": tenant.slug,
                "owner_user_id": str(owner_user_id) if owner_user_id else None,
            },
            ctx=ctx,
            tenant_id=tenant.tenant_id,
            resource_type="tenant",
            resource_id=tenant.tenant_id,
        )
        await self.db.commit()

        logger.info("tenant_created", tenant_id=str(tenant.tenant_id), slug=tenant.slug)
        return tenant

    async def update_tenant(
        self, ctx: CallerContext, tenant_id: UUID, updates: dict[str, Any]
    ) -> Tenant:
        """Update a tenant's properties.

        Raises:
            ForbiddenError: If the caller is not a system admin
            TenantNotFoundError: If tenant does not exist
            SlugConflictError: If the new slug belongs to another tenant
        """
        require_system_admin(ctx, "update_tenant")
        tenant = await self.get_tenant(tenant_id)

        values = {key: value for key, value in updates.items() if key in UPDATABLE_FIELDS}
        if "name" in values:
            values["name"] = (values["name"] or "").strip()
            if not values["name"]:
                raise BadRequestError("Tenant name is required", field="name")
        if "slug" in values:
            values["slug"] = normalize_slug(values["slug"])
            if await self.tenants.slug_exists(values["slug"], exclude_tenant_id=tenant_id):
                raise SlugConflictError(values["slug"])

        changes: dict[str, dict[str, Any]] = {}
        for key, value in values.items():
            old = getattr(tenant, key)
            if old != value:
                changes[key] = {"old": _jsonable(old), "new": _jsonable(value)}
        if not changes:
            return tenant

        try:
            async with self.db.begin_nested():
                for key in changes:
                    setattr(tenant, key, values[key])
                tenant.updated_by = ctx.user_id
        except IntegrityError:
            raise SlugConflictError(values.get("slug", tenant.slug)) from None

        await self.audit.log_event(
            AuditEventType.TENANT_UPDATED,
            {"changes": changes},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="tenant",
            resource_id=tenant_id,
        )
        await self.db.commit()
        return tenant

    async def delete_tenant(self, ctx: CallerContext, tenant_id: UUID) -> Tenant:
        """Deactivate a tenant.

        Rows are kept; memberships stop counting because only active
        tenants are aggregated.

        Raises:
            ForbiddenError: If the caller is not a system admin
            TenantNotFoundError: If tenant does not exist
            ProtectedTenantError: For the platform's own tenant
        """
        require_system_admin(ctx, "delete_tenant")
        tenant = await self.get_tenant(tenant_id)
        if tenant.slug == SYSTEM_TENANT_SLUG:
            raise ProtectedTenantError(tenant.slug)
        if not tenant.is_active:
            return tenant

        tenant.is_active = False
        tenant.updated_by = ctx.user_id
        await self.db.flush()

        await self.audit.log_event(
            AuditEventType.TENANT_DEACTIVATED,
            {"slug": tenant.slug},
            ctx=ctx,
            severity=AuditSeverity.WARNING,
            tenant_id=tenant_id,
            resource_type="tenant",
            resource_id=tenant_id,
        )
        await self.db.commit()

        logger.info("tenant_deactivated", tenant_id=str(tenant_id))
        return tenant

    async def list_tenant_users(
        self, ctx: CallerContext, tenant_id: UUID
    ) -> list[tuple[Membership, User]]:
        await self._require_manage(ctx, tenant_id, "list_tenant_users")
        await self.get_tenant(tenant_id)
        return await self.memberships.active_for_tenant(tenant_id)

    async def add_user_to_tenant(
        self,
        ctx: CallerContext,
        tenant_id: UUID,
        user_id: UUID,
        role: TenantRole | str = TenantRole.MEMBER,
    ) -> Membership:
        """Grant a user membership in a tenant.

        A previously removed member is reactivated rather than duplicated.

        Raises:
            ForbiddenError: If the caller cannot manage the tenant
            TenantNotFoundError: If tenant does not exist
            TenantInactiveError: If tenant is deactivated
            UserNotFoundError: If user does not exist
            DuplicateMembershipError: If the user is already an active member
        """
        role = parse_role(role)
        await self._require_manage(ctx, tenant_id, "add_tenant_user")
        await self.validate_tenant_active(tenant_id)
        await self.users.get_or_raise(user_id)

        if await self.memberships.get_active(user_id, tenant_id) is not None:
            raise DuplicateMembershipError(user_id, tenant_id)

        membership, _ = await self.memberships.grant(
            user_id, tenant_id, role, granted_by=ctx.user_id
        )
        await self.audit.log_event(
            AuditEventType.MEMBERSHIP_GRANTED,
            {"member_user_id": str(user_id), "role": membership.role},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="membership",
            resource_id=membership.membership_id,
        )
        await self.db.commit()
        return membership

    async def remove_user_from_tenant(
        self, ctx: CallerContext, tenant_id: UUID, user_id: UUID
    ) -> Membership:
        """Revoke a user's membership in a tenant.

        Raises:
            ForbiddenError: If the caller cannot manage the tenant
            MembershipNotFoundError: If the user is not an active member
        """
        await self._require_manage(ctx, tenant_id, "remove_tenant_user")
        membership = await self.memberships.get_active(user_id, tenant_id)
        if membership is None:
            raise MembershipNotFoundError(f"{user_id} in tenant {tenant_id}")

        await self.memberships.revoke(membership, revoked_by=ctx.user_id)
        await self.audit.log_event(
            AuditEventType.MEMBERSHIP_REVOKED,
            {"member_user_id": str(user_id)},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="membership",
            resource_id=membership.membership_id,
        )
        await self.db.commit()
        return membership

    async def _require_manage(self, ctx: CallerContext, tenant_id: UUID, action: str) -> None:
        # The tenant in the path is the one being managed, whatever the
        # caller has selected in the shell
        scoped = ctx.model_copy(update={"tenant_scope": TenantScope.one(tenant_id)})
        await require_can_manage(self.db, scoped, action)


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    return value
