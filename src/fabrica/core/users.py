"""User management service."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.config.settings import get_settings
from fabrica.core.audit import AuditLogger
from fabrica.core.context import CallerContext
from fabrica.core.exceptions import BadRequestError, EmailConflictError
from fabrica.db.models.audit import AuditEventType
from fabrica.db.models.base import utcnow
from fabrica.db.models.user import User
from fabrica.db.repositories.rbac import RoleRepository
from fabrica.db.repositories.user import UserRepository, normalize_email

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset(
    {
        "email",
        "external_auth_id",
        "first_name",
        "last_name",
        "display_name",
        "avatar_media_id",
        "is_active",
        "is_system_admin",
    }
)


def validate_email(email: str | None) -> str:
    """Normalize an email address or reject it.

    Raises:
        BadRequestError: If the address is empty or has no "@"
    """
    normalized = normalize_email(email or "")
    local, _, domain = normalized.partition("@")
    if not local or not domain:
        raise BadRequestError("A valid email address is required", field="email")
    return normalized


def default_display_name(first_name: str | None, last_name: str | None) -> str | None:
    parts = [part.strip() for part in (first_name, last_name) if part and part.strip()]
    return " ".join(parts) or None


class UserService:
    """Service for user CRUD and login-time provisioning.

    Mutations are audit-logged and committed before returning.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.roles = RoleRepository(db)
        self.audit = AuditLogger(db)

    async def list_users(self, include_inactive: bool = True) -> list[User]:
        return await self.users.list_users(include_inactive=include_inactive)

    async def get_user(self, user_id: UUID) -> User:
        """Get a user by id.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        return await self.users.get_or_raise(user_id)

    async def create_user(
        self,
        ctx: CallerContext,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        display_name: str | None = None,
        external_auth_id: str | None = None,
        is_system_admin: bool = False,
    ) -> User:
        """Create a user explicitly (admin action).

        Raises:
            BadRequestError: If the email is invalid
            EmailConflictError: If the email is already registered
        """
        email = validate_email(email)
        if await self.users.email_taken(email):
            raise EmailConflictError(email)

        user = User(
            email=email,
            external_auth_id=external_auth_id,
            first_name=first_name,
            last_name=last_name,
            display_name=display_name or default_display_name(first_name, last_name),
            is_system_admin=is_system_admin,
            created_by=ctx.user_id,
            updated_by=ctx.user_id,
        )
        await self.users.create(user)
        await self._assign_default_role(user, granted_by=ctx.user_id)

        await self.audit.log_event(
            AuditEventType.USER_CREATED,
            {"email": email, "is_system_admin": is_system_admin},
            ctx=ctx,
            resource_type="user",
            resource_id=user.user_id,
        )
        await self.db.commit()
        logger.info("user_created", user_id=str(user.user_id))
        return user

    async def update_user(
        self, ctx: CallerContext, user_id: UUID, updates: dict[str, Any]
    ) -> User:
        """Apply the provided fields to a user.

        Args:
            ctx: Caller context
            user_id: User to update
            updates: Field values to change; absent fields are left alone

        Raises:
            UserNotFoundError: If the user does not exist
            EmailConflictError: If the new email belongs to another user
        """
        user = await self.users.get_or_raise(user_id)
        changes = {key: value for key, value in updates.items() if key in UPDATABLE_FIELDS}

        if "email" in changes:
            changes["email"] = validate_email(changes["email"])
            if await self.users.email_taken(changes["email"], exclude_user_id=user_id):
                raise EmailConflictError(changes["email"])

        changed_fields = sorted(
            key for key, value in changes.items() if getattr(user, key) != value
        )
        if not changed_fields:
            return user

        changes["updated_by"] = ctx.user_id
        await self.users.update(user, changes)
        await self.audit.log_event(
            AuditEventType.USER_UPDATED,
            {"fields": changed_fields},
            ctx=ctx,
            resource_type="user",
            resource_id=user_id,
        )
        await self.db.commit()
        return user

    async def delete_user(self, ctx: CallerContext, user_id: UUID) -> None:
        """Permanently delete a user and, by cascade, their memberships.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self.users.get_or_raise(user_id)
        email = user.email
        await self.users.delete(user)
        await self.audit.log_event(
            AuditEventType.USER_DELETED,
            {"email": email},
            ctx=ctx,
            resource_type="user",
            resource_id=user_id,
        )
        await self.db.commit()
        logger.info("user_deleted", user_id=str(user_id))

    async def upsert_for_login(
        self,
        email: str,
        external_auth_id: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        display_name: str | None = None,
    ) -> tuple[User, bool]:
        """Find or create the user signing in.

        The user is matched by email first and then by identity-provider
        id. An existing user has only missing fields backfilled; names
        the user already has are kept.

        Returns:
            (user, is_new_user)
        """
        email = validate_email(email)
        user = await self.users.find_for_login(email, external_auth_id)
        now = utcnow()
        created: User | None = None

        if user is None:
            created = User(
                email=email,
                external_auth_id=external_auth_id,
                first_name=first_name,
                last_name=last_name,
                display_name=display_name or default_display_name(first_name, last_name),
                last_login_at=now,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(created)
            except IntegrityError:
                # A concurrent login created the user first; continue as a returning user
                logger.info("login_user_insert_raced", email=email)
                user = await self.users.find_for_login(email, external_auth_id)
                if user is None:
                    raise
            else:
                user = created

        if user is created:
            await self._assign_default_role(user)
            await self.audit.log_event(
                AuditEventType.USER_CREATED,
                {"email": email, "source": "login"},
                user_id=user.user_id,
                resource_type="user",
                resource_id=user.user_id,
            )
            await self.db.commit()
            logger.info("login_user_created", user_id=str(user.user_id))
            return user, True

        if external_auth_id and not user.external_auth_id:
            user.external_auth_id = external_auth_id
        if first_name and not user.first_name:
            user.first_name = first_name
        if last_name and not user.last_name:
            user.last_name = last_name
        if not user.display_name:
            user.display_name = display_name or default_display_name(
                user.first_name, user.last_name
            )
        user.last_login_at = now

        await self.audit.log_event(
            AuditEventType.USER_LOGIN,
            {"email": user.email},
            user_id=user.user_id,
            resource_type="user",
            resource_id=user.user_id,
        )
        await self.db.commit()
        return user, False

    async def _assign_default_role(self, user: User, granted_by: UUID | None = None) -> None:
        role_name = get_settings().DEFAULT_USER_ROLE
        role = await self.roles.get_active_by_name(role_name)
        if role is None:
            logger.warning("default_role_missing", role=role_name, user_id=str(user.user_id))
            return
        await self.roles.assign(user.user_id, role, granted_by=granted_by)
