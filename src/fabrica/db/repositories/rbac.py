"""Repository for global roles and permissions."""

from uuid import UUID

from sqlalchemy import select

from fabrica.db.models.rbac import Permission, Role, RolePermission, UserRole

from .base import BaseRepository


class RoleRepository(BaseRepository[Role, UUID]):
    async def get_active_by_name(self, name: str) -> Role | None:
        stmt = select(Role).where(Role.name == name, Role.is_active.is_(True))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def role_names_for_user(self, user_id: UUID) -> list[str]:
        stmt = (
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.role_id)
            .where(UserRole.user_id == user_id, Role.is_active.is_(True))
            .distinct()
            .order_by(Role.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def permission_names_for_user(self, user_id: UUID) -> list[str]:
        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.permission_id)
            .join(Role, Role.role_id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.role_id)
            .where(UserRole.user_id == user_id, Role.is_active.is_(True))
            .distinct()
            .order_by(Permission.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def assign(
        self,
        user_id: UUID,
        role: Role,
        tenant_id: UUID | None = None,
        granted_by: UUID | None = None,
    ) -> UserRole:
        user_role = UserRole(
            user_id=user_id,
            role_id=role.role_id,
            tenant_id=tenant_id,
            granted_by=granted_by,
        )
        self.db.add(user_role)
        await self.db.flush()
        return user_role
