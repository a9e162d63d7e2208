"""Repository for platform users."""

from uuid import UUID

from sqlalchemy import func, select

from fabrica.core.exceptions import UserNotFoundError
from fabrica.db.models.user import User

from .base import BaseRepository


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository(BaseRepository[User, UUID]):
    """Users are matched by email case-insensitively."""

    not_found_error = UserNotFoundError

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == normalize_email(email))
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_external_id(self, external_auth_id: str) -> User | None:
        stmt = select(User).where(User.external_auth_id == external_auth_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_for_login(self, email: str, external_auth_id: str | None) -> User | None:
        """Find the user signing in, by email first and then by external id."""
        user = await self.get_by_email(email)
        if user is None and external_auth_id:
            user = await self.get_by_external_id(external_auth_id)
        return user

    async def email_taken(self, email: str, exclude_user_id: UUID | None = None) -> bool:
        stmt = select(func.count(User.user_id)).where(
            func.lower(User.email) == normalize_email(email)
        )
        if exclude_user_id is not None:
            stmt = stmt.where(User.user_id != exclude_user_id)
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def list_users(self, *, include_inactive: bool = True) -> list[User]:
        stmt = select(User).order_by(User.email)
        if not include_inactive:
            stmt = stmt.where(User.is_active.is_(True))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
