"""Base repository with common CRUD operations.

Provides a generic repository pattern for SQLAlchemy models with
async support.

Usage:
    from fabrica.db.repositories.base import BaseRepository

    class UserRepository(BaseRepository[User, UUID]):
        pass

    repo = UserRepository(db_session)
    user = await repo.get(user_id)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.exceptions import NotFoundError
from fabrica.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
PKType = TypeVar("PKType", bound=UUID | int | str)


class BaseRepository(Generic[ModelType, PKType]):
    """Generic repository for SQLAlchemy models.

    Writes flush by default and leave the commit to the calling service,
    so a multi-record operation commits once or not at all. Pass
    commit=True for single-record writes that stand alone.

    Attributes:
        model: The model class
        db: The database session
        not_found_error: Exception raised by get_or_raise()
    """

    model: type[ModelType]
    not_found_error: type[NotFoundError] = NotFoundError

    def __init__(self, db: AsyncSession):
        self.db = db

    def __init_subclass__(cls, **kwargs):
        """Extract model type from generic parameter."""
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            args = getattr(base, "__args__", None)
            if args and len(args) >= 1:
                first_arg = args[0]
                if isinstance(first_arg, type) and issubclass(first_arg, Base):
                    cls.model = first_arg
                    break

    async def get(self, pk: PKType) -> ModelType | None:
        """Get a single record by primary key."""
        return await self.db.get(self.model, pk)

    async def get_or_raise(self, pk: PKType) -> ModelType:
        """Get a single record by primary key or raise.

        Raises:
            NotFoundError: The repository's not_found_error if absent
        """
        result = await self.get(pk)
        if result is None:
            if self.not_found_error is NotFoundError:
                raise NotFoundError(pk, resource=self.model.__name__.lower())
            raise self.not_found_error(pk)
        return result

    async def list(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[ModelType]:
        """List records with pagination.

        Args:
            limit: Maximum records to return
            offset: Number of records to skip
            order_by: Column name to order by (default: primary key)
            descending: Sort in descending order
        """
        stmt = select(self.model)

        if order_by:
            col = getattr(self.model, order_by, None)
            if col is not None:
                stmt = stmt.order_by(col.desc() if descending else col)
        else:
            pk_col = self._get_pk_column()
            stmt = stmt.order_by(pk_col.desc() if descending else pk_col)

        stmt = stmt.limit(limit).offset(offset)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        pk_col = self._get_pk_column()
        result = await self.db.execute(select(func.count(pk_col)))
        return result.scalar() or 0

    async def create(self, obj: ModelType, *, commit: bool = False) -> ModelType:
        """Add a new record.

        Args:
            obj: Model instance to create
            commit: Whether to commit the transaction
        """
        self.db.add(obj)
        if commit:
            await self.db.commit()
            await self.db.refresh(obj)
        else:
            await self.db.flush()
        return obj

    async def update(
        self, obj: ModelType, updates: dict[str, Any], *, commit: bool = False
    ) -> ModelType:
        """Update a record with given values.

        Keys that are not attributes of the model are ignored.
        """
        for field, value in updates.items():
            if hasattr(obj, field):
                setattr(obj, field, value)

        if commit:
            await self.db.commit()
            await self.db.refresh(obj)
        else:
            await self.db.flush()

        return obj

    async def delete(self, obj: ModelType, *, commit: bool = False) -> None:
        await self.db.delete(obj)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

    async def exists(self, pk: PKType) -> bool:
        pk_col = self._get_pk_column()
        stmt = select(func.count(pk_col)).where(pk_col == pk)
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def get_many(self, pks: Sequence[PKType]) -> list[ModelType]:
        """Get multiple records by primary keys; missing keys are skipped."""
        if not pks:
            return []
        pk_col = self._get_pk_column()
        result = await self.db.execute(select(self.model).where(pk_col.in_(pks)))
        return list(result.scalars().all())

    def _get_pk_column(self):
        mapper = self.model.__mapper__
        pk_cols = mapper.primary_key
        if not pk_cols:
            raise ValueError(f"No primary key found for {self.model.__name__}")
        return pk_cols[0]
