"""User model for platform identities."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableUUID, TimestampMixin, UTCDateTime


class User(TimestampMixin, Base):
    """A person who can sign in to the back-office.

    Users are created on first login and refreshed on every login after
    that. Email is unique and matched case-insensitively.
    """

    __tablename__ = "users"

    user_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    external_auth_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    avatar_media_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_system_admin: Mapped[bool] = mapped_column(default=False, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    created_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    updated_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    __table_args__ = (
        Index("idx_user_external_auth", "external_auth_id"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.user_id}, email={self.email})>"


Index("idx_user_email_lower", func.lower(User.email))
