"""SQLAlchemy ORM models."""

from datetime import datetime

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProfileModel(Base):
    """User profile row, keyed by the auth user id.

    Every column but ``id`` is nullable: rows are created by whichever write
    reaches the store first, and an avatar auto-save carries no other fields.
    """

    __tablename__ = "profiles"

    # Kept as a string on the Python side; native uuid on PostgreSQL.
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255))
    full_name: Mapped[str | None] = mapped_column(String(200))
    username: Mapped[str | None] = mapped_column(String(50), unique=True)
    instagram_handle: Mapped[str | None] = mapped_column(String(100))
    avatar_url: Mapped[str | None] = mapped_column(String(1000))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
