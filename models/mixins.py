"""
SQLAlchemy mixins for common model patterns.

These mixins provide reusable column definitions so every RBAC table keys and
timestamps its rows the same way.
"""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func


class IdMixin:
    """
    Mixin for models keyed by a stable auto-incrementing integer.

    Usage:
        class MyModel(IdMixin, Base):
            __tablename__ = "my_model"
    """

    @declared_attr
    def id(cls) -> Mapped[int]:
        return mapped_column(Integer, primary_key=True, autoincrement=True)


class TimestampMixin:
    """
    Mixin for timestamp tracking.

    Provides:
        - created_at: Timestamp set on creation (server-side default)
        - updated_at: Timestamp updated on modification (server-side default + onupdate)
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )


class SoftDeleteMixin:
    """
    Soft delete via an is_active flag.

    Inactive rows stay in place for referential integrity but never take part
    in permission resolution.
    """

    @declared_attr
    def is_active(cls) -> Mapped[bool]:
        return mapped_column(Boolean, nullable=False, default=True, index=True)


class TimestampedModel(IdMixin, TimestampMixin):
    """
    Integer key plus created/updated timestamps.

    This is the most common pattern for the RBAC tables.
    """

    __abstract__ = True
