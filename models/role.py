from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from models.mixins import SoftDeleteMixin, TimestampedModel


class Role(TimestampedModel, SoftDeleteMixin, Base):
    """Named authorization bucket (e.g., 'super_admin', 'employee', 'client')"""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)  # stable key used in code and URLs
    description: Mapped[str | None] = mapped_column(Text, nullable=True)  # human label
