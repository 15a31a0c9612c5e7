from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from models.mixins import TimestampedModel


class Company(TimestampedModel, Base):
    """
    Tenant boundary.

    A user's company scopes business queries (which campaigns a client sees)
    but plays no part in permission resolution.
    """

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
