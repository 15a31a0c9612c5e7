from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.enums import UserType
from models.company import Company
from models.mixins import TimestampedModel


class User(TimestampedModel, Base):
    """
    Identity record.

    ``password`` holds a bcrypt hash, or a legacy plaintext value that is
    upgraded on the first successful login.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    user_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserType.EMPLOYEE.value
    )
    company_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True
    )

    company: Mapped[Company | None] = relationship(Company)

    __table_args__ = (
        CheckConstraint(
            f"user_type IN {tuple(UserType.values())}", name="users_user_type_check"
        ),
    )
