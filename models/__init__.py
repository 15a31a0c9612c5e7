from models.company import Company

# Mixins for model composition
from models.mixins import (
    IdMixin,
    SoftDeleteMixin,
    TimestampedModel,
    TimestampMixin,
)
from models.permission import Permission, RolePermission, UserRole
from models.role import Role
from models.user import User

__all__ = [
    # Models
    "Company",
    "User",
    "Role",
    "Permission",
    "RolePermission",
    "UserRole",
    # Mixins
    "IdMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "TimestampedModel",
]
