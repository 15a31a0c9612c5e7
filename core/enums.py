from enum import Enum


class UserType(str, Enum):
    """Denormalized user classification (advisory, never used for permission checks)"""
    EMPLOYEE = "employee"
    CLIENT = "client"
    CONTRACTOR = "contractor"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [user_type.value for user_type in cls]


class AssignmentResult(str, Enum):
    """Outcome of assigning a role to a user"""
    ASSIGNED = "assigned"
    ALREADY_ASSIGNED = "already_assigned"
    FAILED = "failed"


class RequirementKind(str, Enum):
    """How a route's authorization requirement is evaluated"""
    PERMISSION = "permission"
    ROLE = "role"
    ANY_PERMISSION = "any_permission"
    ALL_PERMISSIONS = "all_permissions"
