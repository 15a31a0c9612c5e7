import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, Select, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import RequirementKind
from core.exceptions import StoreError
from models.permission import Permission, RolePermission, UserRole
from models.role import Role
from services.catalog_cache import CatalogCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Requirement:
    """What a route demands of the caller"""

    kind: RequirementKind
    names: tuple[str, ...]

    def describe(self) -> str:
        """Denial message naming the unmet requirement and nothing else"""
        joined = ", ".join(self.names)
        if self.kind is RequirementKind.PERMISSION:
            return f"Permission denied: {joined}"
        if self.kind is RequirementKind.ROLE:
            return f"Role required: {joined}"
        if self.kind is RequirementKind.ANY_PERMISSION:
            return f"One of these permissions required: {joined}"
        return f"All of these permissions required: {joined}"


def _assignment_is_current(now: datetime) -> ColumnElement[bool]:
    return or_(UserRole.expires_at.is_(None), UserRole.expires_at > now)


class AuthorizationService:
    """
    Permission resolution engine.
    Follow principle: "Check permissions, not roles"

    A user's effective permissions are the union, over every active and
    unexpired role assignment, of the role's active permissions linked
    through an active role_permission row. Nothing is memoized per user, so
    an edit to a role's permission set applies on the very next request.

    Fails closed: a store error never grants access. Public methods log it and
    return False / an empty set, or raise StoreError when ``raise_on_error``.
    """

    def __init__(self, db: AsyncSession, catalog_cache: CatalogCache | None = None):
        self.db = db
        self.catalog_cache = catalog_cache or CatalogCache()

    def _granted(self, user_id: int, *columns: Any) -> Select:
        """users -> roles -> permissions join with every liveness filter applied"""
        return (
            select(*columns)
            .select_from(UserRole)
            .join(Role, Role.id == UserRole.role_id)
            .join(RolePermission, RolePermission.role_id == Role.id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(
                UserRole.user_id == user_id,
                Role.is_active.is_(True),
                RolePermission.is_active.is_(True),
                Permission.is_active.is_(True),
                _assignment_is_current(datetime.now(UTC)),
            )
        )

    async def _execute(self, query: Select):
        try:
            return await self.db.execute(query)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Permission store query failed: {e}")
            raise StoreError() from e

    async def get_permissions_for_user(
        self, user_id: int, raise_on_error: bool = False
    ) -> set[str]:
        """
        All permission names the user currently holds.

        Returns: Set of permission names like {'edit_campaign', 'view_users'}
        """
        try:
            result = await self._execute(
                self._granted(user_id, Permission.name).distinct()
            )
        except StoreError:
            if raise_on_error:
                raise
            return set()
        return set(result.scalars().all())

    async def user_can(
        self, user_id: int, permission: str, raise_on_error: bool = False
    ) -> bool:
        """Does the user hold this permission? Agrees with get_permissions_for_user."""
        query = self._granted(user_id, Permission.id).where(Permission.name == permission)
        try:
            result = await self._execute(select(query.exists()))
        except StoreError:
            if raise_on_error:
                raise
            return False
        return bool(result.scalar())

    async def user_has_role(
        self, user_id: int, role_name: str, raise_on_error: bool = False
    ) -> bool:
        """Role check for role-intrinsic routes; prefer user_can everywhere else"""
        query = (
            select(UserRole.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                UserRole.user_id == user_id,
                Role.name == role_name,
                Role.is_active.is_(True),
                _assignment_is_current(datetime.now(UTC)),
            )
        )
        try:
            result = await self._execute(select(query.exists()))
        except StoreError:
            if raise_on_error:
                raise
            return False
        return bool(result.scalar())

    async def can_any(
        self, user_id: int, names: Sequence[str], raise_on_error: bool = False
    ) -> bool:
        """True as soon as one permission is held. Empty list is False."""
        for name in names:
            if await self.user_can(user_id, name, raise_on_error=raise_on_error):
                return True
        return False

    async def can_all(
        self, user_id: int, names: Sequence[str], raise_on_error: bool = False
    ) -> bool:
        """False as soon as one permission is missing. Empty list is True."""
        for name in names:
            if not await self.user_can(user_id, name, raise_on_error=raise_on_error):
                return False
        return True

    async def get_user_roles(self, user_id: int, raise_on_error: bool = False) -> list[str]:
        """Names of the active, unexpired roles assigned to the user"""
        query = (
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                Role.is_active.is_(True),
                _assignment_is_current(datetime.now(UTC)),
            )
            .order_by(Role.name)
        )
        try:
            result = await self._execute(query)
        except StoreError:
            if raise_on_error:
                raise
            return []
        return list(result.scalars().all())

    async def check(
        self, requirement: Requirement, user_id: int, raise_on_error: bool = False
    ) -> bool:
        """Evaluate a route requirement for a user"""
        kind = requirement.kind
        if kind is RequirementKind.PERMISSION:
            return await self.user_can(user_id, requirement.names[0], raise_on_error)
        if kind is RequirementKind.ROLE:
            return await self.user_has_role(user_id, requirement.names[0], raise_on_error)
        if kind is RequirementKind.ANY_PERMISSION:
            return await self.can_any(user_id, requirement.names, raise_on_error)
        return await self.can_all(user_id, requirement.names, raise_on_error)

    async def get_catalog(self) -> dict[str, list[dict[str, Any]]]:
        """Active role and permission catalogs, served from the catalog cache"""
        return {
            "roles": await self.catalog_cache.get_roles(self.db),
            "permissions": await self.catalog_cache.get_permissions(self.db),
        }
