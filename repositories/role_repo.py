from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConflictError, NotFoundError
from models.permission import Permission, RolePermission, UserRole
from models.role import Role
from repositories.base import BaseRepository

if TYPE_CHECKING:
    from services.catalog_cache import CatalogCache


class RoleRepository(BaseRepository[Role]):
    """Repository for Role operations"""

    def __init__(self, db: AsyncSession, catalog_cache: CatalogCache | None = None):
        super().__init__(db, Role)
        self.catalog_cache = catalog_cache

    async def get_by_name(self, name: str) -> Role | None:
        """Get role by its unique name"""
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def list_active_roles(self) -> list[Role]:
        """All roles that can still grant permissions"""
        result = await self.db.execute(
            select(Role).where(Role.is_active.is_(True)).order_by(Role.name)
        )
        return list(result.scalars().all())

    async def list_roles_with_permissions(self) -> list[tuple[Role, list[str]]]:
        """Active roles paired with the names of their active permissions"""
        roles = await self.list_active_roles()
        if not roles:
            return []

        result = await self.db.execute(
            select(RolePermission.role_id, Permission.name)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(
                RolePermission.role_id.in_([role.id for role in roles]),
                RolePermission.is_active.is_(True),
                Permission.is_active.is_(True),
            )
            .order_by(Permission.name)
        )
        by_role: dict[int, list[str]] = {role.id: [] for role in roles}
        for role_id, permission_name in result.all():
            by_role[role_id].append(permission_name)

        return [(role, by_role[role.id]) for role in roles]

    async def create_role(self, name: str, description: str | None = None) -> Role:
        """Create a role; names are unique across the system"""
        if await self.get_by_name(name):
            raise ConflictError(f"Role '{name}' already exists")

        return await self.create(Role(name=name, description=description, is_active=True))

    async def update_role(
        self,
        role_id: int,
        description: str | None = None,
        is_active: bool | None = None,
    ) -> Role:
        """
        Update a role's description or active flag.

        Deactivating follows the same in-use rule as delete_role.
        """
        role = await self.get_by_id(role_id)
        if not role:
            raise NotFoundError("Role not found")

        if is_active is False and role.is_active:
            await self._ensure_unassigned(role_id, "deactivate")

        if description is not None:
            role.description = description
        if is_active is not None:
            role.is_active = is_active
        return await self.update(role)

    async def count_active_assignments(self, role_id: int) -> int:
        """Number of unexpired user assignments still pointing at the role"""
        result = await self.db.execute(
            select(func.count(UserRole.id)).where(
                UserRole.role_id == role_id,
                or_(
                    UserRole.expires_at.is_(None),
                    UserRole.expires_at > datetime.now(UTC),
                ),
            )
        )
        return result.scalar_one()

    async def delete_role(self, role_id: int) -> Role:
        """
        Soft-delete a role.

        Raises:
            NotFoundError: role id does not resolve
            ConflictError: role is still assigned to at least one user
        """
        role = await self.get_by_id(role_id)
        if not role:
            raise NotFoundError("Role not found")

        await self._ensure_unassigned(role_id, "delete")

        role.is_active = False
        return await self.update(role)

    async def _ensure_unassigned(self, role_id: int, action: str) -> None:
        if await self.count_active_assignments(role_id) > 0:
            raise ConflictError(
                f"Cannot {action} role: it is still assigned to one or more users"
            )

    async def _on_after_create(self, obj: Role) -> None:
        if self.catalog_cache:
            await self.catalog_cache.clear_cache()

    async def _on_after_update(self, obj: Role) -> None:
        if self.catalog_cache:
            await self.catalog_cache.clear_cache()
