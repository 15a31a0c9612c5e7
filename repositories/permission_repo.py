from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ConflictError, NotFoundError
from models.permission import Permission, RolePermission
from models.role import Role
from repositories.base import BaseRepository

if TYPE_CHECKING:
    from services.catalog_cache import CatalogCache

logger = logging.getLogger(__name__)


class PermissionRepository(BaseRepository[Permission]):
    """Repository for Permission and RolePermission operations"""

    def __init__(self, db: AsyncSession, catalog_cache: CatalogCache | None = None):
        super().__init__(db, Permission)
        self.catalog_cache = catalog_cache

    async def get_by_name(self, name: str) -> Permission | None:
        """Get permission by its unique name"""
        result = await self.db.execute(select(Permission).where(Permission.name == name))
        return result.scalar_one_or_none()

    async def get_by_ids(self, permission_ids: Sequence[int]) -> list[Permission]:
        """Active permissions whose ids are in the given list"""
        if not permission_ids:
            return []
        result = await self.db.execute(
            select(Permission).where(
                Permission.id.in_(permission_ids), Permission.is_active.is_(True)
            )
        )
        return list(result.scalars().all())

    async def list_active_permissions(self) -> list[Permission]:
        """The permission catalog, grouped by resource"""
        result = await self.db.execute(
            select(Permission)
            .where(Permission.is_active.is_(True))
            .order_by(Permission.resource, Permission.name)
        )
        return list(result.scalars().all())

    async def create_permission(
        self,
        name: str,
        description: str | None = None,
        resource: str | None = None,
        action: str | None = None,
    ) -> Permission:
        """Create a permission; names are unique across the system"""
        if await self.get_by_name(name):
            raise ConflictError(f"Permission '{name}' already exists")

        permission = Permission(
            name=name,
            description=description,
            resource=resource,
            action=action,
            is_active=True,
        )
        return await self.create(permission)

    async def get_permissions_for_role(self, role_id: int) -> list[Permission]:
        """Active permissions linked to a role through an active link"""
        result = await self.db.execute(
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(
                RolePermission.role_id == role_id,
                RolePermission.is_active.is_(True),
                Permission.is_active.is_(True),
            )
            .order_by(Permission.name)
        )
        return list(result.scalars().all())

    async def replace_role_permissions(
        self, role_id: int, permission_ids: Sequence[int]
    ) -> list[Permission]:
        """
        Replace a role's whole permission set.

        Every id is validated before anything is touched. The delete and the
        insert run in the caller's transaction, so a failure at any point
        leaves the previous set in place once the transaction rolls back.
        An empty list revokes everything.

        Raises:
            NotFoundError: role id or any permission id does not resolve
        """
        role = await self.db.get(Role, role_id)
        if role is None:
            raise NotFoundError("Role not found")

        wanted = list(dict.fromkeys(permission_ids))
        permissions = await self.get_by_ids(wanted)
        unknown = set(wanted) - {permission.id for permission in permissions}
        if unknown:
            raise NotFoundError(
                f"Unknown permission ids: {', '.join(str(i) for i in sorted(unknown))}"
            )

        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        await self._insert_role_permissions(role_id, wanted)
        await self.db.flush()

        logger.info(
            f"Replaced permissions of role {role.name}: {len(wanted)} permission(s)"
        )
        if self.catalog_cache:
            await self.catalog_cache.clear_cache()

        return sorted(permissions, key=lambda permission: permission.name)

    async def _insert_role_permissions(self, role_id: int, permission_ids: list[int]) -> None:
        self.db.add_all(
            RolePermission(role_id=role_id, permission_id=permission_id, is_active=True)
            for permission_id in permission_ids
        )

    async def _on_after_create(self, obj: Permission) -> None:
        if self.catalog_cache:
            await self.catalog_cache.clear_cache()

    async def _on_after_update(self, obj: Permission) -> None:
        if self.catalog_cache:
            await self.catalog_cache.clear_cache()
