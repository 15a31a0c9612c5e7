"""
Cache for the role and permission catalogs.

The catalogs are the lists of active roles and active permissions shown on
admin screens. They change rarely, so they are kept in Redis for a short TTL.
User assignments are deliberately absent: a user's effective permissions are
always resolved from the store.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from repositories.permission_repo import PermissionRepository
from repositories.role_repo import RoleRepository
from services.cache_service import CacheService

logger = logging.getLogger(__name__)

ROLES_KEY = "catalog:roles"
PERMISSIONS_KEY = "catalog:permissions"


class CatalogCache:
    def __init__(self, cache_service: CacheService | None = None, ttl: int | None = None):
        self.cache = cache_service
        self.ttl = ttl if ttl is not None else get_settings().cache_ttl_catalog

    def _available(self) -> bool:
        return self.cache is not None and self.cache.is_available()

    async def get_roles(self, db: AsyncSession) -> list[dict[str, Any]]:
        """Active roles with their permission names"""
        if self._available():
            cached = await self.cache.get(ROLES_KEY)
            if cached is not None:
                return cached

        roles = [
            {
                "id": role.id,
                "name": role.name,
                "description": role.description,
                "permissions": permission_names,
            }
            for role, permission_names in await RoleRepository(db).list_roles_with_permissions()
        ]
        if self._available():
            await self.cache.set(ROLES_KEY, roles, ttl=self.ttl)
        return roles

    async def get_permissions(self, db: AsyncSession) -> list[dict[str, Any]]:
        """Active permission catalog"""
        if self._available():
            cached = await self.cache.get(PERMISSIONS_KEY)
            if cached is not None:
                return cached

        permissions = [
            {
                "id": permission.id,
                "name": permission.name,
                "description": permission.description,
                "resource": permission.resource,
                "action": permission.action,
            }
            for permission in await PermissionRepository(db).list_active_permissions()
        ]
        if self._available():
            await self.cache.set(PERMISSIONS_KEY, permissions, ttl=self.ttl)
        return permissions

    async def clear_cache(self) -> None:
        """Drop both catalogs; the next read goes to the store"""
        if self._available():
            await self.cache.delete(ROLES_KEY, PERMISSIONS_KEY)
            logger.info("Catalog cache cleared")
