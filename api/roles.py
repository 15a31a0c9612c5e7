from typing import Annotated, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, get_authz_service, get_catalog_cache, require_permission
from core.database import get_db, get_db_transactional
from core.exceptions import NotFoundError
from repositories.permission_repo import PermissionRepository
from repositories.role_repo import RoleRepository
from schemas.role import (
    PermissionResponse,
    RoleCreate,
    RolePermissionsReplace,
    RolePermissionsResponse,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissions,
)
from services.authz_service import AuthorizationService
from services.catalog_cache import CatalogCache

router = APIRouter()


@router.get("/roles", response_model=List[RoleWithPermissions])
async def list_roles(
    identity: Annotated[Identity, Depends(require_permission("view_roles"))],
    authz_service: Annotated[AuthorizationService, Depends(get_authz_service)],
):
    """Active roles with their permission names"""
    catalog = await authz_service.get_catalog()
    return catalog["roles"]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    catalog_cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
):
    """Create a new role (409 when the name is taken)"""
    role = await RoleRepository(db, catalog_cache).create_role(data.name, data.description)
    return RoleResponse.model_validate(role)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: int,
    data: RoleUpdate,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    catalog_cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
):
    role = await RoleRepository(db, catalog_cache).update_role(
        role_id, description=data.description, is_active=data.is_active
    )
    return RoleResponse.model_validate(role)


@router.delete("/roles/{role_id}")
async def delete_role(
    role_id: int,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    catalog_cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
):
    """Soft delete; refused while any user still holds the role"""
    role = await RoleRepository(db, catalog_cache).delete_role(role_id)
    return {"message": "Role deleted successfully", "role": role.name}


@router.get("/roles/{role_id}/permissions", response_model=RolePermissionsResponse)
async def get_role_permissions(
    role_id: int,
    identity: Annotated[Identity, Depends(require_permission("view_roles"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    if not await RoleRepository(db).get_by_id(role_id):
        raise NotFoundError("Role not found")

    permissions = await PermissionRepository(db).get_permissions_for_role(role_id)
    return RolePermissionsResponse(
        role_id=role_id,
        permissions=[PermissionResponse.model_validate(p) for p in permissions],
    )


@router.put("/roles/{role_id}/permissions", response_model=RolePermissionsResponse)
async def replace_role_permissions(
    role_id: int,
    data: RolePermissionsReplace,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    catalog_cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
):
    """
    Replace the role's whole permission set in one transaction.

    Takes effect on the next request of every holder of the role.
    """
    permissions = await PermissionRepository(db, catalog_cache).replace_role_permissions(
        role_id, data.permission_ids
    )
    return RolePermissionsResponse(
        role_id=role_id,
        permissions=[PermissionResponse.model_validate(p) for p in permissions],
    )
