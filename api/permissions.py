from typing import Annotated, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, get_authz_service, get_catalog_cache, require_permission
from core.database import get_db_transactional
from repositories.permission_repo import PermissionRepository
from schemas.role import PermissionCreate, PermissionResponse
from services.authz_service import AuthorizationService
from services.catalog_cache import CatalogCache

router = APIRouter()


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    identity: Annotated[Identity, Depends(require_permission("view_roles"))],
    authz_service: Annotated[AuthorizationService, Depends(get_authz_service)],
):
    """Active permission catalog"""
    catalog = await authz_service.get_catalog()
    return catalog["permissions"]


@router.post(
    "/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED
)
async def create_permission(
    data: PermissionCreate,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    catalog_cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
):
    """Create a permission (409 when the name is taken)"""
    permission = await PermissionRepository(db, catalog_cache).create_permission(
        name=data.name,
        description=data.description,
        resource=data.resource,
        action=data.action,
    )
    return PermissionResponse.model_validate(permission)
