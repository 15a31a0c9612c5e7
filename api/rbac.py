from typing import Annotated, List

from fastapi import APIRouter, Depends

from api.deps import (
    Identity,
    get_authz_service,
    get_current_identity,
    get_current_user,
    require_any_permission,
    require_role,
)
from schemas.token import TokenPayload
from schemas.user import MeResponse, UserResponse
from services.authz_service import AuthorizationService

router = APIRouter()


@router.get("/me", response_model=MeResponse)
async def get_me(
    identity: Annotated[Identity, Depends(get_current_identity)],
    authz_service: Annotated[AuthorizationService, Depends(get_authz_service)],
):
    """Caller's profile, roles and effective permissions"""
    roles = await authz_service.get_user_roles(identity.id, raise_on_error=True)
    permissions = await authz_service.get_permissions_for_user(
        identity.id, raise_on_error=True
    )
    return MeResponse(
        user=UserResponse(
            id=identity.id,
            username=identity.username,
            user_type=identity.user_type,
            company_id=identity.company_id,
            company_name=identity.company_name,
            roles=roles,
        ),
        roles=roles,
        permissions=sorted(permissions),
    )


@router.get("/me/permissions", response_model=List[str])
async def get_my_permissions(
    token: Annotated[TokenPayload, Depends(get_current_user)],
    authz_service: Annotated[AuthorizationService, Depends(get_authz_service)],
):
    """
    Flat list of the caller's permission names.

    Clients fetch this once per session to decide which controls to show.
    """
    permissions = await authz_service.get_permissions_for_user(
        token.user_id, raise_on_error=True
    )
    return sorted(permissions)


@router.get("/admin-only")
async def admin_only(
    identity: Annotated[Identity, Depends(require_role("super_admin"))],
):
    return {"message": f"Welcome, {identity.username}", "role": "super_admin"}


@router.get("/management")
async def management(
    identity: Annotated[
        Identity,
        Depends(require_any_permission(["manage_roles", "create_user", "delete_user"])),
    ],
):
    return {"message": "Management area", "user": identity.username}
