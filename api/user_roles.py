from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, require_permission
from core.database import get_db, get_db_transactional
from core.enums import AssignmentResult
from core.exceptions import ConflictError, NotFoundError, StoreError
from repositories.role_repo import RoleRepository
from repositories.user_repo import UserRepository
from repositories.user_role_repo import UserRoleRepository
from schemas.role import UserRoleAssign

router = APIRouter()


@router.get("/users/{user_id}/roles")
async def get_user_roles(
    user_id: int,
    identity: Annotated[Identity, Depends(require_permission("view_users"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Names of the roles the user currently holds"""
    if not await UserRepository(db).get_by_id(user_id):
        raise NotFoundError("User not found")

    roles = await UserRoleRepository(db).get_user_roles(user_id)
    return {"user_id": user_id, "roles": [role.name for role in roles]}


@router.post("/users/{user_id}/roles", status_code=status.HTTP_201_CREATED)
async def assign_role_to_user(
    user_id: int,
    data: UserRoleAssign,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Assign a role to a user by role name"""
    if not await UserRepository(db).get_by_id(user_id):
        raise NotFoundError("User not found")

    role = await RoleRepository(db).get_by_name(data.role)
    if not role or not role.is_active:
        raise NotFoundError("Role not found")

    result = await UserRoleRepository(db).assign_role(
        user_id, role.id, assigned_by=identity.id, expires_at=data.expires_at
    )
    if result is AssignmentResult.ALREADY_ASSIGNED:
        raise ConflictError("Role already assigned")
    if result is AssignmentResult.FAILED:
        raise StoreError()

    return {
        "message": "Role assigned successfully",
        "user_id": user_id,
        "role": role.name,
    }


@router.delete("/users/{user_id}/roles/{role_name}")
async def remove_role_from_user(
    user_id: int,
    role_name: str,
    identity: Annotated[Identity, Depends(require_permission("manage_roles"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    role = await RoleRepository(db).get_by_name(role_name)
    if not role or not await UserRoleRepository(db).remove_role(user_id, role.id):
        raise NotFoundError("Role not assigned to user")

    return {"message": "Role removed successfully", "user_id": user_id, "role": role.name}
