import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, forbid_self, require_permission
from core.database import get_db, get_db_transactional
from core.enums import AssignmentResult
from core.exceptions import NotFoundError, StoreError
from repositories.company_repo import CompanyRepository
from repositories.role_repo import RoleRepository
from repositories.user_repo import UserRepository
from repositories.user_role_repo import UserRoleRepository
from schemas.user import PasswordChange, UserCreate, UserResponse, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _ensure_company(db: AsyncSession, company_id: Optional[int]) -> None:
    if company_id is not None and not await CompanyRepository(db).get_by_id(company_id):
        raise NotFoundError("Company not found")


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    identity: Annotated[Identity, Depends(require_permission("view_users"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    role: Optional[str] = Query(None, description="Only users holding this role"),
):
    """List users with their role names"""
    users = await UserRepository(db).list_users(role=role)
    return [UserResponse.from_orm_model(user, roles) for user, roles in users]


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    identity: Annotated[Identity, Depends(require_permission("create_user"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Create a user and assign the requested roles in one transaction"""
    await _ensure_company(db, data.company_id)

    role_repo = RoleRepository(db)
    roles = []
    for role_name in dict.fromkeys(data.roles):
        role = await role_repo.get_by_name(role_name)
        if not role or not role.is_active:
            raise NotFoundError(f"Role not found: {role_name}")
        roles.append(role)

    user = await UserRepository(db).create_user(
        username=data.username,
        password=data.password,
        email=data.email,
        user_type=data.user_type.value,
        company_id=data.company_id,
    )

    user_role_repo = UserRoleRepository(db)
    for role in roles:
        result = await user_role_repo.assign_role(user.id, role.id, assigned_by=identity.id)
        if result is AssignmentResult.FAILED:
            # Rolls back the user row too
            raise StoreError()

    logger.info(f"User {user.username} created by {identity.username}")
    return UserResponse.from_orm_model(user, [role.name for role in roles])


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    identity: Annotated[Identity, Depends(require_permission("edit_user"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    await _ensure_company(db, data.company_id)
    user = await UserRepository(db).update_user(
        user_id,
        username=data.username,
        email=data.email,
        user_type=data.user_type.value if data.user_type else None,
        company_id=data.company_id,
        clear_company="company_id" in data.model_fields_set and data.company_id is None,
    )
    roles = await UserRoleRepository(db).get_user_roles(user.id)
    return UserResponse.from_orm_model(user, [role.name for role in roles])


@router.put("/users/{user_id}/password")
async def change_password(
    user_id: int,
    data: PasswordChange,
    identity: Annotated[Identity, Depends(require_permission("edit_user"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    await UserRepository(db).update_password(user_id, data.password)
    return {"message": "Password updated successfully"}


@router.delete(
    "/users/{user_id}", dependencies=[Depends(require_permission("delete_user"))]
)
async def delete_user(
    user_id: int,
    identity: Annotated[Identity, Depends(forbid_self)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Delete a user; the caller can never delete themselves"""
    if not await UserRepository(db).delete_user(user_id):
        raise NotFoundError("User not found")

    logger.info(f"User {user_id} deleted by {identity.username}")
    return {"message": "User deleted successfully"}
