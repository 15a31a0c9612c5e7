from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Role Schemas
class RoleBase(BaseModel):
    """Base role schema"""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a role"""


class RoleUpdate(BaseModel):
    """Schema for updating a role"""
    description: Optional[str] = None
    is_active: Optional[bool] = None


class RoleResponse(RoleBase):
    """Schema for role response"""
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(BaseModel):
    """Catalog entry: role with the names of its permissions"""
    id: int
    name: str
    description: Optional[str] = None
    permissions: List[str] = []


# Permission Schemas
class PermissionBase(BaseModel):
    """Base permission schema"""
    name: str = Field(..., min_length=1, max_length=100, description="Permission name (e.g., 'edit_campaign')")
    description: Optional[str] = Field(None, description="Permission description")
    resource: Optional[str] = Field(None, max_length=100, description="Resource name (e.g., 'campaigns')")
    action: Optional[str] = Field(None, max_length=100, description="Action name (e.g., 'update')")


class PermissionCreate(PermissionBase):
    """Schema for creating a permission"""


class PermissionResponse(PermissionBase):
    """Schema for permission response"""
    id: int

    model_config = ConfigDict(from_attributes=True)


class RolePermissionsReplace(BaseModel):
    """Full replacement of a role's permission set; an empty list revokes everything"""
    permission_ids: List[int]


class RolePermissionsResponse(BaseModel):
    role_id: int
    permissions: List[PermissionResponse]


# User role assignment
class UserRoleAssign(BaseModel):
    """Assign a role to a user by role name"""
    role: str = Field(..., min_length=1)
    expires_at: Optional[datetime] = Field(
        None, description="Assignment stops granting permissions after this instant"
    )
