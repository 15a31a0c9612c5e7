from typing import List, Optional

from pydantic import BaseModel, Field

from core.enums import UserType


class UserCreate(BaseModel):
    """Schema for creating a user together with its initial roles"""
    username: str = Field(..., min_length=1, max_length=100, description="Unique username")
    password: str = Field(..., min_length=1, description="Initial password")
    email: Optional[str] = Field(None, max_length=255)
    user_type: UserType = UserType.EMPLOYEE
    company_id: Optional[int] = None
    roles: List[str] = Field(default_factory=list, description="Role names to assign")


class UserUpdate(BaseModel):
    """Schema for updating user profile fields (explicit null company_id detaches)"""
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    user_type: Optional[UserType] = None
    company_id: Optional[int] = None


class PasswordChange(BaseModel):
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Schema for user responses (excludes password)"""
    id: int
    username: str
    email: Optional[str] = None
    user_type: str
    company_id: Optional[int] = None
    company_name: Optional[str] = None
    roles: List[str] = []

    @classmethod
    def from_orm_model(cls, user, roles: Optional[List[str]] = None) -> "UserResponse":
        """Convert ORM model to response schema"""
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            user_type=user.user_type,
            company_id=user.company_id,
            roles=roles or [],
        )


class MeResponse(BaseModel):
    """Caller's identity, roles and effective permissions"""
    user: UserResponse
    roles: List[str]
    permissions: List[str]
