from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenPayload(BaseModel):
    """JWT token payload schema with user and company information"""
    sub: str = Field(..., description="User ID (subject)")
    username: str = Field(..., description="Username at the time of login")
    company_id: Optional[int] = Field(None, description="Company the user belongs to")
    exp: int = Field(..., description="Token expiration timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sub": "42",
                "username": "jdoe",
                "company_id": 3,
                "exp": 1234567890,
            }
        }
    )

    @property
    def user_id(self) -> int:
        return int(self.sub)


class LoginRequest(BaseModel):
    """Credentials posted to /login"""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginUser(BaseModel):
    id: int
    username: str
    user_type: str
    company_id: Optional[int] = None


class LoginResponse(BaseModel):
    """Token plus the minimal user profile the client keeps"""
    token: str
    user: LoginUser
