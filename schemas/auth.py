from typing import Optional

from pydantic import BaseModel


class PermissionCheckRequest(BaseModel):
    """Ad-hoc check of a single permission for the caller"""
    permission: Optional[str] = None


class PermissionCheckResponse(BaseModel):
    permission: str
    allowed: bool


class MigrationResponse(BaseModel):
    migrated: int
