from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, get_authz_service, get_current_user, require_permission
from core.config import get_settings
from core.database import get_db_transactional
from core.exceptions import ValidationError
from core.rate_limit import limiter
from schemas.auth import MigrationResponse, PermissionCheckRequest, PermissionCheckResponse
from schemas.token import LoginRequest, LoginResponse, LoginUser, TokenPayload
from services.auth_service import AuthService
from services.authz_service import AuthorizationService

router = APIRouter()
settings = get_settings()


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,  # Required by slowapi for rate limiting (extracts remote address)
    credentials: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """
    Exchange username and password for a bearer token.

    Token contains:
    - sub: user id (subject)
    - username
    - company_id
    - exp: expiration timestamp

    A legacy plaintext password is re-hashed as part of a successful login.
    """
    user, token = await AuthService(db).authenticate(
        credentials.username, credentials.password
    )
    return LoginResponse(
        token=token,
        user=LoginUser(
            id=user.id,
            username=user.username,
            user_type=user.user_type,
            company_id=user.company_id,
        ),
    )


@router.post("/check-permission", response_model=PermissionCheckResponse)
async def check_permission(
    data: PermissionCheckRequest,
    token: Annotated[TokenPayload, Depends(get_current_user)],
    authz_service: Annotated[AuthorizationService, Depends(get_authz_service)],
):
    """Does the caller hold the named permission?"""
    if not data.permission:
        raise ValidationError("Permission name required")

    allowed = await authz_service.user_can(
        token.user_id, data.permission, raise_on_error=True
    )
    return PermissionCheckResponse(permission=data.permission, allowed=allowed)


@router.post("/migrate-passwords", response_model=MigrationResponse)
async def migrate_passwords(
    identity: Annotated[Identity, Depends(require_permission("migrate_passwords"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Hash every password still stored in plaintext"""
    migrated = await AuthService(db).migrate_passwords()
    return MigrationResponse(migrated=migrated)
