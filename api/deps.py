"""
Request-time authorization chain.

Every protected route runs, in order: token verification, identity
hydration, then its requirement check. The first failure ends the request.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from fastapi import Depends, FastAPI
from fastapi.dependencies.models import Dependant
from fastapi.routing import APIRoute
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import verify_token
from core.database import get_db
from core.enums import RequirementKind
from core.exceptions import AuthenticationError, AuthorizationError, SelfDeletionError
from repositories.user_repo import UserRepository
from schemas.token import TokenPayload
from services.authz_service import AuthorizationService, Requirement
from services.cache_service import CacheService
from services.catalog_cache import CatalogCache

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is reported as 401 by get_current_user
security = HTTPBearer(auto_error=False)

# Global service instances (singletons)
_cache_service: CacheService | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, loaded fresh from the store on each request"""

    id: int
    username: str
    user_type: str
    company_id: int | None = None
    company_name: str | None = None


async def get_cache_service() -> CacheService:
    """
    Cache service dependency (singleton)

    Returns global cache service instance.
    Initialized on app startup in main.py
    """
    global _cache_service
    if _cache_service is None:
        # connect() is called on app startup in main.py
        _cache_service = CacheService()
    return _cache_service


def set_cache_service(cache_service: CacheService | None):
    """Set global cache service (called on app startup)"""
    global _cache_service
    _cache_service = cache_service


async def get_catalog_cache(
    cache: CacheService = Depends(get_cache_service),
) -> CatalogCache:
    return CatalogCache(cache)


async def get_authz_service(
    db: AsyncSession = Depends(get_db),
    catalog_cache: CatalogCache = Depends(get_catalog_cache),
) -> AuthorizationService:
    """Authorization service for the current request"""
    return AuthorizationService(db, catalog_cache=catalog_cache)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenPayload:
    """
    Validate the bearer token and return its payload.

    Missing header or non-bearer scheme: 401. Bad signature, expiry or
    malformed claims: 403.
    """
    if credentials is None:
        raise AuthenticationError("No token provided")

    try:
        payload = verify_token(credentials.credentials)
        return TokenPayload(**payload)
    except ValueError as e:
        logger.info(f"Rejected token: {e}")
        raise AuthenticationError("Invalid token", status_code=403) from e


async def get_current_identity(
    token: TokenPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    """Load the token's subject; a deleted user holding a valid token gets 403"""
    user = await UserRepository(db).get_with_company(token.user_id)
    if not user:
        raise AuthenticationError("User not found", status_code=403)

    return Identity(
        id=user.id,
        username=user.username,
        user_type=user.user_type,
        company_id=user.company_id,
        company_name=user.company.name if user.company else None,
    )


def _requirement_dependency(requirement: Requirement):
    async def requirement_checker(
        identity: Identity = Depends(get_current_identity),
        authz_service: AuthorizationService = Depends(get_authz_service),
    ) -> Identity:
        # raise_on_error: a store failure surfaces as 500, never as a grant
        allowed = await authz_service.check(requirement, identity.id, raise_on_error=True)
        if not allowed:
            logger.info(f"Denied user {identity.username}: {requirement.describe()}")
            raise AuthorizationError(requirement.describe())
        return identity

    requirement_checker.requirement = requirement  # type: ignore[attr-defined]
    return requirement_checker


def require_permission(name: str):
    """
    Dependency factory for route-level permission checking.

    Usage:
        @router.put("/users/{user_id}")
        async def update_user(identity: Identity = Depends(require_permission("edit_user"))):
            ...
    """
    return _requirement_dependency(Requirement(RequirementKind.PERMISSION, (name,)))


def require_role(name: str):
    """Role gate, reserved for routes whose meaning is the role itself"""
    return _requirement_dependency(Requirement(RequirementKind.ROLE, (name,)))


def require_any_permission(names: Sequence[str]):
    return _requirement_dependency(
        Requirement(RequirementKind.ANY_PERMISSION, tuple(names))
    )


def require_all_permissions(names: Sequence[str]):
    return _requirement_dependency(
        Requirement(RequirementKind.ALL_PERMISSIONS, tuple(names))
    )


async def forbid_self(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Nobody may delete their own account, whatever permissions they hold"""
    if user_id == identity.id:
        raise SelfDeletionError()
    return identity


def _collect_requirements(dependant: Dependant) -> list[Requirement]:
    found = []
    for sub in dependant.dependencies:
        requirement = getattr(sub.call, "requirement", None)
        if isinstance(requirement, Requirement):
            found.append(requirement)
        found.extend(_collect_requirements(sub))
    return found


def _walk_routes(routes, prefix: str = ""):
    """APIRoutes with their full paths, descending into mounts and included routers"""
    for route in routes:
        if isinstance(route, APIRoute):
            yield prefix + route.path, route
            continue
        nested = getattr(route, "routes", None)
        if nested is None:
            nested = getattr(getattr(route, "router", None), "routes", None)
        if nested:
            mount_path = getattr(route, "path", None) or getattr(route, "prefix", "") or ""
            yield from _walk_routes(nested, prefix + mount_path)


def route_requirements(app: FastAPI) -> list[tuple[str, str, Requirement]]:
    """
    (method, path, requirement) for every gated route.

    Lets the authorization contract be asserted without calling handlers.
    """
    table = []
    for path, route in _walk_routes(app.routes):
        for requirement in _collect_requirements(route.dependant):
            for method in sorted(route.methods):
                entry = (method, path, requirement)
                if entry not in table:
                    table.append(entry)
    return table
