import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api import auth, permissions, rbac, roles, user_roles, users
from api.deps import get_cache_service, set_cache_service
from core.config import get_settings
from core.database import engine, get_db
from core.logging import setup_logging
from core.rate_limit import limiter
from middleware.correlation import CorrelationIDMiddleware
from middleware.exceptions import register_exception_handlers
from middleware.security import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from middleware.timeout import TimeoutMiddleware
from services.cache_service import CacheService

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for application initialization and cleanup"""
    setup_logging()

    # Database schema is managed by Alembic migrations
    # Run migrations: alembic upgrade head

    # Redis only holds the role/permission catalogs; the service works without it
    if settings.redis_enabled:
        cache_service = CacheService()
        await cache_service.connect()
        set_cache_service(cache_service)
    else:
        logger.info("Redis cache disabled in configuration")

    yield

    if settings.redis_enabled:
        cache = await get_cache_service()
        await cache.disconnect()

    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_exception_handlers(app)

# Middleware (order matters - applied in reverse)
# 1. Timeout (innermost, wraps route execution)
app.add_middleware(TimeoutMiddleware, timeout=settings.request_timeout_seconds)

# 2. Request size limit
app.add_middleware(RequestSizeLimitMiddleware, max_request_size=settings.max_request_size)

# 3. Correlation ID for request tracing
app.add_middleware(CorrelationIDMiddleware)

# 4. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 5. CORS middleware
# allow_credentials=True requires specific origins (not wildcard)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router, tags=["authentication"])
app.include_router(rbac.router, tags=["rbac"])
app.include_router(permissions.router, tags=["permissions"])
app.include_router(roles.router, tags=["roles"])
app.include_router(users.router, tags=["users"])
app.include_router(user_roles.router, tags=["user-roles"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint for load balancers and monitoring.

    Returns:
    - 200 OK if the API and database respond
    - 503 Service Unavailable otherwise
    """
    checks: dict[str, Any] = {
        "api": True,
        "database": False,
        "cache": None,  # None = not configured, True = healthy, False = unhealthy
    }

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        return JSONResponse(
            status_code=503, content={"status": "unhealthy", "checks": checks}
        )

    if settings.redis_enabled:
        cache = await get_cache_service()
        checks["cache"] = await cache.ping()

    return {"status": "healthy", "checks": checks}
