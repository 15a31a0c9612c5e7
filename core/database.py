from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from core.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    """Pool tuning only applies to server databases (SQLite uses a static pool)"""
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": 20,
        "max_overflow": 30,
        "pool_recycle": 3600,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)

Base = declarative_base()


async def get_db():
    """
    Database session dependency for read operations.
    Does not commit - read-only operations don't need commits.
    Write operations should use get_db_transactional().
    """
    async with AsyncSessionLocal() as session:
        yield session


async def get_db_transactional():
    """
    Database session dependency for write operations.
    Uses async_sessionmaker.begin() for atomic transaction management:
    - Begins transaction automatically
    - Commits on success
    - Rolls back on exception
    - Closes session automatically

    Bulk replacement of role permissions relies on this: the delete and the
    insert commit together or not at all.
    """
    async with AsyncSessionLocal.begin() as session:
        yield session
