"""Shared test fixtures for pytest"""
import os

# Settings are read once at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"
os.environ["BCRYPT_ROUNDS"] = "4"

from collections.abc import Iterable  # noqa: E402

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from core.auth import create_access_token, get_password_hash  # noqa: E402
from core.database import Base, get_db, get_db_transactional  # noqa: E402
from main import app  # noqa: E402
from models.company import Company  # noqa: E402
from models.permission import Permission, RolePermission, UserRole  # noqa: E402
from models.role import Role  # noqa: E402
from models.user import User  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"

PERMISSION_NAMES = [
    "view_users",
    "create_user",
    "edit_user",
    "delete_user",
    "view_roles",
    "manage_roles",
    "migrate_passwords",
    "view_campaigns",
    "edit_campaign",
]

ROLE_PERMISSIONS = {
    "super_admin": PERMISSION_NAMES,
    "employee": ["view_users", "edit_user", "view_campaigns"],
    "client": ["view_campaigns", "edit_campaign"],
    "contractor": ["view_campaigns"],
}


@pytest.fixture
async def test_engine():
    """In-memory database shared by every session of one test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """HTTP client for API testing; each request gets one session"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_db_transactional(session: AsyncSession = Depends(get_db)):
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_db_transactional] = override_get_db_transactional

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def rbac(test_db):
    """
    Permission catalog and roles used across the suite.

    Returns a dict with "permissions" and "roles", each mapping name -> row.
    """
    permissions = {
        name: Permission(name=name, resource=name.split("_", 1)[-1], is_active=True)
        for name in PERMISSION_NAMES
    }
    test_db.add_all(permissions.values())
    await test_db.flush()

    roles = {}
    for role_name, permission_names in ROLE_PERMISSIONS.items():
        role = Role(name=role_name, description=f"{role_name} role", is_active=True)
        test_db.add(role)
        await test_db.flush()
        test_db.add_all(
            RolePermission(role_id=role.id, permission_id=permissions[name].id, is_active=True)
            for name in permission_names
        )
        roles[role_name] = role

    await test_db.commit()
    return {"permissions": permissions, "roles": roles}


@pytest.fixture
def make_user(test_db, rbac):
    """Factory: create a committed user holding the given roles"""

    async def _make_user(
        username: str,
        roles: Iterable[str] = (),
        password: str = "testpass123",
        hashed: bool = True,
        company: Company | None = None,
        user_type: str = "employee",
    ) -> User:
        user = User(
            username=username,
            password=get_password_hash(password) if hashed else password,
            user_type=user_type,
            company_id=company.id if company else None,
        )
        test_db.add(user)
        await test_db.flush()
        test_db.add_all(
            UserRole(user_id=user.id, role_id=rbac["roles"][name].id) for name in roles
        )
        await test_db.commit()
        return user

    return _make_user


@pytest.fixture
async def test_company(test_db):
    company = Company(name="Acme Outdoor")
    test_db.add(company)
    await test_db.commit()
    await test_db.refresh(company)
    return company


@pytest.fixture
async def admin_user(make_user):
    return await make_user("admin", roles=["super_admin"])


@pytest.fixture
async def manager_user(make_user):
    """Holds only the employee role: edit_user but not delete_user"""
    return await make_user("manager", roles=["employee"])


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(
        data={"sub": str(user.id), "username": user.username, "company_id": user.company_id}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    """Generate auth headers with JWT token"""
    return auth_headers_for(admin_user)


@pytest.fixture
def manager_headers(manager_user):
    return auth_headers_for(manager_user)


@pytest.fixture
def headers_for():
    """Factory: bearer headers for any user"""
    return auth_headers_for
