"""Tests for the request-time authorization chain"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi import APIRouter, Depends, FastAPI, status
from sqlalchemy import delete
from sqlalchemy.exc import OperationalError

from api.deps import get_authz_service, require_permission, route_requirements
from core.auth import create_access_token
from core.enums import RequirementKind
from main import app
from models.user import User
from services.authz_service import AuthorizationService, Requirement


@pytest.mark.asyncio
async def test_missing_token_is_401(client, rbac):
    response = await client.get("/me")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"error": "No token provided"}


@pytest.mark.asyncio
async def test_invalid_token_is_403(client, rbac):
    response = await client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"error": "Invalid token"}


@pytest.mark.asyncio
async def test_expired_token_is_403(client, manager_user):
    token = create_access_token(
        {"sub": str(manager_user.id), "username": "manager", "company_id": None},
        expires_delta=timedelta(minutes=-1),
    )

    response = await client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_token_of_deleted_user_is_403(client, manager_user, manager_headers, test_db):
    await test_db.execute(delete(User).where(User.id == manager_user.id))
    await test_db.commit()

    response = await client.get("/users", headers=manager_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"error": "User not found"}


@pytest.mark.asyncio
async def test_me_returns_identity_roles_and_permissions(
    client, make_user, headers_for, test_company
):
    user = await make_user("jdoe", roles=["client"], company=test_company, user_type="client")

    response = await client.get("/me", headers=headers_for(user))

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["username"] == "jdoe"
    assert data["user"]["company_name"] == "Acme Outdoor"
    assert data["roles"] == ["client"]
    assert data["permissions"] == ["edit_campaign", "view_campaigns"]


@pytest.mark.asyncio
async def test_edit_allowed_delete_denied(client, manager_headers, make_user):
    """A role holding edit_user but not delete_user gets exactly that"""
    target = await make_user("target")

    edited = await client.put(
        f"/users/{target.id}", json={"email": "t@example.com"}, headers=manager_headers
    )
    deleted = await client.delete(f"/users/{target.id}", headers=manager_headers)

    assert edited.status_code == 200
    assert edited.json()["email"] == "t@example.com"
    assert deleted.status_code == status.HTTP_403_FORBIDDEN
    assert deleted.json() == {"error": "Permission denied: delete_user"}


@pytest.mark.asyncio
async def test_emptied_role_revokes_on_next_request(
    client, admin_headers, manager_headers, rbac
):
    employee_id = rbac["roles"]["employee"].id
    before = await client.get("/users", headers=manager_headers)
    assert before.status_code == 200

    replaced = await client.put(
        f"/roles/{employee_id}/permissions",
        json={"permission_ids": []},
        headers=admin_headers,
    )
    assert replaced.status_code == 200
    assert replaced.json()["permissions"] == []

    after = await client.get("/users", headers=manager_headers)
    assert after.status_code == status.HTTP_403_FORBIDDEN
    assert after.json() == {"error": "Permission denied: view_users"}

    permissions = await client.get("/me/permissions", headers=manager_headers)
    assert permissions.status_code == 200
    assert permissions.json() == []


@pytest.mark.asyncio
async def test_granted_permission_applies_on_next_request(
    client, admin_headers, manager_headers, rbac
):
    permissions = rbac["permissions"]
    denied = await client.post("/migrate-passwords", headers=manager_headers)
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    await client.put(
        f"/roles/{rbac['roles']['employee'].id}/permissions",
        json={"permission_ids": [permissions["migrate_passwords"].id]},
        headers=admin_headers,
    )

    allowed = await client.post("/migrate-passwords", headers=manager_headers)
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_admin_only_is_role_gated(client, admin_headers, manager_headers):
    allowed = await client.get("/admin-only", headers=admin_headers)
    denied = await client.get("/admin-only", headers=manager_headers)

    assert allowed.status_code == 200
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert denied.json() == {"error": "Role required: super_admin"}


@pytest.mark.asyncio
async def test_management_needs_any_of_its_permissions(
    client, admin_headers, manager_headers
):
    allowed = await client.get("/management", headers=admin_headers)
    denied = await client.get("/management", headers=manager_headers)

    assert allowed.status_code == 200
    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert denied.json() == {
        "error": "One of these permissions required: manage_roles, create_user, delete_user"
    }


@pytest.mark.asyncio
async def test_store_failure_is_500_not_a_grant(client, admin_headers):
    broken = AsyncMock()
    broken.execute = AsyncMock(
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
    )
    app.dependency_overrides[get_authz_service] = lambda: AuthorizationService(broken)

    response = await client.get("/users", headers=admin_headers)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_self_deletion_is_refused(client, admin_user, admin_headers):
    response = await client.delete(f"/users/{admin_user.id}", headers=admin_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Cannot delete your own account"}


@pytest.mark.asyncio
async def test_self_deletion_without_permission_reports_permission(
    client, manager_user, manager_headers
):
    response = await client.delete(f"/users/{manager_user.id}", headers=manager_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_delete_user(client, admin_headers, make_user):
    target = await make_user("target", roles=["client"])

    response = await client.delete(f"/users/{target.id}", headers=admin_headers)
    missing = await client.delete(f"/users/{target.id}", headers=admin_headers)

    assert response.status_code == 200
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_route_requirements_table():
    table = route_requirements(app)

    def permission(name):
        return Requirement(RequirementKind.PERMISSION, (name,))

    assert ("DELETE", "/users/{user_id}", permission("delete_user")) in table
    assert ("PUT", "/users/{user_id}", permission("edit_user")) in table
    assert ("PUT", "/roles/{role_id}/permissions", permission("manage_roles")) in table
    assert ("POST", "/migrate-passwords", permission("migrate_passwords")) in table
    assert (
        "GET",
        "/admin-only",
        Requirement(RequirementKind.ROLE, ("super_admin",)),
    ) in table
    assert all(path not in ("/login", "/health", "/") for _, path, _ in table)


def test_every_role_gate_is_admin_only():
    role_gated = [
        path for _, path, requirement in route_requirements(app)
        if requirement.kind is RequirementKind.ROLE
    ]

    assert role_gated == ["/admin-only"]


def test_route_requirements_descends_into_nested_routers():
    inner = APIRouter()

    @inner.get("/reports")
    async def reports(identity=Depends(require_permission("view_users"))):
        return {}

    outer = APIRouter()
    outer.include_router(inner, prefix="/admin")
    sub_app = FastAPI()
    sub_app.include_router(outer)
    host = FastAPI()
    host.mount("/v2", sub_app)

    assert route_requirements(host) == [
        ("GET", "/v2/admin/reports", Requirement(RequirementKind.PERMISSION, ("view_users",)))
    ]
