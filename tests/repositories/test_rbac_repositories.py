"""Tests for the role/permission store"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from core.enums import AssignmentResult
from core.exceptions import ConflictError, NotFoundError
from models.permission import RolePermission, UserRole
from models.role import Role
from repositories.company_repo import CompanyRepository
from repositories.permission_repo import PermissionRepository
from repositories.role_repo import RoleRepository
from repositories.user_repo import UserRepository
from repositories.user_role_repo import UserRoleRepository
from services.authz_service import AuthorizationService


async def _role_permission_names(session_factory, role_id: int) -> set[str]:
    async with session_factory() as session:
        permissions = await PermissionRepository(session).get_permissions_for_role(role_id)
        return {permission.name for permission in permissions}


# Assignments


@pytest.mark.asyncio
async def test_assign_role_is_idempotent(test_db, make_user, rbac):
    user = await make_user("worker")
    repo = UserRoleRepository(test_db)
    role_id = rbac["roles"]["employee"].id

    first = await repo.assign_role(user.id, role_id)
    second = await repo.assign_role(user.id, role_id)
    await test_db.commit()

    assert first is AssignmentResult.ASSIGNED
    assert second is AssignmentResult.ALREADY_ASSIGNED
    rows = await test_db.execute(
        select(UserRole).where(UserRole.user_id == user.id, UserRole.role_id == role_id)
    )
    assert len(rows.scalars().all()) == 1


@pytest.mark.asyncio
async def test_assign_role_records_who_and_when(test_db, make_user, admin_user, rbac):
    user = await make_user("worker")
    expires_at = datetime.now(UTC) + timedelta(days=30)

    result = await UserRoleRepository(test_db).assign_role(
        user.id, rbac["roles"]["client"].id, assigned_by=admin_user.id, expires_at=expires_at
    )
    await test_db.commit()

    assert result is AssignmentResult.ASSIGNED
    assignment = await UserRoleRepository(test_db).get_assignment(
        user.id, rbac["roles"]["client"].id
    )
    assert assignment.assigned_by == admin_user.id
    assert assignment.expires_at is not None


@pytest.mark.asyncio
async def test_assign_role_renews_expired_assignment(test_db, make_user, admin_user, rbac):
    user = await make_user("returning")
    role_id = rbac["roles"]["employee"].id
    test_db.add(
        UserRole(
            user_id=user.id,
            role_id=role_id,
            expires_at=datetime.now(UTC) - timedelta(days=1),
        )
    )
    await test_db.commit()
    repo = UserRoleRepository(test_db)
    assert await repo.get_user_roles(user.id) == []

    result = await repo.assign_role(user.id, role_id, assigned_by=admin_user.id)
    await test_db.commit()

    assert result is AssignmentResult.ASSIGNED
    assert [role.name for role in await repo.get_user_roles(user.id)] == ["employee"]
    rows = await test_db.execute(
        select(UserRole).where(UserRole.user_id == user.id, UserRole.role_id == role_id)
    )
    (assignment,) = rows.scalars().all()
    assert assignment.assigned_by == admin_user.id
    assert assignment.expires_at is None


@pytest.mark.asyncio
async def test_assign_role_keeps_unexpired_assignment(test_db, make_user, rbac):
    user = await make_user("temp")
    role_id = rbac["roles"]["client"].id
    repo = UserRoleRepository(test_db)
    await repo.assign_role(user.id, role_id, expires_at=datetime.now(UTC) + timedelta(days=1))
    await test_db.commit()

    assert await repo.assign_role(user.id, role_id) is AssignmentResult.ALREADY_ASSIGNED


@pytest.mark.asyncio
async def test_remove_role(test_db, make_user, rbac):
    user = await make_user("worker", roles=["employee"])
    repo = UserRoleRepository(test_db)

    assert await repo.remove_role(user.id, rbac["roles"]["employee"].id) is True
    assert await repo.remove_role(user.id, rbac["roles"]["employee"].id) is False
    assert await repo.get_user_roles(user.id) == []


# Bulk replacement


@pytest.mark.asyncio
async def test_replace_role_permissions(test_db, rbac, session_factory):
    employee = rbac["roles"]["employee"]
    wanted = [rbac["permissions"]["view_roles"].id, rbac["permissions"]["edit_campaign"].id]

    result = await PermissionRepository(test_db).replace_role_permissions(employee.id, wanted)
    await test_db.commit()

    assert [p.name for p in result] == ["edit_campaign", "view_roles"]
    assert await _role_permission_names(session_factory, employee.id) == {
        "view_roles",
        "edit_campaign",
    }


@pytest.mark.asyncio
async def test_replace_with_empty_set_revokes_everything(test_db, rbac, session_factory):
    employee = rbac["roles"]["employee"]

    await PermissionRepository(test_db).replace_role_permissions(employee.id, [])
    await test_db.commit()

    assert await _role_permission_names(session_factory, employee.id) == set()


@pytest.mark.asyncio
async def test_replace_with_unknown_id_changes_nothing(test_db, rbac, session_factory):
    employee_id = rbac["roles"]["employee"].id
    before = await _role_permission_names(session_factory, employee_id)

    with pytest.raises(NotFoundError):
        await PermissionRepository(test_db).replace_role_permissions(
            employee_id, [rbac["permissions"]["view_roles"].id, 9999]
        )
    await test_db.rollback()

    assert await _role_permission_names(session_factory, employee_id) == before


@pytest.mark.asyncio
async def test_replace_for_unknown_role(test_db, rbac):
    with pytest.raises(NotFoundError):
        await PermissionRepository(test_db).replace_role_permissions(9999, [])


@pytest.mark.asyncio
async def test_replace_is_atomic_when_insert_fails(session_factory, rbac, monkeypatch):
    """A failure between delete and insert leaves the previous set in place"""
    employee_id = rbac["roles"]["employee"].id
    before = await _role_permission_names(session_factory, employee_id)
    assert before

    async def failing_insert(self, role_id, permission_ids):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(PermissionRepository, "_insert_role_permissions", failing_insert)

    with pytest.raises(RuntimeError):
        async with session_factory() as session:
            async with session.begin():
                await PermissionRepository(session).replace_role_permissions(
                    employee_id, [rbac["permissions"]["view_roles"].id]
                )

    assert await _role_permission_names(session_factory, employee_id) == before


@pytest.mark.asyncio
async def test_replace_takes_effect_for_holders(test_db, make_user, rbac, session_factory):
    user = await make_user("worker", roles=["employee"])

    await PermissionRepository(test_db).replace_role_permissions(
        rbac["roles"]["employee"].id, [rbac["permissions"]["delete_user"].id]
    )
    await test_db.commit()

    async with session_factory() as session:
        assert await AuthorizationService(session).get_permissions_for_user(user.id) == {
            "delete_user"
        }


# Roles and permissions


@pytest.mark.asyncio
async def test_create_role_conflict(test_db, rbac):
    with pytest.raises(ConflictError):
        await RoleRepository(test_db).create_role("employee")


@pytest.mark.asyncio
async def test_create_permission_conflict(test_db, rbac):
    with pytest.raises(ConflictError):
        await PermissionRepository(test_db).create_permission("edit_user")


@pytest.mark.asyncio
async def test_delete_role_in_use(test_db, make_user, rbac):
    await make_user("worker", roles=["contractor"])

    with pytest.raises(ConflictError):
        await RoleRepository(test_db).delete_role(rbac["roles"]["contractor"].id)


@pytest.mark.asyncio
async def test_delete_role_ignores_expired_assignments(test_db, make_user, rbac):
    user = await make_user("former")
    test_db.add(
        UserRole(
            user_id=user.id,
            role_id=rbac["roles"]["contractor"].id,
            expires_at=datetime.now(UTC) - timedelta(days=1),
        )
    )
    await test_db.commit()

    role = await RoleRepository(test_db).delete_role(rbac["roles"]["contractor"].id)

    assert role.is_active is False


@pytest.mark.asyncio
async def test_delete_role_is_soft(test_db, rbac):
    repo = RoleRepository(test_db)

    await repo.delete_role(rbac["roles"]["client"].id)
    await test_db.commit()

    stored = await test_db.get(Role, rbac["roles"]["client"].id)
    assert stored is not None
    assert stored.is_active is False
    assert "client" not in [role.name for role in await repo.list_active_roles()]


@pytest.mark.asyncio
async def test_deactivate_role_in_use(test_db, make_user, rbac):
    await make_user("worker", roles=["contractor"])
    role_id = rbac["roles"]["contractor"].id

    with pytest.raises(ConflictError):
        await RoleRepository(test_db).update_role(role_id, is_active=False)

    stored = await test_db.get(Role, role_id)
    assert stored.is_active is True


@pytest.mark.asyncio
async def test_deactivate_unused_role(test_db, rbac):
    role = await RoleRepository(test_db).update_role(
        rbac["roles"]["client"].id, description="Retired", is_active=False
    )

    assert role.is_active is False
    assert role.description == "Retired"


@pytest.mark.asyncio
async def test_delete_unknown_role(test_db, rbac):
    with pytest.raises(NotFoundError):
        await RoleRepository(test_db).delete_role(9999)


@pytest.mark.asyncio
async def test_roles_with_permissions_skip_inactive_links(test_db, rbac):
    result = await test_db.execute(
        select(RolePermission).where(
            RolePermission.role_id == rbac["roles"]["client"].id,
            RolePermission.permission_id == rbac["permissions"]["edit_campaign"].id,
        )
    )
    result.scalar_one().is_active = False
    await test_db.commit()

    roles = dict(
        (role.name, names)
        for role, names in await RoleRepository(test_db).list_roles_with_permissions()
    )
    assert roles["client"] == ["view_campaigns"]


# Users


@pytest.mark.asyncio
async def test_create_user_hashes_and_rejects_duplicates(test_db, rbac):
    repo = UserRepository(test_db)

    user = await repo.create_user(username="new", password="pw", user_type="client")

    assert user.password != "pw"
    assert len(user.password) == 60
    with pytest.raises(ConflictError):
        await repo.create_user(username="new", password="other")


@pytest.mark.asyncio
async def test_list_users_with_role_filter(test_db, make_user):
    await make_user("alice", roles=["employee"])
    await make_user("bob", roles=["client"])
    await make_user("carol", roles=["client", "contractor"])

    everyone = await UserRepository(test_db).list_users()
    clients = await UserRepository(test_db).list_users(role="client")

    assert [user.username for user, _ in everyone] == ["alice", "bob", "carol"]
    assert [(user.username, roles) for user, roles in clients] == [
        ("bob", ["client"]),
        ("carol", ["client", "contractor"]),
    ]


@pytest.mark.asyncio
async def test_list_users_ignores_expired_and_inactive_roles(test_db, make_user, rbac):
    await make_user("alice", roles=["client"])
    bob = await make_user("bob", roles=["employee"])
    await make_user("carol", roles=["contractor"])
    test_db.add(
        UserRole(
            user_id=bob.id,
            role_id=rbac["roles"]["client"].id,
            expires_at=datetime.now(UTC) - timedelta(days=1),
        )
    )
    contractor = await test_db.get(Role, rbac["roles"]["contractor"].id)
    contractor.is_active = False
    await test_db.commit()
    repo = UserRepository(test_db)

    everyone = await repo.list_users()
    clients = await repo.list_users(role="client")

    assert [(user.username, roles) for user, roles in everyone] == [
        ("alice", ["client"]),
        ("bob", ["employee"]),
        ("carol", []),
    ]
    assert [user.username for user, _ in clients] == ["alice"]
    assert await repo.list_users(role="contractor") == []


@pytest.mark.asyncio
async def test_list_plaintext_users(test_db, make_user):
    await make_user("legacy", password="plain", hashed=False)
    await make_user("modern", password="hashed")

    users = await UserRepository(test_db).list_plaintext_users()

    assert [user.username for user in users] == ["legacy"]


@pytest.mark.asyncio
async def test_delete_user_removes_assignments(test_db, make_user, session_factory):
    user = await make_user("leaving", roles=["employee"])

    assert await UserRepository(test_db).delete_user(user.id) is True
    await test_db.commit()

    async with session_factory() as session:
        rows = await session.execute(select(UserRole).where(UserRole.user_id == user.id))
        assert rows.scalars().all() == []
    assert await UserRepository(test_db).delete_user(user.id) is False


# Companies


@pytest.mark.asyncio
async def test_company_get_or_create(test_db, test_company):
    repo = CompanyRepository(test_db)

    existing = await repo.get_or_create("Acme Outdoor")
    created = await repo.get_or_create("Billboard Co")

    assert existing.id == test_company.id
    assert [company.name for company in await repo.list_companies()] == [
        "Acme Outdoor",
        "Billboard Co",
    ]
    assert created.id != test_company.id
