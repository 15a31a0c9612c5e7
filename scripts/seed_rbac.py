"""
Seed default RBAC permissions, roles and a super admin account.

Safe to run repeatedly: existing rows are left alone.

Usage:
    python -m scripts.seed_rbac [admin_username] [admin_password]
"""
import asyncio
import sys
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import AsyncSessionLocal
from core.enums import UserType
from models.permission import Permission, RolePermission
from models.role import Role
from repositories.user_repo import UserRepository
from repositories.user_role_repo import UserRoleRepository


class RoleData(TypedDict):
    """Type definition for role configuration"""

    description: str
    permissions: list[str]


# (name, resource, action, description)
SYSTEM_PERMISSIONS = [
    # User management
    ("view_users", "users", "read", "View users"),
    ("create_user", "users", "create", "Create users"),
    ("edit_user", "users", "update", "Edit users and reset passwords"),
    ("delete_user", "users", "delete", "Delete users"),
    # Company management
    ("view_companies", "companies", "read", "View companies"),
    ("create_company", "companies", "create", "Create companies"),
    ("edit_company", "companies", "update", "Edit companies"),
    ("delete_company", "companies", "delete", "Delete companies"),
    # Campaign management
    ("view_campaigns", "campaigns", "read", "View campaigns"),
    ("create_campaign", "campaigns", "create", "Create campaigns"),
    ("edit_campaign", "campaigns", "update", "Edit campaigns"),
    ("delete_campaign", "campaigns", "delete", "Delete campaigns"),
    ("assign_campaign", "campaigns", "assign", "Assign campaigns to contractors"),
    # Role & system management
    ("view_roles", "roles", "read", "View roles and permissions"),
    ("manage_roles", "roles", "manage", "Create roles, edit role permissions, assign roles"),
    ("migrate_passwords", "users", "migrate", "Hash legacy plaintext passwords"),
    ("view_reports", "reports", "read", "View reports"),
]


DEFAULT_ROLES: dict[str, RoleData] = {
    "super_admin": {
        "description": "Complete system control",
        "permissions": [name for name, *_ in SYSTEM_PERMISSIONS],
    },
    "admin_manager": {
        "description": "Administration without destructive or system-level operations",
        "permissions": [
            "view_users", "create_user", "edit_user",
            "view_companies", "create_company", "edit_company",
            "view_campaigns", "create_campaign", "edit_campaign", "delete_campaign", "assign_campaign",
            "view_roles",
            "view_reports",
        ],
    },
    "employee": {
        "description": "Standard business operations",
        "permissions": [
            "view_users", "create_user", "edit_user",
            "view_companies", "edit_company",
            "view_campaigns", "create_campaign", "edit_campaign", "assign_campaign",
            "view_roles",
        ],
    },
    "basic_employee": {
        "description": "Read-only access to most data",
        "permissions": ["view_users", "view_companies", "view_campaigns"],
    },
    "client": {
        "description": "Campaign management for the client's own company",
        "permissions": ["view_campaigns", "create_campaign", "edit_campaign"],
    },
    "contractor": {
        "description": "View assigned work",
        "permissions": ["view_campaigns"],
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, int]:
    """Create default permissions. Returns mapping of name -> permission_id"""
    permission_map = {}

    for name, resource, action, description in SYSTEM_PERMISSIONS:
        result = await db.execute(select(Permission).where(Permission.name == name))
        existing = result.scalar_one_or_none()

        if existing:
            permission_map[name] = existing.id
            continue

        permission = Permission(
            name=name,
            resource=resource,
            action=action,
            description=description,
            is_active=True,
        )
        db.add(permission)
        await db.flush()
        permission_map[name] = permission.id
        print(f"  ✓ Created permission: {name}")

    return permission_map


async def seed_roles(db: AsyncSession, permission_map: dict[str, int]) -> dict[str, int]:
    """Create default roles with their permissions. Returns mapping of name -> role_id"""
    role_map = {}

    for role_name, role_data in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.name == role_name))
        existing = result.scalar_one_or_none()

        if existing:
            role_map[role_name] = existing.id
            print(f"  ℹ Role already exists: {role_name}")
            continue

        role = Role(name=role_name, description=role_data["description"], is_active=True)
        db.add(role)
        await db.flush()
        role_map[role_name] = role.id

        db.add_all(
            RolePermission(
                role_id=role.id, permission_id=permission_map[name], is_active=True
            )
            for name in role_data["permissions"]
        )
        await db.flush()
        print(f"  ✓ Created role: {role_name} ({len(role_data['permissions'])} permissions)")

    return role_map


async def seed_super_admin(
    db: AsyncSession, role_map: dict[str, int], username: str, password: str
) -> None:
    users = UserRepository(db)
    user = await users.get_by_username(username)
    if user:
        print(f"  ℹ User already exists: {username}")
    else:
        user = await users.create_user(
            username=username, password=password, user_type=UserType.EMPLOYEE.value
        )
        print(f"  ✓ Created user: {username}")

    result = await UserRoleRepository(db).assign_role(user.id, role_map["super_admin"])
    print(f"  ✓ super_admin -> {username}: {result.value}")


async def seed(admin_username: str, admin_password: str) -> None:
    async with AsyncSessionLocal.begin() as db:
        print("🔐 Seeding permissions...")
        permission_map = await seed_permissions(db)

        print("👥 Seeding roles...")
        role_map = await seed_roles(db, permission_map)

        print("👤 Seeding super admin...")
        await seed_super_admin(db, role_map, admin_username, admin_password)

    print("✅ RBAC seed complete")


if __name__ == "__main__":
    if len(sys.argv) not in (1, 3):
        print("Usage: python -m scripts.seed_rbac [admin_username] [admin_password]")
        sys.exit(1)

    username, password = sys.argv[1:] if len(sys.argv) == 3 else ("admin", "admin123")
    asyncio.run(seed(username, password))
