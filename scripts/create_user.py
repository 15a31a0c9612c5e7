"""
Create a user and optionally assign roles.

Usage:
    python -m scripts.create_user <username> <password> <user_type> [role ...]
Environment:
    COMPANY=<name>  attach the user to this company, creating it if needed
Example:
    COMPANY="Acme Outdoor" python -m scripts.create_user jdoe secret123 client client
"""
import asyncio
import os
import sys

from core.database import AsyncSessionLocal
from core.enums import UserType
from core.exceptions import ConflictError
from repositories.company_repo import CompanyRepository
from repositories.role_repo import RoleRepository
from repositories.user_repo import UserRepository
from repositories.user_role_repo import UserRoleRepository


async def create_user(
    username: str,
    password: str,
    user_type: str,
    roles: list[str],
    company_name: str | None = None,
):
    async with AsyncSessionLocal.begin() as db:
        company_id = None
        if company_name:
            company = await CompanyRepository(db).get_or_create(company_name)
            company_id = company.id

        try:
            user = await UserRepository(db).create_user(
                username=username,
                password=password,
                user_type=user_type,
                company_id=company_id,
            )
        except ConflictError as e:
            print(f"❌ {e.message}")
            return

        role_repo = RoleRepository(db)
        user_role_repo = UserRoleRepository(db)
        for role_name in roles:
            role = await role_repo.get_by_name(role_name)
            if not role:
                print(f"  ⚠ Role not found, skipped: {role_name}")
                continue
            result = await user_role_repo.assign_role(user.id, role.id)
            print(f"  ✓ {role_name}: {result.value}")

    print(f"✅ User created: {username} (id {user.id}, {user_type})")


if __name__ == "__main__":
    if len(sys.argv) < 4 or sys.argv[3] not in UserType.values():
        print("Usage: python -m scripts.create_user <username> <password> <user_type> [role ...]")
        print(f"user_type is one of: {', '.join(UserType.values())}")
        sys.exit(1)

    username, password, user_type, *roles = sys.argv[1:]
    asyncio.run(create_user(username, password, user_type, roles, os.environ.get("COMPANY")))
