"""Assign a role to an existing user"""
import asyncio
import sys

from core.database import AsyncSessionLocal
from repositories.role_repo import RoleRepository
from repositories.user_repo import UserRepository
from repositories.user_role_repo import UserRoleRepository


async def assign_role(username: str, role_name: str):
    async with AsyncSessionLocal.begin() as db:
        user = await UserRepository(db).get_by_username(username)
        if not user:
            print(f"❌ User '{username}' not found")
            return

        role = await RoleRepository(db).get_by_name(role_name)
        if not role or not role.is_active:
            print(f"❌ Role '{role_name}' not found")
            return

        result = await UserRoleRepository(db).assign_role(user.id, role.id)

    print(f"✅ {role_name} -> {username}: {result.value}")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python -m scripts.assign_role <username> <role>")
        print("Example: python -m scripts.assign_role jdoe employee")
        sys.exit(1)

    username, role_name = sys.argv[1:]
    asyncio.run(assign_role(username, role_name))
