"""
Hash every password still stored in plaintext.

Usage:
    python -m scripts.migrate_passwords
"""
import asyncio

from core.database import AsyncSessionLocal
from services.auth_service import AuthService


async def migrate():
    async with AsyncSessionLocal.begin() as db:
        migrated = await AuthService(db).migrate_passwords()

    print(f"✅ Migrated {migrated} password(s)")


if __name__ == "__main__":
    asyncio.run(migrate())
