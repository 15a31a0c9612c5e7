import asyncio
import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import (
    DUMMY_HASH,
    create_access_token,
    get_password_hash,
    is_password_hashed,
    verify_password,
    verify_stored_password,
)
from core.config import get_settings
from core.exceptions import InvalidCredentialsError
from models.user import User
from repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """
    Login and password upkeep.

    Legacy rows may still hold plaintext passwords. They are accepted once,
    re-hashed with bcrypt and written back before the token is issued.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.settings = get_settings()

    def issue_token(self, user: User) -> str:
        """Signed token carrying only the claims the request chain needs"""
        return create_access_token(
            data={
                "sub": str(user.id),
                "username": user.username,
                "company_id": user.company_id,
            },
            expires_delta=timedelta(minutes=self.settings.access_token_expire_minutes),
        )

    async def authenticate(self, username: str, password: str) -> tuple[User, str]:
        """
        Check credentials and issue a token.

        Raises:
            InvalidCredentialsError: unknown username or wrong password
        """
        user = await self.users.get_by_username(username)

        if not user:
            # Same bcrypt cost as a real check so unknown usernames are not cheaper
            await asyncio.to_thread(verify_password, password, DUMMY_HASH)
            raise InvalidCredentialsError()

        matches = await asyncio.to_thread(verify_stored_password, password, user.password)
        if not matches:
            raise InvalidCredentialsError()

        if not is_password_hashed(user.password):
            hashed = await asyncio.to_thread(get_password_hash, password)
            user = await self.users.store_password_hash(user, hashed)
            logger.info(f"Upgraded legacy plaintext password for user {user.username}")

        return user, self.issue_token(user)

    async def migrate_passwords(self) -> int:
        """Hash every password still stored in plaintext; returns how many were migrated"""
        migrated = 0
        for user in await self.users.list_plaintext_users():
            hashed = await asyncio.to_thread(get_password_hash, user.password)
            await self.users.store_password_hash(user, hashed)
            migrated += 1

        logger.info(f"Password migration finished: {migrated} user(s) migrated")
        return migrated
