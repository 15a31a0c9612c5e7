import asyncio
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import BCRYPT_HASH_LENGTH, BCRYPT_PREFIX, get_password_hash
from core.exceptions import ConflictError, NotFoundError
from models.permission import UserRole
from models.role import Role
from models.user import User
from repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User operations (data access only)"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_by_username(self, username: str) -> Optional[User]:
        """Get user by unique username"""
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_with_company(self, user_id: int) -> Optional[User]:
        """Get user with the company relationship loaded"""
        result = await self.db.execute(
            select(User).options(selectinload(User.company)).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        username: str,
        password: str,
        email: Optional[str] = None,
        user_type: str = "employee",
        company_id: Optional[int] = None,
    ) -> User:
        """Create a new user with hashed password"""
        if await self.get_by_username(username):
            raise ConflictError("Username already exists")

        hashed = await asyncio.to_thread(get_password_hash, password)
        user = User(
            username=username,
            email=email,
            password=hashed,
            user_type=user_type,
            company_id=company_id,
        )
        return await self.create(user)

    async def update_user(
        self,
        user_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
        user_type: Optional[str] = None,
        company_id: Optional[int] = None,
        clear_company: bool = False,
    ) -> User:
        """
        Update profile fields; only the ones given are changed.

        clear_company detaches the user from their company.
        """
        user = await self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        if username is not None and username != user.username:
            if await self.get_by_username(username):
                raise ConflictError("Username already exists")
            user.username = username
        if email is not None:
            user.email = email
        if user_type is not None:
            user.user_type = user_type
        if clear_company:
            user.company_id = None
        elif company_id is not None:
            user.company_id = company_id

        return await self.update(user)

    async def update_password(self, user_id: int, new_password: str) -> User:
        """Update user password"""
        user = await self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        user.password = await asyncio.to_thread(get_password_hash, new_password)
        return await self.update(user)

    async def store_password_hash(self, user: User, hashed_password: str) -> User:
        """Persist an already computed hash (legacy password upgrade)"""
        user.password = hashed_password
        return await self.update(user)

    async def delete_user(self, user_id: int) -> bool:
        """Hard delete; role assignments go with the user"""
        user = await self.get_by_id(user_id)
        if not user:
            return False

        await self.delete(user)
        return True

    async def list_users(self, role: Optional[str] = None) -> list[tuple[User, list[str]]]:
        """
        Users with the names of the roles they currently hold.

        Inactive roles and expired assignments are left out, as in resolution.

        Args:
            role: only users currently holding this role name
        """
        current = (
            Role.is_active.is_(True),
            or_(
                UserRole.expires_at.is_(None),
                UserRole.expires_at > datetime.now(UTC),
            ),
        )
        held = (
            select(UserRole.user_id, Role.name)
            .join(Role, Role.id == UserRole.role_id)
            .where(*current)
        )

        query = select(User).order_by(User.username)
        if role:
            query = query.where(
                User.id.in_(
                    select(UserRole.user_id)
                    .join(Role, Role.id == UserRole.role_id)
                    .where(Role.name == role, *current)
                )
            )
        users = list((await self.db.execute(query)).scalars().all())
        if not users:
            return []

        result = await self.db.execute(
            held.where(UserRole.user_id.in_([user.id for user in users])).order_by(Role.name)
        )
        roles_by_user: dict[int, list[str]] = {user.id: [] for user in users}
        for user_id, role_name in result.all():
            roles_by_user[user_id].append(role_name)

        return [(user, roles_by_user[user.id]) for user in users]

    async def list_plaintext_users(self) -> list[User]:
        """Users whose stored password does not look like a bcrypt hash"""
        result = await self.db.execute(
            select(User).where(
                or_(
                    func.length(User.password) != BCRYPT_HASH_LENGTH,
                    User.password.not_like(f"{BCRYPT_PREFIX}%"),
                )
            )
        )
        return list(result.scalars().all())
