from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import AssignmentResult
from models.permission import UserRole
from models.role import Role
from repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UserRoleRepository(BaseRepository[UserRole]):
    """Repository for user-to-role assignments"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, UserRole)

    async def get_assignment(self, user_id: int, role_id: int) -> UserRole | None:
        result = await self.db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        return result.scalar_one_or_none()

    async def assign_role(
        self,
        user_id: int,
        role_id: int,
        assigned_by: int | None = None,
        expires_at: datetime | None = None,
    ) -> AssignmentResult:
        """
        Assign a role to a user.

        Assigning a pair that already exists is reported, not raised. An
        expired assignment is renewed in place. The insert runs inside a
        savepoint so a concurrent duplicate caught by the unique constraint
        leaves the outer transaction usable.
        """
        try:
            existing = await self.get_assignment(user_id, role_id)
            if existing:
                if not await self._is_expired(existing.id):
                    return AssignmentResult.ALREADY_ASSIGNED
                existing.assigned_by = assigned_by
                existing.assigned_at = datetime.now(UTC)
                existing.expires_at = expires_at
                await self.db.flush()
                logger.info(f"Renewed expired role {role_id} for user {user_id}")
                return AssignmentResult.ASSIGNED

            user_role = UserRole(
                user_id=user_id,
                role_id=role_id,
                assigned_by=assigned_by,
                expires_at=expires_at,
            )
            async with self.db.begin_nested():
                self.db.add(user_role)
                await self.db.flush()
        except IntegrityError:
            # Lost a race with another writer, or the user/role id is dangling
            if await self.get_assignment(user_id, role_id):
                return AssignmentResult.ALREADY_ASSIGNED
            logger.warning(f"Role {role_id} could not be assigned to user {user_id}")
            return AssignmentResult.FAILED
        except SQLAlchemyError as e:
            logger.error(f"Store error assigning role {role_id} to user {user_id}: {e}")
            return AssignmentResult.FAILED

        logger.info(f"Assigned role {role_id} to user {user_id} (by {assigned_by})")
        return AssignmentResult.ASSIGNED

    async def _is_expired(self, assignment_id: int) -> bool:
        result = await self.db.execute(
            select(UserRole.id).where(
                UserRole.id == assignment_id,
                UserRole.expires_at.is_not(None),
                UserRole.expires_at <= datetime.now(UTC),
            )
        )
        return result.scalar_one_or_none() is not None

    async def remove_role(self, user_id: int, role_id: int) -> bool:
        """Remove a role from a user; False when it was not assigned"""
        result = await self.db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        await self.db.flush()
        return result.rowcount > 0

    async def get_user_roles(self, user_id: int) -> list[Role]:
        """Active roles the user currently holds"""
        result = await self.db.execute(
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                Role.is_active.is_(True),
                or_(
                    UserRole.expires_at.is_(None),
                    UserRole.expires_at > datetime.now(UTC),
                ),
            )
            .order_by(Role.name)
        )
        return list(result.scalars().all())
