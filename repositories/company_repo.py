from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.company import Company
from repositories.base import BaseRepository


class CompanyRepository(BaseRepository[Company]):
    """Repository for Company (tenant) lookups"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Company)

    async def get_by_name(self, name: str) -> Company | None:
        result = await self.db.execute(select(Company).where(Company.name == name))
        return result.scalar_one_or_none()

    async def list_companies(self) -> list[Company]:
        result = await self.db.execute(select(Company).order_by(Company.name))
        return list(result.scalars().all())

    async def get_or_create(self, name: str) -> Company:
        """Used by the seed script; companies are otherwise managed elsewhere"""
        company = await self.get_by_name(name)
        if company:
            return company
        return await self.create(Company(name=name))
