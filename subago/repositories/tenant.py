"""Tenant and Company repositories."""

from sqlalchemy import func

from subago.domain.tenant import Company, Tenant
from subago.repositories.base import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    model = Tenant

    async def find_by_domain(self, domain: str) -> Tenant | None:
        return await self.find_one(domain=domain)

    async def find_by_name(self, name: str) -> Tenant | None:
        result = await self._fetch(
            self._base_query().where(func.lower(Tenant.name) == name.lower()).limit(1)
        )
        return result.scalars().first()


class CompanyRepository(BaseRepository[Company]):
    model = Company

    async def find_by_normalized_name(self, name_lowercase: str) -> Company | None:
        return await self.find_one(name_lowercase=name_lowercase)
