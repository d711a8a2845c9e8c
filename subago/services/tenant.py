"""Tenant and company registry."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.config import settings
from subago.core.exceptions import BadRequestError, ConflictError, NotFoundError
from subago.core.pagination import PaginationParams
from subago.domain.tenant import Company, Tenant
from subago.repositories.tenant import CompanyRepository, TenantRepository
from subago.schemas.tenant import CompanyCreate, CompanyUpdate, TenantCreate
from subago.schemas.validators import normalize_company_name

logger = logging.getLogger(__name__)


def build_tenant_domain(subdomain: str) -> str:
    """Public URL a tenant is served from."""
    if settings.is_development:
        return f"http://{subdomain}.localhost:3000"
    return f"https://www.{subdomain}.{settings.root_domain}"


class TenantService:
    """Tenants are the root of isolation, so this service is never tenant-scoped."""

    def __init__(self, session: AsyncSession):
        self._repo = TenantRepository(session)

    async def create_tenant(self, data: TenantCreate) -> Tenant:
        domain = build_tenant_domain(data.subdomain)
        if await self._repo.find_by_domain(domain):
            raise ConflictError("Ya existe un tenant con este dominio")
        if await self._repo.find_by_name(data.name):
            raise ConflictError("Ya existe un tenant con este nombre")

        tenant = await self._repo.create(name=data.name, domain=domain)
        logger.info("Tenant %s created at %s", tenant.id, domain)
        return tenant

    async def list_tenants(self, pagination: PaginationParams):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
        )

    async def get_tenant(self, tenant_id: str) -> Tenant:
        tenant = await self._repo.get_by_id(tenant_id)
        if not tenant:
            raise NotFoundError("Tenant", tenant_id)
        return tenant

    async def get_by_domain(self, domain: str) -> Tenant:
        tenant = await self._repo.find_by_domain(domain)
        if not tenant:
            raise NotFoundError("Tenant", domain)
        return tenant

    async def set_blocked(self, tenant_id: str, is_blocked: bool) -> Tenant:
        await self.get_tenant(tenant_id)
        tenant = await self._repo.update(tenant_id, is_blocked=is_blocked)
        logger.info("Tenant %s %s", tenant_id, "blocked" if is_blocked else "unblocked")
        return tenant  # type: ignore[return-value]


class CompanyService:
    def __init__(self, session: AsyncSession, tenant_id: str | None = None):
        self._session = session
        self._repo = CompanyRepository(session, tenant_id)
        self._tenants = TenantRepository(session)

    async def create_company(self, data: CompanyCreate) -> Company:
        if not await self._tenants.get_by_id(data.tenant_id):
            raise BadRequestError("El tenant especificado no existe")

        name_lowercase = normalize_company_name(data.name)
        if not name_lowercase:
            raise BadRequestError("El nombre de la empresa debe contener letras o números")
        scoped = CompanyRepository(self._session, data.tenant_id)
        if await scoped.find_by_normalized_name(name_lowercase):
            raise ConflictError("Ya existe una empresa con este nombre en el tenant")

        return await scoped.create(name_lowercase=name_lowercase, **data.model_dump(exclude_none=True))

    async def list_companies(self, pagination: PaginationParams):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
        )

    async def get_company(self, company_id: str) -> Company:
        company = await self._repo.get_by_id(company_id)
        if not company:
            raise NotFoundError("Empresa", company_id)
        return company

    async def get_by_name(self, name: str) -> Company:
        """Case/space-insensitive lookup used to resolve a subdomain to its company."""
        company = await self._repo.find_by_normalized_name(normalize_company_name(name))
        if not company:
            raise NotFoundError("Empresa", name)
        return company

    async def update_company(self, company_id: str, data: CompanyUpdate) -> Company:
        company = await self.get_company(company_id)
        fields = data.model_dump(exclude_none=True, exclude_unset=True)
        if "name" in fields:
            name_lowercase = normalize_company_name(fields["name"])
            clash = await CompanyRepository(self._session, company.tenant_id).find_by_normalized_name(
                name_lowercase
            )
            if clash is not None and clash.id != company.id:
                raise ConflictError("Ya existe una empresa con este nombre en el tenant")
            fields["name_lowercase"] = name_lowercase
        updated = await self._repo.update(company_id, **fields)
        return updated  # type: ignore[return-value]
