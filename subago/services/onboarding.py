"""Multi-step sign-up: tenant, company and first manager account in one unit of work."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from subago.domain.tenant import Company, Tenant
from subago.domain.user import User
from subago.schemas.tenant import CompanyCreate
from subago.schemas.user import MultiStepFormCreate
from subago.services.tenant import CompanyService, TenantService
from subago.services.user import UserService

logger = logging.getLogger(__name__)


@dataclass
class CompleteAccount:
    tenant: Tenant
    company: Company
    user: User


class OnboardingService:
    """Nothing is committed here; the caller's session commits or rolls back all three rows."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create_complete_account(self, data: MultiStepFormCreate) -> CompleteAccount:
        tenant = await TenantService(self._session).create_tenant(data.tenant_data)
        company = await CompanyService(self._session).create_company(
            CompanyCreate(tenant_id=tenant.id, **data.company_data.model_dump())
        )
        user = await UserService(self._session).create_user(
            data.user_data, tenant_id=tenant.id, company_id=company.id
        )
        logger.info("Onboarded tenant %s (company %s, user %s)", tenant.id, company.id, user.id)
        return CompleteAccount(tenant=tenant, company=company, user=user)
