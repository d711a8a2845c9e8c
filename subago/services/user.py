"""User accounts: creation, tenant/company linking, profile edits and lookups."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from subago.core.pagination import PaginationParams
from subago.core.security import hash_password
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.repositories.tenant import CompanyRepository, TenantRepository
from subago.repositories.user import UserRepository
from subago.schemas.user import UserCreate, UserUpdateProfile

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: AsyncSession, tenant_id: str | None = None):
        self._tenant_id = tenant_id
        self._repo = UserRepository(session)
        self._tenants = TenantRepository(session)
        self._companies = CompanyRepository(session)

    # ------------------------------------------------------------------
    # Create / link
    # ------------------------------------------------------------------

    async def create_user(
        self,
        data: UserCreate,
        tenant_id: str | None = None,
        company_id: str | None = None,
        allow_admin: bool = False,
    ) -> User:
        """Create an account. Tenant and company are optional; a company implies its tenant."""
        role = data.role or UserRole.AUCTION_MANAGER
        if role == UserRole.ADMIN and not allow_admin:
            raise ForbiddenError("No se puede crear un usuario administrador")

        email = data.email.lower()
        if await self._repo.get_by_email(email):
            raise ConflictError("El usuario con este email ya existe")
        if data.rut and await self._repo.get_by_rut(data.rut):
            raise ConflictError("El usuario con este RUT ya existe")

        if tenant_id and not await self._tenants.get_by_id(tenant_id):
            raise BadRequestError("El tenant especificado no existe")

        if company_id:
            company = await self._companies.get_by_id(company_id)
            if not company:
                raise BadRequestError("La empresa especificada no existe")
            if tenant_id and company.tenant_id != tenant_id:
                raise BadRequestError("La empresa no pertenece al tenant especificado")
            tenant_id = company.tenant_id

        user = await self._repo.create(
            name=data.name,
            email=email,
            phone=data.phone,
            rut=data.rut,
            public_name=data.public_name,
            password_hash=hash_password(data.password),
            role=role,
            tenant_id=tenant_id,
            company_id=company_id,
        )
        logger.info("User %s created with role %s", user.id, role.value)
        return user

    async def connect_user_to_company_and_tenant(
        self, user_id: str, tenant_id: str, company_id: str
    ) -> User:
        user = await self.get_user(user_id)
        if not await self._tenants.get_by_id(tenant_id):
            raise BadRequestError("El tenant especificado no existe")
        company = await self._companies.get_by_id(company_id)
        if not company:
            raise BadRequestError("La empresa especificada no existe")
        if company.tenant_id != tenant_id:
            raise BadRequestError("La empresa no pertenece al tenant especificado")

        await self._repo.update(user.id, tenant_id=tenant_id, company_id=company_id)
        return await self._repo.get_with_company_and_tenant(user.id)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User:
        user = await self._repo.get_by_id(user_id)
        if not user or (self._tenant_id and user.tenant_id != self._tenant_id):
            raise NotFoundError("Usuario", user_id)
        return user

    async def get_user_with_company_and_tenant(self, user_id: str) -> User:
        user = await self._repo.get_with_company_and_tenant(user_id)
        if not user:
            raise NotFoundError("Usuario", user_id)
        return user

    async def list_users(self, pagination: PaginationParams, role: UserRole | None = None):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"tenant_id": self._tenant_id, "role": role},
        )

    async def get_company_domain(self, email: str) -> str:
        """Name of the company (its subdomain) the user with `email` belongs to."""
        user = await self._repo.get_by_email_with_company_and_tenant(email)
        if not user:
            raise NotFoundError("Usuario", email)
        if not user.company:
            raise NotFoundError(f"Empresa del usuario {email}")
        if not user.tenant:
            raise NotFoundError(f"Tenant de la empresa del usuario {email}")
        return user.company.name

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update_profile(self, user_id: str, data: UserUpdateProfile) -> User:
        user = await self.get_user(user_id)
        fields = data.model_dump(exclude_unset=True)

        if fields.get("email"):
            fields["email"] = fields["email"].lower()
            other = await self._repo.get_by_email(fields["email"])
            if other is not None and other.id != user.id:
                raise ConflictError("El usuario con este email ya existe")
        elif "email" in fields:
            fields.pop("email")  # email can't be cleared

        if fields.get("rut"):
            other = await self._repo.get_by_rut(fields["rut"])
            if other is not None and other.id != user.id:
                raise ConflictError("El usuario con este RUT ya existe")

        if "name" in fields and not fields["name"]:
            fields.pop("name")

        updated = await self._repo.update(user.id, **fields)
        return updated  # type: ignore[return-value]
