"""User router.

Managers create and list accounts inside their own tenant; ADMIN works
across tenants. Every user can edit their own profile via /users/me.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user, require_admin, require_manager
from subago.core.pagination import PaginationParams
from subago.core.response import DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.schemas.tenant import TenantDomain
from subago.schemas.user import (
    ConnectUserRequest,
    UserCreateInTenant,
    UserSafe,
    UserSafeWithCompanyAndTenant,
    UserUpdateProfile,
)
from subago.schemas.validators import Email
from subago.services.user import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def _svc(session: AsyncSession, user: User) -> UserService:
    return UserService(session, None if user.role == UserRole.ADMIN else user.tenant_id)


@router.post("", response_model=DataResponse[UserSafe], status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateInTenant,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_manager),
):
    """Create an account. Managers always create it in their own tenant and company."""
    is_admin = user.role == UserRole.ADMIN
    if is_admin:
        tenant_id, company_id = body.tenant_id, body.company_id
    else:
        tenant_id, company_id = user.tenant_id, user.company_id
    created = await _svc(session, user).create_user(
        body, tenant_id=tenant_id, company_id=company_id, allow_admin=is_admin
    )
    return {"data": UserSafe.model_validate(created)}


@router.get("", response_model=ListResponse[UserSafe])
async def list_users(
    role: Optional[UserRole] = Query(default=None),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_manager),
):
    items, total = await _svc(session, user).list_users(pagination, role=role)
    return paginated(
        [UserSafe.model_validate(u) for u in items],
        total, pagination.page, pagination.limit,
    )


@router.put("/me", response_model=DataResponse[UserSafe])
async def update_me(
    body: UserUpdateProfile,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = await UserService(session).update_profile(user.id, body)
    return {"data": UserSafe.model_validate(updated)}


@router.get("/company-domain", response_model=DataResponse[TenantDomain])
async def get_company_domain(email: Email = Query(...), session: AsyncSession = Depends(get_db)):
    """Public: which company subdomain should this e-mail sign in on."""
    domain = await UserService(session).get_company_domain(email)
    return {"data": TenantDomain(domain=domain)}


@router.post(
    "/connect-user-to-company-and-tenant",
    response_model=DataResponse[UserSafeWithCompanyAndTenant],
)
async def connect_user_to_company_and_tenant(
    body: ConnectUserRequest,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    linked = await UserService(session).connect_user_to_company_and_tenant(
        body.user_id, body.tenant_id, body.company_id
    )
    return {"data": UserSafeWithCompanyAndTenant.model_validate(linked)}


@router.get("/{user_id}", response_model=DataResponse[UserSafe])
async def get_user(
    user_id: str,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_manager),
):
    found = await _svc(session, user).get_user(user_id)
    return {"data": UserSafe.model_validate(found)}
