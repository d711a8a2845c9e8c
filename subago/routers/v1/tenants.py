"""Tenant registry router. Creating and blocking tenants is ADMIN-only."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user, require_admin
from subago.core.exceptions import NotFoundError
from subago.core.pagination import PaginationParams
from subago.core.response import DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.schemas.tenant import TenantBlockUpdate, TenantCreate, TenantSchema
from subago.services.tenant import TenantService

router = APIRouter(prefix="/tenants", tags=["Tenants"])


@router.post("", response_model=DataResponse[TenantSchema], status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: TenantCreate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    tenant = await TenantService(session).create_tenant(body)
    return {"data": TenantSchema.model_validate(tenant)}


@router.get("", response_model=ListResponse[TenantSchema])
async def list_tenants(
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    items, total = await TenantService(session).list_tenants(pagination)
    return paginated(
        [TenantSchema.model_validate(t) for t in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/{tenant_id}", response_model=DataResponse[TenantSchema])
async def get_tenant(
    tenant_id: str,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # Members may only read their own tenant
    if user.role != UserRole.ADMIN and user.tenant_id != tenant_id:
        raise NotFoundError("Tenant", tenant_id)
    tenant = await TenantService(session).get_tenant(tenant_id)
    return {"data": TenantSchema.model_validate(tenant)}


@router.patch("/{tenant_id}/block", response_model=DataResponse[TenantSchema])
async def set_tenant_blocked(
    tenant_id: str,
    body: TenantBlockUpdate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    """Block or unblock a tenant. Blocked tenants' members can't sign in or call the API."""
    tenant = await TenantService(session).set_blocked(tenant_id, body.is_blocked)
    return {"data": TenantSchema.model_validate(tenant)}
