"""Company router."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user, require_admin, require_manager
from subago.core.exceptions import ForbiddenError
from subago.core.pagination import PaginationParams
from subago.core.response import DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.schemas.tenant import CompanyCreate, CompanySchema, CompanyUpdate
from subago.services.tenant import CompanyService

router = APIRouter(prefix="/companies", tags=["Companies"])


def _svc(session: AsyncSession, user: User) -> CompanyService:
    # ADMIN works across tenants
    return CompanyService(session, None if user.role == UserRole.ADMIN else user.tenant_id)


@router.post("", response_model=DataResponse[CompanySchema], status_code=status.HTTP_201_CREATED)
async def create_company(
    body: CompanyCreate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    company = await CompanyService(session).create_company(body)
    return {"data": CompanySchema.model_validate(company)}


@router.get("", response_model=ListResponse[CompanySchema])
async def list_companies(
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    items, total = await _svc(session, user).list_companies(pagination)
    return paginated(
        [CompanySchema.model_validate(c) for c in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/by-name/{name}", response_model=DataResponse[CompanySchema])
async def get_company_by_name(name: str, session: AsyncSession = Depends(get_db)):
    """Public: resolves a subdomain to its company branding."""
    company = await CompanyService(session).get_by_name(name)
    return {"data": CompanySchema.model_validate(company)}


@router.get("/{company_id}", response_model=DataResponse[CompanySchema])
async def get_company(
    company_id: str,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    company = await _svc(session, user).get_company(company_id)
    return {"data": CompanySchema.model_validate(company)}


@router.put("/{company_id}", response_model=DataResponse[CompanySchema])
async def update_company(
    company_id: str,
    body: CompanyUpdate,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_manager),
):
    if user.role != UserRole.ADMIN and user.company_id != company_id:
        raise ForbiddenError("Solo puedes editar tu propia empresa")
    company = await _svc(session, user).update_company(company_id, body)
    return {"data": CompanySchema.model_validate(company)}
