"""RPC surface used by the sign-up and sign-in screens.

Pattern:
  1. POST /api/rpc/{procedure} with the procedure's JSON input as the body
  2. Always HTTP 200; the outcome lives in the `{success, data | error, statusCode}` envelope
  3. Any failure rolls the request's unit of work back, so multi-step procedures are atomic
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import load_user_from_token
from subago.core.exceptions import AppException, ForbiddenError, UnauthorizedError
from subago.db.base import get_db
from subago.domain.enums import UserRole
from subago.schemas.common import RpcEnvelope
from subago.schemas.tenant import CompanyCreate, CompanySchema, TenantCreate, TenantDomain, TenantSchema
from subago.schemas.user import (
    CompanyDomainRequest,
    ConnectUserRequest,
    MultiStepFormCreate,
    MultiStepFormResult,
    UserCreate,
    UserSafe,
    UserSafeWithCompanyAndTenant,
)
from subago.services.onboarding import OnboardingService
from subago.services.tenant import CompanyService, TenantService
from subago.services.user import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rpc", tags=["RPC"])


# ---------------------------------------------------------------------------
# Procedures
# ---------------------------------------------------------------------------

async def _create_company(session: AsyncSession, data: CompanyCreate) -> BaseModel:
    return CompanySchema.model_validate(await CompanyService(session).create_company(data))


async def _create_tenant(session: AsyncSession, data: TenantCreate) -> BaseModel:
    return TenantSchema.model_validate(await TenantService(session).create_tenant(data))


async def _create_user(session: AsyncSession, data: UserCreate) -> BaseModel:
    return UserSafe.model_validate(await UserService(session).create_user(data))


async def _connect_user(session: AsyncSession, data: ConnectUserRequest) -> BaseModel:
    user = await UserService(session).connect_user_to_company_and_tenant(
        data.user_id, data.tenant_id, data.company_id
    )
    return UserSafeWithCompanyAndTenant.model_validate(user)


async def _company_domain(session: AsyncSession, data: CompanyDomainRequest) -> BaseModel:
    return TenantDomain(domain=await UserService(session).get_company_domain(data.email))


async def _create_complete_account(session: AsyncSession, data: MultiStepFormCreate) -> BaseModel:
    account = await OnboardingService(session).create_complete_account(data)
    return MultiStepFormResult(
        user=UserSafe.model_validate(account.user),
        company=CompanySchema.model_validate(account.company),
        tenant=TenantSchema.model_validate(account.tenant),
    )


@dataclass(frozen=True)
class Procedure:
    input_model: type[BaseModel]
    handler: Callable[[AsyncSession, Any], Awaitable[BaseModel]]
    success_code: int = 200
    admin_only: bool = False


PROCEDURES: dict[str, Procedure] = {
    "company.create": Procedure(CompanyCreate, _create_company, 201),
    "tenant.create": Procedure(TenantCreate, _create_tenant, 201),
    "user.create": Procedure(UserCreate, _create_user, 201),
    "user.connectToCompanyAndTenant": Procedure(ConnectUserRequest, _connect_user, admin_only=True),
    "user.getCompanyDomain": Procedure(CompanyDomainRequest, _company_domain),
    "multiStepForm.createComplete": Procedure(MultiStepFormCreate, _create_complete_account, 201),
}


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------

def _ok(data: BaseModel, status_code: int) -> dict:
    envelope = RpcEnvelope(success=True, data=data.model_dump(mode="json", by_alias=True), status_code=status_code)
    return envelope.model_dump(by_alias=True, exclude_none=True)


def _fail(message: str, status_code: int) -> dict:
    envelope = RpcEnvelope(success=False, error=message, status_code=status_code)
    return envelope.model_dump(by_alias=True, exclude_none=True)


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Datos inválidos"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


async def _require_admin(session: AsyncSession, request: Request) -> None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError()
    user = await load_user_from_token(session, token)
    if user.role != UserRole.ADMIN:
        raise ForbiddenError("No tienes permisos para realizar esta acción")


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

@router.post("/{procedure}")
async def call_procedure(
    procedure: str,
    request: Request,
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_db),
) -> dict:
    spec = PROCEDURES.get(procedure)
    if spec is None:
        return _fail(f"Procedimiento '{procedure}' no existe", 404)

    try:
        if spec.admin_only:
            await _require_admin(session, request)
        data = spec.input_model.model_validate(payload if payload is not None else {})
        result = await spec.handler(session, data)
        await session.flush()
    except PydanticValidationError as exc:
        await session.rollback()
        return _fail(_first_error(exc), 422)
    except AppException as exc:
        await session.rollback()
        logger.info("RPC %s failed: %s", procedure, exc.message)
        return _fail(exc.message, exc.status_code)
    except Exception:
        await session.rollback()
        logger.exception("RPC %s crashed", procedure)
        return _fail("Ocurrió un error inesperado", 500)

    return _ok(result, spec.success_code)
