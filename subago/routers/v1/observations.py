"""Observation router: notes managers keep on their tenant's inventory."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_tenant_id, require_manager
from subago.core.pagination import PaginationParams
from subago.core.response import DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.schemas.item import ObservationCreate, ObservationOut, ObservationUpdate
from subago.services.observation import ObservationService

router = APIRouter(prefix="/observations", tags=["Observations"], dependencies=[Depends(require_manager)])


def _svc(session: AsyncSession, tenant_id: str) -> ObservationService:
    return ObservationService(session, tenant_id)


@router.post("", response_model=DataResponse[ObservationOut], status_code=status.HTTP_201_CREATED)
async def create_observation(
    body: ObservationCreate,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    observation = await _svc(session, tenant_id).create_observation(body)
    return {"data": ObservationOut.model_validate(observation)}


@router.get("", response_model=ListResponse[ObservationOut])
async def list_observations(
    item_id: Optional[str] = Query(default=None, alias="itemId"),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    observations, total = await _svc(session, tenant_id).list_observations(pagination, item_id)
    return paginated(
        [ObservationOut.model_validate(o) for o in observations],
        total, pagination.page, pagination.limit,
    )


@router.get("/{observation_id}", response_model=DataResponse[ObservationOut])
async def get_observation(
    observation_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    observation = await _svc(session, tenant_id).get_observation(observation_id)
    return {"data": ObservationOut.model_validate(observation)}


@router.put("/{observation_id}", response_model=DataResponse[ObservationOut])
async def update_observation(
    observation_id: str,
    body: ObservationUpdate,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    observation = await _svc(session, tenant_id).update_observation(observation_id, body)
    return {"data": ObservationOut.model_validate(observation)}


@router.delete("/{observation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_observation(
    observation_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    await _svc(session, tenant_id).delete_observation(observation_id)
