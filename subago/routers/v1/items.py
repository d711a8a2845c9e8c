"""Item (vehicle) inventory router. Every route is scoped to the caller's tenant."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_tenant_id, require_manager
from subago.core.pagination import PaginationParams
from subago.core.response import CollectionResponse, DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.enums import ItemState
from subago.schemas.item import ItemCreate, ItemEdit, ItemSchema, ItemStats, ItemWithSoldToUser
from subago.services.item import ItemService

router = APIRouter(prefix="/items", tags=["Items"], dependencies=[Depends(require_manager)])


def _svc(session: AsyncSession, tenant_id: str) -> ItemService:
    return ItemService(session, tenant_id)


@router.post("", response_model=DataResponse[ItemSchema], status_code=status.HTTP_201_CREATED)
async def create_item(
    body: ItemCreate,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    item = await _svc(session, tenant_id).create_item(body)
    return {"data": ItemSchema.model_validate(item)}


@router.get("", response_model=ListResponse[ItemSchema])
async def list_items(
    state: Optional[ItemState] = Query(default=None),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    items, total = await _svc(session, tenant_id).list_items(pagination, state)
    return paginated(
        [ItemSchema.model_validate(i) for i in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/available", response_model=ListResponse[ItemSchema])
async def list_available_items(
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Items that can be put into a new auction."""
    items, total = await _svc(session, tenant_id).list_available(pagination)
    return paginated(
        [ItemSchema.model_validate(i) for i in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/stats", response_model=DataResponse[ItemStats])
async def item_stats(
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    return {"data": await _svc(session, tenant_id).get_stats()}


@router.get("/sold-to/{user_id}", response_model=CollectionResponse[ItemWithSoldToUser])
async def items_sold_to(
    user_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    items = await _svc(session, tenant_id).list_sold_to(user_id)
    return {"data": [ItemWithSoldToUser.model_validate(i) for i in items]}


@router.get("/{item_id}", response_model=DataResponse[ItemSchema])
async def get_item(
    item_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    item = await _svc(session, tenant_id).get_item(item_id)
    return {"data": ItemSchema.model_validate(item)}


@router.put("/{item_id}", response_model=DataResponse[ItemSchema])
async def update_item(
    item_id: str,
    body: ItemEdit,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    item = await _svc(session, tenant_id).update_item(item_id, body)
    return {"data": ItemSchema.model_validate(item)}


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    await _svc(session, tenant_id).delete_item(item_id)
