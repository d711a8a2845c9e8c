"""Item (vehicle) inventory for a tenant."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.exceptions import BadRequestError, ConflictError, NotFoundError
from subago.core.pagination import PaginationParams
from subago.domain.enums import ItemState
from subago.domain.item import Item
from subago.domain.transitions import assert_transition
from subago.repositories.item import ItemRepository
from subago.schemas.item import ItemCreate, ItemEdit, ItemStats

logger = logging.getLogger(__name__)

_DUPLICATE_PLATE = "Ya existe un item con esta patente en el tenant"


class ItemService:
    def __init__(self, session: AsyncSession, tenant_id: str):
        self._repo = ItemRepository(session, tenant_id)

    async def list_items(self, pagination: PaginationParams, state: ItemState | None = None):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"state": state},
        )

    async def list_available(self, pagination: PaginationParams):
        return await self.list_items(pagination, ItemState.DISPONIBLE)

    async def get_item(self, item_id: str) -> Item:
        item = await self._repo.get_by_id(item_id)
        if not item:
            raise NotFoundError("Item", item_id)
        return item

    async def list_sold_to(self, user_id: str) -> list[Item]:
        return await self._repo.list_sold_to(user_id)

    async def get_stats(self) -> ItemStats:
        counts = await self._repo.count_by_state()
        return ItemStats(
            total=sum(counts.values()),
            disponible=counts.get(ItemState.DISPONIBLE, 0),
            en_subasta=counts.get(ItemState.EN_SUBASTA, 0),
            vendido=counts.get(ItemState.VENDIDO, 0),
            eliminado=counts.get(ItemState.ELIMINADO, 0),
        )

    async def create_item(self, data: ItemCreate) -> Item:
        if await self._repo.get_by_plate(data.plate):
            raise ConflictError(_DUPLICATE_PLATE)
        item = await self._repo.create(state=ItemState.DISPONIBLE, **data.model_dump(exclude_none=True))
        logger.info("Item %s (%s) created", item.id, item.plate)
        return item

    async def update_item(self, item_id: str, data: ItemEdit) -> Item:
        item = await self.get_item(item_id)
        if item.state in (ItemState.VENDIDO, ItemState.ELIMINADO):
            raise BadRequestError("No se puede editar un item vendido o eliminado")

        fields = data.model_dump(exclude_none=True, exclude_unset=True)
        if "plate" in fields and fields["plate"] != item.plate:
            clash = await self._repo.get_by_plate(fields["plate"])
            if clash is not None and clash.id != item.id:
                raise ConflictError(_DUPLICATE_PLATE)
        if "base_price" in fields and item.state == ItemState.EN_SUBASTA:
            raise BadRequestError("No se puede cambiar el precio base de un item en subasta")

        updated = await self._repo.update(item_id, **fields)
        return updated  # type: ignore[return-value]

    async def delete_item(self, item_id: str) -> None:
        item = await self.get_item(item_id)
        if await self._repo.is_in_active_auction(item.id):
            raise BadRequestError("No se puede eliminar un item que está en una subasta activa")
        assert_transition(item.state, ItemState.ELIMINADO, "Item")
        await self._repo.update(item.id, state=ItemState.ELIMINADO)
        await self._repo.soft_delete(item.id)
