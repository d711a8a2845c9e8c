"""Free-form observations a tenant keeps on its inventory."""

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.exceptions import NotFoundError
from subago.core.pagination import PaginationParams
from subago.domain.observation import Observation
from subago.repositories.item import ItemRepository
from subago.repositories.observation import ObservationRepository
from subago.schemas.item import ObservationCreate, ObservationUpdate


class ObservationService:
    def __init__(self, session: AsyncSession, tenant_id: str):
        self._repo = ObservationRepository(session, tenant_id)
        self._items = ItemRepository(session, tenant_id)

    async def list_observations(self, pagination: PaginationParams, item_id: str | None = None):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"item_id": item_id},
        )

    async def get_observation(self, observation_id: str) -> Observation:
        observation = await self._repo.get_by_id(observation_id)
        if not observation:
            raise NotFoundError("Observación", observation_id)
        return observation

    async def create_observation(self, data: ObservationCreate) -> Observation:
        if data.item_id and not await self._items.get_by_id(data.item_id):
            raise NotFoundError("Item", data.item_id)
        return await self._repo.create(**data.model_dump(exclude_none=True))

    async def update_observation(self, observation_id: str, data: ObservationUpdate) -> Observation:
        await self.get_observation(observation_id)
        updated = await self._repo.update(
            observation_id, **data.model_dump(exclude_none=True, exclude_unset=True)
        )
        return updated  # type: ignore[return-value]

    async def delete_observation(self, observation_id: str) -> None:
        deleted = await self._repo.soft_delete(observation_id)
        if not deleted:
            raise NotFoundError("Observación", observation_id)
