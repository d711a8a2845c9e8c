"""Item repository."""

from sqlalchemy import exists, func, select
from sqlalchemy.orm import selectinload

from subago.domain.auction import Auction, AuctionItem
from subago.domain.enums import AuctionState, ItemState
from subago.domain.item import Item
from subago.repositories.base import BaseRepository


class ItemRepository(BaseRepository[Item]):
    model = Item

    async def get_by_plate(self, plate: str) -> Item | None:
        return await self.find_one(plate=plate.upper())

    async def get_many(self, item_ids: list[str]) -> list[Item]:
        if not item_ids:
            return []
        result = await self._fetch(self._base_query().where(Item.id.in_(item_ids)))
        return list(result.scalars().all())

    async def list_sold_to(self, user_id: str) -> list[Item]:
        result = await self._fetch(
            self._base_query()
            .where(Item.sold_to_user_id == user_id)
            .order_by(Item.sold_at.desc()),
            selectinload(Item.sold_to_user),
        )
        return list(result.scalars().all())

    async def count_by_state(self) -> dict[ItemState, int]:
        q = self._base_query().subquery()
        rows = await self._fetch(
            select(q.c.state, func.count()).group_by(q.c.state)
        )
        return {ItemState(state): n for state, n in rows.all()}

    async def is_in_active_auction(self, item_id: str) -> bool:
        q = select(
            exists()
            .where(AuctionItem.item_id == item_id)
            .where(AuctionItem.deleted_at.is_(None))
            .where(AuctionItem.auction_id == Auction.id)
            .where(Auction.state == AuctionState.ACTIVE)
            .where(Auction.deleted_at.is_(None))
        )
        return bool((await self._fetch(q)).scalar())
