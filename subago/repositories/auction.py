"""Auction, auction-item, registration and bid repositories."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import selectinload

from subago.domain.auction import Auction, AuctionItem, AuctionRegistration, Bid
from subago.domain.enums import AuctionState
from subago.repositories.base import BaseRepository
from subago.utils.time import as_utc, utc_now


class AuctionRepository(BaseRepository[Auction]):
    model = Auction

    async def get_with_items(self, auction_id: str) -> Auction | None:
        return await self.get_by_id(
            auction_id, selectinload(Auction.items).selectinload(AuctionItem.item)
        )

    async def count_by_state(self) -> dict[AuctionState, int]:
        q = self._base_query().subquery()
        rows = await self._fetch(select(q.c.state, func.count()).group_by(q.c.state))
        return {AuctionState(state): n for state, n in rows.all()}

    async def list_due_to_start(self, now: datetime) -> list[Auction]:
        result = await self._fetch(
            self._base_query()
            .where(Auction.state == AuctionState.INACTIVE)
            .where(Auction.start_time <= now)
        )
        return list(result.scalars().all())

    async def list_by_state(self, state: AuctionState) -> list[Auction]:
        result = await self._fetch(self._base_query().where(Auction.state == state))
        return list(result.scalars().all())

    async def next_boundary_after(self, now: datetime) -> datetime | None:
        """Earliest upcoming start (inactive) or end (active) strictly after `now`."""
        starts = await self._fetch(
            select(func.min(Auction.start_time))
            .where(Auction.deleted_at.is_(None))
            .where(Auction.state == AuctionState.INACTIVE)
            .where(Auction.start_time > now)
        )
        candidates = [as_utc(starts.scalar())]

        for auction in await self.list_by_state(AuctionState.ACTIVE):
            latest = await AuctionItemRepository(self._session).latest_end(auction.id)
            candidates.append(max(filter(None, [as_utc(auction.end_time), latest])))

        upcoming = [c for c in candidates if c is not None and c > now]
        return min(upcoming) if upcoming else None


class AuctionItemRepository(BaseRepository[AuctionItem]):
    model = AuctionItem

    async def get_with_relations(self, auction_item_id: str) -> AuctionItem | None:
        return await self.get_by_id(
            auction_item_id, selectinload(AuctionItem.auction), selectinload(AuctionItem.item)
        )

    async def list_by_auction(self, auction_id: str, with_item: bool = False) -> list[AuctionItem]:
        q = self._base_query().where(AuctionItem.auction_id == auction_id).order_by(AuctionItem.created_at)
        options = (selectinload(AuctionItem.item),) if with_item else ()
        result = await self._fetch(q, *options)
        return list(result.scalars().all())

    async def latest_end(self, auction_id: str) -> datetime | None:
        result = await self._fetch(
            select(func.max(AuctionItem.end_time))
            .where(AuctionItem.auction_id == auction_id)
            .where(AuctionItem.deleted_at.is_(None))
        )
        return as_utc(result.scalar())


class RegistrationRepository(BaseRepository[AuctionRegistration]):
    model = AuctionRegistration

    async def get(self, user_id: str, auction_id: str) -> AuctionRegistration | None:
        return await self.find_one(user_id=user_id, auction_id=auction_id)

    async def add(self, user_id: str, auction_id: str) -> AuctionRegistration:
        now = utc_now()
        return await self.create(user_id=user_id, auction_id=auction_id, created_at=now, updated_at=now)

    async def remove(self, user_id: str, auction_id: str) -> bool:
        result = await self._session.execute(
            delete(AuctionRegistration)
            .where(AuctionRegistration.user_id == user_id)
            .where(AuctionRegistration.auction_id == auction_id)
        )
        await self._session.flush()
        return result.rowcount > 0

    async def list_by_auction(self, auction_id: str) -> list[AuctionRegistration]:
        result = await self._fetch(
            self._base_query()
            .where(AuctionRegistration.auction_id == auction_id)
            .order_by(AuctionRegistration.created_at),
            selectinload(AuctionRegistration.user),
        )
        return list(result.scalars().all())

    async def list_by_user(self, user_id: str) -> list[AuctionRegistration]:
        result = await self._fetch(
            self._base_query()
            .where(AuctionRegistration.user_id == user_id)
            .order_by(AuctionRegistration.created_at.desc())
        )
        return list(result.scalars().all())


class BidRepository(BaseRepository[Bid]):
    model = Bid

    async def get_by_request_id(self, request_id: str) -> Bid | None:
        result = await self._fetch(
            select(Bid).where(Bid.request_id == request_id), selectinload(Bid.user)
        )
        return result.scalars().first()

    async def highest_for_item(self, auction_item_id: str) -> Bid | None:
        result = await self._fetch(
            self._base_query()
            .where(Bid.auction_item_id == auction_item_id)
            .order_by(Bid.offered_price.desc(), Bid.bid_time.asc())
            .limit(1),
            selectinload(Bid.user),
        )
        return result.scalars().first()

    async def _list_where(self, *criteria, limit: int | None = None) -> list[Bid]:
        q = self._base_query().where(*criteria).order_by(Bid.bid_time.desc())
        if limit is not None:
            q = q.limit(limit)
        result = await self._fetch(q, selectinload(Bid.user))
        return list(result.scalars().all())

    async def list_for_item(self, auction_item_id: str, limit: int | None = None) -> list[Bid]:
        return await self._list_where(Bid.auction_item_id == auction_item_id, limit=limit)

    async def list_for_auction(self, auction_id: str, user_id: str | None = None) -> list[Bid]:
        criteria = [Bid.auction_id == auction_id]
        if user_id is not None:
            criteria.append(Bid.user_id == user_id)
        return await self._list_where(*criteria)

    async def list_for_user(self, user_id: str) -> list[Bid]:
        return await self._list_where(Bid.user_id == user_id)
