"""Bid placement engine.

Bids on the same auction item are serialised by an in-process per-item lock
held across read → validate → insert → commit, so two concurrent bids can
never both pass the minimum-bid check against the same highest bid.
Retries are idempotent through the client-supplied ``request_id``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.config import settings
from subago.core.exceptions import BidRejectedError, ForbiddenError, NotFoundError
from subago.core.pagination import PaginationParams
from subago.domain.auction import AuctionItem, Bid
from subago.domain.enums import AuctionState
from subago.domain.user import User
from subago.realtime.broadcaster import AuctionBroadcaster, NullBroadcaster, room_key
from subago.repositories.auction import (
    AuctionItemRepository,
    AuctionRepository,
    BidRepository,
    RegistrationRepository,
)
from subago.repositories.user import UserRepository
from subago.schemas.realtime import BidItemRef, BidPlacedData, ServerEvent, frame
from subago.services.bid_rules import compute_bid_constraints, validate_bid_amount
from subago.utils.locks import KeyedLock
from subago.utils.time import as_utc, to_millis, utc_now

logger = logging.getLogger(__name__)

# Shared by every BiddingService instance in this process
_item_locks = KeyedLock()

ANONYMOUS_BIDDER = "Participante"


@dataclass
class PlaceBidResult:
    bid: Bid
    created_now: bool
    bid_placed_data: BidPlacedData


def _format_clp(amount: float) -> str:
    return f"{amount:,.0f}".replace(",", ".")


class BiddingService:
    def __init__(
        self,
        session: AsyncSession,
        tenant_id: str,
        broadcaster: AuctionBroadcaster | None = None,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._broadcaster = broadcaster or NullBroadcaster()
        # Unscoped: tenant ownership is checked explicitly to return 403, not 404
        self._auction_items = AuctionItemRepository(session)
        self._auctions = AuctionRepository(session)
        self._bids = BidRepository(session)
        self._registrations = RegistrationRepository(session)
        self._users = UserRepository(session)

    # ------------------------------------------------------------------
    # Place
    # ------------------------------------------------------------------

    async def place_bid(
        self,
        auction_item_id: str,
        amount: float,
        user_id: str,
        request_id: str | None = None,
        now: datetime | None = None,
    ) -> PlaceBidResult:
        async with _item_locks.hold(auction_item_id):
            return await self._place_bid_locked(auction_item_id, amount, user_id, request_id, now)

    async def _place_bid_locked(
        self,
        auction_item_id: str,
        amount: float,
        user_id: str,
        request_id: str | None,
        now: datetime | None,
    ) -> PlaceBidResult:
        if request_id:
            existing = await self._bids.get_by_request_id(request_id)
            if existing is not None:
                # Only a retry of the same bid replays it; anything else reusing the id is refused
                if (existing.tenant_id, existing.user_id, existing.auction_item_id) != (
                    self._tenant_id, user_id, auction_item_id
                ):
                    logger.warning("Bid request id %s reused by user %s", request_id, user_id)
                    raise BidRejectedError(
                        "El identificador de la solicitud ya fue usado", status_code=409
                    )
                auction_item = await self._auction_items.get_with_relations(existing.auction_item_id)
                logger.info("Duplicate bid request %s -> bid %s", request_id, existing.id)
                return PlaceBidResult(
                    bid=existing,
                    created_now=False,
                    bid_placed_data=self._bid_placed_data(existing, existing.user, auction_item),
                )

        auction_item = await self._auction_items.get_with_relations(auction_item_id)
        if auction_item is None or auction_item.auction is None:
            raise NotFoundError("Item de subasta", auction_item_id)
        auction = auction_item.auction

        if auction.tenant_id != self._tenant_id:
            raise ForbiddenError("No tienes acceso a esta subasta")

        if auction.state != AuctionState.ACTIVE:
            raise BidRejectedError("La subasta no está activa", reason_code="AUCTION_CLOSED")

        now = now or utc_now()
        start = auction_item.effective_start(auction)
        end = auction_item.effective_end(auction)
        if now < start:
            raise BidRejectedError("La subasta aún no ha comenzado", reason_code="AUCTION_CLOSED")
        if now > end:
            raise BidRejectedError("La subasta ha finalizado", reason_code="AUCTION_CLOSED")

        highest = await self._bids.highest_for_item(auction_item_id)
        constraints = compute_bid_constraints(
            base=highest.offered_price if highest else auction_item.starting_bid,
            bid_increment=auction.bid_increment,
            has_previous_bid=highest is not None,
        )
        validation = validate_bid_amount(amount, constraints.minimum_bid)
        if not validation.ok:
            raise BidRejectedError(
                f"La puja debe ser al menos ${_format_clp(validation.next_valid)}",
                reason_code="BID_TOO_LOW",
                next_valid=validation.next_valid,
            )

        if await self._registrations.get(user_id, auction.id) is None:
            raise BidRejectedError(
                "Debes registrarte en la subasta antes de pujar",
                reason_code="NOT_REGISTERED",
                status_code=403,
            )

        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("Usuario", user_id)

        extended_to = self._apply_soft_close(auction_item, now, end)

        bid = Bid(
            tenant_id=self._tenant_id,
            request_id=request_id,
            offered_price=float(amount),
            bid_time=now,
            user_id=user_id,
            auction_id=auction.id,
            auction_item_id=auction_item.id,
        )
        self._session.add(bid)
        await self._session.flush()
        # Commit before the lock is released so the next bidder sees this bid
        await self._session.commit()

        logger.info(
            "Bid placed: %s by %s on item %s",
            amount, user.email, auction_item.item.plate if auction_item.item else auction_item_id,
        )

        room = room_key(self._tenant_id, auction.id)
        if extended_to is not None:
            logger.info("Soft-close: auction %s item %s extended to %s", auction.id, auction_item.id, extended_to.isoformat())
            await self._broadcaster.broadcast_to_room(
                room,
                frame(
                    ServerEvent.AUCTION_TIME_EXTENDED,
                    {
                        "auctionId": auction.id,
                        "auctionItemId": auction_item.id,
                        "newEndTime": extended_to.isoformat(),
                        "extensionSeconds": settings.soft_close_extension_seconds,
                    },
                ),
            )

        data = self._bid_placed_data(bid, user, auction_item)
        await self._broadcaster.broadcast_bid_placed(
            room,
            data,
            user_display_name=user.public_name or ANONYMOUS_BIDDER,
            manager_display_name=user.name or user.email,
        )
        return PlaceBidResult(bid=bid, created_now=True, bid_placed_data=data)

    def _apply_soft_close(self, auction_item: AuctionItem, now: datetime, end: datetime) -> datetime | None:
        """Push the item (and auction) end out when a bid lands in the closing window."""
        remaining = (end - now).total_seconds()
        if not 0 < remaining <= settings.soft_close_threshold_seconds:
            return None

        new_end = now + timedelta(seconds=settings.soft_close_extension_seconds)
        auction_item.end_time = new_end
        auction = auction_item.auction
        if as_utc(auction.end_time) < new_end:
            auction.end_time = new_end
        return new_end

    def _bid_placed_data(self, bid: Bid, user: User | None, auction_item: AuctionItem | None) -> BidPlacedData:
        item = auction_item.item if auction_item is not None else None
        return BidPlacedData(
            tenant_id=bid.tenant_id,
            auction_id=bid.auction_id,
            auction_item_id=bid.auction_item_id,
            bid_id=bid.id,
            amount=float(bid.offered_price),
            user_id=bid.user_id,
            user_name=user.display_name if user is not None else None,
            timestamp=to_millis(bid.bid_time),
            request_id=bid.request_id,
            item=BidItemRef(id=item.id, plate=item.plate, brand=item.brand, model=item.model)
            if item is not None
            else None,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def _scoped_item(self, auction_item_id: str) -> AuctionItem:
        auction_item = await self._auction_items.get_by_id(auction_item_id)
        if auction_item is None or auction_item.tenant_id != self._tenant_id:
            raise NotFoundError("Item de subasta", auction_item_id)
        return auction_item

    async def get_bid_history(self, auction_item_id: str, limit: int = 50) -> list[Bid]:
        await self._scoped_item(auction_item_id)
        return await self._bids.list_for_item(auction_item_id, limit=limit)

    async def get_auction_bids(self, auction_id: str) -> list[Bid]:
        auction = await self._auctions.get_by_id(auction_id)
        if auction is None or auction.tenant_id != self._tenant_id:
            raise NotFoundError("Subasta", auction_id)
        return await self._bids.list_for_auction(auction_id)

    async def get_user_auction_bids(self, auction_id: str, user_id: str) -> list[Bid]:
        return [
            b for b in await self._bids.list_for_auction(auction_id, user_id=user_id)
            if b.tenant_id == self._tenant_id
        ]

    async def get_user_bids(self, user_id: str) -> list[Bid]:
        return [b for b in await self._bids.list_for_user(user_id) if b.tenant_id == self._tenant_id]

    async def list_item_bids_paged(self, auction_item_id: str, pagination: PaginationParams):
        await self._scoped_item(auction_item_id)
        return await BidRepository(self._session, self._tenant_id).list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by="bid_time" if pagination.sort == "created_at" else pagination.sort,
            order=pagination.order,
            filters={"auction_item_id": auction_item_id},
        )
