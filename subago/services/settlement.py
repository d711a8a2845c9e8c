"""Auction settlement: award every item to its highest bidder and complete the auction.

Shared by the manual close endpoint and the status scheduler so both paths
leave identical results behind.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from subago.domain.auction import Auction
from subago.domain.enums import AuctionItemState, AuctionState, AuditAction, ItemState
from subago.domain.transitions import assert_transition
from subago.repositories.auction import AuctionItemRepository, BidRepository
from subago.repositories.observation import AuditLogRepository
from subago.utils.time import utc_now

logger = logging.getLogger(__name__)


async def settle_auction(session: AsyncSession, auction: Auction, now: datetime | None = None) -> int:
    """Settle `auction` in the current unit of work. Returns the number of items sold."""
    now = now or utc_now()
    assert_transition(auction.state, AuctionState.COMPLETED, "Subasta")

    bids = BidRepository(session)
    audit = AuditLogRepository(session, auction.tenant_id)
    sold = 0

    for auction_item in await AuctionItemRepository(session).list_by_auction(auction.id, with_item=True):
        if auction_item.state != AuctionItemState.EN_SUBASTA:
            continue
        item = auction_item.item
        highest = await bids.highest_for_item(auction_item.id)

        if highest is None:
            auction_item.state = AuctionItemState.DISPONIBLE
            if item is not None and item.state == ItemState.EN_SUBASTA:
                item.state = ItemState.DISPONIBLE
            continue

        auction_item.state = AuctionItemState.ADJUDICADO
        auction_item.winning_bid_id = highest.id
        if item is not None:
            assert_transition(item.state, ItemState.VENDIDO, "Item")
            item.state = ItemState.VENDIDO
            item.sold_price = highest.offered_price
            item.sold_at = now
            item.sold_to_user_id = highest.user_id
            await audit.record(
                AuditAction.ITEM_SOLD,
                "Item",
                item.id,
                user_id=highest.user_id,
                changes={"soldPrice": highest.offered_price, "bidId": highest.id, "auctionId": auction.id},
                description=f"Item {item.plate} adjudicado por ${highest.offered_price:,.0f}",
            )
        sold += 1

    auction.state = AuctionState.COMPLETED
    auction.updated_at = now
    await session.flush()
    logger.info("Auction %s settled: %d item(s) sold", auction.id, sold)
    return sold
