"""Bid router.

Pattern:
  1. USER members place bids over REST (the WebSocket gateway is the live path)
  2. Both paths go through BiddingService, so locking and idempotency are shared
  3. USER viewers see other bidders under their public name only
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user, get_tenant_id, require_roles
from subago.core.pagination import PaginationParams
from subago.core.response import CollectionResponse, DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.auction import Bid
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.realtime.gateway import gateway
from subago.schemas.auction import BidCreate, BidOut, PlacedBid
from subago.schemas.user import UserBasicInfo
from subago.services.bidding import ANONYMOUS_BIDDER, BiddingService

router = APIRouter(prefix="/bids", tags=["Bids"])


def _svc(session: AsyncSession, tenant_id: str) -> BiddingService:
    return BiddingService(session, tenant_id, broadcaster=gateway)


def _bid_out(bid: Bid, viewer: User) -> BidOut:
    out = BidOut.model_validate(bid)
    if viewer.role != UserRole.USER or bid.user_id == viewer.id or out.user is None:
        return out
    masked = UserBasicInfo(
        id=out.user.id,
        name=out.user.public_name or ANONYMOUS_BIDDER,
        email="",
        public_name=out.user.public_name,
    )
    return out.model_copy(update={"user": masked})


@router.post("", response_model=DataResponse[PlacedBid], status_code=status.HTTP_201_CREATED)
async def place_bid(
    body: BidCreate,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(UserRole.USER)),
    tenant_id: str = Depends(get_tenant_id),
):
    result = await _svc(session, tenant_id).place_bid(
        str(body.auction_item_id),
        body.offered_price,
        user.id,
        request_id=str(body.request_id) if body.request_id else None,
    )
    return {"data": PlacedBid(bid=BidOut.model_validate(result.bid), created_now=result.created_now)}


@router.get("/auction/{auction_id}", response_model=CollectionResponse[BidOut])
async def list_auction_bids(
    auction_id: str,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id),
):
    """Every bid in the auction, newest first."""
    bids = await _svc(session, tenant_id).get_auction_bids(auction_id)
    return {"data": [_bid_out(b, user) for b in bids]}


@router.get("/item/{auction_item_id}/paged", response_model=ListResponse[BidOut])
async def list_item_bids(
    auction_item_id: str,
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id),
):
    bids, total = await _svc(session, tenant_id).list_item_bids_paged(auction_item_id, pagination)
    return paginated([_bid_out(b, user) for b in bids], total, pagination.page, pagination.limit)


@router.get("/my-bids", response_model=CollectionResponse[BidOut])
async def my_bids(
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id),
):
    bids = await _svc(session, tenant_id).get_user_bids(user.id)
    return {"data": [BidOut.model_validate(b) for b in bids]}
