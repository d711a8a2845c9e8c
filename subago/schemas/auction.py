"""Auction, auction-item, registration and bid schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from subago.domain.auction import DEFAULT_BID_INCREMENT
from subago.domain.enums import AuctionItemState, AuctionState, AuctionType
from subago.schemas.common import CamelModel, StrictEntity, StrictModel
from subago.schemas.item import ItemSchema
from subago.schemas.user import UserBasicInfo
from subago.schemas.validators import Name


class AuctionSchema(StrictEntity):
    tenant_id: str
    title: Name
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    state: AuctionState = AuctionState.ACTIVE
    type: AuctionType = AuctionType.REAL
    bid_increment: float = DEFAULT_BID_INCREMENT


class AuctionCreate(StrictModel):
    title: Name
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    type: AuctionType = AuctionType.REAL
    bid_increment: float = DEFAULT_BID_INCREMENT
    item_ids: list[str] = Field(default_factory=list)


class AuctionUpdate(StrictModel):
    title: Optional[Name] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    type: Optional[AuctionType] = None
    bid_increment: Optional[float] = None
    item_ids: Optional[list[str]] = None


class AuctionItemSchema(StrictEntity):
    tenant_id: str
    auction_id: str
    item_id: str
    starting_bid: float = Field(gt=0)
    state: AuctionItemState
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    winning_bid_id: Optional[str] = None
    item: Optional[ItemSchema] = None


class AuctionWithItems(AuctionSchema):
    items: list[AuctionItemSchema] = Field(default_factory=list)


class AuctionStats(CamelModel):
    total: int
    active: int
    inactive: int
    completed: int
    cancelled: int


class RegistrationOut(CamelModel):
    id: str
    user_id: str
    auction_id: str
    created_at: datetime
    user: Optional[UserBasicInfo] = None


class ConnectedUsers(CamelModel):
    auction_id: str
    user_ids: list[str]
    count: int


# ---------------------------------------------------------------------------
# Bids
# ---------------------------------------------------------------------------

class BidSchema(StrictEntity):
    request_id: Optional[UUID] = None
    offered_price: float = Field(gt=0)
    bid_time: datetime
    tenant_id: UUID
    user_id: UUID
    auction_id: UUID
    auction_item_id: UUID


class BidCreate(StrictModel):
    auction_item_id: UUID
    offered_price: float = Field(gt=0)
    request_id: Optional[UUID] = None


class BidWithUser(BidSchema):
    user: Optional[UserBasicInfo] = None


class BidOut(CamelModel):
    """Bid as returned by the API. Clients may use any string as requestId."""

    id: str
    request_id: Optional[str] = None
    offered_price: float
    bid_time: datetime
    tenant_id: str
    user_id: str
    auction_id: str
    auction_item_id: str
    user: Optional[UserBasicInfo] = None


class PlacedBid(CamelModel):
    bid: BidOut
    created_now: bool
