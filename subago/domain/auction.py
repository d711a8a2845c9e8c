"""SQLAlchemy ORM models for Auctions, their items, registrations and bids."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subago.db.base import Base
from subago.domain.enums import AuctionItemState, AuctionState, AuctionType
from subago.domain.item import Item
from subago.domain.mixins import TenantMixin, TimestampMixin, enum_type, new_uuid
from subago.domain.user import User
from subago.utils.time import as_utc, utc_now

DEFAULT_BID_INCREMENT = 50000


class Auction(Base, TenantMixin, TimestampMixin):
    __tablename__ = "auctions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    state: Mapped[AuctionState] = mapped_column(
        enum_type(AuctionState), default=AuctionState.INACTIVE, nullable=False, index=True
    )
    type: Mapped[AuctionType] = mapped_column(
        enum_type(AuctionType), default=AuctionType.REAL, nullable=False
    )
    bid_increment: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False), default=DEFAULT_BID_INCREMENT, nullable=False
    )
    created_by_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )

    # Live (not soft-deleted) items only
    items: Mapped[List["AuctionItem"]] = relationship(
        primaryjoin="and_(Auction.id == AuctionItem.auction_id, AuctionItem.deleted_at.is_(None))",
        order_by="AuctionItem.created_at",
        viewonly=True,
        lazy="noload",
    )

    def is_open_at(self, now: datetime) -> bool:
        return as_utc(self.start_time) <= now <= as_utc(self.end_time)


class AuctionItem(Base, TenantMixin, TimestampMixin):
    """An item placed in a specific auction, with its own bidding clock."""

    __tablename__ = "auction_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    auction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("auctions.id"), nullable=False, index=True
    )
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("items.id"), nullable=False, index=True)
    starting_bid: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    state: Mapped[AuctionItemState] = mapped_column(
        enum_type(AuctionItemState), default=AuctionItemState.EN_SUBASTA, nullable=False
    )

    # Per-item clocks; soft-close moves end_time forward
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # No FK: bids reference auction_items, and SQLite can't ALTER in a cycle
    winning_bid_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    auction: Mapped["Auction"] = relationship(lazy="noload")
    item: Mapped["Item"] = relationship(lazy="noload")

    def effective_start(self, auction: Auction) -> datetime:
        return as_utc(self.start_time or auction.start_time)

    def effective_end(self, auction: Auction) -> datetime:
        return as_utc(self.end_time or auction.end_time)


class AuctionRegistration(Base):
    """A USER's sign-up for an auction. Bidding requires one."""

    __tablename__ = "auction_registrations"
    __table_args__ = (UniqueConstraint("user_id", "auction_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    auction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("auctions.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    user: Mapped["User"] = relationship(lazy="noload")


class Bid(Base, TenantMixin, TimestampMixin):
    __tablename__ = "bids"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    # Client-generated idempotency key
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    offered_price: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    bid_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    auction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("auctions.id"), nullable=False, index=True
    )
    auction_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("auction_items.id"), nullable=False, index=True
    )

    user: Mapped["User"] = relationship(lazy="noload")
