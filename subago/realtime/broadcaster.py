"""What services need from the realtime layer, without depending on sockets."""

from __future__ import annotations

from typing import Any, Protocol

from subago.schemas.realtime import BidPlacedData


def room_key(tenant_id: str, auction_id: str) -> str:
    return f"{tenant_id}:{auction_id}"


TENANT_ROOM = "__TENANT__"


def tenant_room_key(tenant_id: str) -> str:
    """Every connection joins this room so auction lists update live."""
    return room_key(tenant_id, TENANT_ROOM)


class AuctionBroadcaster(Protocol):
    async def broadcast_to_room(self, room: str, message: dict) -> None: ...

    async def broadcast_bid_placed(
        self, room: str, data: BidPlacedData, user_display_name: str, manager_display_name: str
    ) -> None: ...

    async def broadcast_auction_status_change(
        self, tenant_id: str, auction_id: str, status: str, auction: dict[str, Any] | None = None
    ) -> None: ...


class NullBroadcaster:
    """Used when no gateway is wired in (CLI scripts, some tests)."""

    async def broadcast_to_room(self, room: str, message: dict) -> None:
        return None

    async def broadcast_bid_placed(
        self, room: str, data: BidPlacedData, user_display_name: str, manager_display_name: str
    ) -> None:
        return None

    async def broadcast_auction_status_change(
        self, tenant_id: str, auction_id: str, status: str, auction: dict[str, Any] | None = None
    ) -> None:
        return None
