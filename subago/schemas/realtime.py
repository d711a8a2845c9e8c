"""WebSocket message contracts shared by the gateway and its clients.

Every frame is ``{"event": <name>, "data": {...}}``.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from subago.schemas.common import CamelModel


class ClientEvent(str, Enum):
    HELLO = "HELLO"
    JOIN_AUCTION = "JOIN_AUCTION"
    LEAVE_AUCTION = "LEAVE_AUCTION"
    PLACE_BID = "PLACE_BID"
    PING = "PING"


class ServerEvent(str, Enum):
    CONNECTED = "CONNECTED"
    HELLO_OK = "HELLO_OK"
    JOINED = "JOINED"
    AUCTION_SNAPSHOT = "AUCTION_SNAPSHOT"
    LEFT = "LEFT"
    KICKED_DUPLICATE = "KICKED_DUPLICATE"
    BID_PLACED = "BID_PLACED"
    BID_REJECTED = "BID_REJECTED"
    AUCTION_STATUS_CHANGED = "AUCTION_STATUS_CHANGED"
    AUCTION_TIME_EXTENDED = "AUCTION_TIME_EXTENDED"
    AUCTION_ENDED = "AUCTION_ENDED"
    PARTICIPANT_COUNT = "PARTICIPANT_COUNT"
    ERROR = "ERROR"
    PONG = "PONG"


class WsErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    AUCTION_NOT_FOUND = "AUCTION_NOT_FOUND"
    AUCTION_CLOSED = "AUCTION_CLOSED"
    INVALID_BID = "INVALID_BID"
    BID_TOO_LOW = "BID_TOO_LOW"
    NOT_REGISTERED = "NOT_REGISTERED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_MESSAGE = "INVALID_MESSAGE"


class ClientMessage(BaseModel):
    event: ClientEvent
    data: dict[str, Any] = Field(default_factory=dict)


class RoomRef(CamelModel):
    tenant_id: str
    auction_id: str


class PlaceBidData(CamelModel):
    tenant_id: str
    auction_id: str
    auction_item_id: str
    amount: float
    request_id: Optional[str] = None


class PingData(CamelModel):
    request_id: Optional[str] = None
    client_time_ms: Optional[float] = None


class BidItemRef(CamelModel):
    id: str
    plate: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None


class BidPlacedData(CamelModel):
    tenant_id: str
    auction_id: str
    auction_item_id: str
    bid_id: str
    amount: float
    user_id: str
    user_name: Optional[str] = None
    timestamp: int  # epoch ms
    request_id: Optional[str] = None
    item: Optional[BidItemRef] = None


def frame(event: ServerEvent, data: Any) -> dict:
    """Build an outgoing frame. Pydantic payloads are dumped with camelCase keys."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {"event": event.value, "data": data}
