"""
Auction WebSocket gateway

Single-process, in-memory fan-out for live auctions:
- One connection per socket, authenticated with an access JWT
- Rooms keyed "{tenantId}:{auctionId}", plus a per-tenant room every socket joins
- At most one socket per user per auction room (older sockets are kicked)
- Idempotent PLACE_BID: outcomes are cached per tenant, user and requestId and replayed
- Token-bucket rate limits per user and per auction item
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.config import settings
from subago.core.deps import load_user_from_token
from subago.core.exceptions import (
    AppException,
    BidRejectedError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from subago.db.base import session_scope
from subago.domain.enums import UserRole
from subago.realtime.broadcaster import TENANT_ROOM, room_key, tenant_room_key
from subago.realtime.rate_limit import TokenBucketLimiter
from subago.repositories.auction import (
    AuctionItemRepository,
    AuctionRepository,
    RegistrationRepository,
)
from subago.schemas.realtime import (
    BidPlacedData,
    ClientEvent,
    ClientMessage,
    PingData,
    PlaceBidData,
    RoomRef,
    ServerEvent,
    WsErrorCode,
    frame,
)
from subago.services.bidding import BiddingService
from subago.utils.time import as_utc, to_millis, utc_now

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]

WS_POLICY_VIOLATION = 1008
WS_DUPLICATE_CONNECTION = 4000

RATE_LIMIT_USER_MSG = "Estás pujando muy rápido. Intenta nuevamente en un momento."
RATE_LIMIT_ITEM_MSG = "Hay muchas pujas para este ítem. Intenta nuevamente en un momento."


@dataclass
class ClientMeta:
    socket_id: str
    websocket: Any
    user_id: str
    email: str
    role: UserRole
    tenant_id: Optional[str]
    rooms: set[str] = field(default_factory=set)


@dataclass
class _BidOutcome:
    at: float
    ok: bool
    auction_item_id: str
    data: Optional[BidPlacedData] = None
    reason: Optional[str] = None
    code: Optional[str] = None


def _error_code(exc: Exception) -> str:
    if isinstance(exc, BidRejectedError):
        return exc.reason_code
    if isinstance(exc, ForbiddenError):
        return WsErrorCode.FORBIDDEN.value
    if isinstance(exc, NotFoundError):
        return WsErrorCode.AUCTION_NOT_FOUND.value
    if isinstance(exc, UnauthorizedError):
        return WsErrorCode.UNAUTHORIZED.value
    if isinstance(exc, AppException):
        return WsErrorCode.INVALID_BID.value
    return WsErrorCode.INTERNAL_ERROR.value


class AuctionGateway:
    """Implements the broadcaster the bidding and auction services talk to."""

    def __init__(
        self,
        session_factory: SessionScope = session_scope,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        # socket_id -> client metadata
        self.clients: dict[str, ClientMeta] = {}
        # room key -> socket ids
        self.rooms: dict[str, set[str]] = {}

        self._bid_outcomes: dict[str, _BidOutcome] = {}
        self._in_flight: set[str] = set()
        self._recent_request_ids: dict[str, float] = {}
        self._user_limiter = TokenBucketLimiter(
            settings.ws_bid_user_rate_per_sec, settings.ws_bid_user_burst
        )
        self._item_limiter = TokenBucketLimiter(
            settings.ws_bid_item_rate_per_sec, settings.ws_bid_item_burst
        )
        # room -> pending PARTICIPANT_COUNT rebroadcast after someone left
        self._pending_counts: dict[str, asyncio.Task] = {}

    # ==========================================================================
    # Connection lifecycle
    # ==========================================================================

    async def connect(self, websocket: Any, token: Optional[str]) -> Optional[ClientMeta]:
        """Accept, authenticate and register a socket. Returns None when it was refused."""
        await websocket.accept()
        try:
            if not token:
                raise UnauthorizedError("Token requerido")
            async with self._session_factory() as session:
                user = await load_user_from_token(session, token)
        except AppException as exc:
            logger.warning("[WS] Connection refused: %s", exc.message)
            await self._close(websocket, WS_POLICY_VIOLATION, "Unauthorized")
            return None

        meta = ClientMeta(
            socket_id=str(uuid.uuid4()),
            websocket=websocket,
            user_id=user.id,
            email=user.email,
            role=user.role,
            tenant_id=user.tenant_id,
        )
        self.clients[meta.socket_id] = meta
        if meta.tenant_id:
            self._join_room(meta, tenant_room_key(meta.tenant_id))

        logger.info("[WS] %s connected (%s). Total: %d", meta.email, meta.role.value, len(self.clients))
        await self._send(meta, frame(ServerEvent.CONNECTED, {"message": "Conectado", "email": meta.email}))
        return meta

    async def disconnect(self, socket_id: str) -> None:
        meta = self.clients.pop(socket_id, None)
        if meta is None:
            return
        for room in list(meta.rooms):
            self._leave_room(meta, room)
        logger.info("[WS] %s disconnected. Total: %d", meta.email, len(self.clients))

    # ==========================================================================
    # Incoming messages
    # ==========================================================================

    async def handle_message(self, socket_id: str, raw: Any) -> None:
        meta = self.clients.get(socket_id)
        if meta is None:
            return
        try:
            if isinstance(raw, (str, bytes)):
                message = ClientMessage.model_validate_json(raw)
            else:
                message = ClientMessage.model_validate(raw)
        except PydanticValidationError:
            await self._send_error(meta, WsErrorCode.INVALID_MESSAGE, "Mensaje inválido")
            return

        try:
            if message.event == ClientEvent.HELLO:
                await self._on_hello(meta)
            elif message.event == ClientEvent.PING:
                await self._on_ping(meta, PingData.model_validate(message.data))
            elif message.event == ClientEvent.JOIN_AUCTION:
                await self._on_join(meta, RoomRef.model_validate(message.data))
            elif message.event == ClientEvent.LEAVE_AUCTION:
                await self._on_leave(meta, RoomRef.model_validate(message.data))
            elif message.event == ClientEvent.PLACE_BID:
                await self._on_place_bid(meta, message.data)
        except PydanticValidationError:
            await self._send_error(meta, WsErrorCode.INVALID_MESSAGE, "Mensaje inválido")

    async def _on_hello(self, meta: ClientMeta) -> None:
        await self._send(
            meta,
            frame(
                ServerEvent.HELLO_OK,
                {
                    "ok": True,
                    "user": {
                        "userId": meta.user_id,
                        "email": meta.email,
                        "role": meta.role.value,
                        "tenantId": meta.tenant_id,
                    },
                },
            ),
        )

    async def _on_ping(self, meta: ClientMeta, data: PingData) -> None:
        await self._send(
            meta,
            frame(
                ServerEvent.PONG,
                {
                    "requestId": data.request_id,
                    "clientTimeMs": data.client_time_ms,
                    "serverTimeMs": to_millis(utc_now()),
                },
            ),
        )

    async def _on_join(self, meta: ClientMeta, ref: RoomRef) -> None:
        async with self._session_factory() as session:
            auction = await AuctionRepository(session).get_by_id(ref.auction_id)
            if auction is None:
                await self._send_error(meta, WsErrorCode.AUCTION_NOT_FOUND, "Subasta no encontrada")
                return
            if auction.tenant_id != ref.tenant_id:
                await self._send_error(meta, WsErrorCode.FORBIDDEN, "La subasta no pertenece a este tenant")
                return

            if meta.role != UserRole.ADMIN and meta.tenant_id != ref.tenant_id:
                await self._send_error(meta, WsErrorCode.FORBIDDEN, "No tienes acceso a esta subasta")
                return

            if meta.role == UserRole.USER:
                registrations = RegistrationRepository(session)
                if await registrations.get(meta.user_id, auction.id) is None:
                    logger.info("[WS] Auto-registering %s for auction %s", meta.email, auction.id)
                    await registrations.add(meta.user_id, auction.id)

            auction_items = await AuctionItemRepository(session).list_by_auction(auction.id)

        room = room_key(ref.tenant_id, ref.auction_id)
        await self._kick_duplicates(meta, room)

        if room in meta.rooms:
            logger.debug("[WS] Ignoring duplicate join from %s for %s", meta.email, room)
            return

        self._join_room(meta, room)
        count = self.get_participant_count(ref.tenant_id, ref.auction_id)
        logger.info("[WS] %s joined auction %s (%d participants)", meta.email, auction.id, count)

        snapshot = {
            "room": room,
            "auctionId": auction.id,
            "participantCount": count,
            "serverTimeMs": to_millis(utc_now()),
            "auction": {
                "id": auction.id,
                "status": auction.state.value,
                "startTime": as_utc(auction.start_time).isoformat(),
                "endTime": as_utc(auction.end_time).isoformat(),
            },
            "auctionItems": [
                {
                    "id": ai.id,
                    "startTime": ai.effective_start(auction).isoformat(),
                    "endTime": ai.effective_end(auction).isoformat(),
                }
                for ai in auction_items
            ],
        }
        await self._send(meta, frame(ServerEvent.JOINED, snapshot))
        await self._send(meta, frame(ServerEvent.AUCTION_SNAPSHOT, snapshot))
        await self._broadcast_participant_count(room)

    async def _on_leave(self, meta: ClientMeta, ref: RoomRef) -> None:
        room = room_key(ref.tenant_id, ref.auction_id)
        self._leave_room(meta, room)
        await self._send(meta, frame(ServerEvent.LEFT, {"room": room, "auctionId": ref.auction_id}))

    async def _on_place_bid(self, meta: ClientMeta, raw: dict[str, Any]) -> None:
        data = PlaceBidData.model_validate(raw)
        item_id = data.auction_item_id

        if meta.role != UserRole.USER:
            await self._send_bid_rejected(
                meta, item_id, "Solo los usuarios pueden realizar pujas", WsErrorCode.FORBIDDEN.value, data.request_id
            )
            return
        if meta.tenant_id != data.tenant_id:
            await self._send_bid_rejected(
                meta, item_id, "No tienes acceso a esta subasta", WsErrorCode.FORBIDDEN.value, data.request_id
            )
            return
        if room_key(data.tenant_id, data.auction_id) not in meta.rooms:
            await self._send_bid_rejected(
                meta, item_id, "Debes unirte a la subasta antes de pujar", WsErrorCode.FORBIDDEN.value, data.request_id
            )
            return
        if not data.request_id:
            await self._send_bid_rejected(meta, item_id, "requestId requerido", WsErrorCode.INVALID_BID.value)
            return

        request_id = data.request_id
        # A requestId only identifies a retry from the same user of the same tenant
        key = f"{data.tenant_id}:{meta.user_id}:{request_id}"
        now = self._clock()
        self._prune(now)

        cached = self._bid_outcomes.get(key)
        if cached is not None:
            logger.debug("[WS] Replaying cached bid outcome req=%s ok=%s", request_id, cached.ok)
            if cached.ok:
                await self._send(meta, frame(ServerEvent.BID_PLACED, cached.data))
            else:
                await self._send_bid_rejected(
                    meta, cached.auction_item_id, cached.reason or "", cached.code or "", request_id
                )
            return

        # The first request will answer; a concurrent duplicate gets nothing
        if key in self._in_flight:
            logger.debug("[WS] Duplicate in-flight bid ignored req=%s", request_id)
            return
        self._in_flight.add(key)

        try:
            # Retries of a recently seen requestId are not rate limited
            if key not in self._recent_request_ids:
                self._recent_request_ids[key] = now
                if not self._user_limiter.consume(f"{data.tenant_id}:{meta.user_id}", now):
                    await self._send_bid_rejected(
                        meta, item_id, RATE_LIMIT_USER_MSG, WsErrorCode.INVALID_BID.value, request_id
                    )
                    return
                if not self._item_limiter.consume(f"{data.tenant_id}:{item_id}", now):
                    await self._send_bid_rejected(
                        meta, item_id, RATE_LIMIT_ITEM_MSG, WsErrorCode.INVALID_BID.value, request_id
                    )
                    return

            logger.info("[WS] Bid attempt req=%s: %s $%s on item %s", request_id, meta.email, data.amount, item_id)
            await self._place_bid(meta, data, key)
        finally:
            self._in_flight.discard(key)

    async def _place_bid(self, meta: ClientMeta, data: PlaceBidData, key: str) -> None:
        request_id = data.request_id or ""
        try:
            async with self._session_factory() as session:
                result = await BiddingService(session, data.tenant_id, broadcaster=self).place_bid(
                    data.auction_item_id, data.amount, meta.user_id, request_id=request_id
                )
        except Exception as exc:
            code = _error_code(exc)
            if isinstance(exc, AppException):
                reason = exc.message
                logger.info("[WS] Bid rejected req=%s user=%s: %s", request_id, meta.email, reason)
            else:
                reason = "Error al procesar la puja"
                logger.exception("[WS] Bid failed req=%s user=%s", request_id, meta.email)
            self._bid_outcomes[key] = _BidOutcome(
                at=self._clock(), ok=False, auction_item_id=data.auction_item_id, reason=reason, code=code
            )
            await self._send_bid_rejected(meta, data.auction_item_id, reason, code, request_id)
            return

        self._bid_outcomes[key] = _BidOutcome(
            at=self._clock(), ok=True, auction_item_id=data.auction_item_id, data=result.bid_placed_data
        )
        logger.info(
            "[WS] Bid accepted req=%s item=%s amount=$%s createdNow=%s",
            request_id, data.auction_item_id, result.bid_placed_data.amount, result.created_now,
        )
        # A fresh bid was already broadcast to the room; a duplicate only ACKs the sender
        if not result.created_now:
            await self._send(meta, frame(ServerEvent.BID_PLACED, result.bid_placed_data))

    # ==========================================================================
    # Broadcasting (AuctionBroadcaster)
    # ==========================================================================

    async def broadcast_to_room(self, room: str, message: dict) -> None:
        for socket_id in list(self.rooms.get(room, ())):
            meta = self.clients.get(socket_id)
            if meta is not None:
                await self._send(meta, message)

    async def broadcast_bid_placed(
        self, room: str, data: BidPlacedData, user_display_name: str, manager_display_name: str
    ) -> None:
        """Bidders only ever see each other's public names; managers see who actually bid."""
        for_users = frame(ServerEvent.BID_PLACED, data.model_copy(update={"user_name": user_display_name}))
        for_managers = frame(ServerEvent.BID_PLACED, data.model_copy(update={"user_name": manager_display_name}))
        for socket_id in list(self.rooms.get(room, ())):
            meta = self.clients.get(socket_id)
            if meta is None:
                continue
            await self._send(meta, for_users if meta.role == UserRole.USER else for_managers)

    async def broadcast_auction_status_change(
        self, tenant_id: str, auction_id: str, status: str, auction: dict[str, Any] | None = None
    ) -> None:
        payload: dict[str, Any] = {"auctionId": auction_id, "status": status}
        if auction is not None:
            payload["auction"] = auction
        message = frame(ServerEvent.AUCTION_STATUS_CHANGED, payload)
        await self.broadcast_to_room(room_key(tenant_id, auction_id), message)
        await self.broadcast_to_room(tenant_room_key(tenant_id), message)

    # ==========================================================================
    # Queries
    # ==========================================================================

    def get_connected_users(self, tenant_id: str, auction_id: str) -> list[str]:
        room = room_key(tenant_id, auction_id)
        return sorted({self.clients[s].user_id for s in self.rooms.get(room, ()) if s in self.clients})

    def get_participant_count(self, tenant_id: str, auction_id: str) -> int:
        return len(self.get_connected_users(tenant_id, auction_id))

    # ==========================================================================
    # Rooms
    # ==========================================================================

    def _join_room(self, meta: ClientMeta, room: str) -> None:
        self.rooms.setdefault(room, set()).add(meta.socket_id)
        meta.rooms.add(room)
        pending = self._pending_counts.pop(room, None)
        if pending is not None:
            pending.cancel()

    def _leave_room(self, meta: ClientMeta, room: str) -> None:
        meta.rooms.discard(room)
        sockets = self.rooms.get(room)
        if sockets is None:
            return
        sockets.discard(meta.socket_id)
        if not sockets:
            del self.rooms[room]
        if room.endswith(f":{TENANT_ROOM}"):
            return
        still_here = any(self.clients[s].user_id == meta.user_id for s in self.rooms.get(room, ()) if s in self.clients)
        if not still_here:
            self._schedule_participant_count(room)

    def _schedule_participant_count(self, room: str) -> None:
        """Rebroadcast the count after a grace window so quick reconnects don't flicker."""
        pending = self._pending_counts.pop(room, None)
        if pending is not None:
            pending.cancel()
        self._pending_counts[room] = asyncio.create_task(self._delayed_participant_count(room))

    async def _delayed_participant_count(self, room: str) -> None:
        await asyncio.sleep(settings.ws_leave_grace_seconds)
        self._pending_counts.pop(room, None)
        await self._broadcast_participant_count(room)

    async def _broadcast_participant_count(self, room: str) -> None:
        tenant_id, _, auction_id = room.partition(":")
        await self.broadcast_to_room(
            room,
            frame(
                ServerEvent.PARTICIPANT_COUNT,
                {"auctionId": auction_id, "count": self.get_participant_count(tenant_id, auction_id)},
            ),
        )

    async def _kick_duplicates(self, meta: ClientMeta, room: str) -> None:
        duplicates = [
            self.clients[s]
            for s in self.rooms.get(room, ())
            if s != meta.socket_id and s in self.clients and self.clients[s].user_id == meta.user_id
        ]
        if duplicates:
            logger.warning("[WS] %d duplicate connection(s) for %s in %s", len(duplicates), meta.email, room)
        for dup in duplicates:
            await self._send(
                dup,
                frame(
                    ServerEvent.KICKED_DUPLICATE,
                    {
                        "room": room,
                        "reason": "Se detectó otra pestaña conectada a esta subasta con tu usuario.",
                    },
                ),
            )
            # Drop from the room without a count rebroadcast; the new socket keeps the user present
            dup.rooms.discard(room)
            self.rooms.get(room, set()).discard(dup.socket_id)
            await self._close(dup.websocket, WS_DUPLICATE_CONNECTION, "Duplicate connection")

    # ==========================================================================
    # Sending
    # ==========================================================================

    async def _send(self, meta: ClientMeta, message: dict) -> None:
        try:
            await meta.websocket.send_json(message)
        except Exception as exc:
            logger.warning("[WS] Failed to send to %s: %s", meta.email, exc)

    async def _send_error(self, meta: ClientMeta, code: WsErrorCode, message: str) -> None:
        await self._send(meta, frame(ServerEvent.ERROR, {"code": code.value, "message": message}))

    async def _send_bid_rejected(
        self, meta: ClientMeta, auction_item_id: str, reason: str, code: str, request_id: Optional[str] = None
    ) -> None:
        payload = {"auctionItemId": auction_item_id, "reason": reason, "code": code}
        if request_id:
            payload["requestId"] = request_id
        await self._send(meta, frame(ServerEvent.BID_REJECTED, payload))

    async def _close(self, websocket: Any, code: int, reason: str) -> None:
        try:
            await websocket.close(code=code, reason=reason)
        except Exception as exc:
            logger.debug("[WS] close(%d) failed: %s", code, exc)

    def _prune(self, now: float) -> None:
        ttl = settings.ws_bid_requestid_ttl_seconds
        for key in [k for k, o in self._bid_outcomes.items() if now - o.at > ttl]:
            del self._bid_outcomes[key]
        for key in [k for k, at in self._recent_request_ids.items() if now - at > ttl]:
            del self._recent_request_ids[key]
        self._user_limiter.prune(now, ttl)
        self._item_limiter.prune(now, ttl)


gateway = AuctionGateway()
