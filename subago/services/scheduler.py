"""Background task that moves auctions through their schedule.

Each tick starts auctions whose start time has arrived and completes (and
settles) auctions whose last item clock has run out. Between ticks the loop
sleeps until the next known boundary when one is close, otherwise for the
default interval. ``wake()`` cuts the current sleep short after an edit.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.config import settings
from subago.db.base import session_scope
from subago.domain.auction import Auction
from subago.domain.enums import AuctionState
from subago.realtime.broadcaster import AuctionBroadcaster, NullBroadcaster, room_key
from subago.repositories.auction import AuctionItemRepository, AuctionRepository
from subago.schemas.realtime import ServerEvent, frame
from subago.services.auction import auction_snapshot
from subago.services.settlement import settle_auction
from subago.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass
class TickResult:
    started: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)


class AuctionStatusScheduler:
    def __init__(
        self,
        broadcaster: Optional[AuctionBroadcaster] = None,
        session_factory: SessionScope = session_scope,
    ):
        self._broadcaster = broadcaster or NullBroadcaster()
        self._session_factory = session_factory
        self._is_running = False
        self._task: Optional[asyncio.Task] = None
        self._wake_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._is_running:
            return
        self._is_running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("[Scheduler] started")

    async def stop(self) -> None:
        self._is_running = False
        self._wake_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[Scheduler] stopped")

    def wake(self) -> None:
        """Re-plan now; called when an auction's schedule changes."""
        self._wake_event.set()

    async def _loop(self) -> None:
        while self._is_running:
            delay = settings.scheduler_default_interval_seconds
            try:
                now = utc_now()
                await self.run_once(now)
                delay = await self.next_delay(utc_now())
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[Scheduler] tick failed")

            self._wake_event.clear()
            try:
                await asyncio.wait_for(self._wake_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def run_once(self, now: Optional[datetime] = None) -> TickResult:
        now = now or utc_now()
        result = TickResult()
        changed: dict[str, Auction] = {}

        async with self._session_factory() as session:
            auctions = AuctionRepository(session)
            auction_items = AuctionItemRepository(session)

            for auction in await auctions.list_due_to_start(now):
                if now > as_utc(auction.end_time):
                    # Missed its whole window; open it so the completion pass settles it
                    logger.info("[Scheduler] auction %s started late", auction.id)
                auction.state = AuctionState.ACTIVE
                for auction_item in await auction_items.list_by_auction(auction.id):
                    if auction_item.start_time is None:
                        auction_item.start_time = auction.start_time
                    if auction_item.end_time is None:
                        auction_item.end_time = auction.end_time
                result.started.append(auction.id)
                changed[auction.id] = auction
            await session.flush()

            ended: list[str] = []
            for auction in await auctions.list_by_state(AuctionState.ACTIVE):
                latest_item_end = await auction_items.latest_end(auction.id)
                effective_end = max(filter(None, [as_utc(auction.end_time), latest_item_end]))
                if effective_end < now:
                    ended.append(auction.id)

        # One unit of work per auction so a failing settlement cannot hold back the rest
        for auction_id in ended:
            try:
                settled = await self._settle(auction_id, now)
            except Exception:
                logger.exception("[Scheduler] could not settle auction %s", auction_id)
                continue
            if settled is not None:
                result.completed.append(auction_id)
                changed[auction_id] = settled

        # Broadcast only after the units of work have committed
        for auction in changed.values():
            await self._broadcaster.broadcast_auction_status_change(
                auction.tenant_id, auction.id, auction.state.value, auction_snapshot(auction)
            )
            if auction.state == AuctionState.COMPLETED:
                await self._broadcaster.broadcast_to_room(
                    room_key(auction.tenant_id, auction.id),
                    frame(ServerEvent.AUCTION_ENDED, {"auctionId": auction.id}),
                )

        if result.started or result.completed:
            logger.info(
                "[Scheduler] tick: %d started, %d completed",
                len(result.started), len(result.completed),
            )
        return result

    async def _settle(self, auction_id: str, now: datetime) -> Optional[Auction]:
        async with self._session_factory() as session:
            auction = await AuctionRepository(session).get_by_id(auction_id)
            if auction is None or auction.state != AuctionState.ACTIVE:
                return None
            await settle_auction(session, auction, now)
        return auction

    async def next_delay(self, now: Optional[datetime] = None) -> float:
        """Seconds until the next tick, clamped to [min interval, default interval]."""
        now = now or utc_now()
        async with self._session_factory() as session:
            boundary = await AuctionRepository(session).next_boundary_after(now)

        default = settings.scheduler_default_interval_seconds
        if boundary is None:
            return default
        until = (boundary - now).total_seconds()
        if until > settings.scheduler_lookahead_seconds:
            return default
        return max(settings.scheduler_min_interval_seconds, min(until, default))
