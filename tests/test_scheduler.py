"""Tests for AuctionStatusScheduler: starting, completing (with settlement) and tick planning."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from subago.domain.auction import Auction, AuctionItem, Bid
from subago.domain.enums import AuctionItemState, AuctionState, ItemState
from subago.domain.item import Item
from subago.services.scheduler import AuctionStatusScheduler
from subago.utils.time import utc_now


async def _reload(db, model, entity_id):
    result = await db.execute(
        select(model).where(model.id == entity_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.fixture
def scheduler(broadcaster):
    return AuctionStatusScheduler(broadcaster=broadcaster)


class TestStart:
    async def test_due_auction_starts_and_items_get_clocks(self, db, factory, world, scheduler, broadcaster):
        item = await factory.item(world.tenant)
        auction, (auction_item,) = await factory.auction(
            world.tenant, items=(item,), state=AuctionState.INACTIVE, starts_in=timedelta(minutes=-1)
        )
        auction_item.start_time = None
        auction_item.end_time = None
        await db.commit()

        result = await scheduler.run_once()

        assert result.started == [auction.id]
        assert result.completed == []
        assert (await _reload(db, Auction, auction.id)).state == AuctionState.ACTIVE
        fresh = await _reload(db, AuctionItem, auction_item.id)
        assert fresh.start_time is not None and fresh.end_time is not None
        assert broadcaster.status_changes == [(world.tenant.id, auction.id, "active")]

    async def test_future_auction_is_left_alone(self, db, factory, world, scheduler):
        auction, _ = await factory.auction(world.tenant, state=AuctionState.INACTIVE, starts_in=timedelta(hours=1))

        result = await scheduler.run_once()

        assert result.started == []
        assert (await _reload(db, Auction, auction.id)).state == AuctionState.INACTIVE


class TestComplete:
    async def test_ended_auction_is_settled(self, db, factory, world, scheduler, broadcaster):
        item = await factory.item(world.tenant)
        auction, (auction_item,) = await factory.auction(
            world.tenant, items=(item,), starts_in=timedelta(hours=-2), lasts=timedelta(hours=1)
        )
        db.add(
            Bid(
                tenant_id=world.tenant.id,
                offered_price=1_400_000,
                bid_time=utc_now() - timedelta(hours=1, minutes=30),
                user_id=world.bidder.id,
                auction_id=auction.id,
                auction_item_id=auction_item.id,
            )
        )
        await db.commit()

        result = await scheduler.run_once()

        assert result.completed == [auction.id]
        assert (await _reload(db, Auction, auction.id)).state == AuctionState.COMPLETED
        assert (await _reload(db, AuctionItem, auction_item.id)).state == AuctionItemState.ADJUDICADO
        sold = await _reload(db, Item, item.id)
        assert sold.state == ItemState.VENDIDO
        assert sold.sold_to_user_id == world.bidder.id
        assert broadcaster.events("AUCTION_ENDED") == [{"auctionId": auction.id}]

    async def test_extended_item_clock_keeps_auction_open(self, db, factory, world, scheduler):
        item = await factory.item(world.tenant)
        auction, (auction_item,) = await factory.auction(
            world.tenant, items=(item,), starts_in=timedelta(hours=-1), lasts=timedelta(minutes=30)
        )
        auction_item.end_time = utc_now() + timedelta(seconds=20)
        await db.commit()

        result = await scheduler.run_once()

        assert result.completed == []
        assert (await _reload(db, Auction, auction.id)).state == AuctionState.ACTIVE

    async def test_missed_window_starts_and_completes_in_one_tick(self, db, factory, world, scheduler):
        item = await factory.item(world.tenant)
        auction, _ = await factory.auction(
            world.tenant, items=(item,), state=AuctionState.INACTIVE,
            starts_in=timedelta(hours=-2), lasts=timedelta(hours=1),
        )

        result = await scheduler.run_once()

        assert result.started == [auction.id]
        assert result.completed == [auction.id]
        assert (await _reload(db, Item, item.id)).state == ItemState.DISPONIBLE


class TestPlanning:
    async def test_default_interval_without_upcoming_boundaries(self, test_engine, scheduler):
        assert await scheduler.next_delay() == 30.0

    async def test_sleeps_until_a_close_boundary(self, factory, world, scheduler):
        now = utc_now()
        await factory.auction(world.tenant, state=AuctionState.INACTIVE, starts_in=timedelta(seconds=10))

        delay = await scheduler.next_delay(now)

        assert 9 <= delay <= 10.5

    async def test_never_below_minimum_interval(self, factory, world, scheduler):
        now = utc_now()
        await factory.auction(world.tenant, state=AuctionState.INACTIVE, starts_in=timedelta(milliseconds=100))

        assert await scheduler.next_delay(now) == 0.5

    async def test_far_boundaries_use_default_interval(self, factory, world, scheduler):
        await factory.auction(world.tenant, state=AuctionState.INACTIVE, starts_in=timedelta(hours=1))

        assert await scheduler.next_delay() == 30.0


class TestLifecycle:
    async def test_start_and_stop(self, test_engine, scheduler):
        await scheduler.start()
        assert scheduler.is_running
        scheduler.wake()

        await scheduler.stop()
        assert not scheduler.is_running


class TestIsolation:
    async def test_failing_settlement_does_not_hold_back_other_auctions(
        self, db, factory, world, scheduler, caplog
    ):
        broken_item = await factory.item(world.tenant)
        broken, (broken_auction_item,) = await factory.auction(
            world.tenant, items=(broken_item,), starts_in=timedelta(hours=-2), lasts=timedelta(hours=1)
        )
        db.add(
            Bid(
                tenant_id=world.tenant.id,
                offered_price=1_200_000,
                bid_time=utc_now() - timedelta(hours=1, minutes=30),
                user_id=world.bidder.id,
                auction_id=broken.id,
                auction_item_id=broken_auction_item.id,
            )
        )
        # Disponible cannot move straight to Vendido, so settling this auction raises
        broken_item.state = ItemState.DISPONIBLE
        healthy, _ = await factory.auction(world.tenant, starts_in=timedelta(hours=-2), lasts=timedelta(hours=1))
        await db.commit()

        result = await scheduler.run_once()

        assert result.completed == [healthy.id]
        assert (await _reload(db, Auction, healthy.id)).state == AuctionState.COMPLETED
        assert (await _reload(db, Auction, broken.id)).state == AuctionState.ACTIVE
        assert f"could not settle auction {broken.id}" in caplog.text
