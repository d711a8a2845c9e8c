"""Tests for AuctionService: creation rules, state guards, registrations, settlement on close."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from subago.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from subago.domain.audit import AuditLog
from subago.domain.enums import AuctionItemState, AuctionState, AuditAction, ItemState
from subago.domain.item import Item
from subago.schemas.auction import AuctionCreate, AuctionUpdate
from subago.services.auction import AuctionService
from subago.services.bidding import BiddingService
from subago.utils.time import utc_now


def _svc(db, world, broadcaster=None):
    return AuctionService(db, world.tenant.id, broadcaster=broadcaster)


def _create(item_ids, starts_in=timedelta(hours=1), lasts=timedelta(hours=2), **extra):
    start = utc_now() + starts_in
    return AuctionCreate(
        title="Remate de flota",
        start_time=start,
        end_time=start + lasts,
        item_ids=item_ids,
        **extra,
    )


async def _reload_item(db, item_id):
    result = await db.execute(
        select(Item).where(Item.id == item_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


class TestCreateAuction:
    async def test_creates_inactive_auction_and_reserves_items(self, db, factory, world):
        item = await factory.item(world.tenant, base_price=2_500_000)

        auction = await _svc(db, world).create_auction(_create([item.id]), created_by_id=world.manager.id)

        assert auction.state == AuctionState.INACTIVE
        assert len(auction.items) == 1
        assert auction.items[0].starting_bid == 2_500_000
        assert auction.items[0].state == AuctionItemState.EN_SUBASTA
        assert (await _reload_item(db, item.id)).state == ItemState.EN_SUBASTA

    @pytest.mark.parametrize(
        "starts_in, lasts, increment",
        [
            (timedelta(hours=1), timedelta(0), 50_000),  # start == end
            (timedelta(hours=-1), timedelta(hours=2), 50_000),  # start in the past
            (timedelta(hours=1), timedelta(hours=2), 0),  # no increment
        ],
    )
    async def test_rejects_bad_windows(self, db, world, starts_in, lasts, increment):
        with pytest.raises(BadRequestError):
            await _svc(db, world).create_auction(_create([], starts_in, lasts, bid_increment=increment))

    async def test_rejects_items_that_are_not_available(self, db, factory, world):
        sold = await factory.item(world.tenant, state=ItemState.VENDIDO)

        with pytest.raises(BadRequestError):
            await _svc(db, world).create_auction(_create([sold.id]))

    async def test_rejects_other_tenants_items(self, db, factory, world):
        foreign = await factory.item(await factory.tenant())

        with pytest.raises(NotFoundError):
            await _svc(db, world).create_auction(_create([foreign.id]))


class TestStateGuards:
    async def test_cancel_only_inactive_and_releases_items(self, db, factory, world, broadcaster):
        item = await factory.item(world.tenant)
        auction = await _svc(db, world).create_auction(_create([item.id]))

        cancelled = await _svc(db, world, broadcaster).cancel_auction(auction.id)

        assert cancelled.state == AuctionState.CANCELLED
        assert (await _reload_item(db, item.id)).state == ItemState.DISPONIBLE
        assert broadcaster.status_changes == [(world.tenant.id, auction.id, "cancelled")]

    async def test_cannot_cancel_active_auction(self, db, factory, world):
        auction, _ = await factory.auction(world.tenant)

        with pytest.raises(BadRequestError):
            await _svc(db, world).cancel_auction(auction.id)

    async def test_uncancel_reserves_items_again(self, db, factory, world):
        item = await factory.item(world.tenant)
        svc = _svc(db, world)
        auction = await svc.create_auction(_create([item.id]))
        await svc.cancel_auction(auction.id)

        restored = await svc.uncancel_auction(auction.id)

        assert restored.state == AuctionState.INACTIVE
        assert (await _reload_item(db, item.id)).state == ItemState.EN_SUBASTA

    async def test_uncancel_fails_when_item_was_reused(self, db, factory, world):
        item = await factory.item(world.tenant)
        svc = _svc(db, world)
        first = await svc.create_auction(_create([item.id]))
        await svc.cancel_auction(first.id)
        await svc.create_auction(_create([item.id]))

        with pytest.raises(BadRequestError):
            await svc.uncancel_auction(first.id)

    async def test_editing_cancelled_auction_reserves_its_items(self, db, factory, world):
        item = await factory.item(world.tenant)
        svc = _svc(db, world)
        auction = await svc.create_auction(_create([item.id]))
        await svc.cancel_auction(auction.id)

        edited = await svc.update_auction(auction.id, AuctionUpdate(title="Remate reprogramado"))

        assert edited.state == AuctionState.INACTIVE
        assert (await _reload_item(db, item.id)).state == ItemState.EN_SUBASTA
        with pytest.raises(BadRequestError):
            await svc.create_auction(_create([item.id]))

    async def test_editing_cancelled_auction_fails_when_item_was_reused(self, db, factory, world):
        item = await factory.item(world.tenant)
        svc = _svc(db, world)
        first = await svc.create_auction(_create([item.id]))
        await svc.cancel_auction(first.id)
        await svc.create_auction(_create([item.id]))

        with pytest.raises(BadRequestError):
            await svc.update_auction(first.id, AuctionUpdate(title="Remate reprogramado"))

    async def test_editing_cancelled_auction_can_drop_a_reused_item(self, db, factory, world):
        keep = await factory.item(world.tenant)
        reused = await factory.item(world.tenant)
        svc = _svc(db, world)
        first = await svc.create_auction(_create([keep.id, reused.id]))
        await svc.cancel_auction(first.id)
        await svc.create_auction(_create([reused.id]))

        edited = await svc.update_auction(first.id, AuctionUpdate(item_ids=[keep.id]))

        assert [ai.item_id for ai in edited.items] == [keep.id]
        assert (await _reload_item(db, keep.id)).state == ItemState.EN_SUBASTA
        assert (await _reload_item(db, reused.id)).state == ItemState.EN_SUBASTA

    async def test_deleting_cancelled_auction_leaves_reused_items_alone(self, db, factory, world):
        item = await factory.item(world.tenant)
        svc = _svc(db, world)
        first = await svc.create_auction(_create([item.id]))
        await svc.cancel_auction(first.id)
        await svc.create_auction(_create([item.id]))

        await svc.delete_auction(first.id)

        assert (await _reload_item(db, item.id)).state == ItemState.EN_SUBASTA

    async def test_start_requires_inactive_and_reached_start(self, db, world):
        svc = _svc(db, world)
        auction = await svc.create_auction(_create([]))

        with pytest.raises(BadRequestError):
            await svc.start_auction(auction.id)

        started = await svc.start_auction(auction.id, now=utc_now() + timedelta(hours=1, minutes=1))
        assert started.state == AuctionState.ACTIVE

    async def test_only_pending_or_cancelled_can_be_edited(self, db, factory, world):
        auction, _ = await factory.auction(world.tenant)

        with pytest.raises(BadRequestError):
            await _svc(db, world).update_auction(auction.id, AuctionUpdate(title="Nuevo nombre"))

    async def test_edit_swaps_items(self, db, factory, world):
        keep = await factory.item(world.tenant)
        drop = await factory.item(world.tenant)
        add = await factory.item(world.tenant)
        svc = _svc(db, world)
        auction = await svc.create_auction(_create([keep.id, drop.id]))

        updated = await svc.update_auction(auction.id, AuctionUpdate(item_ids=[keep.id, add.id]))

        assert sorted(ai.item_id for ai in updated.items) == sorted([keep.id, add.id])
        assert (await _reload_item(db, drop.id)).state == ItemState.DISPONIBLE
        assert (await _reload_item(db, add.id)).state == ItemState.EN_SUBASTA

    async def test_cannot_delete_active_auction(self, db, factory, world):
        auction, _ = await factory.auction(world.tenant)

        with pytest.raises(BadRequestError):
            await _svc(db, world).delete_auction(auction.id)


class TestClose:
    async def test_close_awards_highest_bidder_and_frees_unsold(self, db, factory, world, broadcaster):
        sold_item = await factory.item(world.tenant)
        unsold_item = await factory.item(world.tenant)
        auction, (sold_ai, unsold_ai) = await factory.auction(world.tenant, items=(sold_item, unsold_item))
        await factory.register(world.bidder, auction)
        await BiddingService(db, world.tenant.id).place_bid(sold_ai.id, 1_300_000, world.bidder.id)

        closed = await _svc(db, world, broadcaster).close_auction(auction.id)

        assert closed.state == AuctionState.COMPLETED
        sold = await _reload_item(db, sold_item.id)
        assert sold.state == ItemState.VENDIDO
        assert sold.sold_price == 1_300_000
        assert sold.sold_to_user_id == world.bidder.id
        assert (await _reload_item(db, unsold_item.id)).state == ItemState.DISPONIBLE

        audit = (await db.execute(select(AuditLog).where(AuditLog.action == AuditAction.ITEM_SOLD))).scalars().all()
        assert [a.entity_id for a in audit] == [sold_item.id]
        assert broadcaster.status_changes[-1][2] == "completed"

    async def test_cannot_close_inactive_auction(self, db, world):
        auction = await _svc(db, world).create_auction(_create([]))

        with pytest.raises(BadRequestError):
            await _svc(db, world).close_auction(auction.id)


class TestRegistrations:
    async def test_register_is_idempotent(self, db, factory, world):
        auction, _ = await factory.auction(world.tenant)
        svc = _svc(db, world)

        first = await svc.register_user(auction.id, world.bidder.id)
        second = await svc.register_user(auction.id, world.bidder.id)

        assert first.id == second.id
        participants = await svc.list_participants(auction.id)
        assert [p.user_id for p in participants] == [world.bidder.id]

    async def test_only_users_of_the_tenant_with_user_role(self, db, factory, world):
        auction, _ = await factory.auction(world.tenant)
        outsider = await factory.user(await factory.tenant())
        svc = _svc(db, world)

        with pytest.raises(ForbiddenError):
            await svc.register_user(auction.id, outsider.id)
        with pytest.raises(BadRequestError):
            await svc.register_user(auction.id, world.manager.id)

    async def test_unregister_missing_registration(self, db, factory, world):
        auction, _ = await factory.auction(world.tenant)

        with pytest.raises(NotFoundError):
            await _svc(db, world).unregister_user(auction.id, world.bidder.id)

    async def test_stats_count_by_state(self, db, factory, world):
        await factory.auction(world.tenant)
        await factory.auction(world.tenant, state=AuctionState.CANCELLED)

        stats = await _svc(db, world).get_stats()

        assert stats.total == 2
        assert stats.active == 1
        assert stats.cancelled == 1
