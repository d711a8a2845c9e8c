"""Auction lifecycle: create/edit, start/close/cancel/uncancel, registrations, stats."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from subago.core.pagination import PaginationParams
from subago.domain.auction import Auction, AuctionItem, AuctionRegistration
from subago.domain.enums import AuctionItemState, AuctionState, AuctionType, ItemState, UserRole
from subago.domain.transitions import assert_transition
from subago.realtime.broadcaster import AuctionBroadcaster, NullBroadcaster
from subago.repositories.auction import (
    AuctionItemRepository,
    AuctionRepository,
    RegistrationRepository,
)
from subago.repositories.item import ItemRepository
from subago.repositories.user import UserRepository
from subago.schemas.auction import AuctionCreate, AuctionStats, AuctionUpdate
from subago.services.settlement import settle_auction
from subago.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)


def auction_snapshot(auction: Auction) -> dict[str, Any]:
    """Compact auction view carried by AUCTION_STATUS_CHANGED."""
    return {
        "id": auction.id,
        "title": auction.title,
        "status": auction.state.value,
        "type": auction.type.value,
        "startTime": as_utc(auction.start_time).isoformat(),
        "endTime": as_utc(auction.end_time).isoformat(),
    }


class AuctionService:
    def __init__(
        self,
        session: AsyncSession,
        tenant_id: str,
        broadcaster: AuctionBroadcaster | None = None,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._broadcaster = broadcaster or NullBroadcaster()
        self._repo = AuctionRepository(session, tenant_id)
        self._auction_items = AuctionItemRepository(session, tenant_id)
        self._items = ItemRepository(session, tenant_id)
        self._registrations = RegistrationRepository(session)
        self._users = UserRepository(session)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_auctions(
        self,
        pagination: PaginationParams,
        state: AuctionState | None = None,
        auction_type: AuctionType | None = None,
    ):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"state": state, "type": auction_type},
        )

    async def get_auction(self, auction_id: str) -> Auction:
        auction = await self._repo.get_with_items(auction_id)
        if not auction:
            raise NotFoundError("Subasta", auction_id)
        return auction

    async def list_auction_items(self, auction_id: str) -> list[AuctionItem]:
        await self.get_auction(auction_id)
        return await self._auction_items.list_by_auction(auction_id, with_item=True)

    async def get_stats(self) -> AuctionStats:
        counts = await self._repo.count_by_state()
        return AuctionStats(
            total=sum(counts.values()),
            active=counts.get(AuctionState.ACTIVE, 0),
            inactive=counts.get(AuctionState.INACTIVE, 0),
            completed=counts.get(AuctionState.COMPLETED, 0),
            cancelled=counts.get(AuctionState.CANCELLED, 0),
        )

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    def _validate_window(self, start: datetime, end: datetime, bid_increment: float, now: datetime) -> None:
        if start >= end:
            raise BadRequestError("La fecha de inicio debe ser anterior a la fecha de término")
        if start <= now:
            raise BadRequestError("La fecha de inicio debe ser en el futuro")
        if bid_increment is None or bid_increment <= 0:
            raise BadRequestError("El incremento de puja debe ser mayor a 0")

    async def _attach_items(self, auction: Auction, item_ids: list[str]) -> None:
        items = await self._items.get_many(item_ids)
        found = {i.id: i for i in items}
        for item_id in item_ids:
            item = found.get(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            if item.state != ItemState.DISPONIBLE:
                raise BadRequestError(f"El item {item.plate} no está disponible")
            if not item.base_price:
                raise BadRequestError(f"El item {item.plate} no tiene precio base")

            assert_transition(item.state, ItemState.EN_SUBASTA, "Item")
            item.state = ItemState.EN_SUBASTA
            self._session.add(
                AuctionItem(
                    tenant_id=self._tenant_id,
                    auction_id=auction.id,
                    item_id=item.id,
                    starting_bid=item.base_price,
                    state=AuctionItemState.EN_SUBASTA,
                    start_time=auction.start_time,
                    end_time=auction.end_time,
                )
            )
        await self._session.flush()

    async def _release_items(
        self, auction_id: str, item_ids: list[str] | None = None, free_items: bool = True
    ) -> None:
        """Detach linked items (all when item_ids is None), returning them to Disponible.

        A cancelled auction already freed its items, which may since belong to
        another auction; pass free_items=False to only detach them.
        """
        for auction_item in await self._auction_items.list_by_auction(auction_id, with_item=True):
            if item_ids is not None and auction_item.item_id not in item_ids:
                continue
            item = auction_item.item
            if free_items and item is not None and item.state == ItemState.EN_SUBASTA:
                item.state = ItemState.DISPONIBLE
            await self._auction_items.soft_delete(auction_item.id)
        await self._session.flush()

    async def _reserve_items(self, auction_id: str) -> None:
        """Put the items still linked to a cancelled auction back under auction."""
        for auction_item in await self._auction_items.list_by_auction(auction_id, with_item=True):
            item = auction_item.item
            if item is None:
                continue
            if item.state != ItemState.DISPONIBLE:
                raise BadRequestError(f"El item {item.plate} ya no está disponible")
            item.state = ItemState.EN_SUBASTA
        await self._session.flush()

    async def create_auction(self, data: AuctionCreate, created_by_id: str | None = None) -> Auction:
        start, end = as_utc(data.start_time), as_utc(data.end_time)
        self._validate_window(start, end, data.bid_increment, utc_now())
        if len(set(data.item_ids)) != len(data.item_ids):
            raise BadRequestError("Hay items repetidos en la subasta")

        auction = await self._repo.create(
            title=data.title,
            description=data.description,
            start_time=start,
            end_time=end,
            type=data.type,
            bid_increment=data.bid_increment,
            state=AuctionState.INACTIVE,
            created_by_id=created_by_id,
        )
        await self._attach_items(auction, data.item_ids)
        logger.info("Auction %s created with %d items", auction.id, len(data.item_ids))
        return await self.get_auction(auction.id)

    async def update_auction(self, auction_id: str, data: AuctionUpdate) -> Auction:
        auction = await self.get_auction(auction_id)
        if auction.state not in (AuctionState.INACTIVE, AuctionState.CANCELLED):
            raise BadRequestError("Solo se pueden editar subastas pendientes o canceladas")

        fields = data.model_dump(exclude_unset=True, exclude={"item_ids"})
        start = as_utc(fields.get("start_time") or auction.start_time)
        end = as_utc(fields.get("end_time") or auction.end_time)
        increment = fields.get("bid_increment", auction.bid_increment)
        self._validate_window(start, end, increment, utc_now())

        for key, value in fields.items():
            setattr(auction, key, value)
        auction.start_time, auction.end_time = start, end

        # Editing a cancelled auction puts it back on the schedule
        was_cancelled = auction.state == AuctionState.CANCELLED
        if was_cancelled:
            assert_transition(auction.state, AuctionState.INACTIVE, "Subasta")
            auction.state = AuctionState.INACTIVE

        added: list[str] = []
        if data.item_ids is not None:
            current_ids = {ai.item_id for ai in await self._auction_items.list_by_auction(auction.id)}
            wanted = list(dict.fromkeys(data.item_ids))
            removed = [i for i in current_ids if i not in wanted]
            added = [i for i in wanted if i not in current_ids]
            await self._release_items(auction.id, removed, free_items=not was_cancelled)
        if was_cancelled:
            # Cancelling freed the kept items; take them back before attaching new ones
            await self._reserve_items(auction.id)
        if added:
            await self._attach_items(auction, added)

        for auction_item in await self._auction_items.list_by_auction(auction.id):
            auction_item.start_time, auction_item.end_time = start, end
        await self._session.flush()

        await self._notify(auction)
        return await self.get_auction(auction.id)

    async def delete_auction(self, auction_id: str) -> None:
        auction = await self.get_auction(auction_id)
        if auction.state == AuctionState.ACTIVE:
            raise BadRequestError("No se puede eliminar una subasta activa")
        await self._release_items(auction.id, free_items=auction.state != AuctionState.CANCELLED)
        await self._repo.soft_delete(auction.id)

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    async def start_auction(self, auction_id: str, now: datetime | None = None) -> Auction:
        auction = await self.get_auction(auction_id)
        now = now or utc_now()
        if auction.state != AuctionState.INACTIVE:
            raise BadRequestError("Solo se pueden iniciar subastas pendientes")
        if now < as_utc(auction.start_time):
            raise BadRequestError("La subasta aún no llega a su hora de inicio")
        auction.state = AuctionState.ACTIVE
        await self._session.flush()
        await self._notify(auction)
        return auction

    async def close_auction(self, auction_id: str) -> Auction:
        auction = await self.get_auction(auction_id)
        if auction.state != AuctionState.ACTIVE:
            raise BadRequestError("Solo se pueden cerrar subastas activas")
        await settle_auction(self._session, auction)
        await self._notify(auction)
        return auction

    async def cancel_auction(self, auction_id: str) -> Auction:
        auction = await self.get_auction(auction_id)
        if auction.state != AuctionState.INACTIVE:
            raise BadRequestError("Solo se pueden cancelar subastas pendientes")
        assert_transition(auction.state, AuctionState.CANCELLED, "Subasta")
        auction.state = AuctionState.CANCELLED
        for auction_item in await self._auction_items.list_by_auction(auction.id, with_item=True):
            if auction_item.item is not None and auction_item.item.state == ItemState.EN_SUBASTA:
                auction_item.item.state = ItemState.DISPONIBLE
        await self._session.flush()
        await self._notify(auction)
        return auction

    async def uncancel_auction(self, auction_id: str, now: datetime | None = None) -> Auction:
        auction = await self.get_auction(auction_id)
        now = now or utc_now()
        if auction.state != AuctionState.CANCELLED:
            raise BadRequestError("Solo se pueden reactivar subastas canceladas")
        if as_utc(auction.end_time) <= now:
            raise BadRequestError("La subasta ya finalizó; edita sus fechas antes de reactivarla")

        await self._reserve_items(auction.id)

        target = AuctionState.ACTIVE if auction.is_open_at(now) else AuctionState.INACTIVE
        assert_transition(auction.state, target, "Subasta")
        auction.state = target
        await self._session.flush()
        await self._notify(auction)
        return auction

    async def _notify(self, auction: Auction) -> None:
        await self._broadcaster.broadcast_auction_status_change(
            self._tenant_id, auction.id, auction.state.value, auction_snapshot(auction)
        )

    # ------------------------------------------------------------------
    # Registrations
    # ------------------------------------------------------------------

    async def register_user(self, auction_id: str, user_id: str) -> AuctionRegistration:
        auction = await self.get_auction(auction_id)
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("Usuario", user_id)
        if user.tenant_id != self._tenant_id:
            raise ForbiddenError("El usuario no pertenece a este tenant")
        if user.role != UserRole.USER:
            raise BadRequestError("Solo usuarios con rol USER pueden registrarse en subastas")
        if auction.state in (AuctionState.COMPLETED, AuctionState.CANCELLED):
            raise BadRequestError("La subasta no admite nuevos participantes")

        existing = await self._registrations.get(user_id, auction_id)
        if existing is not None:
            return existing
        return await self._registrations.add(user_id, auction_id)

    async def unregister_user(self, auction_id: str, user_id: str) -> None:
        await self.get_auction(auction_id)
        if not await self._registrations.remove(user_id, auction_id):
            raise NotFoundError("Registro", f"{user_id}@{auction_id}")

    async def list_participants(self, auction_id: str) -> list[AuctionRegistration]:
        await self.get_auction(auction_id)
        return await self._registrations.list_by_auction(auction_id)

    async def list_user_registrations(self, user_id: str) -> list[AuctionRegistration]:
        registrations = await self._registrations.list_by_user(user_id)
        mine = []
        for registration in registrations:
            if await self._repo.get_by_id(registration.auction_id) is not None:
                mine.append(registration)
        return mine
