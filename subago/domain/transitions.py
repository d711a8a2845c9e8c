"""Legal state transitions for auctions, items and auction items."""

from __future__ import annotations

from enum import Enum

from subago.core.exceptions import BadRequestError
from subago.domain.enums import AuctionItemState, AuctionState, ItemState

AUCTION_TRANSITIONS: dict[AuctionState, frozenset[AuctionState]] = {
    AuctionState.INACTIVE: frozenset({AuctionState.ACTIVE, AuctionState.CANCELLED}),
    AuctionState.ACTIVE: frozenset({AuctionState.COMPLETED}),
    AuctionState.CANCELLED: frozenset({AuctionState.INACTIVE, AuctionState.ACTIVE}),
    AuctionState.COMPLETED: frozenset(),
}

AUCTION_ITEM_TRANSITIONS: dict[AuctionItemState, frozenset[AuctionItemState]] = {
    AuctionItemState.DISPONIBLE: frozenset(
        {AuctionItemState.EN_SUBASTA, AuctionItemState.EN_REVISION, AuctionItemState.ELIMINADO}
    ),
    AuctionItemState.EN_REVISION: frozenset(
        {AuctionItemState.DISPONIBLE, AuctionItemState.ELIMINADO}
    ),
    AuctionItemState.EN_SUBASTA: frozenset(
        {
            AuctionItemState.VENDIDO,
            AuctionItemState.ADJUDICADO,
            AuctionItemState.DISPONIBLE,
            AuctionItemState.ELIMINADO,
        }
    ),
    AuctionItemState.ADJUDICADO: frozenset({AuctionItemState.VENDIDO}),
    AuctionItemState.VENDIDO: frozenset(),
    AuctionItemState.ELIMINADO: frozenset(),
}

ITEM_TRANSITIONS: dict[ItemState, frozenset[ItemState]] = {
    ItemState.DISPONIBLE: frozenset({ItemState.EN_SUBASTA, ItemState.ELIMINADO}),
    ItemState.EN_SUBASTA: frozenset(
        {ItemState.VENDIDO, ItemState.DISPONIBLE, ItemState.ELIMINADO}
    ),
    ItemState.VENDIDO: frozenset(),
    ItemState.ELIMINADO: frozenset(),
}

_TABLES: dict[type[Enum], dict] = {
    AuctionState: AUCTION_TRANSITIONS,
    AuctionItemState: AUCTION_ITEM_TRANSITIONS,
    ItemState: ITEM_TRANSITIONS,
}


def can_transition(current: Enum, target: Enum) -> bool:
    """True when `current -> target` is allowed. Staying in place is always allowed."""
    if type(current) is not type(target):
        raise TypeError(f"Cannot compare {type(current).__name__} with {type(target).__name__}")
    if current == target:
        return True
    return target in _TABLES[type(current)].get(current, frozenset())


def assert_transition(current: Enum, target: Enum, entity: str) -> None:
    if not can_transition(current, target):
        raise BadRequestError(
            f"{entity}: transición inválida de '{current.value}' a '{target.value}'"
        )
