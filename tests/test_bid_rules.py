"""Tests for minimum-bid arithmetic and state transitions."""

import math

import pytest

from subago.core.exceptions import BadRequestError
from subago.domain.enums import AuctionItemState, AuctionState, ItemState
from subago.domain.transitions import assert_transition, can_transition
from subago.services.bid_rules import BELOW_MIN, compute_bid_constraints, validate_bid_amount


class TestConstraints:
    def test_first_bid_minimum_is_the_starting_bid(self):
        constraints = compute_bid_constraints(1_000_000, 50_000, has_previous_bid=False)
        assert constraints.minimum_bid == 1_000_000

    def test_later_bids_add_the_increment(self):
        constraints = compute_bid_constraints(1_200_000, 50_000, has_previous_bid=True)
        assert constraints.minimum_bid == 1_250_000

    @pytest.mark.parametrize("increment", [0, -5, None, "abc", math.inf])
    def test_increment_floor_is_one(self, increment):
        constraints = compute_bid_constraints(100, increment, has_previous_bid=True)
        assert constraints.bid_increment == 1
        assert constraints.minimum_bid == 101


class TestValidation:
    def test_accepts_minimum_and_above(self):
        assert validate_bid_amount(100, 100).ok
        assert validate_bid_amount(100.5, 100).ok

    @pytest.mark.parametrize("amount", [99.99, math.nan, math.inf, -math.inf, "nope", None])
    def test_rejects_low_or_non_finite(self, amount):
        result = validate_bid_amount(amount, 100)
        assert not result.ok
        assert result.reason == BELOW_MIN
        assert result.next_valid == 100


class TestTransitions:
    def test_auction(self):
        assert can_transition(AuctionState.INACTIVE, AuctionState.ACTIVE)
        assert can_transition(AuctionState.ACTIVE, AuctionState.COMPLETED)
        assert not can_transition(AuctionState.COMPLETED, AuctionState.ACTIVE)
        assert not can_transition(AuctionState.ACTIVE, AuctionState.CANCELLED)

    def test_items(self):
        assert can_transition(ItemState.EN_SUBASTA, ItemState.VENDIDO)
        assert not can_transition(ItemState.VENDIDO, ItemState.DISPONIBLE)
        assert can_transition(AuctionItemState.EN_SUBASTA, AuctionItemState.ADJUDICADO)

    def test_staying_put_is_allowed(self):
        assert can_transition(ItemState.VENDIDO, ItemState.VENDIDO)

    def test_assert_raises_bad_request(self):
        with pytest.raises(BadRequestError, match="transición inválida"):
            assert_transition(ItemState.ELIMINADO, ItemState.DISPONIBLE, "Item")

    def test_mixed_enums_are_a_programming_error(self):
        with pytest.raises(TypeError):
            can_transition(ItemState.VENDIDO, AuctionState.ACTIVE)
