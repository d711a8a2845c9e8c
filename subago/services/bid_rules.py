"""Bid amount rules shared by the REST and WebSocket bid paths.

Business rule:
  * first bid on an item must be at least the starting bid
  * every later bid must be at least highest + bid_increment
  * the increment only defines the next minimum; amounts are NOT step-aligned
"""

from __future__ import annotations

import math
from dataclasses import dataclass

BELOW_MIN = "BELOW_MIN"


@dataclass(frozen=True)
class BidConstraints:
    base: float  # starting bid when there are no bids, otherwise current max
    bid_increment: float  # always >= 1
    minimum_bid: float


@dataclass(frozen=True)
class BidValidation:
    ok: bool
    next_valid: float
    reason: str | None = None


def _num(value) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


def compute_bid_constraints(base, bid_increment, has_previous_bid: bool) -> BidConstraints:
    base = _num(base)
    increment = max(1.0, _num(bid_increment) or 1.0)
    minimum = base + increment if has_previous_bid else base
    return BidConstraints(base=base, bid_increment=increment, minimum_bid=minimum)


def validate_bid_amount(amount, minimum_bid) -> BidValidation:
    minimum = _num(minimum_bid)
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return BidValidation(ok=False, next_valid=minimum, reason=BELOW_MIN)

    if not math.isfinite(value) or value < minimum:
        return BidValidation(ok=False, next_valid=minimum, reason=BELOW_MIN)
    return BidValidation(ok=True, next_valid=value)
