"""Venue, token and quote types shared by every quoting backend."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .amounts import Amount


class QuoteError(RuntimeError):
    """Raised by a backend when a leg cannot be priced."""


class Direction(Enum):
    TO_ASSET = "to_asset"  # reference -> asset (buy leg)
    TO_REFERENCE = "to_reference"  # asset -> reference (sell leg)


class VenueKind(Enum):
    V2_ROUTER = "v2_router"  # constant-product router (getAmountsOut)
    V3_QUOTER = "v3_quoter"  # concentrated-liquidity QuoterV2
    AGGREGATOR = "aggregator"  # HTTP aggregator quote API (Odos)


@dataclass(frozen=True)
class Token:
    symbol: str
    address: str
    decimals: int

    def amount(self, value: float | str) -> Amount:
        return Amount.from_human(value, self.decimals, self.symbol)


@dataclass(frozen=True)
class Venue:
    """
    One priceable venue inside a chain scope.

    ``address`` is the router / quoter contract for on-chain kinds and unused
    for aggregators.  ``swap_url`` is a template for a human swap link with
    ``{input}``, ``{output}``, ``{chain}`` and ``{chain_id}`` placeholders.
    """

    id: str
    kind: VenueKind
    label: str = ""
    address: Optional[str] = None
    swap_url: Optional[str] = None
    fee_tiers: tuple[int, ...] = (500, 3_000, 10_000)

    @property
    def name(self) -> str:
        return self.label or self.id

    @property
    def is_aggregator(self) -> bool:
        return self.kind is VenueKind.AGGREGATOR


@dataclass
class QuoteResult:
    """Outcome of one leg: either ``amount_out`` or ``error`` is set."""

    venue_id: str
    direction: Direction
    amount_in: Amount
    amount_out: Optional[Amount] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.amount_out is not None and self.error is None

    @classmethod
    def failure(
        cls, venue_id: str, direction: Direction, amount_in: Amount, error: str
    ) -> "QuoteResult":
        return cls(venue_id, direction, amount_in, amount_out=None, error=error)
