"""Shared fakes: constant-product pools per venue, in-memory store, notifier."""

from __future__ import annotations

from decimal import Decimal

from pricing.amounts import Amount
from pricing.venues import Direction, QuoteResult, Token, Venue, VenueKind
from strategy.pair_state import SignalState

USDC = Token("USDC", "0x00000000000000000000000000000000000000c3", 6)
LINK = Token("LINK", "0x00000000000000000000000000000000000000a1", 18)
AAVE = Token("AAVE", "0x00000000000000000000000000000000000000b2", 18)


def venue(venue_id: str, kind: VenueKind = VenueKind.V2_ROUTER) -> Venue:
    return Venue(
        venue_id,
        kind,
        venue_id.title(),
        None if kind is VenueKind.AGGREGATOR else "0x00000000000000000000000000000000000000f0",
        f"https://{venue_id}.example/swap?in={{input}}&out={{output}}",
    )


class PoolQuoter:
    """
    Quotes from one fee-less constant-product pool per venue.

    ``pools[venue_id] = (reference_reserve, asset_reserve)`` in human units,
    so the spot price is reference_reserve / asset_reserve.
    """

    def __init__(self, pools: dict, fail=(), raise_for=()):
        self.pools = dict(pools)
        self.fail = set(fail)
        self.raise_for = set(raise_for)
        self.calls: list[tuple[str, Direction, Decimal]] = []

    async def quote(self, venue, direction, asset, amount_in):
        self.calls.append((venue.id, direction, amount_in.human))
        if asset.symbol in self.raise_for:
            raise RuntimeError("quoter exploded")
        if (venue.id, direction) in self.fail or venue.id not in self.pools:
            return QuoteResult.failure(venue.id, direction, amount_in, "no pool")
        ref_res, asset_res = (Decimal(str(x)) for x in self.pools[venue.id])
        x = amount_in.human
        if direction is Direction.TO_ASSET:
            out = Amount.from_human(asset_res * x / (ref_res + x), asset.decimals, asset.symbol)
        else:
            out = Amount.from_human(ref_res * x / (asset_res + x), USDC.decimals, USDC.symbol)
        return QuoteResult(venue.id, direction, amount_in, amount_out=out)

    def count(self, venue_id: str, direction: Direction) -> int:
        return sum(1 for v, d, _ in self.calls if v == venue_id and d is direction)


# price 10.0 / 10.5 / 10.2 per asset, deep enough that impact is small
CHEAP = (1_000_000, 100_000)
RICH = (1_050_000, 100_000)
MID = (1_020_000, 100_000)


class MemoryStore:
    def __init__(self, state: SignalState | None = None):
        self.state = state or SignalState()
        self.saves = 0

    def load(self) -> SignalState:
        return SignalState.from_dict(self.state.to_dict())

    def save(self, state: SignalState) -> None:
        self.saves += 1
        self.state = SignalState.from_dict(state.to_dict())


class RecordingNotifier:
    def __init__(self, recipients=("chat-1",), failing=()):
        self.recipients = list(recipients)
        self.failing = set(failing)
        self.messages: list[str] = []

    def broadcast(self, text: str) -> dict[str, bool]:
        self.messages.append(text)
        return {chat: chat not in self.failing for chat in self.recipients}
