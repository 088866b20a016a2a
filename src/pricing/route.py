from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Protocol

from strategy.fees import FeeStructure, net_profit_pct, subtract_gas

from .amounts import Amount
from .venues import Direction, QuoteResult, Token, Venue

logger = logging.getLogger(__name__)

NO_VENUE = "-"


class LegQuoter(Protocol):
    async def quote(
        self, venue: Venue, direction: Direction, asset: Token, amount_in: Amount
    ) -> QuoteResult: ...


@dataclass
class RouteResult:
    """Best round trip for one asset and trade size (NaN profit = no route)."""

    profit_pct: float
    buy_venue: str
    sell_venue: str
    gas_cost: float  # reference-currency units, both legs
    size: float
    amount_out: Optional[Amount] = None

    @property
    def found(self) -> bool:
        return math.isfinite(self.profit_pct)

    @classmethod
    def no_route(cls, size: float) -> "RouteResult":
        return cls(
            profit_pct=float("nan"),
            buy_venue=NO_VENUE,
            sell_venue=NO_VENUE,
            gas_cost=0.0,
            size=size,
        )


class RouteFinder:
    """
    Exhaustive search over ordered (buy venue, sell venue) pairs.

    Venue lists are short, so every pair with buy != sell is priced.  The buy
    leg only depends on the buy venue and is quoted once per venue.
    """

    def __init__(
        self,
        quoter: LegQuoter,
        venues: list[Venue],
        reference: Token,
        fees: FeeStructure,
    ) -> None:
        self.quoter = quoter
        self.venues = list(venues)
        self.reference = reference
        self.fees = fees
        self._by_id = {v.id: v for v in self.venues}

    def venue(self, venue_id: str) -> Venue:
        return self._by_id[venue_id]

    # ── legs ───────────────────────────────────────────────────

    async def _buy_leg(self, asset: Token, buy: Venue, size_in: Amount) -> Optional[Amount]:
        """Asset received on ``buy`` after the buy-side haircut."""
        result = await self.quoter.quote(buy, Direction.TO_ASSET, asset, size_in)
        if not result.ok:
            logger.debug("%s buy leg on %s failed: %s", asset.symbol, buy.id, result.error)
            return None
        return self.fees.buy_haircut(result.amount_out, buy.is_aggregator)

    async def _sell_leg(
        self,
        asset: Token,
        buy: Venue,
        sell: Venue,
        size_in: Amount,
        asset_amount: Amount,
    ) -> Optional[RouteResult]:
        if asset_amount.raw <= 0:
            return None
        result = await self.quoter.quote(sell, Direction.TO_REFERENCE, asset, asset_amount)
        if not result.ok:
            logger.debug(
                "%s sell leg on %s failed: %s", asset.symbol, sell.id, result.error
            )
            return None
        received = self.fees.sell_haircut(result.amount_out, sell.is_aggregator)
        gas = self.fees.round_trip_gas(
            buy.id, sell.id, self.reference.decimals, self.reference.symbol
        )
        net = subtract_gas(received, gas)
        profit = net_profit_pct(size_in, net)
        if not math.isfinite(profit):
            return None
        return RouteResult(
            profit_pct=profit,
            buy_venue=buy.id,
            sell_venue=sell.id,
            gas_cost=float(gas.human),
            size=float(size_in.human),
            amount_out=net,
        )

    # ── public API ─────────────────────────────────────────────

    async def evaluate_pair(
        self, asset: Token, buy_venue: str, sell_venue: str, size: float
    ) -> RouteResult:
        """Price one fixed route at ``size`` (reference-currency units)."""
        size_in = self.reference.amount(size)
        buy = self.venue(buy_venue)
        sell = self.venue(sell_venue)
        asset_amount = await self._buy_leg(asset, buy, size_in)
        if asset_amount is None:
            return RouteResult.no_route(size)
        result = await self._sell_leg(asset, buy, sell, size_in, asset_amount)
        return result or RouteResult.no_route(size)

    async def best_route(self, asset: Token, size: float) -> RouteResult:
        """Best net profit over all ordered venue pairs; ties keep the first."""
        size_in = self.reference.amount(size)
        best: Optional[RouteResult] = None
        bought: dict[str, Optional[Amount]] = {}

        for buy in self.venues:
            for sell in self.venues:
                if buy.id == sell.id:
                    continue
                if buy.id not in bought:
                    bought[buy.id] = await self._buy_leg(asset, buy, size_in)
                asset_amount = bought[buy.id]
                if asset_amount is None:
                    break
                candidate = await self._sell_leg(asset, buy, sell, size_in, asset_amount)
                if candidate is None:
                    continue
                if best is None or candidate.profit_pct > best.profit_pct:
                    best = candidate

        if best is None:
            logger.info("%s @ %s: no route", asset.symbol, size)
            return RouteResult.no_route(size)
        logger.debug(
            "%s @ %s: best %s -> %s %.4f%%",
            asset.symbol,
            size,
            best.buy_venue,
            best.sell_venue,
            best.profit_pct,
        )
        return best
