"""Slippage haircuts, gas deductions and net profit for one round trip."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

from pricing.amounts import Amount

BPS_DENOMINATOR = 10_000


class AggregatorSlippage(Enum):
    """
    How aggregator legs are costed.

    HAIRCUT:  aggregator output gets the same slippage haircut as any venue.
    GAS_ONLY: the aggregator already models slippage; only gas is deducted.
    """

    HAIRCUT = "haircut"
    GAS_ONLY = "gas_only"


def slippage_bps(slippage_pct: float) -> int:
    """Percentage (0.3 = 0.3%) to whole basis points, clamped to [0, 10000]."""
    if not math.isfinite(slippage_pct):
        raise ValueError("slippage must be finite")
    bps = int(round(slippage_pct * 100))
    return min(max(bps, 0), BPS_DENOMINATOR)


def apply_haircut(amount: Amount, slippage_pct: float) -> Amount:
    """Shave ``slippage_pct`` off a quoted output.  Rounds down, never grows."""
    bps = slippage_bps(slippage_pct)
    raw = max(amount.raw, 0) * (BPS_DENOMINATOR - bps) // BPS_DENOMINATOR
    return amount.with_raw(raw)


def subtract_gas(amount: Amount, gas_cost: Amount) -> Amount:
    """Deduct gas, clamping at zero."""
    amount.check_same_scale(gas_cost)
    return amount.with_raw(max(amount.raw - gas_cost.raw, 0))


def net_profit_pct(amount_in: Amount, amount_out: Amount) -> float:
    """``(out - in) / in * 100``; NaN when the input is zero."""
    amount_in.check_same_scale(amount_out)
    if amount_in.raw <= 0:
        return float("nan")
    return (amount_out.raw - amount_in.raw) / amount_in.raw * 100.0


@dataclass
class FeeStructure:
    """
    All-in cost model for a buy-on-one-venue, sell-on-another round trip.

    Components:
      - buy_slippage_pct  : haircut on the asset received from the buy leg
      - sell_slippage_pct : haircut on the reference received from the sell leg
      - gas_cost_usd      : simulated gas per leg, in reference-currency units
      - venue_gas_usd     : per-venue overrides of ``gas_cost_usd``
      - aggregator_slippage : whether aggregator legs get a haircut at all
    """

    buy_slippage_pct: float = 0.3
    sell_slippage_pct: float = 0.3
    gas_cost_usd: float = 0.02
    venue_gas_usd: dict[str, float] = field(default_factory=dict)
    aggregator_slippage: AggregatorSlippage = AggregatorSlippage.HAIRCUT

    def _haircut_applies(self, is_aggregator: bool) -> bool:
        return not (
            is_aggregator and self.aggregator_slippage is AggregatorSlippage.GAS_ONLY
        )

    def buy_haircut(self, amount: Amount, is_aggregator: bool = False) -> Amount:
        if not self._haircut_applies(is_aggregator):
            return amount
        return apply_haircut(amount, self.buy_slippage_pct)

    def sell_haircut(self, amount: Amount, is_aggregator: bool = False) -> Amount:
        if not self._haircut_applies(is_aggregator):
            return amount
        return apply_haircut(amount, self.sell_slippage_pct)

    def leg_gas_usd(self, venue_id: str) -> float:
        return float(self.venue_gas_usd.get(venue_id, self.gas_cost_usd))

    def round_trip_gas(
        self, buy_venue: str, sell_venue: str, decimals: int, symbol: str = ""
    ) -> Amount:
        """Gas for both legs as a reference-currency amount."""
        total = Amount.from_human(self.leg_gas_usd(buy_venue), decimals, symbol)
        return total + Amount.from_human(self.leg_gas_usd(sell_venue), decimals, symbol)
