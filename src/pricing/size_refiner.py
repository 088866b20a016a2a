"""
Trade-size refinement for an already chosen route.

The size grid is coarse.  Once RouteFinder has picked the winning venues at
the best grid size, a bounded hill-climb over size alone (same venues) looks
for a nearby local maximum.  It does not re-search venue pairs, so the result
is a local optimum for that route, not a joint optimum over size and venues.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .route import RouteFinder, RouteResult
from .venues import Token

logger = logging.getLogger(__name__)


@dataclass
class RefinerConfig:
    enabled: bool = True
    initial_step_frac: float = 0.25  # first step = 25% of the base size
    min_step: float = 5.0  # floor for the first step (reference units)
    resolution: float = 1.0  # stop once the step drops below this
    max_rounds: int = 8
    min_factor: float = 0.4
    max_factor: float = 2.5
    abs_min_size: float = 10.0
    abs_max_size: float = 50_000.0

    @classmethod
    def from_env(cls) -> "RefinerConfig":
        return cls(
            enabled=os.getenv("REFINE_ENABLED", "1") == "1",
            max_rounds=int(os.getenv("REFINE_MAX_ROUNDS", "8")),
            min_step=float(os.getenv("REFINE_MIN_STEP", "5")),
            resolution=float(os.getenv("REFINE_RESOLUTION", "1")),
        )

    def bounds(self, base_size: float) -> tuple[float, float]:
        lo = max(base_size * self.min_factor, self.abs_min_size)
        hi = min(base_size * self.max_factor, self.abs_max_size)
        if lo > hi:
            lo = hi = base_size
        return lo, hi


@dataclass
class SizeRefinement(RouteResult):
    """RouteResult at the refined size, plus how the search went."""

    base_size: float = 0.0
    rounds: int = 0
    evaluations: int = 0

    @property
    def improved(self) -> bool:
        return self.size != self.base_size

    @classmethod
    def from_route(cls, route: RouteResult) -> "SizeRefinement":
        return cls(
            profit_pct=route.profit_pct,
            buy_venue=route.buy_venue,
            sell_venue=route.sell_venue,
            gas_cost=route.gas_cost,
            size=route.size,
            amount_out=route.amount_out,
            base_size=route.size,
        )


class SizeRefiner:
    """Discrete hill-climbing over trade size for a fixed venue pair."""

    def __init__(self, finder: RouteFinder, config: Optional[RefinerConfig] = None):
        self.finder = finder
        self.config = config or RefinerConfig()

    async def refine(self, asset: Token, base: RouteResult) -> SizeRefinement:
        best = SizeRefinement.from_route(base)
        if not self.config.enabled or not base.found:
            return best

        lo, hi = self.config.bounds(base.size)
        step = max(base.size * self.config.initial_step_frac, self.config.min_step)
        cache: dict[float, RouteResult] = {base.size: base}

        async def evaluate(size: float) -> RouteResult:
            size = round(min(max(size, lo), hi), 6)
            if size not in cache:
                cache[size] = await self.finder.evaluate_pair(
                    asset, base.buy_venue, base.sell_venue, size
                )
                best.evaluations += 1
            return cache[size]

        current = base
        for _ in range(self.config.max_rounds):
            if step < self.config.resolution:
                break
            best.rounds += 1
            lower = await evaluate(current.size - step)
            upper = await evaluate(current.size + step)

            winner = current
            for candidate in (lower, upper):
                if candidate.found and candidate.profit_pct > winner.profit_pct:
                    winner = candidate

            if winner is current:
                step /= 2.0
            else:
                current = winner

        if current is not base and current.profit_pct > base.profit_pct:
            best.profit_pct = current.profit_pct
            best.size = current.size
            best.gas_cost = current.gas_cost
            best.amount_out = current.amount_out

        logger.debug(
            "%s refine %s -> %s: size %.2f -> %.2f, %.4f%% -> %.4f%% (%d quotes)",
            asset.symbol,
            base.buy_venue,
            base.sell_venue,
            base.size,
            best.size,
            base.profit_pct,
            best.profit_pct,
            best.evaluations,
        )
        return best
