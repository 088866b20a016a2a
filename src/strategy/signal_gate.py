"""
Anti-spam gating for opportunity alerts.

``SignalGate.evaluate`` is a pure decision over one PairState; it never
mutates anything.  The caller records samples and window state every tick
and calls ``PairState.mark_sent`` only after a send.  ``GlobalRateFloor`` is
a coarser limit across all keys.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from enum import Enum

from .pair_state import GlobalMeta, PairState


class GateReason(Enum):
    INVALID = "invalid"
    BELOW_THRESHOLD = "below_min"
    BIG_JUMP = "big_jump"
    COOLDOWN = "cooldown"
    NO_GROWTH = "no_growth"
    GROWTH = "growth"


@dataclass(frozen=True)
class GateDecision:
    send: bool
    reason: GateReason
    growth: float = float("nan")
    elapsed: float = float("nan")


@dataclass
class SignalConfig:
    """Alert thresholds (percentages are plain percent, 1.0 = 1%)."""

    min_profit_pct: float = 1.0
    profit_step_pct: float = 0.25
    cooldown_seconds: float = 600.0
    big_jump_bypass_pct: float = 1.0
    min_seconds_between_any: float = 60.0
    profit_floor_pct: float = 0.0  # profit must be strictly above this

    @classmethod
    def from_env(cls) -> "SignalConfig":
        return cls(
            min_profit_pct=float(os.getenv("MIN_PROFIT_PCT", "1.0")),
            profit_step_pct=float(os.getenv("PROFIT_STEP_PCT", "0.25")),
            cooldown_seconds=float(os.getenv("COOLDOWN_SEC", "600")),
            big_jump_bypass_pct=float(os.getenv("BIG_JUMP_BYPASS", "1.0")),
            min_seconds_between_any=float(os.getenv("MIN_SECONDS_BETWEEN_ANY", "60")),
            profit_floor_pct=float(os.getenv("PROFIT_FLOOR_PCT", "0.0")),
        )


class SignalGate:
    def __init__(self, config: SignalConfig | None = None):
        self.config = config or SignalConfig()

    def evaluate(self, state: PairState, profit_pct: float, now: float) -> GateDecision:
        cfg = self.config
        if not math.isfinite(profit_pct) or profit_pct <= cfg.profit_floor_pct:
            return GateDecision(False, GateReason.INVALID)
        if profit_pct < cfg.min_profit_pct:
            return GateDecision(False, GateReason.BELOW_THRESHOLD)

        growth = profit_pct - state.last_sent_profit
        if state.last_sent_at is None:
            elapsed = math.inf
        else:
            elapsed = now - state.last_sent_at

        if growth >= cfg.big_jump_bypass_pct:
            return GateDecision(True, GateReason.BIG_JUMP, growth, elapsed)
        if elapsed < cfg.cooldown_seconds:
            return GateDecision(False, GateReason.COOLDOWN, growth, elapsed)
        if growth < cfg.profit_step_pct:
            return GateDecision(False, GateReason.NO_GROWTH, growth, elapsed)
        return GateDecision(True, GateReason.GROWTH, growth, elapsed)


class GlobalRateFloor:
    """At most one alert per ``min_seconds_between_any`` across all keys."""

    def __init__(self, min_seconds_between_any: float = 60.0):
        self.min_seconds = min_seconds_between_any

    def allows(self, meta: GlobalMeta, now: float) -> bool:
        if meta.last_any_sent_at is None:
            return True
        return now - meta.last_any_sent_at >= self.min_seconds

    def record(self, meta: GlobalMeta, now: float) -> None:
        meta.last_any_sent_at = float(now)
