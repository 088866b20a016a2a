"""
Best-effort annotations for an alert: a qualitative risk level from recent
profit volatility and an execution-window estimate from how long past
above-threshold intervals lasted.  Neither gates sends.
"""

from __future__ import annotations

import os
import statistics
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .pair_state import PairState, ProfitWindow


class RiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass
class RiskConfig:
    tight_pct: float = 0.15  # |Δprofit| between the last two samples
    loose_pct: float = 0.5
    window_default_sec: float = 60.0

    @classmethod
    def from_env(cls) -> "RiskConfig":
        return cls(
            tight_pct=float(os.getenv("RISK_TIGHT_PCT", "0.15")),
            loose_pct=float(os.getenv("RISK_LOOSE_PCT", "0.5")),
            window_default_sec=float(os.getenv("WINDOW_DEFAULT_SEC", "60")),
        )


def estimate_risk(state: PairState, config: Optional[RiskConfig] = None) -> RiskLevel:
    cfg = config or RiskConfig()
    profits = state.profits()
    if profits and profits[-1] < 0:
        return RiskLevel.HIGH
    if len(profits) < 2:
        return RiskLevel.MEDIUM
    delta = abs(profits[-1] - profits[-2])
    if delta <= cfg.tight_pct:
        return RiskLevel.LOW
    if delta <= cfg.loose_pct:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


@dataclass(frozen=True)
class WindowEstimate:
    seconds: float
    remaining: bool  # True: time left in the open interval; False: typical length
    from_history: bool

    def text(self) -> str:
        secs = int(round(self.seconds))
        if self.remaining:
            return f"~{secs}s left"
        suffix = "typical" if self.from_history else "default"
        return f"~{secs}s ({suffix})"


def typical_window(window: ProfitWindow, default_sec: float) -> tuple[float, bool]:
    """Median closed-interval duration; the default when there is no history."""
    if not window.hist:
        return default_sec, False
    return float(statistics.median(window.hist)), True


def estimate_window(
    window: ProfitWindow, now: float, config: Optional[RiskConfig] = None
) -> WindowEstimate:
    cfg = config or RiskConfig()
    typical, from_history = typical_window(window, cfg.window_default_sec)
    if window.is_open:
        elapsed = max(0.0, now - window.above_since)
        return WindowEstimate(max(0.0, typical - elapsed), True, from_history)
    return WindowEstimate(typical, False, from_history)
