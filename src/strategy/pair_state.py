"""
Per-key signal state: rolling profit samples, last alert, above-threshold
window tracking.  Keys are ``scope:asset`` (the alerting key) or
``scope:asset:size`` (per-size observations).

The whole state is an explicit ``SignalState`` object: loaded at tick start,
mutated by the scanner, saved at tick end.  It round-trips through plain
dicts so the on-disk schema stays ``{"pairs": {...}, "meta": {...}}``.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

MAX_SAMPLES = 30
MAX_WINDOW_HISTORY = 20
# lastSentProfit before any alert: low enough that the first qualifying
# observation always clears the growth rules.
NEVER_SENT_PROFIT = -999.0


def pair_key(scope: str, asset: str, size: Optional[float] = None) -> str:
    if size is None:
        return f"{scope}:{asset}"
    return f"{scope}:{asset}:{_size_label(size)}"


def _size_label(size: float) -> str:
    return f"{size:.6f}".rstrip("0").rstrip(".")


def _timestamp(value: Any) -> Optional[float]:
    # Older state files store 0 for "never sent".
    if not value:
        return None
    return float(value)


@dataclass
class ProfitWindow:
    """Contiguous intervals during which profit stayed >= threshold."""

    above_since: Optional[float] = None
    last_above_at: Optional[float] = None
    hist: list[float] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.above_since is not None

    def update(self, now: float, profit_pct: float, threshold_pct: float) -> None:
        above = math.isfinite(profit_pct) and profit_pct >= threshold_pct
        if above:
            if self.above_since is None:
                self.above_since = now
            self.last_above_at = now
            return
        if self.above_since is not None:
            self.hist.append(max(0.0, now - self.above_since))
            if len(self.hist) > MAX_WINDOW_HISTORY:
                del self.hist[: len(self.hist) - MAX_WINDOW_HISTORY]
        self.above_since = None
        self.last_above_at = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "aboveSince": self.above_since,
            "lastAboveAt": self.last_above_at,
            "hist": list(self.hist),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProfitWindow":
        hist = [max(0.0, float(x)) for x in data.get("hist") or []]
        above_since = data.get("aboveSince")
        last_above_at = data.get("lastAboveAt")
        return cls(
            above_since=float(above_since) if above_since is not None else None,
            last_above_at=float(last_above_at) if last_above_at is not None else None,
            hist=hist[-MAX_WINDOW_HISTORY:],
        )


@dataclass
class PairState:
    samples: deque = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))
    last_sent_at: Optional[float] = None  # None: never sent
    last_sent_profit: float = NEVER_SENT_PROFIT
    window: ProfitWindow = field(default_factory=ProfitWindow)
    last_route: Optional[dict[str, Any]] = None

    def record_sample(self, now: float, profit_pct: float) -> bool:
        """Append an observation; non-finite or non-increasing ones are dropped."""
        if not math.isfinite(profit_pct):
            return False
        if self.samples and now <= self.samples[-1][0]:
            return False
        self.samples.append((float(now), float(profit_pct)))
        return True

    def mark_sent(
        self, now: float, profit_pct: float, route: Optional[dict[str, Any]] = None
    ) -> None:
        self.last_sent_at = float(now)
        self.last_sent_profit = float(profit_pct)
        if route is not None:
            self.last_route = dict(route)

    def profits(self) -> list[float]:
        return [p for _, p in self.samples]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "samples": [[t, p] for t, p in self.samples],
            "lastSentAt": self.last_sent_at,
            "lastSentProfit": self.last_sent_profit,
            "window": self.window.to_dict(),
        }
        if self.last_route is not None:
            data["lastRoute"] = self.last_route
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PairState":
        state = cls(
            last_sent_at=_timestamp(data.get("lastSentAt")),
            last_sent_profit=float(
                data["lastSentProfit"]
                if data.get("lastSentProfit") is not None
                else NEVER_SENT_PROFIT
            ),
            window=ProfitWindow.from_dict(data.get("window") or {}),
            last_route=data.get("lastRoute"),
        )
        for entry in data.get("samples") or []:
            t, p = entry
            state.record_sample(float(t), float(p))
        return state


@dataclass
class GlobalMeta:
    last_any_sent_at: Optional[float] = None
    demo_run_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"lastAnySentAt": self.last_any_sent_at, "demoRunId": self.demo_run_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalMeta":
        return cls(
            last_any_sent_at=_timestamp(data.get("lastAnySentAt")),
            demo_run_id=data.get("demoRunId"),
        )


@dataclass
class SignalState:
    """All PairStates plus GlobalMeta; the unit that gets persisted."""

    pairs: dict[str, PairState] = field(default_factory=dict)
    meta: GlobalMeta = field(default_factory=GlobalMeta)

    def pair(self, key: str) -> PairState:
        state = self.pairs.get(key)
        if state is None:
            state = PairState()
            self.pairs[key] = state
        return state

    def to_dict(self) -> dict[str, Any]:
        return {
            "pairs": {key: state.to_dict() for key, state in self.pairs.items()},
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignalState":
        """Raises on a malformed blob; callers decide how to recover."""
        if not isinstance(data, dict):
            raise ValueError("state blob must be an object")
        pairs = {
            str(key): PairState.from_dict(value)
            for key, value in (data.get("pairs") or {}).items()
        }
        return cls(pairs=pairs, meta=GlobalMeta.from_dict(data.get("meta") or {}))
