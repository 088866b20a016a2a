"""
Fixed-point currency amounts.

Every quote, haircut and gas deduction is done on raw integers scaled by the
token's decimals.  Floats only appear when a profit percentage is produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal


@dataclass(frozen=True)
class Amount:
    """Raw integer amount of one token (respect token decimals)."""

    raw: int
    decimals: int
    symbol: str = ""

    def __post_init__(self) -> None:
        if self.decimals < 0:
            raise ValueError("decimals must be non-negative")

    @classmethod
    def from_human(
        cls, value: float | str | Decimal, decimals: int, symbol: str = ""
    ) -> "Amount":
        """Scale a human value (e.g. ``100.5`` USDC) down to raw units."""
        scaled = (Decimal(str(value)) * Decimal(10**decimals)).to_integral_value(
            rounding=ROUND_DOWN
        )
        return cls(raw=int(scaled), decimals=decimals, symbol=symbol)

    @property
    def human(self) -> Decimal:
        return Decimal(self.raw) / Decimal(10**self.decimals)

    def with_raw(self, raw: int) -> "Amount":
        return Amount(raw=raw, decimals=self.decimals, symbol=self.symbol)

    def check_same_scale(self, other: "Amount") -> None:
        if self.decimals != other.decimals:
            raise ValueError(
                f"scale mismatch: {self.symbol or '?'}({self.decimals}) vs "
                f"{other.symbol or '?'}({other.decimals})"
            )

    def __add__(self, other: "Amount") -> "Amount":
        self.check_same_scale(other)
        return self.with_raw(self.raw + other.raw)

    def __str__(self) -> str:
        return f"{self.human.normalize():f} {self.symbol}".strip()
