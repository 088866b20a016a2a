"""
Telegram HTML alert for one opportunity.

Layout: header (asset / reference / scope), chosen route with swap links,
one line per trade size with a profit badge, execution window, risk badge,
badge legend.  All dynamic text is HTML-escaped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from html import escape
from typing import Optional, Sequence

from config import ScopeConfig
from pricing.route import NO_VENUE, RouteResult
from pricing.venues import Token
from strategy.estimators import RiskLevel, WindowEstimate
from telegram_bot import TELEGRAM_TEXT_MAX_LEN

BADGE_STRONG = "🔥"
BADGE_GOOD = "🟢"
BADGE_WEAK = "🟡"
BADGE_LOSS = "🔴"
BADGE_NONE = "⚪"

RISK_BADGES = {
    RiskLevel.LOW: "🟢",
    RiskLevel.MEDIUM: "🟡",
    RiskLevel.HIGH: "🔴",
}


def fmt_pct(value: float, digits: int = 2) -> str:
    if not math.isfinite(value):
        return "n/a"
    return f"{value:+.{digits}f}%"


def fmt_size(value: float) -> str:
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def profit_badge(profit_pct: float, min_profit_pct: float) -> str:
    if not math.isfinite(profit_pct):
        return BADGE_NONE
    if profit_pct >= 2 * min_profit_pct:
        return BADGE_STRONG
    if profit_pct >= min_profit_pct:
        return BADGE_GOOD
    if profit_pct > 0:
        return BADGE_WEAK
    return BADGE_LOSS


def legend(min_profit_pct: float) -> str:
    return (
        f"{BADGE_STRONG} ≥{2 * min_profit_pct:.2f}%  "
        f"{BADGE_GOOD} ≥{min_profit_pct:.2f}%  "
        f"{BADGE_WEAK} >0%  {BADGE_LOSS} ≤0%  {BADGE_NONE} no route"
    )


@dataclass
class AlertContext:
    scope: ScopeConfig
    asset: Token
    pick: RouteResult
    breakdown: Sequence[RouteResult]
    window: WindowEstimate
    risk: RiskLevel
    min_profit_pct: float
    base_size: Optional[float] = None


def _venue_name(scope: ScopeConfig, venue_id: str) -> str:
    for venue in scope.venues:
        if venue.id == venue_id:
            return venue.name
    return venue_id


def _link(scope: ScopeConfig, venue_id: str, token_in: Token, token_out: Token) -> str:
    name = escape(_venue_name(scope, venue_id))
    label = f"{name} ({escape(token_in.symbol)}→{escape(token_out.symbol)})"
    venue = next((v for v in scope.venues if v.id == venue_id), None)
    url = scope.swap_link(venue, token_in, token_out) if venue else None
    if not url:
        return label
    return f'<a href="{escape(url, quote=True)}">{label}</a>'


def build_alert_message(
    ctx: AlertContext, demo: bool = False, max_len: int = TELEGRAM_TEXT_MAX_LEN
) -> str:
    """
    Compose the alert.  When it would not fit in ``max_len`` the per-size
    lines are dropped from the end, so the HTML is never cut mid-tag.
    """
    shown = list(ctx.breakdown)
    text = _compose(ctx, demo, shown, 0)
    while len(text) > max_len and shown:
        shown.pop()
        text = _compose(ctx, demo, shown, len(ctx.breakdown) - len(shown))
    return text


def _compose(
    ctx: AlertContext, demo: bool, breakdown: Sequence[RouteResult], omitted: int
) -> str:
    scope, asset, pick = ctx.scope, ctx.asset, ctx.pick
    ref = scope.reference
    symbol = f"{asset.symbol}/{ref.symbol}"

    lines = []
    if demo:
        lines += ["🧪 <b>DEMO MESSAGE</b>", ""]
    lines.append(
        f"🔥 <b>ARBITRAGE SIGNAL</b> <b>{escape(symbol)}</b> "
        f"<i>[{escape(scope.name)}]</i>"
    )
    lines.append("")

    if pick.found and pick.buy_venue != NO_VENUE:
        buy_name = escape(_venue_name(scope, pick.buy_venue))
        sell_name = escape(_venue_name(scope, pick.sell_venue))
        lines.append(f"<b>Route:</b> buy {buy_name} → sell {sell_name}")
        size_line = f"<b>Size:</b> {fmt_size(pick.size)} {escape(ref.symbol)}"
        if ctx.base_size is not None and ctx.base_size != pick.size:
            size_line += f" (refined from {fmt_size(ctx.base_size)})"
        lines.append(size_line)
        lines.append(
            f"<b>Net profit:</b> <b>{fmt_pct(pick.profit_pct)}</b> "
            f"(gas ~{pick.gas_cost:.4f} {escape(ref.symbol)})"
        )
    else:
        lines.append("<b>Route:</b> no route")
    lines.append("")

    lines.append("<b>By size:</b>")
    for result in breakdown:
        badge = profit_badge(result.profit_pct, ctx.min_profit_pct)
        line = f"{badge} {fmt_size(result.size)} {escape(ref.symbol)}: {fmt_pct(result.profit_pct)}"
        if result.found:
            line += (
                f" <i>({escape(_venue_name(scope, result.buy_venue))}→"
                f"{escape(_venue_name(scope, result.sell_venue))})</i>"
            )
        lines.append(line)
    if omitted:
        lines.append(f"… {omitted} more sizes")
    lines.append("")

    lines.append(f"⏱ <b>Window:</b> {escape(ctx.window.text())} (estimate)")
    lines.append(f"🛡 <b>Risk:</b> {RISK_BADGES[ctx.risk]} {ctx.risk.value}")

    if pick.found and pick.buy_venue != NO_VENUE:
        lines.append("")
        lines.append(
            _link(scope, pick.buy_venue, ref, asset)
            + "  |  "
            + _link(scope, pick.sell_venue, asset, ref)
        )

    lines.append("")
    lines.append(f"<i>{escape(legend(ctx.min_profit_pct))}</i>")
    return "\n".join(lines)
