"""
One scan tick: every scope -> every asset -> every trade size.

Per asset the order is fixed: best route per size, best across sizes, size
refinement, sample + window update, gate, global floor, compose, deliver,
mark sent, persist.  Quotes within an asset run one after another; ticks
never overlap (the caller awaits ``run_tick`` before starting the next).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from config import ScopeConfig, Settings
from pricing.chain_client import ChainClient
from pricing.odos_client import build_odos_client
from pricing.quote_source import QuoteSource
from pricing.route import LegQuoter, RouteFinder, RouteResult
from pricing.size_refiner import SizeRefinement, SizeRefiner
from pricing.venues import Token
from reporting.alert_message import AlertContext, build_alert_message
from strategy.estimators import estimate_risk, estimate_window
from strategy.pair_state import SignalState, pair_key
from strategy.signal_gate import GateDecision, GlobalRateFloor, SignalGate

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def broadcast(self, text: str) -> dict[str, bool]: ...


class StateStore(Protocol):
    def load(self) -> SignalState: ...

    def save(self, state: SignalState) -> None: ...


@dataclass
class AssetScan:
    """What happened for one (scope, asset) in a tick."""

    scope: str
    asset: str
    breakdown: list[RouteResult] = field(default_factory=list)
    pick: Optional[SizeRefinement] = None
    decision: Optional[GateDecision] = None
    floor_blocked: bool = False
    sent: bool = False
    deliveries: dict[str, bool] = field(default_factory=dict)

    @property
    def profit_pct(self) -> float:
        return self.pick.profit_pct if self.pick is not None else float("nan")


@dataclass
class TickReport:
    started_at: float
    scans: list[AssetScan] = field(default_factory=list)
    failed_assets: list[str] = field(default_factory=list)
    demo_sent: bool = False

    @property
    def alerts_sent(self) -> int:
        return sum(1 for scan in self.scans if scan.sent)


class ArbScanner:
    """Runs ticks against a state store; owns no state between ticks."""

    def __init__(
        self,
        settings: Settings,
        notifier: Notifier,
        store: StateStore,
        quote_sources: Optional[dict[str, LegQuoter]] = None,
        clock: Callable[[], float] = time.time,
        demo: bool = False,
    ) -> None:
        self.settings = settings
        self.notifier = notifier
        self.store = store
        self.gate = SignalGate(settings.signal)
        self.floor = GlobalRateFloor(settings.signal.min_seconds_between_any)
        self._quote_sources: dict[str, LegQuoter] = dict(quote_sources or {})
        self._clock = clock
        self.demo = demo or (settings.send_demo_on_manual and settings.manual_run)

    # ── wiring ─────────────────────────────────────────────────

    def quote_source_for(self, scope: ScopeConfig) -> LegQuoter:
        source = self._quote_sources.get(scope.name)
        if source is None:
            timeout = self.settings.quote_timeout_seconds
            chain = ChainClient(scope.rpc_url, timeout) if scope.rpc_url else None
            odos = None
            if any(v.is_aggregator for v in scope.venues):
                odos = build_odos_client(scope.chain_id, timeout)
            source = QuoteSource(
                scope.reference,
                chain,
                odos,
                timeout_seconds=timeout,
                aggregator_slippage_pct=self.settings.fees.sell_slippage_pct,
            )
            self._quote_sources[scope.name] = source
        return source

    # ── tick ───────────────────────────────────────────────────

    async def run_tick(self) -> TickReport:
        state = self.store.load()
        report = TickReport(started_at=self._clock())
        try:
            for scope in self.settings.scopes:
                finder = RouteFinder(
                    self.quote_source_for(scope),
                    scope.venues,
                    scope.reference,
                    self.settings.fees,
                )
                refiner = SizeRefiner(finder, self.settings.refiner)
                for asset in scope.assets:
                    try:
                        scan = await self._scan_asset(
                            state, report, scope, asset, finder, refiner
                        )
                    except Exception:  # noqa: BLE001 - one asset never aborts the tick
                        logger.exception("[%s:%s] scan failed", scope.name, asset.symbol)
                        report.failed_assets.append(f"{scope.name}:{asset.symbol}")
                        continue
                    report.scans.append(scan)
        finally:
            self.store.save(state)
        logger.info(
            "Tick done: %d assets scanned, %d alerts sent, %d failed",
            len(report.scans),
            report.alerts_sent,
            len(report.failed_assets),
        )
        return report

    async def _scan_asset(
        self,
        state: SignalState,
        report: TickReport,
        scope: ScopeConfig,
        asset: Token,
        finder: RouteFinder,
        refiner: SizeRefiner,
    ) -> AssetScan:
        scan = AssetScan(scope=scope.name, asset=asset.symbol)
        tag = f"[{scope.name}:{asset.symbol}]"

        best: Optional[RouteResult] = None
        for size in self.settings.trade_sizes:
            result = await finder.best_route(asset, size)
            scan.breakdown.append(result)
            state.pair(pair_key(scope.name, asset.symbol, size)).record_sample(
                self._clock(), result.profit_pct
            )
            if result.found and (best is None or result.profit_pct > best.profit_pct):
                best = result

        if best is not None:
            scan.pick = await refiner.refine(asset, best)
        profit = scan.profit_pct

        now = self._clock()
        key = pair_key(scope.name, asset.symbol)
        pair = state.pair(key)
        pair.record_sample(now, profit)
        pair.window.update(now, profit, self.settings.signal.min_profit_pct)

        if self.demo and scan.pick is not None and state.meta.demo_run_id != self.settings.run_id:
            self._send_demo(state, scope, asset, scan, now)
            report.demo_sent = True

        decision = self.gate.evaluate(pair, profit, now)
        scan.decision = decision
        if not decision.send:
            logger.info(
                "%s No send: %s. profit=%.4f", tag, decision.reason.value, profit
            )
            return scan

        if not self.floor.allows(state.meta, now):
            scan.floor_blocked = True
            logger.info("%s Blocked by MIN_SECONDS_BETWEEN_ANY", tag)
            return scan

        text = build_alert_message(self._context(scope, asset, scan, now, key, state))
        scan.deliveries = self.notifier.broadcast(text)
        scan.sent = True

        pair.mark_sent(
            now,
            profit,
            route={
                "buy": scan.pick.buy_venue,
                "sell": scan.pick.sell_venue,
                "size": scan.pick.size,
            },
        )
        self.floor.record(state.meta, now)
        self.store.save(state)
        logger.info(
            "%s Sent. reason=%s profit=%.4f delivered=%d/%d",
            tag,
            decision.reason.value,
            profit,
            sum(scan.deliveries.values()),
            len(scan.deliveries),
        )
        return scan

    def _context(
        self,
        scope: ScopeConfig,
        asset: Token,
        scan: AssetScan,
        now: float,
        key: str,
        state: SignalState,
    ) -> AlertContext:
        pair = state.pair(key)
        return AlertContext(
            scope=scope,
            asset=asset,
            pick=scan.pick,
            breakdown=scan.breakdown,
            window=estimate_window(pair.window, now, self.settings.risk),
            risk=estimate_risk(pair, self.settings.risk),
            min_profit_pct=self.settings.signal.min_profit_pct,
            base_size=scan.pick.base_size,
        )

    def _send_demo(
        self,
        state: SignalState,
        scope: ScopeConfig,
        asset: Token,
        scan: AssetScan,
        now: float,
    ) -> None:
        key = pair_key(scope.name, asset.symbol)
        text = build_alert_message(
            self._context(scope, asset, scan, now, key, state), demo=True
        )
        self.notifier.broadcast(text)
        state.meta.demo_run_id = self.settings.run_id
        self.store.save(state)
        logger.info("[%s:%s] Demo message sent", scope.name, asset.symbol)
