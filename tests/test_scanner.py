import asyncio

import pytest

from config import ScopeConfig, Settings, TelegramConfig
from helpers import (
    AAVE,
    CHEAP,
    LINK,
    RICH,
    USDC,
    MemoryStore,
    PoolQuoter,
    RecordingNotifier,
    venue,
)
from pricing.size_refiner import RefinerConfig
from pricing.venues import Direction
from scanner import ArbScanner
from strategy.fees import FeeStructure
from strategy.signal_gate import GateReason


def _run(coro):
    return asyncio.run(coro)


class Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _settings(assets=(LINK,), refine=False, **overrides) -> Settings:
    scope = ScopeConfig(
        name="polygon",
        chain_id=137,
        chain_slug="polygon",
        rpc_url=None,
        reference=USDC,
        assets=list(assets),
        venues=[venue("a"), venue("b")],
    )
    values = dict(
        scopes=[scope],
        trade_sizes=[100.0, 500.0],
        telegram=TelegramConfig(token="t", chat_ids=["chat-1"]),
        fees=FeeStructure(buy_slippage_pct=0.0, sell_slippage_pct=0.0, gas_cost_usd=0.0),
        refiner=RefinerConfig(enabled=refine),
    )
    values.update(overrides)
    return Settings(**values)


def _scanner(settings=None, quoter=None, notifier=None, store=None, clock=None):
    settings = settings or _settings()
    quoter = quoter or PoolQuoter({"a": CHEAP, "b": RICH})
    notifier = notifier or RecordingNotifier()
    store = store or MemoryStore()
    clock = clock or Clock()
    scanner = ArbScanner(
        settings, notifier, store, quote_sources={"polygon": quoter}, clock=clock
    )
    return scanner, notifier, store, clock


# ── Single tick ────────────────────────────────────────────────────


def test_profitable_tick_sends_and_persists():
    scanner, notifier, store, clock = _scanner()
    report = _run(scanner.run_tick())

    assert report.alerts_sent == 1
    assert len(notifier.messages) == 1
    assert "LINK/USDC" in notifier.messages[0]

    scan = report.scans[0]
    assert scan.decision.reason is GateReason.BIG_JUMP
    assert (scan.pick.buy_venue, scan.pick.sell_venue) == ("a", "b")
    assert [r.size for r in scan.breakdown] == [100.0, 500.0]

    pair = store.state.pairs["polygon:LINK"]
    assert pair.last_sent_at == clock.now
    assert pair.last_sent_profit == pytest.approx(scan.profit_pct)
    assert pair.last_route == {"buy": "a", "sell": "b", "size": scan.pick.size}
    assert pair.window.is_open
    assert store.state.meta.last_any_sent_at == clock.now
    assert len(store.state.pairs["polygon:LINK:100"].samples) == 1
    assert len(store.state.pairs["polygon:LINK:500"].samples) == 1


def test_best_size_is_picked():
    scanner, _, _, _ = _scanner()
    scan = _run(scanner.run_tick()).scans[0]
    # no gas: smaller trades suffer less price impact
    assert scan.pick.size == 100.0
    assert scan.profit_pct == max(r.profit_pct for r in scan.breakdown)


def test_refinement_runs_on_the_winning_route():
    scanner, _, _, _ = _scanner(settings=_settings(refine=True))
    scan = _run(scanner.run_tick()).scans[0]
    assert scan.pick.base_size == 100.0
    assert scan.pick.profit_pct >= scan.breakdown[0].profit_pct


# ── Across ticks ───────────────────────────────────────────────────


def test_repeat_inside_cooldown_is_suppressed():
    scanner, notifier, store, clock = _scanner()
    _run(scanner.run_tick())
    clock.now += 100
    report = _run(scanner.run_tick())

    assert report.alerts_sent == 0
    assert report.scans[0].decision.reason is GateReason.COOLDOWN
    assert len(notifier.messages) == 1
    assert len(store.state.pairs["polygon:LINK"].samples) == 2


def test_global_floor_limits_one_alert_per_tick():
    scanner, notifier, store, _ = _scanner(settings=_settings(assets=(LINK, AAVE)))
    report = _run(scanner.run_tick())

    link, aave = report.scans
    assert link.sent
    assert aave.decision.send and aave.floor_blocked and not aave.sent
    assert len(notifier.messages) == 1
    blocked = store.state.pairs["polygon:AAVE"]
    assert blocked.last_sent_at is None
    assert len(blocked.samples) == 1


def test_delivery_failure_still_marks_sent():
    notifier = RecordingNotifier(recipients=["chat-1", "chat-2"], failing=["chat-1"])
    scanner, _, store, clock = _scanner(notifier=notifier)
    scan = _run(scanner.run_tick()).scans[0]

    assert scan.sent
    assert scan.deliveries == {"chat-1": False, "chat-2": True}
    assert store.state.pairs["polygon:LINK"].last_sent_at == clock.now


# ── Degraded ticks ─────────────────────────────────────────────────


def test_no_route_records_nothing_and_sends_nothing():
    quoter = PoolQuoter(
        {"a": CHEAP, "b": RICH},
        fail={("a", Direction.TO_REFERENCE), ("b", Direction.TO_REFERENCE)},
    )
    scanner, notifier, store, _ = _scanner(quoter=quoter)
    report = _run(scanner.run_tick())

    scan = report.scans[0]
    assert scan.pick is None
    assert scan.decision.reason is GateReason.INVALID
    assert notifier.messages == []
    assert len(store.state.pairs["polygon:LINK"].samples) == 0
    assert store.saves == 1


def test_failing_asset_does_not_abort_tick():
    quoter = PoolQuoter({"a": CHEAP, "b": RICH}, raise_for={"LINK"})
    scanner, notifier, store, _ = _scanner(
        settings=_settings(assets=(LINK, AAVE)), quoter=quoter
    )
    report = _run(scanner.run_tick())

    assert report.failed_assets == ["polygon:LINK"]
    assert [s.asset for s in report.scans] == ["AAVE"]
    assert len(notifier.messages) == 1
    assert store.saves >= 1


# ── Demo ───────────────────────────────────────────────────────────


def test_demo_sent_once_per_run():
    settings = _settings(send_demo_on_manual=True, manual_run=True, run_id="run-7")
    scanner, notifier, store, clock = _scanner(settings=settings)

    report = _run(scanner.run_tick())
    assert report.demo_sent
    assert notifier.messages[0].startswith("🧪 <b>DEMO MESSAGE</b>")
    assert store.state.meta.demo_run_id == "run-7"

    clock.now += 1_000
    count = len(notifier.messages)
    report = _run(scanner.run_tick())
    assert not report.demo_sent
    assert not any(m.startswith("🧪") for m in notifier.messages[count:])


def test_demo_needs_manual_run():
    settings = _settings(send_demo_on_manual=True, manual_run=False)
    scanner, notifier, _, _ = _scanner(settings=settings)
    assert not _run(scanner.run_tick()).demo_sent
    assert not any(m.startswith("🧪") for m in notifier.messages)
