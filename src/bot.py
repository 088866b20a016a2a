"""
Arbitrage signal bot: scan venues, alert on profitable round trips.

Usage:
  arb-signals                     # one tick (for cron / CI schedulers)
  arb-signals --loop 60           # tick every 60s until Ctrl+C
  arb-signals --demo              # also send one demo message this run

A missing required setting logs an error and exits with status 0 so a
scheduled job reports "nothing to do" rather than a failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import ConfigurationError, Settings
from scanner import ArbScanner
from state_store import JsonStateStore
from telegram_bot import TelegramNotifier, add_telegram_log_handler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Multi-venue arbitrage signal bot",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and exit (default).",
    )
    mode.add_argument(
        "--loop",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Run ticks back to back, sleeping SECONDS between them.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Send one DEMO message this run, regardless of profit.",
    )
    parser.add_argument(
        "--state",
        default=None,
        metavar="PATH",
        help="State file (default: STATE_PATH env or state.json).",
    )
    parser.add_argument(
        "--telegram-logs",
        action="store_true",
        help="Forward WARNING+ log records to Telegram (TELEGRAM_LOG_LEVEL).",
    )
    parser.add_argument(
        "--log-dir",
        default="logs",
        help="Directory for daily log files (default: logs).",
    )
    return parser


def setup_logging(log_dir: Optional[str]) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path / f"bot_{datetime.now():%Y%m%d}.log"))
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s |%(levelname)s |%(message)s",
        handlers=handlers,
    )
    # Suppress noisy third-party logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)


async def run_loop(scanner: ArbScanner, interval: float) -> None:
    while True:
        try:
            await scanner.run_tick()
        except Exception as exc:  # noqa: BLE001 - keep the loop alive
            logger.error("Tick error: %s", exc)
        await asyncio.sleep(interval)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_dir)

    try:
        settings = Settings.from_env()
    except (ConfigurationError, ValueError) as exc:
        logger.error("Configuration error: %s (nothing to do)", exc)
        return 0

    if args.state:
        settings.state_path = args.state

    notifier = TelegramNotifier(settings.telegram)
    if args.telegram_logs:
        add_telegram_log_handler(notifier)

    scanner = ArbScanner(
        settings,
        notifier,
        JsonStateStore(settings.state_path),
        demo=args.demo,
    )
    logger.info(
        "Bot starting... [scopes=%s, sizes=%s, recipients=%d]",
        ",".join(s.name for s in settings.scopes),
        ",".join(f"{s:g}" for s in settings.trade_sizes),
        len(settings.telegram.chat_ids),
    )

    try:
        if args.loop:
            asyncio.run(run_loop(scanner, args.loop))
        else:
            asyncio.run(scanner.run_tick())
    except KeyboardInterrupt:
        logger.info("Stopping.")
    except Exception as exc:  # noqa: BLE001 - a scheduled job must not fail noisily
        logger.error("FATAL: %s", exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
