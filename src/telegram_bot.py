"""
Telegram delivery for opportunity alerts.

Environment variables:
  TELEGRAM_BOT_TOKEN: Bot token from BotFather
  TELEGRAM_CHAT_ID: Chat ID(s) to send messages to, comma separated
  TELEGRAM_TIMEOUT_SEC: Optional, per-request timeout (default: 15)
  TELEGRAM_LOG_LEVEL: Optional, min level to forward logs (default: WARNING)

Every recipient is attempted independently; a failure for one chat never
stops delivery to the others.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Optional

import requests

from config import TelegramConfig

logger = logging.getLogger(__name__)

# Telegram message size limit (UTF-8)
TELEGRAM_TEXT_MAX_LEN = 4000


def truncate(text: str, limit: int = TELEGRAM_TEXT_MAX_LEN) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class TelegramNotifier:
    """Sends HTML messages through the Bot API ``sendMessage`` method."""

    def __init__(self, config: TelegramConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session or requests.Session()

    def deliver(self, chat_id: str, text: str, parse_mode: Optional[str] = "HTML") -> bool:
        """Send ``text`` to one chat.  Returns False on any failure."""
        url = f"https://api.telegram.org/bot{self.config.token}/sendMessage"
        if parse_mode and len(text) > TELEGRAM_TEXT_MAX_LEN:
            # Cut markup would be rejected outright; send it as plain text.
            logger.warning(
                "Message too long (%d chars), sending as plain text", len(text)
            )
            parse_mode = None
        payload = {
            "chat_id": chat_id,
            "text": truncate(text),
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        try:
            resp = self._session.post(
                url, json=payload, timeout=self.config.timeout_seconds
            )
        except requests.RequestException as exc:
            logger.warning("Telegram send to %s failed: %s", chat_id, exc)
            return False
        if resp.status_code >= 400:
            logger.warning(
                "Telegram send to %s failed (%d): %s",
                chat_id,
                resp.status_code,
                resp.text,
            )
            return False
        return True

    def broadcast(self, text: str, parse_mode: Optional[str] = "HTML") -> dict[str, bool]:
        """Deliver to every configured chat; returns chat_id -> success."""
        results = {}
        for chat_id in self.config.chat_ids:
            results[chat_id] = self.deliver(chat_id, text, parse_mode=parse_mode)
        delivered = sum(results.values())
        if delivered < len(results):
            logger.warning("Alert delivered to %d/%d chats", delivered, len(results))
        return results


class TelegramLogHandler(logging.Handler):
    """
    Sends log records to Telegram via a send(text) callable.
    Use TELEGRAM_LOG_LEVEL (default WARNING) to control verbosity.
    """

    def __init__(self, send_fn: Callable[[str], object], level=logging.NOTSET):
        super().__init__(level=level)
        self._send = send_fn

    def emit(self, record: logging.LogRecord) -> None:
        # Records from this module would recurse through send failures.
        if record.name == __name__:
            return
        try:
            self._send(truncate(self.format(record)))
        except Exception:  # noqa: BLE001 - logging must never raise
            self.handleError(record)


def add_telegram_log_handler(
    notifier: TelegramNotifier,
    root_logger: Optional[logging.Logger] = None,
    level: Optional[str] = None,
) -> TelegramLogHandler:
    """
    Add a handler that forwards log records to every configured chat.
    If level is None, uses TELEGRAM_LOG_LEVEL env (default WARNING).
    """
    level_name = (level or os.getenv("TELEGRAM_LOG_LEVEL", "WARNING")).upper()
    log_level = getattr(logging, level_name, logging.WARNING)
    handler = TelegramLogHandler(
        lambda text: notifier.broadcast(text, parse_mode=None), level=log_level
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )
    (root_logger or logging.getLogger()).addHandler(handler)
    logger.info("Telegram log handler added (level=%s)", level_name)
    return handler
