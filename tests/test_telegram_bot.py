import logging
from unittest.mock import MagicMock

import requests

from config import TelegramConfig
from telegram_bot import (
    TELEGRAM_TEXT_MAX_LEN,
    TelegramLogHandler,
    TelegramNotifier,
    add_telegram_log_handler,
    truncate,
)


def _response(status: int) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = "" if status < 400 else '{"ok":false}'
    return resp


def _notifier(chat_ids, side_effect):
    session = MagicMock()
    session.post.side_effect = side_effect
    config = TelegramConfig(token="123:abc", chat_ids=list(chat_ids))
    return TelegramNotifier(config, session=session), session


# ── Delivery ───────────────────────────────────────────────────────


def test_payload_is_html_without_previews():
    notifier, session = _notifier(["42"], [_response(200)])
    assert notifier.deliver("42", "<b>hi</b>")
    url = session.post.call_args.args[0]
    payload = session.post.call_args.kwargs["json"]
    assert url == "https://api.telegram.org/bot123:abc/sendMessage"
    assert payload == {
        "chat_id": "42",
        "text": "<b>hi</b>",
        "disable_web_page_preview": True,
        "parse_mode": "HTML",
    }


def test_one_failing_recipient_does_not_stop_others():
    notifier, session = _notifier(
        ["1", "2", "3"],
        [requests.ConnectionError("down"), _response(403), _response(200)],
    )
    results = notifier.broadcast("alert")
    assert results == {"1": False, "2": False, "3": True}
    assert session.post.call_count == 3


def test_plain_text_has_no_parse_mode():
    notifier, session = _notifier(["1"], [_response(200)])
    notifier.broadcast("x", parse_mode=None)
    assert "parse_mode" not in session.post.call_args.kwargs["json"]


def test_truncate():
    assert truncate("short") == "short"
    long = "x" * (TELEGRAM_TEXT_MAX_LEN + 50)
    assert len(truncate(long)) == TELEGRAM_TEXT_MAX_LEN
    assert truncate(long).endswith("...")


# ── Log forwarding ─────────────────────────────────────────────────


class TestLogHandler:
    def test_forwards_records_at_level(self):
        sent = []
        handler = TelegramLogHandler(sent.append, level=logging.WARNING)
        log = logging.getLogger("test_telegram_bot.forward")
        log.propagate = False
        log.addHandler(handler)
        try:
            log.info("quiet")
            log.warning("loud")
        finally:
            log.removeHandler(handler)
        assert sent == ["loud"]

    def test_skips_own_module(self):
        sent = []
        handler = TelegramLogHandler(sent.append)
        record = logging.LogRecord("telegram_bot", logging.ERROR, __file__, 1, "x", None, None)
        handler.emit(record)
        assert sent == []

    def test_add_handler_uses_plain_text(self):
        notifier = MagicMock()
        root = logging.getLogger("test_telegram_bot.root")
        root.propagate = False
        handler = add_telegram_log_handler(notifier, root_logger=root, level="ERROR")
        try:
            assert handler.level == logging.ERROR
            root.error("boom")
        finally:
            root.removeHandler(handler)
        text = notifier.broadcast.call_args.args[0]
        assert "boom" in text
        assert notifier.broadcast.call_args.kwargs == {"parse_mode": None}


def test_oversized_html_falls_back_to_plain_text():
    notifier, session = _notifier(["1"], [_response(200)])
    assert notifier.deliver("1", "<b>" + "x" * TELEGRAM_TEXT_MAX_LEN + "</b>")
    payload = session.post.call_args.kwargs["json"]
    assert "parse_mode" not in payload
    assert len(payload["text"]) == TELEGRAM_TEXT_MAX_LEN
