"""Smoke test against the real Telegram Bot API.

Skipped unless TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are set. Only the first
chat id is used.

    TELEGRAM_BOT_TOKEN=... TELEGRAM_CHAT_ID=... python -m pytest -q -m telegram
"""

from __future__ import annotations

import os

import httpx
import pytest

from trainbook.notifier import send_telegram_message


pytestmark = pytest.mark.telegram


@pytest.mark.skipif(
    not os.getenv("TELEGRAM_BOT_TOKEN") or not os.getenv("TELEGRAM_CHAT_ID"),
    reason="Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID to run Telegram smoke test",
)
def test_telegram_message_delivery_smoke() -> None:
    with httpx.Client(timeout=20.0) as client:
        send_telegram_message(
            client,
            bot_token=os.environ["TELEGRAM_BOT_TOKEN"],
            chat_id=os.environ["TELEGRAM_CHAT_ID"].split(",", 1)[0].strip(),
            text="TrainBook: Telegram smoke test (pytest)",
        )
