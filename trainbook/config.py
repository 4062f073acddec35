from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from trainbook.store import DEFAULT_ADMIN_PASSWORD


def _parse_telegram_chat_ids(raw: str) -> tuple[str, ...]:
    # TELEGRAM_CHAT_ID supports a single value or a comma-separated list.
    # Examples:
    #   TELEGRAM_CHAT_ID=123456789
    #   TELEGRAM_CHAT_ID=123456789,-1001234567890
    parts = [p.strip() for p in raw.split(",")]
    parts = [p for p in parts if p]

    seen: set[str] = set()
    result: list[str] = []
    for p in parts:
        # Groups/supergroups have negative ids.
        try:
            int(p)
        except ValueError as e:
            raise RuntimeError(f"Invalid TELEGRAM_CHAT_ID value: {p!r}. Expected integer chat id.") from e

        if p == "0":
            raise RuntimeError("Invalid TELEGRAM_CHAT_ID value: '0' is not a valid chat id")

        if p in seen:
            continue
        seen.add(p)
        result.append(p)

    return tuple(result)


@dataclass(frozen=True)
class Settings:
    # Where slots, bookings and the admin flag are stored (":memory:" keeps them in RAM)
    state_file: str = "state.json"
    admin_password: str = DEFAULT_ADMIN_PASSWORD

    # Booking notifications are off unless both are set.
    telegram_bot_token: str | None = None
    telegram_chat_ids: tuple[str, ...] = ()

    # How many times a single Telegram delivery is attempted.
    notify_retry_attempts: int = 2


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    raw_attempts = os.getenv("NOTIFY_RETRY_ATTEMPTS", "2")
    try:
        notify_retry_attempts = int(raw_attempts)
    except ValueError as e:
        raise RuntimeError(f"NOTIFY_RETRY_ATTEMPTS must be an integer, got {raw_attempts!r}") from e
    if notify_retry_attempts < 1:
        raise RuntimeError("NOTIFY_RETRY_ATTEMPTS must be >= 1")

    admin_password = os.getenv("ADMIN_PASSWORD") or DEFAULT_ADMIN_PASSWORD

    return Settings(
        state_file=os.getenv("STATE_FILE", "state.json"),
        admin_password=admin_password,
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
        telegram_chat_ids=_parse_telegram_chat_ids(os.getenv("TELEGRAM_CHAT_ID", "")),
        notify_retry_attempts=notify_retry_attempts,
    )
