from __future__ import annotations

import logging

import httpx
from tenacity import RetryCallState, retry, stop_after_attempt, wait_exponential

from trainbook.config import Settings
from trainbook.domain import Booking

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramDeliveryError(RuntimeError):
    pass


def send_telegram_message(
    client: httpx.Client,
    *,
    bot_token: str,
    chat_id: str,
    text: str,
) -> None:
    r = client.post(
        f"{TELEGRAM_API_URL}/bot{bot_token}/sendMessage",
        json={"chat_id": chat_id, "text": text, "disable_web_page_preview": True},
    )
    r.raise_for_status()
    data = r.json()
    if not data.get("ok", False):
        raise TelegramDeliveryError(f"Telegram API error: {data}")


def format_booking_message(booking: Booking) -> str:
    return (
        "New training booking\n\n"
        f"Date: {booking.date} {booking.time_slot}\n"
        f"Company: {booking.company_name}\n"
        f"Package: {booking.software_package.value}\n"
        f"Phone: {booking.phone_number}\n"
        f"Booked at: {booking.created_at}"
    )


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
    sleep_seconds = getattr(retry_state.next_action, "sleep", 0) or 0
    logger.info(
        "Telegram delivery attempt %s failed (%s), retrying in %.0f s",
        retry_state.attempt_number,
        type(exc).__name__ if exc else "unknown",
        sleep_seconds,
    )


class BookingNotifier:
    """Broadcasts each new booking to every configured Telegram chat."""

    def __init__(
        self,
        *,
        bot_token: str,
        chat_ids: tuple[str, ...],
        retry_attempts: int = 2,
        timeout_seconds: float = 20.0,
    ) -> None:
        self.bot_token = bot_token
        self.chat_ids = chat_ids
        self.retry_attempts = retry_attempts
        self.timeout_seconds = timeout_seconds

    def _send_with_retry(self, client: httpx.Client, chat_id: str, text: str) -> None:
        decorated = retry(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            before_sleep=_log_before_sleep,
            reraise=True,
        )(send_telegram_message)

        decorated(client, bot_token=self.bot_token, chat_id=chat_id, text=text)

    def __call__(self, booking: Booking) -> None:
        text = format_booking_message(booking)
        failed: list[str] = []

        with httpx.Client(timeout=self.timeout_seconds) as client:
            for chat_id in self.chat_ids:
                try:
                    self._send_with_retry(client, chat_id, text)
                except Exception as e:
                    # Keep going: one bad chat must not starve the others.
                    logger.warning("Failed to notify chat_id=%s about %s (%s: %s)", chat_id, booking.id, type(e).__name__, e)
                    failed.append(chat_id)

        if failed:
            raise TelegramDeliveryError(f"Failed to notify some recipients: {', '.join(failed)}")
        logger.info("Booking %s announced to %d chat(s)", booking.id, len(self.chat_ids))


def build_notifier(settings: Settings) -> BookingNotifier | None:
    if not settings.telegram_bot_token or not settings.telegram_chat_ids:
        logger.info("Telegram notifications disabled (no bot token or chat ids)")
        return None
    return BookingNotifier(
        bot_token=settings.telegram_bot_token,
        chat_ids=settings.telegram_chat_ids,
        retry_attempts=settings.notify_retry_attempts,
    )
