import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, chat_id: int, message: str) -> bool:
        """Deliver a chat message. True only when the channel accepted it."""
        ...


class DisabledNotifier:
    """Used when no bot token is configured. Nothing is delivered, so nothing is flagged sent."""

    async def send(self, chat_id: int, message: str) -> bool:
        logger.debug("Notifications disabled (Telegram not configured), skipping send to %s", chat_id)
        return False


class TelegramNotifier:
    def __init__(self, bot_token: str, api_base: str = "https://api.telegram.org", timeout: float = 10.0) -> None:
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self.timeout = timeout

    async def send(self, chat_id: int, message: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self._url, json={"chat_id": chat_id, "text": message})
        except httpx.HTTPError as e:
            logger.warning("Telegram send to %s failed: %s", chat_id, e)
            return False
        if resp.status_code != 200 or not resp.json().get("ok", False):
            logger.warning(
                "Telegram send to %s rejected: status=%s body=%s",
                chat_id,
                resp.status_code,
                resp.text[:500],
            )
            return False
        logger.info("Message sent to chat %s", chat_id)
        return True


async def deliver(notifier: Notifier, chat_id: int, message: str, *, purpose: str, booking_id: int) -> bool:
    """Best-effort send: any failure is logged and reported as False, never raised."""
    try:
        sent = await notifier.send(chat_id, message)
    except Exception:
        logger.warning("Failed to send %s for booking %s", purpose, booking_id, exc_info=True)
        return False
    if not sent:
        logger.warning("%s for booking %s was not delivered", purpose.capitalize(), booking_id)
    return bool(sent)
