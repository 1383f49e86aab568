import logging
from functools import lru_cache

from app.core.clock import Clock, utc_naive_now
from app.core.config import settings
from app.core.db import get_session
from app.services.calendar_service import CalendarAdapter, DisabledCalendarAdapter, GoogleCalendarAdapter
from app.services.notification_service import DisabledNotifier, Notifier, TelegramNotifier

logger = logging.getLogger(__name__)

__all__ = ["get_calendar", "get_clock", "get_notifier", "get_session"]


@lru_cache
def get_calendar() -> CalendarAdapter:
    """One adapter per process so the service-account token is reused."""
    if not settings.google_calendar_enabled:
        return DisabledCalendarAdapter()
    try:
        return GoogleCalendarAdapter.from_key_file(
            settings.google_calendar_key_path,
            calendar_id=settings.google_calendar_id,
            timezone=settings.google_calendar_timezone,
            timeout=settings.adapter_timeout_seconds,
        )
    except (OSError, ValueError, KeyError) as e:
        logger.error("Google Calendar key could not be loaded, calendar sync disabled: %s", e)
        return DisabledCalendarAdapter()


@lru_cache
def get_notifier() -> Notifier:
    if not settings.telegram_enabled:
        return DisabledNotifier()
    return TelegramNotifier(
        settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        timeout=settings.adapter_timeout_seconds,
    )


def get_clock() -> Clock:
    return utc_naive_now
