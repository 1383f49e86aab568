from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the service root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False

    # CORS (admin panel)
    cors_origins: str = "http://localhost:4200"

    # Slot generation. business_end_hour is exclusive, so the last slot ends at 17:00
    slot_duration_minutes: int = 60
    business_start_hour: int = 9
    business_end_hour: int = 17
    slot_horizon_days: int = 7

    # Reminder job period
    reminder_interval_minutes: int = 30

    notes_max_length: int = 500

    # Seed the default services into an empty catalog on startup
    seed_catalog: bool = True

    # Env
    env: str = "development"

    # Telegram Bot API. Leave the token empty to disable delivery.
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"

    # Google Calendar (service account). Leave the key path empty to disable sync.
    google_calendar_key_path: str = ""
    google_calendar_id: str = "primary"
    google_calendar_timezone: str = "UTC"

    # Timeout for every calendar/notification HTTP call
    adapter_timeout_seconds: float = 10.0

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token)

    @property
    def google_calendar_enabled(self) -> bool:
        return bool(self.google_calendar_key_path)


settings = Settings()
