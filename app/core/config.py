from functools import lru_cache

from fastapi import Request
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_key: str

    # Generative AI (Gemini)
    google_ai_api_key: str
    gemini_model: str = "gemini-2.5-flash"

    # Telegram relay
    telegram_bot_token: str
    telegram_admin_chat_id: str

    # Static login tokens
    admin_token: str
    client_token: str

    # Cron triggers
    cron_secret: str
    external_cron_token: str | None = None

    # Web Push (VAPID)
    vapid_public_key: str
    vapid_private_key: str
    vapid_subject: str = "mailto:admin@example.com"

    # Server
    app_timezone: str = "Asia/Ho_Chi_Minh"
    environment: str = "development"
    allowed_origins: str = ""

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


def load_settings(**overrides) -> Settings:
    """Build and validate the settings once at process start.

    Every missing or invalid variable is collected into a single
    ConfigurationError so a misconfigured deploy fails with the full list
    instead of one key at a time.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]).upper() for err in e.errors() if err.get("loc")})
        raise ConfigurationError(missing) from e


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def get_app_settings(request: Request) -> Settings:
    """Settings validated at startup and attached to the running app."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()
