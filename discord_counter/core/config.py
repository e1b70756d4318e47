from pydantic_settings import BaseSettings, SettingsConfigDict

from discord_counter.core.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://counter:counter@db:5432/discord_counter"
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"

    # Apify actor that scrapes guild metadata from an invite code.
    APIFY_TOKEN: str = ""
    APIFY_ACTOR_ID: str = ""
    APIFY_BASE_URL: str = "https://api.apify.com/v2"
    FETCH_TIMEOUT_SECONDS: float = 60.0

    # Retry policy: 3 retries → 4 attempts, waits of 2s, 4s, 8s.
    FETCH_MAX_RETRIES: int = 3
    FETCH_BASE_DELAY_SECONDS: float = 2.0

    # Upstream rate limiting: groups of 10, 30s apart.
    BATCH_SIZE: int = 10
    BATCH_COOLDOWN_SECONDS: float = 30.0

    SCHEDULER_ENABLED: bool = True
    SYNC_INTERVAL_SECONDS: float = 3600.0

    def require_provider_credentials(self) -> None:
        missing = [
            name for name in ("APIFY_TOKEN", "APIFY_ACTOR_ID")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ConfigurationError(missing=missing)


settings = Settings()
