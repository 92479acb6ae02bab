"""Application configuration."""
from functools import lru_cache

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

ENCRYPTION_SECRET_LENGTH = 32


class ConfigurationError(RuntimeError):
    """Raised when required server configuration is missing or invalid."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # App
    app_name: str = "Subnudge"
    debug: bool = False
    
    # Database
    database_url: str = "sqlite:///./data/subnudge.db"
    
    # Encryption
    encryption_secret: str
    
    # Telegram
    telegram_bot_token: str | None = None
    telegram_api_base: str = "https://api.telegram.org"
    telegram_timeout_seconds: float = 30.0
    
    # Scheduler
    scheduler_enabled: bool = True
    reminder_hour: int = 8
    reminder_minute: int = 0
    timezone: str = "UTC"
    dispatch_delay_seconds: float = 0.1
    cron_secret: str | None = None
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("encryption_secret")
    @classmethod
    def validate_encryption_secret(cls, value: str) -> str:
        """Fail closed if ENCRYPTION_SECRET is missing or the wrong size."""
        if not value:
            raise ValueError("ENCRYPTION_SECRET must be set.")

        if len(value) != ENCRYPTION_SECRET_LENGTH:
            raise ValueError(
                f"ENCRYPTION_SECRET must be exactly {ENCRYPTION_SECRET_LENGTH} characters."
            )

        if "changeme" in value.lower():
            raise ValueError("ENCRYPTION_SECRET must not be a placeholder value.")

        return value

    @field_validator("reminder_hour")
    @classmethod
    def validate_reminder_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("REMINDER_HOUR must be between 0 and 23.")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: a setting is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
