# scheduler/config.py

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    APP_NAME: str = "scheduler"
    ENV: Literal["local", "dev", "prod"] = "local"
    LOG_LEVEL: str = "INFO"

    # SQLite database (file-based)
    DATABASE_URL: str = "sqlite:///./scheduler.db"

    # Auth
    SECRET_KEY: str = "change-me-later"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Defaults for newly created businesses
    DEFAULT_TIMEZONE: str = "America/New_York"
    DEFAULT_SLOT_MINUTES: int = 15
    BOOKING_HORIZON_DAYS: int = 30

    WAITLIST_TTL_HOURS: int = 72

    # Upper bound on waiting for another admission on the same business/date
    ADMISSION_LOCK_TIMEOUT_SECONDS: float = 5.0

    @field_validator("DEFAULT_SLOT_MINUTES")
    @classmethod
    def _slot_minutes_positive(cls, v: int):
        if v <= 0 or v > 24 * 60:
            raise ValueError("DEFAULT_SLOT_MINUTES must be between 1 and 1440")
        return v


settings = Settings()
