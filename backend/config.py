"""Application configuration using pydantic-settings."""

from datetime import date, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./returns.db"

    # Market session used for cache freshness. Returns are computed from
    # daily-close snapshots, so the calendar only drives the cache TTL.
    MARKET_TIMEZONE: str = "America/New_York"
    MARKET_OPEN: time = time(9, 30)
    MARKET_CLOSE: time = time(16, 0)
    MARKET_HOLIDAYS: list[date] = []

    # Returns cache
    RETURNS_CACHE_ENABLED: bool = True
    INTRADAY_CACHE_TTL_SECONDS: int = 300

    DEFAULT_CURRENCY: str = "USD"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("MARKET_TIMEZONE")
    @classmethod
    def validate_market_timezone(cls, v: str) -> str:
        """Reject timezone names the zoneinfo database does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"MARKET_TIMEZONE is not a known timezone: {v!r}")
        return v

    @field_validator("DEFAULT_CURRENCY", mode="before")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case (``usd`` -> ``USD``)."""
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("INTRADAY_CACHE_TTL_SECONDS")
    @classmethod
    def validate_intraday_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("INTRADAY_CACHE_TTL_SECONDS must be positive")
        return v

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
