"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

_DAYS_IN_WEEK = 7


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    organization_timezone: str = "Asia/Kolkata"
    config_cache_ttl_seconds: int = 60
    aggregate_view_enabled: bool = True
    schedule_off_days: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_off_days(raw: str | None) -> frozenset[int]:
    """Parse weekday numbers (0 = Sunday) on which markets do not run."""
    if raw is None:
        return frozenset()
    days: set[int] = set()
    for chunk in raw.split(","):
        value = chunk.strip()
        if value.isdigit() and int(value) < _DAYS_IN_WEEK:
            days.add(int(value))
    return frozenset(days)
