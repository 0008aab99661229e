"""Configuration settings for the recurring accounts job."""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backing store (PostgREST)
    supabase_url: str = Field(..., validation_alias="SUPABASE_URL")
    supabase_service_role_key: SecretStr = Field(
        ..., validation_alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    store_timeout: float = Field(default=30.0, validation_alias="STORE_TIMEOUT")
    store_max_retries: int = Field(default=0, ge=0, validation_alias="STORE_MAX_RETRIES")

    # Projection
    lookahead_days: int = Field(
        default=30, ge=0, validation_alias="RECURRENCE_LOOKAHEAD_DAYS"
    )
    strict_frequency: bool = Field(
        default=False, validation_alias="RECURRENCE_STRICT_FREQUENCY"
    )
    timezone: str = Field(default="UTC", validation_alias="RECURRENCE_TIMEZONE")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        if value.upper() == "UTC":
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone {value!r}") from e
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
