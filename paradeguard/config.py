"""Service configuration pulled from environment variables via pydantic."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the ParadeGuard core."""
    model_config = SettingsConfigDict(env_prefix="PARADEGUARD_", extra="ignore")

    geocoding_api_key: str | None = None
    nasa_api_key: str | None = None
    opencage_base_url: str = "https://api.opencagedata.com/geocode/v1/json"
    nasa_base_url: str = "https://power.larc.nasa.gov/api/temporal/daily/point"
    user_agent: str = "ParadeGuard/1.0"

    geocoding_timeout_seconds: float = Field(default=30.0, gt=0)
    weather_timeout_seconds: float = Field(default=45.0, gt=0)
    max_retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)

    geocoding_cache_minutes: int = Field(default=1440, ge=1, le=10080)  # 24 hours
    weather_cache_minutes: int = Field(default=720, ge=1, le=10080)  # 12 hours
    cache_size_limit: int = Field(default=1000, ge=1)
    cache_compaction_percentage: float = Field(default=0.25, ge=0.0, lt=1.0)
    coordinate_cache_precision: int = Field(default=2, ge=0, le=6)

    default_years: int = Field(default=30, ge=1, le=40)

    @field_validator("opencage_base_url", "nasa_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("geocoding_api_key", "nasa_api_key", mode="after")
    @classmethod
    def blank_key_is_missing(cls, v: str | None) -> str | None:
        """Treat empty or whitespace-only keys as not configured."""
        if v is None or not v.strip():
            return None
        return v.strip()


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(
        "Loaded settings: %s",
        settings.model_dump_json(indent=4, exclude={"geocoding_api_key", "nasa_api_key"}),
    )
