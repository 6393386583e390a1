"""Factory helpers for wiring the data sources at startup."""

from __future__ import annotations

from paradeguard import config
from paradeguard.cache_store import CacheStore
from paradeguard.data_sources.base import RequestConfig
from paradeguard.data_sources.nasa_power_client import NasaPowerClient
from paradeguard.data_sources.opencage_client import OpenCageGeocoder
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


def build_data_sources(
    cache: CacheStore,
    settings: config.Settings | None = None,
) -> tuple[OpenCageGeocoder, NasaPowerClient]:
    """Instantiate the geocoder and the historical weather client sharing one cache."""
    settings = settings or config.settings

    if not settings.geocoding_api_key:
        # Coordinate queries still work; location-name queries fail with Unauthenticated.
        logger.warning("Geocoding API key is not configured")

    geocoder = OpenCageGeocoder(
        cache,
        api_key=settings.geocoding_api_key,
        base_url=settings.opencage_base_url,
        cache_ttl_minutes=settings.geocoding_cache_minutes,
        request_config=RequestConfig(
            timeout=settings.geocoding_timeout_seconds,
            max_attempts=settings.max_retry_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
        user_agent=settings.user_agent,
    )
    weather = NasaPowerClient(
        cache,
        api_key=settings.nasa_api_key,
        base_url=settings.nasa_base_url,
        cache_ttl_minutes=settings.weather_cache_minutes,
        coordinate_precision=settings.coordinate_cache_precision,
        request_config=RequestConfig(
            timeout=settings.weather_timeout_seconds,
            max_attempts=settings.max_retry_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
        user_agent=settings.user_agent,
    )
    logger.info(
        "Using OpenCage geocoder and NASA POWER data sources",
        extra={"geocoding_url": settings.opencage_base_url, "weather_url": settings.nasa_base_url},
    )
    return geocoder, weather
