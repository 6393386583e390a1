"""Resolve free-text locations to coordinates through the OpenCage geocoding API."""
from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable

import httpx

from paradeguard.cache_store import CacheEntryOptions, CachePriority, CacheStore
from paradeguard.data_sources.base import AsyncHttpProvider, RequestConfig
from paradeguard.data_sources.observations import Coordinates, is_valid_coordinate
from paradeguard.errors import (
    InvalidInputError,
    LocationNotFoundError,
    UnauthenticatedError,
    UpstreamUnavailableError,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="opencage_client")

OPENCAGE_GEOCODE_URL = "https://api.opencagedata.com/geocode/v1/json"

MIN_LOCATION_CHARS = 2
MAX_LOCATION_CHARS = 200
LOCATION_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-.,'()]+$")


def validate_location(place: Any) -> str:
    """Check the location text and return it trimmed; raise InvalidInputError otherwise."""
    if not isinstance(place, str) or not place.strip():
        raise InvalidInputError("Location name is required")
    trimmed = place.strip()
    if len(trimmed) < MIN_LOCATION_CHARS:
        raise InvalidInputError(f"Location name is too short (min {MIN_LOCATION_CHARS} characters)")
    if len(trimmed) > MAX_LOCATION_CHARS:
        raise InvalidInputError(f"Location name is too long (max {MAX_LOCATION_CHARS} characters)")
    if not LOCATION_PATTERN.match(place):
        raise InvalidInputError("Location name contains invalid characters")
    return trimmed


def geocoding_cache_key(place: str) -> str:
    """Cache key for a location: trimmed, lower-cased text."""
    return f"geocoding:{place.strip().lower()}"


class OpenCageGeocoder(AsyncHttpProvider):
    """Cache-first OpenCage client. Coordinates are cheap to keep, so they get HIGH priority."""

    provider_name = "OpenCage geocoder"
    auth_status_codes = frozenset({401, 403})

    def __init__(
        self,
        cache: CacheStore,
        *,
        api_key: str | None,
        base_url: str = OPENCAGE_GEOCODE_URL,
        cache_ttl_minutes: int = 1440,
        client: httpx.AsyncClient | None = None,
        request_config: RequestConfig | None = None,
        user_agent: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(client, request_config, user_agent=user_agent, sleep=sleep)
        self.cache = cache
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache_ttl_seconds = cache_ttl_minutes * 60

    async def get_coordinates(self, place: str) -> Coordinates:
        """Return coordinates for `place`, consulting the cache before the network."""
        validate_location(place)
        key = geocoding_cache_key(place)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for geocoding", extra={"place": place})
            return cached

        if not self.api_key:
            raise UnauthenticatedError("Geocoding API key is not configured")

        logger.info("Geocoding request", extra={"place": place})
        coordinates = await self._with_retry(
            lambda: self._fetch(place), description=f"geocoding '{place}'"
        )

        self.cache.set(
            key,
            coordinates,
            CacheEntryOptions(
                absolute_ttl_seconds=self.cache_ttl_seconds,
                sliding_ttl_seconds=self.cache_ttl_seconds / 2,
                weight=1,
                priority=CachePriority.HIGH,
            ),
        )
        logger.info(
            "Geocoding successful",
            extra={"place": place, "latitude": coordinates.latitude, "longitude": coordinates.longitude},
        )
        return coordinates

    async def _fetch(self, place: str) -> Coordinates:
        """One request/parse cycle; the raw (not normalized) text goes to the provider."""
        params = {
            "q": place,
            "key": self.api_key,
            "limit": 1,
            "no_annotations": 1,
        }
        response = await self._get(self.base_url, params)
        return self._parse_response(response, place)

    @staticmethod
    def _parse_response(response: httpx.Response, place: str) -> Coordinates:
        """Extract the first result's geometry. Malformed payloads count as unavailable."""
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Non-JSON response from geocoding service", extra={"place": place})
            raise UpstreamUnavailableError("Invalid response from geocoding service") from exc

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.warning("Invalid response format from geocoding service", extra={"place": place})
            raise UpstreamUnavailableError("Invalid response from geocoding service")

        if not results:
            logger.warning("Location not found", extra={"place": place})
            raise LocationNotFoundError(f"Location '{place}' not found")

        first = results[0]
        geometry = first.get("geometry") if isinstance(first, dict) else None
        if not isinstance(geometry, dict):
            raise UpstreamUnavailableError("Invalid geometry data in geocoding response")

        lat = geometry.get("lat")
        lon = geometry.get("lng")
        if isinstance(lat, bool) or isinstance(lon, bool) or not is_valid_coordinate(lat, lon):
            raise UpstreamUnavailableError("Invalid coordinates received from geocoding service")
        return Coordinates(latitude=float(lat), longitude=float(lon))
