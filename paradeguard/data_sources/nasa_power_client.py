"""
Client for the NASA POWER daily point API.

One request covers the whole historical window. Four daily parameters are
requested (community RE):

- T2M: temperature at 2 meters (°C)
- PRECTOTCORR: bias-corrected precipitation (mm/day)
- WS2M: wind speed at 2 meters (m/s)
- RH2M: relative humidity at 2 meters (%)

The response nests one date->value map per parameter under
``properties.parameter``, keyed by ``YYYYMMDD``. Any series can be absent, and
days with no measurement carry the fill value (-999) instead of a number.

NASA POWER: https://power.larc.nasa.gov/
Documentation: https://power.larc.nasa.gov/docs/services/api/
"""
from __future__ import annotations

import asyncio
import datetime as dt
import math
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from paradeguard.cache_store import CacheEntryOptions, CachePriority, CacheStore
from paradeguard.data_sources.base import AsyncHttpProvider, RequestConfig
from paradeguard.data_sources.observations import Observation, is_valid_coordinate
from paradeguard.errors import InvalidInputError, NoDataError, UpstreamInvalidResponseError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="nasa_power_client")

NASA_POWER_DAILY_POINT_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"

# Provider parameter -> Observation field. Order decides which series supplies the date keys.
NASA_PARAMETERS: Dict[str, str] = {
    "T2M": "temperature_c",
    "PRECTOTCORR": "precipitation_mm",
    "WS2M": "wind_speed_ms",
    "RH2M": "humidity_percent",
}

FILL_VALUE_FLOOR = -900.0
MIN_YEARS = 1
MAX_YEARS = 40
MIN_VALID_RATIO = 0.5
RECORDS_PER_WEIGHT_UNIT = 100


def _clean_value(raw: Any, fill_value: Optional[float]) -> Optional[float]:
    """Return a usable float, or None for fill values, non-numbers and non-finite values."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    if not math.isfinite(value) or value < FILL_VALUE_FLOOR:
        return None
    if fill_value is not None and value == fill_value:
        return None
    return value


def _parse_date_key(key: Any) -> Optional[dt.date]:
    """Parse a ``YYYYMMDD`` key; None for anything else."""
    if not isinstance(key, str) or len(key) != 8 or not key.isdigit():
        return None
    try:
        return dt.datetime.strptime(key, "%Y%m%d").date()
    except ValueError:
        return None


def _header_fill_value(payload: Mapping[str, Any]) -> Optional[float]:
    """Fill value advertised in the response header, if any."""
    header = payload.get("header")
    if not isinstance(header, Mapping):
        return None
    fill = header.get("fill_value")
    if isinstance(fill, bool) or not isinstance(fill, (int, float)):
        return None
    return float(fill)


def parse_power_response(payload: Any) -> List[Observation]:
    """Turn a decoded NASA POWER payload into date-sorted observations.

    Records with no usable measurement are skipped; range validation is left to
    the caller so the valid/parsed ratio can be reported.
    """
    if not isinstance(payload, Mapping):
        raise UpstreamInvalidResponseError("Invalid NASA POWER response format: not a JSON object")

    properties = payload.get("properties")
    if not isinstance(properties, Mapping):
        logger.error("NASA POWER response missing 'properties' field")
        raise UpstreamInvalidResponseError("Invalid NASA POWER response format: missing properties")

    parameters = properties.get("parameter")
    if not isinstance(parameters, Mapping):
        logger.error("NASA POWER response missing 'properties.parameter' field")
        raise UpstreamInvalidResponseError("Invalid NASA POWER response format: missing parameters")

    series = {
        name: parameters[name]
        for name in NASA_PARAMETERS
        if isinstance(parameters.get(name), Mapping)
    }
    if not series:
        logger.error("No usable time-series data found in NASA POWER response")
        raise UpstreamInvalidResponseError("No time-series data available in NASA POWER response")

    fill_value = _header_fill_value(payload)
    date_source = next(iter(series.values()))

    records: List[Observation] = []
    for date_key in date_source:
        day = _parse_date_key(date_key)
        if day is None:
            logger.debug("Skipping invalid date key", extra={"date_key": date_key})
            continue

        values = {
            field: _clean_value(series[name].get(date_key), fill_value) if name in series else None
            for name, field in NASA_PARAMETERS.items()
        }
        observation = Observation(date=day, **values)
        if observation.has_any_value:
            records.append(observation)

    records.sort(key=lambda o: o.date)
    return records


class NasaPowerClient(AsyncHttpProvider):
    """Cache-first NASA POWER client returning validated daily observations."""

    provider_name = "NASA POWER"

    def __init__(
        self,
        cache: CacheStore,
        *,
        api_key: str | None = None,
        base_url: str = NASA_POWER_DAILY_POINT_URL,
        cache_ttl_minutes: int = 720,
        coordinate_precision: int = 2,
        community: str = "RE",
        today_func: Callable[[], dt.date] = dt.date.today,
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
        self.coordinate_precision = coordinate_precision
        self.community = community
        self._today = today_func

    def historical_window(self, years: int) -> tuple[int, int]:
        """(start_year, end_year) ending at the last complete calendar year."""
        end_year = self._today().year - 1
        return end_year - (years - 1), end_year

    def cache_key(self, latitude: float, longitude: float, start_year: int, end_year: int) -> str:
        """Key on rounded coordinates so nearby queries share one cached series."""
        p = self.coordinate_precision
        # Adding 0.0 turns a rounded -0.0 into 0.0, so both sides of zero share a key.
        lat = round(latitude, p) + 0.0
        lon = round(longitude, p) + 0.0
        return f"nasa_power:{lat:.{p}f}:{lon:.{p}f}:{start_year}:{end_year}"

    def _build_params(self, latitude: float, longitude: float, start_year: int, end_year: int) -> dict:
        params = {
            "start": f"{start_year}0101",
            "end": f"{end_year}1231",
            "latitude": f"{latitude:.4f}",
            "longitude": f"{longitude:.4f}",
            "parameters": ",".join(NASA_PARAMETERS),
            "community": self.community,
            "format": "JSON",
        }
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    async def get_historical_data(self, latitude: float, longitude: float, years: int) -> List[Observation]:
        """Fetch `years` complete calendar years of daily observations for a point."""
        if isinstance(years, bool) or not isinstance(years, int) or not MIN_YEARS <= years <= MAX_YEARS:
            raise InvalidInputError(f"Years must be between {MIN_YEARS} and {MAX_YEARS}")
        if not is_valid_coordinate(latitude, longitude):
            raise InvalidInputError(
                "Latitude must be between -90 and 90 and longitude between -180 and 180"
            )

        start_year, end_year = self.historical_window(years)
        key = self.cache_key(latitude, longitude, start_year, end_year)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(
                "Cache hit for NASA POWER data",
                extra={"latitude": latitude, "longitude": longitude, "records": len(cached)},
            )
            return list(cached)

        logger.info(
            "NASA POWER request",
            extra={
                "latitude": latitude,
                "longitude": longitude,
                "years": years,
                "start_year": start_year,
                "end_year": end_year,
            },
        )
        params = self._build_params(latitude, longitude, start_year, end_year)
        response = await self._with_retry(
            lambda: self._get(self.base_url, params),
            description=f"NASA POWER ({latitude:.4f}, {longitude:.4f})",
        )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error(
                "Invalid JSON response from NASA POWER",
                extra={"latitude": latitude, "longitude": longitude, "content_length": len(response.content)},
            )
            raise UpstreamInvalidResponseError("Invalid response from NASA weather service") from exc

        parsed = parse_power_response(payload)
        if not parsed:
            logger.warning(
                "No weather data returned from NASA POWER",
                extra={"latitude": latitude, "longitude": longitude},
            )
            raise NoDataError("No weather data available for the specified location and time period")

        valid = [o for o in parsed if o.is_valid()]
        if len(valid) < len(parsed) * MIN_VALID_RATIO:
            logger.warning(
                "Poor data quality from NASA POWER: %d/%d valid records",
                len(valid),
                len(parsed),
            )
        if not valid:
            raise NoDataError("No valid weather records for the specified location and time period")

        self.cache.set(
            key,
            tuple(valid),
            CacheEntryOptions(
                absolute_ttl_seconds=self.cache_ttl_seconds,
                sliding_ttl_seconds=self.cache_ttl_seconds / 2,
                weight=max(1, len(valid) // RECORDS_PER_WEIGHT_UNIT),
                priority=CachePriority.NORMAL,
            ),
        )
        logger.info(
            "NASA POWER request successful: %d valid records out of %d",
            len(valid),
            len(parsed),
        )
        return valid
