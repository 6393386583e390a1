"""Resolve a weather query into a report: geocode, fetch history, classify."""
from __future__ import annotations

import datetime as dt
import time
import uuid
from typing import Any, List, Mapping, Union

from paradeguard import config
from paradeguard.cache_store import CacheStore, InMemoryCacheStore
from paradeguard.classification_engine import (
    CATEGORIES,
    compute_automatic,
    compute_for_category,
)
from paradeguard.data_sources import build_data_sources
from paradeguard.data_sources.base import GeocodingSource, HistoricalWeatherSource
from paradeguard.data_sources.observations import Coordinates
from paradeguard.domain import (
    AutomaticResult,
    CategoryResult,
    QueryMode,
    WeatherQuery,
    WeatherReport,
    WeatherTypeInfo,
)
from paradeguard.errors import NoDataError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="probability_service")


def list_weather_types() -> List[WeatherTypeInfo]:
    """Published categories with their default thresholds."""
    return [
        WeatherTypeInfo(
            weather_type=category.weather_type,
            default_threshold=category.default_threshold,
            unit=category.unit,
            comparison=category.comparison,
            description=category.listing_description,
        )
        for category in CATEGORIES.values()
    ]


class WeatherOddsService:
    """Thin orchestration over the geocoder, the history source and the engine."""

    def __init__(
        self,
        geocoder: GeocodingSource,
        weather: HistoricalWeatherSource,
        *,
        cache: CacheStore | None = None,
    ) -> None:
        self.geocoder = geocoder
        self.weather = weather
        self.cache = cache

    async def check_weather(self, query: Union[WeatherQuery, Mapping[str, Any]]) -> WeatherReport:
        """Compute the odds for one query. ParadeGuardError subclasses propagate, except NoData."""
        if not isinstance(query, WeatherQuery):
            query = WeatherQuery.from_input(query)

        request_id = str(uuid.uuid4())
        started = time.perf_counter()
        logger.info(
            "Weather check started",
            extra={
                "request_id": request_id,
                "location": query.location_name,
                "target_date": query.target_date.isoformat(),
                "mode": query.mode.value,
            },
        )

        if query.has_coordinates:
            coordinates = Coordinates(latitude=query.latitude, longitude=query.longitude)
            location = coordinates.label()
        else:
            coordinates = await self.geocoder.get_coordinates(query.location_name)
            location = query.location_name.strip()

        result = await self._compute(query, coordinates)
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)

        logger.info(
            "Weather check completed",
            extra={
                "request_id": request_id,
                "status": result.status.value,
                "prediction": result.prediction.value if result.prediction else None,
                "probability": result.probability,
                "observations": result.total_observations,
                "elapsed_ms": elapsed_ms,
            },
        )
        return WeatherReport(
            request_id=request_id,
            location=location,
            latitude=coordinates.latitude,
            longitude=coordinates.longitude,
            target_date=query.target_date,
            years=query.years,
            mode=query.mode,
            result=result,
            processing_time_ms=elapsed_ms,
            generated_at=dt.datetime.now(dt.timezone.utc),
        )

    async def _compute(
        self, query: WeatherQuery, coordinates: Coordinates
    ) -> Union[AutomaticResult, CategoryResult]:
        try:
            series = await self.weather.get_historical_data(
                coordinates.latitude, coordinates.longitude, query.years
            )
        except NoDataError as exc:
            logger.warning("No historical data for query: %s", exc.message)
            series = []

        if query.mode is QueryMode.MANUAL:
            return compute_for_category(series, query.target_date, query.weather_type, query.threshold)
        return compute_automatic(series, query.target_date)

    async def aclose(self) -> None:
        """Release the HTTP clients held by the data sources."""
        for source in (self.geocoder, self.weather):
            close = getattr(source, "aclose", None)
            if close is not None:
                await close()


def build_service(settings: config.Settings | None = None) -> WeatherOddsService:
    """Wire one shared cache and both data sources from configuration."""
    settings = settings or config.settings
    cache = InMemoryCacheStore(
        size_limit=settings.cache_size_limit,
        compaction_percentage=settings.cache_compaction_percentage,
    )
    geocoder, weather = build_data_sources(cache, settings)
    return WeatherOddsService(geocoder, weather, cache=cache)
