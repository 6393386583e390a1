"""Data sources for coordinates and historical daily weather."""

from .base import AsyncHttpProvider, GeocodingSource, HistoricalWeatherSource, RequestConfig
from .factory import build_data_sources
from .nasa_power_client import NasaPowerClient, parse_power_response
from .observations import Coordinates, Observation, is_valid_coordinate
from .opencage_client import OpenCageGeocoder, validate_location

__all__ = [
    "build_data_sources",
    "AsyncHttpProvider",
    "GeocodingSource",
    "HistoricalWeatherSource",
    "RequestConfig",
    "NasaPowerClient",
    "OpenCageGeocoder",
    "Coordinates",
    "Observation",
    "is_valid_coordinate",
    "parse_power_response",
    "validate_location",
]
