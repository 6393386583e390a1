"""Raw records produced by the data sources: coordinates and daily observations."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Optional

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)

# Hard physical limits; anything outside is a provider defect, not weather.
TEMPERATURE_RANGE_C = (-100.0, 70.0)
PRECIPITATION_RANGE_MM = (0.0, 1000.0)
WIND_SPEED_RANGE_MS = (0.0, 200.0)
HUMIDITY_RANGE_PERCENT = (0.0, 100.0)


def _in_range(value: Optional[float], bounds: tuple[float, float]) -> bool:
    """True for a missing value or a finite value inside the inclusive bounds."""
    if value is None:
        return True
    lower, upper = bounds
    return math.isfinite(value) and lower <= value <= upper


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Return True if both values are finite and inside the WGS84 ranges."""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    return (
        math.isfinite(lat)
        and math.isfinite(lon)
        and LATITUDE_RANGE[0] <= lat <= LATITUDE_RANGE[1]
        and LONGITUDE_RANGE[0] <= lon <= LONGITUDE_RANGE[1]
    )


@dataclass(frozen=True)
class Coordinates:
    """Resolved location in decimal degrees."""
    latitude: float
    longitude: float

    def label(self) -> str:
        """Human-readable "lat, lon" label used when no place name is known."""
        return f"{self.latitude:.4f}, {self.longitude:.4f}"


@dataclass(frozen=True)
class Observation:
    """One day of recorded weather for a location.

    Values are stored in the units the climate provider reports:
    - temperature in Celsius (T2M)
    - precipitation in millimetres per day (PRECTOTCORR)
    - wind speed in metres per second (WS2M)
    - relative humidity in percent (RH2M)
    """
    date: dt.date
    temperature_c: Optional[float] = None
    precipitation_mm: Optional[float] = None
    wind_speed_ms: Optional[float] = None
    humidity_percent: Optional[float] = None

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def is_complete(self) -> bool:
        """All four measurements present (informational only)."""
        return None not in (self.temperature_c, self.precipitation_mm, self.wind_speed_ms, self.humidity_percent)

    @property
    def has_any_value(self) -> bool:
        return any(
            v is not None
            for v in (self.temperature_c, self.precipitation_mm, self.wind_speed_ms, self.humidity_percent)
        )

    def is_valid(self) -> bool:
        """Every present measurement lies within its hard physical range."""
        return (
            _in_range(self.temperature_c, TEMPERATURE_RANGE_C)
            and _in_range(self.precipitation_mm, PRECIPITATION_RANGE_MM)
            and _in_range(self.wind_speed_ms, WIND_SPEED_RANGE_MS)
            and _in_range(self.humidity_percent, HUMIDITY_RANGE_PERCENT)
        )
