"""Domain vocabulary and strict schemas for historical weather odds.

This module defines the stable contract between the classification engine,
the result assembler and whatever transport sits on top of them: enums,
result payloads and the query model. No classification logic lives here.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from paradeguard.errors import InvalidInputError


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class Classification(str, Enum):
    """Label assigned to a single historical day."""
    VERY_HOT = "VeryHot"
    VERY_COLD = "VeryCold"
    VERY_WET = "VeryWet"
    VERY_WINDY = "VeryWindy"
    NORMAL = "Normal"

    @property
    def is_extreme(self) -> bool:
        return self is not Classification.NORMAL


class WeatherType(str, Enum):
    """Caller-selectable extreme-weather category for manual mode."""
    VERY_HOT = "VeryHot"
    VERY_COLD = "VeryCold"
    VERY_WET = "VeryWet"
    VERY_WINDY = "VeryWindy"

    @property
    def classification(self) -> Classification:
        return Classification(self.value)


class ResultStatus(str, Enum):
    """Distinguishes a real (possibly 0%) answer from "nothing to compute on"."""
    OK = "ok"
    NO_DATA = "no_data"


class QueryMode(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class Comparison(str, Enum):
    """One-sided inequality used by a category."""
    ABOVE = ">"
    BELOW = "<"


class WeatherStats(_StrictBaseModel):
    """Descriptive statistics over the matching days, rounded to 2 decimals."""
    avg_temperature: float | None = None
    min_temperature: float | None = None
    max_temperature: float | None = None
    avg_precipitation: float | None = None
    max_precipitation: float | None = None
    avg_wind_speed: float | None = None
    max_wind_speed: float | None = None
    avg_humidity: float | None = None


class DayContext(_StrictBaseModel):
    """Snapshot of all four measurements for a matching day."""
    temperature_c: float | None = None
    precipitation_mm: float | None = None
    wind_speed_ms: float | None = None
    humidity_percent: float | None = None


class ClassifiedDay(_StrictBaseModel):
    """One historical day with its automatic classification."""
    date: dt.date
    year: int
    temperature_c: float | None = None
    precipitation_mm: float | None = None
    wind_speed_ms: float | None = None
    humidity_percent: float | None = None
    classification: Classification
    is_extreme: bool


class MatchingDay(_StrictBaseModel):
    """A day that met the manual-mode condition."""
    date: dt.date
    year: int
    value: float
    threshold: float
    weather_type: WeatherType
    unit: str
    context: DayContext


class AutomaticResult(_StrictBaseModel):
    """Dominant classification plus the full per-label breakdown."""
    status: ResultStatus = ResultStatus.OK
    prediction: Classification | None = None
    probability: float = 0.0
    total_observations: int = 0
    description: str = ""
    probabilities: Dict[Classification, float] = Field(default_factory=dict)
    classified_days: List[ClassifiedDay] = Field(default_factory=list)
    extreme_count: int = 0
    empty_day_count: int = 0
    stats: WeatherStats | None = None

    @classmethod
    def no_data(cls) -> "AutomaticResult":
        return cls(
            status=ResultStatus.NO_DATA,
            description="No historical data available for this date.",
        )


class CategoryResult(_StrictBaseModel):
    """Probability of one caller-chosen category against a threshold."""
    status: ResultStatus = ResultStatus.OK
    prediction: Classification | None = None
    weather_type: WeatherType
    threshold: float
    unit: str
    match_count: int = 0
    probability: float = 0.0
    total_observations: int = 0
    description: str = ""
    matching_days: List[MatchingDay] = Field(default_factory=list)
    stats: WeatherStats | None = None

    @classmethod
    def no_data(cls, weather_type: WeatherType, threshold: float, unit: str) -> "CategoryResult":
        return cls(
            status=ResultStatus.NO_DATA,
            weather_type=weather_type,
            threshold=threshold,
            unit=unit,
            description="No historical data available for this date.",
        )


class WeatherQuery(_StrictBaseModel):
    """Caller query: a place (name or coordinates), a date and an optional category."""
    location_name: str | None = Field(default=None, min_length=2, max_length=200)
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0, allow_inf_nan=False)
    target_date: dt.date
    weather_type: WeatherType | None = None
    threshold: float | None = Field(default=None, ge=0.0, allow_inf_nan=False)
    years: int = Field(default=30, ge=1, le=40)

    @model_validator(mode="after")
    def _check_location(self) -> "WeatherQuery":
        has_lat = self.latitude is not None
        has_lon = self.longitude is not None
        if has_lat != has_lon:
            raise ValueError("latitude and longitude must be provided together")
        if not has_lat and not (self.location_name and self.location_name.strip()):
            raise ValueError("either location_name or latitude/longitude is required")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def mode(self) -> QueryMode:
        return QueryMode.MANUAL if self.weather_type is not None else QueryMode.AUTOMATIC

    @classmethod
    def from_input(cls, data: Mapping[str, Any]) -> "WeatherQuery":
        """Validate raw input, reporting problems as InvalidInputError."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'query'}: {err['msg']}" for err in exc.errors()
            )
            raise InvalidInputError("Invalid weather query", details=problems) from exc


class WeatherReport(_StrictBaseModel):
    """Consumer-facing envelope around an engine result."""
    request_id: str
    location: str
    latitude: float
    longitude: float
    target_date: dt.date
    years: int
    mode: QueryMode
    result: AutomaticResult | CategoryResult
    processing_time_ms: float
    generated_at: dt.datetime

    @property
    def status(self) -> ResultStatus:
        return self.result.status


class WeatherTypeInfo(_StrictBaseModel):
    """Published description of one selectable category."""
    weather_type: WeatherType
    default_threshold: float
    unit: str
    comparison: Comparison
    description: str
