"""Deterministic extreme-weather classification over historical observations.

This module converts a daily series + target calendar date into either an
automatic breakdown over every classification label or a single-category
probability against a caller threshold. It performs no I/O and never mutates
its input.
"""

from __future__ import annotations

import datetime as dt
import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from paradeguard.data_sources.observations import Observation
from paradeguard.domain import (
    AutomaticResult,
    CategoryResult,
    Classification,
    ClassifiedDay,
    Comparison,
    DayContext,
    MatchingDay,
    ResultStatus,
    WeatherStats,
    WeatherType,
)
from paradeguard.errors import InvalidInputError


@dataclass(frozen=True)
class ClassificationThresholds:
    """Thresholds for automatic classification (°C, mm/day, m/s)."""
    hot_c: float = 35.0
    cold_c: float = 5.0
    wet_mm: float = 10.0
    windy_ms: float = 10.0


DEFAULT_THRESHOLDS = ClassificationThresholds()


@dataclass(frozen=True)
class CategoryDefinition:
    """How a category reads the series and phrases its result."""
    weather_type: WeatherType
    field: str
    unit: str
    comparison: Comparison
    default_threshold: float
    phrase: str
    threshold_format: str
    listing_description: str

    def threshold_label(self, threshold: float) -> str:
        return self.threshold_format.format(sign=self.comparison.value, value=threshold)


CATEGORIES: Dict[WeatherType, CategoryDefinition] = {
    WeatherType.VERY_HOT: CategoryDefinition(
        weather_type=WeatherType.VERY_HOT,
        field="temperature_c",
        unit="°C",
        comparison=Comparison.ABOVE,
        default_threshold=DEFAULT_THRESHOLDS.hot_c,
        phrase="very hot conditions",
        threshold_format="{sign}{value:g}°C",
        listing_description="Temperature exceeding threshold (default: 35°C)",
    ),
    WeatherType.VERY_COLD: CategoryDefinition(
        weather_type=WeatherType.VERY_COLD,
        field="temperature_c",
        unit="°C",
        comparison=Comparison.BELOW,
        default_threshold=DEFAULT_THRESHOLDS.cold_c,
        phrase="very cold conditions",
        threshold_format="{sign}{value:g}°C",
        listing_description="Temperature below threshold (default: 5°C)",
    ),
    WeatherType.VERY_WET: CategoryDefinition(
        weather_type=WeatherType.VERY_WET,
        field="precipitation_mm",
        unit="mm",
        comparison=Comparison.ABOVE,
        default_threshold=DEFAULT_THRESHOLDS.wet_mm,
        phrase="heavy rainfall",
        threshold_format="{sign}{value:g}mm",
        listing_description="Precipitation exceeding threshold (default: 10mm)",
    ),
    WeatherType.VERY_WINDY: CategoryDefinition(
        weather_type=WeatherType.VERY_WINDY,
        field="wind_speed_ms",
        unit="m/s",
        comparison=Comparison.ABOVE,
        default_threshold=DEFAULT_THRESHOLDS.windy_ms,
        phrase="strong winds",
        threshold_format="{sign}{value:g} m/s",
        listing_description="Wind speed exceeding threshold (default: 10 m/s)",
    ),
}

# Tie-break order among extreme labels, most severe first.
SEVERITY_ORDER: Tuple[Classification, ...] = (
    Classification.VERY_HOT,
    Classification.VERY_COLD,
    Classification.VERY_WET,
    Classification.VERY_WINDY,
)

NORMAL_DESCRIPTION = "Historical data shows consistently normal weather conditions for this date."


@dataclass(frozen=True)
class ClassificationRule:
    """One `field <op> threshold` test mapping onto a label."""
    classification: Classification
    field: str
    comparison: Comparison
    threshold: float

    def matches(self, day: Observation) -> bool:
        """A missing measurement never triggers the rule."""
        value = getattr(day, self.field)
        if value is None:
            return False
        if self.comparison is Comparison.ABOVE:
            return value > self.threshold
        return value < self.threshold


def build_rules(thresholds: ClassificationThresholds = DEFAULT_THRESHOLDS) -> Tuple[ClassificationRule, ...]:
    """Ordered rules; first match wins, so temperature beats precipitation beats wind."""
    return (
        ClassificationRule(Classification.VERY_HOT, "temperature_c", Comparison.ABOVE, thresholds.hot_c),
        ClassificationRule(Classification.VERY_COLD, "temperature_c", Comparison.BELOW, thresholds.cold_c),
        ClassificationRule(Classification.VERY_WET, "precipitation_mm", Comparison.ABOVE, thresholds.wet_mm),
        ClassificationRule(Classification.VERY_WINDY, "wind_speed_ms", Comparison.ABOVE, thresholds.windy_ms),
    )


DEFAULT_RULES = build_rules()


def classify_day(day: Observation, rules: Sequence[ClassificationRule] = DEFAULT_RULES) -> Classification:
    """Label a single day."""
    for rule in rules:
        if rule.matches(day):
            return rule.classification
    return Classification.NORMAL


def _round2(value: float) -> float:
    return round(value, 2)


def _percentage(count: int, total: int) -> float:
    return _round2(count / total * 100.0)


def _label_percentages(counts: Counter, total: int) -> Dict[Classification, float]:
    """Per-label percentages rounded to 2 dp, nudged so they sum to 100 within 0.01."""
    raw = {label: counts.get(label, 0) / total * 100.0 for label in Classification}
    percentages = {label: _round2(value) for label, value in raw.items()}
    drift = _round2(sum(percentages.values()) - 100.0)
    if abs(drift) <= 0.01:
        return percentages

    present = [label for label in Classification if counts.get(label, 0)]
    if drift > 0:
        # Take back from the labels rounded up the most; ties go to the least severe label first.
        order = sorted(reversed(present), key=lambda label: raw[label] - percentages[label])
        step = -0.01
    else:
        order = sorted(present, key=lambda label: percentages[label] - raw[label])
        step = 0.01
    for label in order[: round(abs(drift) * 100) - 1]:
        percentages[label] = _round2(percentages[label] + step)
    return percentages


def filter_matching_days(series: Iterable[Observation], target_date: dt.date) -> List[Observation]:
    """Days sharing the target's month and day, newest year first."""
    days = [o for o in series if o.date.month == target_date.month and o.date.day == target_date.day]
    days.sort(key=lambda o: o.date, reverse=True)
    return days


def compute_stats(days: Iterable[Observation]) -> WeatherStats:
    """Average/min/max per field in one pass; None where a field has no samples."""
    fields = ("temperature_c", "precipitation_mm", "wind_speed_ms", "humidity_percent")
    sums = dict.fromkeys(fields, 0.0)
    counts = dict.fromkeys(fields, 0)
    mins: Dict[str, float] = {}
    maxs: Dict[str, float] = {}

    for day in days:
        for name in fields:
            value = getattr(day, name)
            if value is None:
                continue
            sums[name] += value
            counts[name] += 1
            mins[name] = value if name not in mins else min(mins[name], value)
            maxs[name] = value if name not in maxs else max(maxs[name], value)

    def avg(name: str) -> float | None:
        return _round2(sums[name] / counts[name]) if counts[name] else None

    def low(name: str) -> float | None:
        return _round2(mins[name]) if name in mins else None

    def high(name: str) -> float | None:
        return _round2(maxs[name]) if name in maxs else None

    return WeatherStats(
        avg_temperature=avg("temperature_c"),
        min_temperature=low("temperature_c"),
        max_temperature=high("temperature_c"),
        avg_precipitation=avg("precipitation_mm"),
        max_precipitation=high("precipitation_mm"),
        avg_wind_speed=avg("wind_speed_ms"),
        max_wind_speed=high("wind_speed_ms"),
        avg_humidity=avg("humidity_percent"),
    )


def _describe(category: CategoryDefinition, threshold: float, count: int, total: int) -> str:
    percentage = round(count / total * 100.0, 1)
    return (
        f"Historical data shows {percentage:.1f}% probability of {category.phrase} "
        f"({category.threshold_label(threshold)}) on this date across {total} years."
    )


def _threshold_for(classification: Classification, thresholds: ClassificationThresholds) -> float:
    return {
        Classification.VERY_HOT: thresholds.hot_c,
        Classification.VERY_COLD: thresholds.cold_c,
        Classification.VERY_WET: thresholds.wet_mm,
        Classification.VERY_WINDY: thresholds.windy_ms,
    }[classification]


def compute_automatic(
    series: Sequence[Observation],
    target_date: dt.date,
    thresholds: ClassificationThresholds = DEFAULT_THRESHOLDS,
) -> AutomaticResult:
    """Classify every matching day and report the dominant extreme label."""
    days = filter_matching_days(series, target_date)
    if not days:
        return AutomaticResult.no_data()

    rules = build_rules(thresholds)
    classified: List[ClassifiedDay] = []
    for day in days:
        label = classify_day(day, rules)
        classified.append(
            ClassifiedDay(
                date=day.date,
                year=day.year,
                temperature_c=day.temperature_c,
                precipitation_mm=day.precipitation_mm,
                wind_speed_ms=day.wind_speed_ms,
                humidity_percent=day.humidity_percent,
                classification=label,
                is_extreme=label.is_extreme,
            )
        )

    total = len(classified)
    counts = Counter(c.classification for c in classified)
    probabilities = _label_percentages(counts, total)
    extreme_count = total - counts.get(Classification.NORMAL, 0)

    if extreme_count == 0:
        prediction = Classification.NORMAL
        probability = 100.0
        description = NORMAL_DESCRIPTION
    else:
        # max() keeps the first of equal counts, and SEVERITY_ORDER is most severe first.
        prediction = max(SEVERITY_ORDER, key=lambda label: counts.get(label, 0))
        probability = probabilities[prediction]
        category = CATEGORIES[WeatherType(prediction.value)]
        description = _describe(category, _threshold_for(prediction, thresholds), counts[prediction], total)

    return AutomaticResult(
        status=ResultStatus.OK,
        prediction=prediction,
        probability=probability,
        total_observations=total,
        description=description,
        probabilities=probabilities,
        classified_days=classified,
        extreme_count=extreme_count,
        empty_day_count=sum(1 for d in days if not d.has_any_value),
        stats=compute_stats(days),
    )


def _resolve_category(weather_type: WeatherType | str) -> CategoryDefinition:
    try:
        return CATEGORIES[WeatherType(weather_type)]
    except ValueError as exc:
        valid = ", ".join(t.value for t in WeatherType)
        raise InvalidInputError(f"Unknown weather type '{weather_type}'", details=f"Expected one of: {valid}") from exc


def _resolve_threshold(category: CategoryDefinition, threshold: float | None) -> float:
    if threshold is None:
        return category.default_threshold
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidInputError("Threshold must be a number")
    if not math.isfinite(threshold) or threshold < 0:
        raise InvalidInputError("Threshold must be a finite, non-negative number")
    return float(threshold)


def compute_for_category(
    series: Sequence[Observation],
    target_date: dt.date,
    weather_type: WeatherType | str,
    threshold: float | None = None,
) -> CategoryResult:
    """Probability that the matching days crossed `threshold` for one category."""
    category = _resolve_category(weather_type)
    limit = _resolve_threshold(category, threshold)
    rule = ClassificationRule(category.weather_type.classification, category.field, category.comparison, limit)

    days = filter_matching_days(series, target_date)
    if not days:
        return CategoryResult.no_data(category.weather_type, limit, category.unit)

    matched = [d for d in days if rule.matches(d)]
    # Most extreme first; `days` is newest first and sort() is stable, so ties stay newest first.
    matched.sort(
        key=lambda d: getattr(d, category.field),
        reverse=category.comparison is Comparison.ABOVE,
    )

    total = len(days)
    matching_days = [
        MatchingDay(
            date=d.date,
            year=d.year,
            value=getattr(d, category.field),
            threshold=limit,
            weather_type=category.weather_type,
            unit=category.unit,
            context=DayContext(
                temperature_c=d.temperature_c,
                precipitation_mm=d.precipitation_mm,
                wind_speed_ms=d.wind_speed_ms,
                humidity_percent=d.humidity_percent,
            ),
        )
        for d in matched
    ]

    return CategoryResult(
        status=ResultStatus.OK,
        prediction=category.weather_type.classification,
        weather_type=category.weather_type,
        threshold=limit,
        unit=category.unit,
        match_count=len(matched),
        probability=_percentage(len(matched), total),
        total_observations=total,
        description=_describe(category, limit, len(matched), total),
        matching_days=matching_days,
        stats=compute_stats(days),
    )
