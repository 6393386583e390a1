"""Command-line entry point: run one weather-odds check and print the report as JSON.

    python run_check.py --location "Oslo, Norway" --date 2025-07-14
    python run_check.py --lat 40.7128 --lon -74.0060 --date 2025-01-20 --type VeryCold --threshold 0
"""
from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import sys
from typing import Optional, Sequence

from paradeguard import config
from paradeguard.domain import WeatherQuery, WeatherType
from paradeguard.errors import InvalidInputError, ParadeGuardError
from paradeguard.probability_service import build_service
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="cli")

EXIT_OK = 0
EXIT_UPSTREAM_FAILURE = 1
EXIT_INVALID_INPUT = 2


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Odds of extreme weather on a calendar date, from historical observations."
    )
    parser.add_argument("--location", help="Place name to geocode, e.g. 'Paris, France'")
    parser.add_argument("--lat", type=float, help="Latitude in decimal degrees")
    parser.add_argument("--lon", type=float, help="Longitude in decimal degrees")
    parser.add_argument("--date", required=True, type=_parse_date, help="Target date (YYYY-MM-DD)")
    parser.add_argument(
        "--type",
        dest="weather_type",
        choices=[t.value for t in WeatherType],
        help="Single category to evaluate (automatic classification when omitted)",
    )
    parser.add_argument("--threshold", type=float, help="Threshold override for --type")
    parser.add_argument("--years", type=int, default=config.settings.default_years, help="Years of history (1-40)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser


async def _run(query: WeatherQuery) -> str:
    service = build_service()
    try:
        report = await service.check_weather(query)
    finally:
        await service.aclose()
    return report.model_dump_json(indent=2)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level.upper(), service_name="paradeguard-cli")

    try:
        query = WeatherQuery.from_input(
            {
                "location_name": args.location,
                "latitude": args.lat,
                "longitude": args.lon,
                "target_date": args.date,
                "weather_type": args.weather_type,
                "threshold": args.threshold,
                "years": args.years,
            }
        )
        output = asyncio.run(_run(query))
    except InvalidInputError as exc:
        logger.error("Invalid query: %s", exc.message)
        print(f"error: {exc.message}" + (f" ({exc.details})" if exc.details else ""), file=sys.stderr)
        return EXIT_INVALID_INPUT
    except ParadeGuardError as exc:
        logger.error("Weather check failed: %s", exc.message, extra={"code": exc.code})
        print(f"error [{exc.code}]: {exc.message}", file=sys.stderr)
        return EXIT_UPSTREAM_FAILURE

    print(output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
