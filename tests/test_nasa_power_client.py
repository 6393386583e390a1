import asyncio
import datetime as dt

import httpx
import pytest
import respx
from httpx import Response

from paradeguard.cache_store import CachePriority, InMemoryCacheStore
from paradeguard.data_sources.base import RequestConfig
from paradeguard.data_sources.nasa_power_client import (
    NASA_POWER_DAILY_POINT_URL,
    NasaPowerClient,
    parse_power_response,
)
from paradeguard.errors import (
    InvalidInputError,
    NoDataError,
    UnauthenticatedError,
    UpstreamInvalidResponseError,
    UpstreamUnavailableError,
)


def _payload(parameters, fill_value=-999.0):
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [-74.0, 40.7, 10.0]},
        "properties": {"parameter": parameters},
        "header": {"title": "NASA/POWER", "fill_value": fill_value},
    }


def _full_payload():
    return _payload(
        {
            "T2M": {"20230714": 28.5, "20240714": 36.2, "20240715": 22.0},
            "PRECTOTCORR": {"20230714": 0.0, "20240714": 1.2, "20240715": 15.0},
            "WS2M": {"20230714": 3.1, "20240714": 4.0, "20240715": 2.2},
            "RH2M": {"20230714": 60.0, "20240714": 40.0, "20240715": 90.0},
        }
    )


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def nasa_client(cache, sleeps):
    return NasaPowerClient(
        cache,
        request_config=RequestConfig(timeout=5, max_attempts=3, backoff_seconds=0.0),
        today_func=lambda: dt.date(2025, 6, 1),
        sleep=sleeps,
    )


@pytest.mark.asyncio
async def test_fetch_builds_window_and_parses_series(nasa_client):
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=_full_payload()))

        records = await nasa_client.get_historical_data(40.71277, -74.00597, 2)

        params = route.calls[0].request.url.params
        assert params["start"] == "20230101"
        assert params["end"] == "20241231"
        assert params["latitude"] == "40.7128"
        assert params["longitude"] == "-74.0060"
        assert params["parameters"] == "T2M,PRECTOTCORR,WS2M,RH2M"
        assert params["community"] == "RE"
        assert params["format"] == "JSON"
        assert "api_key" not in params

    assert [r.date for r in records] == [dt.date(2023, 7, 14), dt.date(2024, 7, 14), dt.date(2024, 7, 15)]
    assert records[1].temperature_c == 36.2
    assert records[2].precipitation_mm == 15.0
    assert all(r.is_complete for r in records)
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_api_key_is_sent_when_configured(cache):
    client = NasaPowerClient(cache, api_key="nasa-key", today_func=lambda: dt.date(2025, 6, 1))
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=_full_payload()))
        await client.get_historical_data(10.0, 10.0, 1)
        assert route.calls[0].request.url.params["api_key"] == "nasa-key"
    await client.aclose()


@pytest.mark.asyncio
async def test_identical_requests_hit_upstream_once(nasa_client):
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=_full_payload()))

        first = await nasa_client.get_historical_data(40.7128, -74.006, 2)
        # rounds to the same cache key
        second = await nasa_client.get_historical_data(40.7101, -74.0061, 2)

        assert route.call_count == 1
    assert first == second
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_cached_series_uses_normal_priority_and_scaled_weight(nasa_client, cache):
    days = {(dt.date(2024, 1, 1) + dt.timedelta(days=i)).strftime("%Y%m%d"): 10.0 for i in range(250)}
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=_payload({"T2M": days})))
        records = await nasa_client.get_historical_data(1.0, 2.0, 1)

    assert len(records) == 250
    entry = cache._entries[nasa_client.cache_key(1.0, 2.0, 2024, 2024)]
    assert entry.priority == CachePriority.NORMAL
    assert entry.weight == 2
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_fill_values_become_missing_not_zero(nasa_client):
    payload = _payload(
        {
            "T2M": {"20240714": -999.0, "20240715": 20.0},
            "PRECTOTCORR": {"20240714": 3.0, "20240715": -999.0},
            "WS2M": {"20240714": -999, "20240715": 1.0},
        }
    )
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=payload))
        records = await nasa_client.get_historical_data(1.0, 2.0, 1)

    assert records[0].temperature_c is None
    assert records[0].precipitation_mm == 3.0
    assert records[0].wind_speed_ms is None
    assert records[0].humidity_percent is None
    assert records[1].precipitation_mm is None
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_out_of_range_records_are_dropped_before_caching(nasa_client, cache):
    payload = _payload(
        {
            "T2M": {"20240714": 150.0, "20240715": 25.0},
            "PRECTOTCORR": {"20240714": 1.0, "20240715": 1.0},
        }
    )
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=payload))
        records = await nasa_client.get_historical_data(1.0, 2.0, 1)

    assert [r.date for r in records] == [dt.date(2024, 7, 15)]
    cached = cache.get(nasa_client.cache_key(1.0, 2.0, 2024, 2024))
    assert all(r.temperature_c != 150.0 for r in cached)
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_all_invalid_records_is_no_data(nasa_client, cache):
    payload = _payload({"T2M": {"20240714": 150.0, "20240715": 99.0}})
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=payload))
        with pytest.raises(NoDataError):
            await nasa_client.get_historical_data(1.0, 2.0, 1)

    assert len(cache) == 0
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_only_fill_values_is_no_data(nasa_client):
    payload = _payload({"T2M": {"20240714": -999.0}, "RH2M": {"20240714": -999.0}})
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=payload))
        with pytest.raises(NoDataError):
            await nasa_client.get_historical_data(1.0, 2.0, 1)
    await nasa_client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"type": "Feature"},
        {"properties": {}},
        {"properties": {"parameter": {"ALLSKY_SFC_SW_DWN": {"20240714": 5.0}}}},
    ],
)
async def test_structurally_invalid_payload(nasa_client, body):
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=body))
        with pytest.raises(UpstreamInvalidResponseError):
            await nasa_client.get_historical_data(1.0, 2.0, 1)
        assert route.call_count == 1
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_non_json_body_is_invalid_response(nasa_client):
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, text="not json"))
        with pytest.raises(UpstreamInvalidResponseError):
            await nasa_client.get_historical_data(1.0, 2.0, 1)
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_transient_failures_are_retried(nasa_client, sleeps):
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(
            side_effect=[httpx.ReadTimeout("slow"), Response(502), Response(200, json=_full_payload())]
        )
        records = await nasa_client.get_historical_data(1.0, 2.0, 2)
        assert route.call_count == 3
    assert len(records) == 3
    assert len(sleeps.delays) == 2
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_persistent_failure_surfaces_upstream_unavailable(nasa_client, cache):
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(503))
        with pytest.raises(UpstreamUnavailableError):
            await nasa_client.get_historical_data(1.0, 2.0, 2)
        assert route.call_count == 3
    assert len(cache) == 0
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_cancelled_fetch_propagates_and_caches_nothing(nasa_client, cache, sleeps):
    started = asyncio.Event()
    release = asyncio.Event()

    async def hang(request):
        started.set()
        await release.wait()
        return Response(200, json=_full_payload())

    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(side_effect=hang)
        task = asyncio.create_task(nasa_client.get_historical_data(1.0, 2.0, 2))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert cache.stats().entries == 0
    assert sleeps.delays == []
    await nasa_client.aclose()


@pytest.mark.asyncio
async def test_auth_statuses_are_not_special_for_nasa(nasa_client):
    with respx.mock:
        respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(401))
        with pytest.raises(UpstreamUnavailableError) as excinfo:
            await nasa_client.get_historical_data(1.0, 2.0, 1)
    assert not isinstance(excinfo.value, UnauthenticatedError)
    await nasa_client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "lat,lon,years",
    [(91.0, 0.0, 10), (0.0, -181.0, 10), (float("nan"), 0.0, 10), (0.0, 0.0, 0), (0.0, 0.0, 41)],
)
async def test_invalid_inputs_fail_before_network(nasa_client, lat, lon, years):
    with respx.mock:
        route = respx.get(NASA_POWER_DAILY_POINT_URL).mock(return_value=Response(200, json=_full_payload()))
        with pytest.raises(InvalidInputError):
            await nasa_client.get_historical_data(lat, lon, years)
        assert not route.called
    await nasa_client.aclose()


def test_historical_window_ends_at_last_complete_year(nasa_client):
    assert nasa_client.historical_window(1) == (2024, 2024)
    assert nasa_client.historical_window(30) == (1995, 2024)


def test_cache_key_rounds_coordinates(cache):
    client = NasaPowerClient(cache, coordinate_precision=1, today_func=lambda: dt.date(2025, 1, 1))
    assert client.cache_key(40.7128, -74.006, 1995, 2024) == "nasa_power:40.7:-74.0:1995:2024"


def test_cache_key_has_no_negative_zero(nasa_client):
    key = nasa_client.cache_key(-0.001, 0.001, 2000, 2024)
    assert key == nasa_client.cache_key(0.001, -0.001, 2000, 2024)
    assert key == "nasa_power:0.00:0.00:2000:2024"


def test_parse_skips_bad_date_keys_and_uses_first_present_series():
    payload = _payload(
        {
            "WS2M": {"20240714": 3.0, "2024-07-15": 4.0, "2024071": 5.0},
            "RH2M": {"20240714": 55.0, "20240716": 70.0},
        }
    )
    records = parse_power_response(payload)
    assert len(records) == 1
    assert records[0].wind_speed_ms == 3.0
    assert records[0].humidity_percent == 55.0


def test_parse_honours_header_fill_value_and_floor():
    payload = _payload(
        {"T2M": {"20240714": -99.0, "20240715": -950.0, "20240716": 12.0}},
        fill_value=-99.0,
    )
    records = parse_power_response(payload)
    assert [r.date.day for r in records] == [16]


def test_parse_rejects_non_numeric_values():
    payload = _payload({"T2M": {"20240714": "hot", "20240715": True, "20240716": 1.5}})
    records = parse_power_response(payload)
    assert [r.temperature_c for r in records] == [1.5]
