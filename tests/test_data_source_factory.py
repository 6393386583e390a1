import unittest

from paradeguard.cache_store import InMemoryCacheStore
from paradeguard.config import Settings
from paradeguard.data_sources.factory import build_data_sources
from paradeguard.data_sources.nasa_power_client import NasaPowerClient
from paradeguard.data_sources.opencage_client import OpenCageGeocoder


class TestDataSourceFactory(unittest.TestCase):
    def test_builds_both_sources_from_settings(self):
        settings = Settings(
            geocoding_api_key="geo",
            nasa_api_key="nasa",
            geocoding_timeout_seconds=12,
            weather_timeout_seconds=34,
            max_retry_attempts=4,
            retry_backoff_seconds=0.5,
            coordinate_cache_precision=3,
            opencage_base_url="http://geo.local/geocode/",
        )
        cache = InMemoryCacheStore()
        geocoder, weather = build_data_sources(cache, settings)

        self.assertIsInstance(geocoder, OpenCageGeocoder)
        self.assertIsInstance(weather, NasaPowerClient)
        self.assertIs(geocoder.cache, cache)
        self.assertIs(weather.cache, cache)
        self.assertEqual(geocoder.api_key, "geo")
        self.assertEqual(geocoder.base_url, "http://geo.local/geocode")
        self.assertEqual(geocoder.request_config.timeout, 12)
        self.assertEqual(weather.request_config.timeout, 34)
        self.assertEqual(weather.request_config.max_attempts, 4)
        self.assertEqual(weather.coordinate_precision, 3)
        self.assertEqual(weather.cache_ttl_seconds, 720 * 60)

    def test_missing_geocoding_key_still_builds(self):
        geocoder, _ = build_data_sources(InMemoryCacheStore(), Settings(geocoding_api_key=None))
        self.assertIsNone(geocoder.api_key)


if __name__ == "__main__":
    unittest.main()
