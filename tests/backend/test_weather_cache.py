"""Tests for the in-memory and persistent live weather caches."""

import json

from canary_wx.models.weather_cache import WeatherCacheModel
from canary_wx.services.weather_cache import PersistentWeatherCache, RateLimitCache
from canary_wx.services.weather_types import LiveWeather, WeatherCondition

SNAPSHOT = LiveWeather(
    temperature=23,
    humidity=64,
    wind_speed=18,
    weather_code=1,
    condition=WeatherCondition.SUNNY,
    condition_label_key="mainlyClear",
    timestamp="2026-07-01T12:00:00",
)


class TestRateLimitCache:
    def test_hit_within_ttl(self, clock):
        cache = RateLimitCache(ttl_seconds=900, clock=clock)
        cache.put("C447A", SNAPSHOT)
        clock.advance(899)
        assert cache.get("C447A") == SNAPSHOT

    def test_miss_after_ttl(self, clock):
        cache = RateLimitCache(ttl_seconds=900, clock=clock)
        cache.put("C447A", SNAPSHOT)
        clock.advance(901)
        assert cache.get("C447A") is None

    def test_unknown_station(self, clock):
        assert RateLimitCache(clock=clock).get("C447A") is None


class TestPersistentWeatherCache:
    def test_round_trip(self, session_factory, clock):
        cache = PersistentWeatherCache(session_factory, ttl_seconds=86400, clock=clock)
        cache.save("C447A", SNAPSHOT)
        clock.advance(23 * 3600)
        assert cache.load("C447A") == SNAPSHOT

    def test_stored_under_prefixed_key(self, session_factory, clock):
        PersistentWeatherCache(session_factory, clock=clock).save("C447A", SNAPSHOT)
        db = session_factory()
        try:
            row = db.get(WeatherCacheModel, "weather_cache_C447A")
            envelope = json.loads(row.value)
        finally:
            db.close()
        assert envelope["station_id"] == "C447A"
        assert envelope["timestamp"] == int(clock.now * 1000)
        assert envelope["data"]["condition"] == "sunny"

    def test_expired_entry_is_deleted(self, session_factory, clock):
        cache = PersistentWeatherCache(session_factory, ttl_seconds=86400, clock=clock)
        cache.save("C447A", SNAPSHOT)
        clock.advance(86400 + 1)
        assert cache.load("C447A") is None
        db = session_factory()
        try:
            assert db.get(WeatherCacheModel, "weather_cache_C447A") is None
        finally:
            db.close()

    def test_invalid_entry_is_a_miss(self, session_factory, clock):
        bad = {"data": {**SNAPSHOT.to_dict(), "temperature": "hot"},
               "timestamp": int(clock.now * 1000), "station_id": "C447A"}
        db = session_factory()
        db.add(WeatherCacheModel(key="weather_cache_C447A", value=json.dumps(bad)))
        db.commit()
        db.close()
        assert PersistentWeatherCache(session_factory, clock=clock).load("C447A") is None

    def test_garbage_is_a_miss(self, session_factory, clock):
        db = session_factory()
        db.add(WeatherCacheModel(key="weather_cache_C447A", value="not json"))
        db.commit()
        db.close()
        assert PersistentWeatherCache(session_factory, clock=clock).load("C447A") is None

    def test_overwrite(self, session_factory, clock):
        cache = PersistentWeatherCache(session_factory, clock=clock)
        cache.save("C447A", SNAPSHOT)
        newer = LiveWeather(**{**SNAPSHOT.__dict__, "temperature": 25})
        cache.save("C447A", newer)
        assert cache.load("C447A").temperature == 25

    def test_database_errors_are_swallowed(self, tableless_session_factory, clock):
        cache = PersistentWeatherCache(tableless_session_factory, clock=clock)
        cache.save("C447A", SNAPSHOT)
        assert cache.load("C447A") is None
