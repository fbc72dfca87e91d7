"""Live weather pipeline: cache tiers, ordered sources, blended points.

Resolution order for one station:
  1. in-memory rate-limit cache (15 min), unless force_refresh
  2. AEMET station observation (needs a station id and an API key)
  3. Open-Meteo current conditions at the coordinate
  4. persistent offline cache (24 h), unless force_refresh
  5. unavailable (None)

A successful source fetch is written through to both cache tiers.  Nothing
is ever synthesised, except in the explicit mock mode used for UI work.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx

from ..config import settings
from .aemet import fetch_latest_observation
from .conditions import is_night_time
from .interpolation import (
    INTERPOLATION_STATION_COUNT,
    StationContribution,
    blend_live_weather,
    round_half_up,
    use_single_station,
)
from .open_meteo import fetch_current_weather
from .station_catalog import StationCatalog
from .station_resolver import NearestStation, StationResolver
from .weather_cache import PersistentWeatherCache, RateLimitCache
from .weather_types import LiveWeather, LiveWeatherResult, WeatherCondition

logger = logging.getLogger(__name__)

SOURCE_AEMET = "aemet"
SOURCE_OPEN_METEO = "open_meteo"
SOURCE_RATE_LIMIT_CACHE = "rate_limit_cache"
SOURCE_OFFLINE_CACHE = "offline_cache"
SOURCE_MOCK = "mock"

_MOCK_SNAPSHOTS = [
    (24, 65, 12, 0, WeatherCondition.SUNNY, "clearSky"),
    (22, 70, 18, 1, WeatherCondition.SUNNY, "mainlyClear"),
    (20, 75, 15, 2, WeatherCondition.PARTLY_SUNNY, "partlyCloudy"),
    (19, 80, 20, 3, WeatherCondition.CLOUDY, "overcast"),
    (18, 85, 25, 61, WeatherCondition.RAINY, "lightRain"),
]


def mock_snapshot(now: datetime) -> LiveWeather:
    """A canned snapshot for UI development."""
    temp, hum, wind, code, condition, label = random.choice(_MOCK_SNAPSHOTS)
    return LiveWeather(
        temperature=temp,
        humidity=hum,
        wind_speed=wind,
        weather_code=code,
        condition=condition,
        condition_label_key=label,
        timestamp=now.isoformat(),
    )


@dataclass(frozen=True)
class InterpolatedWeather:
    """Live weather for an arbitrary point, with the stations behind it."""
    data: LiveWeather
    stations: list[StationContribution]
    is_single_station: bool
    is_from_cache: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveWeatherService:
    """Fetches live conditions for stations and points.

    The HTTP transport and clock are injectable so the pipeline can be
    exercised without network access.
    """

    def __init__(
        self,
        catalog: StationCatalog,
        resolver: StationResolver,
        rate_cache: RateLimitCache,
        persistent_cache: PersistentWeatherCache,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        now: Callable[[], datetime] = _utcnow,
        mock_weather: Optional[bool] = None,
    ):
        self.catalog = catalog
        self.resolver = resolver
        self.rate_cache = rate_cache
        self.persistent_cache = persistent_cache
        self._transport = transport
        self._now = now
        self.mock_weather = settings.mock_weather if mock_weather is None else mock_weather

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=settings.request_timeout, transport=self._transport)

    async def fetch_live_weather(
        self,
        lat: float,
        lon: float,
        station_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Optional[LiveWeatherResult]:
        """Current conditions for a station (by id) or a bare coordinate.

        Args:
            lat: Latitude used by the coordinate-based source.
            lon: Longitude used by the coordinate-based source.
            station_id: Enables AEMET and both cache tiers.
            force_refresh: Skip cached data and go to the sources.

        Returns:
            LiveWeatherResult, or None when no source or cache can answer.
        """
        if self.mock_weather:
            logger.info("Mock weather enabled, serving canned data")
            return LiveWeatherResult(mock_snapshot(self._now()), is_from_cache=False, source=SOURCE_MOCK)

        if station_id and not force_refresh:
            cached = self.rate_cache.get(station_id)
            if cached is not None:
                logger.debug("Rate-limit cache hit for %s", station_id)
                return LiveWeatherResult(cached, is_from_cache=True, source=SOURCE_RATE_LIMIT_CACHE)

        night = is_night_time(self._now())
        async with self._client() as client:
            attempts: list[tuple[str, Callable[[], Awaitable[Optional[LiveWeather]]]]] = []
            if station_id:
                attempts.append((SOURCE_AEMET, lambda: fetch_latest_observation(client, station_id, night)))
            attempts.append((SOURCE_OPEN_METEO, lambda: fetch_current_weather(client, lat, lon, night)))

            for source, attempt in attempts:
                weather = await attempt()
                if weather is None:
                    continue
                if station_id:
                    self.rate_cache.put(station_id, weather)
                    self.persistent_cache.save(station_id, weather)
                logger.info("Live weather for %s from %s", station_id or f"({lat}, {lon})", source)
                return LiveWeatherResult(weather, is_from_cache=False, source=source)

        if station_id and not force_refresh:
            cached = self.persistent_cache.load(station_id)
            if cached is not None:
                logger.info("All sources failed for %s, using offline cache", station_id)
                return LiveWeatherResult(cached, is_from_cache=True, source=SOURCE_OFFLINE_CACHE)

        logger.warning("Live weather unavailable for %s", station_id or f"({lat}, {lon})")
        return None

    async def _fetch_for_station(
        self, nearby: NearestStation, force_refresh: bool,
    ) -> Optional[LiveWeatherResult]:
        station = nearby.station
        return await self.fetch_live_weather(
            station.latitude, station.longitude, station.station_id, force_refresh,
        )

    async def fetch_interpolated_weather(
        self,
        lat: float,
        lon: float,
        force_refresh: bool = False,
    ) -> Optional[InterpolatedWeather]:
        """Live weather at a point, blended from the nearest stations.

        Within 5 km of a station that station is used as-is.  Otherwise the
        three nearest regular stations are fetched concurrently and the ones
        that answered are blended by inverse squared distance.
        """
        nearby = self.resolver.find_nearest_stations(lat, lon, INTERPOLATION_STATION_COUNT)
        if not nearby:
            return None

        if use_single_station(nearby[0].distance_km):
            nearby = nearby[:1]

        results = await asyncio.gather(
            *(self._fetch_for_station(n, force_refresh) for n in nearby),
            return_exceptions=True,
        )

        answered: list[tuple[NearestStation, LiveWeatherResult]] = []
        for n, result in zip(nearby, results):
            if isinstance(result, BaseException):
                logger.error("Live weather fetch for %s raised", n.station_id, exc_info=result)
            elif result is not None:
                answered.append((n, result))

        if not answered:
            logger.warning("No station answered for (%s, %s)", lat, lon)
            return None

        blended, weights = blend_live_weather(
            [(r.data, n.distance_km) for n, r in answered], now=self._now(),
        )
        stations = [
            StationContribution(
                station_id=n.station_id,
                name=n.station.name,
                distance_km=round_half_up(n.distance_km, 2),
                weight=round_half_up(w, 2),
            )
            for (n, _), w in zip(answered, weights)
        ]
        return InterpolatedWeather(
            data=blended,
            stations=stations,
            is_single_station=len(answered) == 1,
            is_from_cache=any(r.is_from_cache for _, r in answered),
        )
