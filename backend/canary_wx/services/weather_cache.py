"""Two-tier cache for live weather snapshots.

Tier 1 (RateLimitCache) lives in process memory for 15 minutes and keeps us
from hammering AEMET for a station we just fetched.  Tier 2
(PersistentWeatherCache) is a durable key-value table that survives restarts
and lets the app show the last known conditions for up to 24 hours when every
upstream source is down.

Both tiers are best-effort: failures are logged and reported as a miss.
Staleness is only checked on read; nothing sweeps expired entries.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..models.weather_cache import WeatherCacheModel
from .weather_types import LiveWeather, WeatherCondition

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "weather_cache_"


# --- Tier 1: in-memory rate limit ---

@dataclass
class _CacheEntry:
    data: LiveWeather
    stored_at: float


class RateLimitCache:
    """Per-station snapshot memory with a short TTL.

    Reads and writes go through a lock so concurrent fetches for the same
    station from different threads cannot lose an update.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = settings.rate_limit_ttl_sec if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, station_id: str) -> Optional[LiveWeather]:
        with self._lock:
            entry = self._entries.get(station_id)
            if entry is None:
                return None
            if self._clock() - entry.stored_at > self.ttl_seconds:
                del self._entries[station_id]
                return None
            return entry.data

    def put(self, station_id: str, data: LiveWeather) -> None:
        with self._lock:
            self._entries[station_id] = _CacheEntry(data=data, stored_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# --- Tier 2: durable offline cache ---

class _CachedSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    temperature: StrictInt
    humidity: StrictInt
    wind_speed: StrictInt
    weather_code: StrictInt
    condition: WeatherCondition
    condition_label_key: StrictStr
    timestamp: StrictStr


class _CacheEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: dict
    timestamp: StrictInt | StrictFloat  # epoch milliseconds
    station_id: StrictStr


class PersistentWeatherCache:
    """Durable per-station snapshot store backed by the weather_cache table."""

    def __init__(
        self,
        session_factory: sessionmaker,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._session_factory = session_factory
        self.ttl_seconds = settings.offline_cache_ttl_sec if ttl_seconds is None else ttl_seconds
        self._clock = clock

    @staticmethod
    def _key(station_id: str) -> str:
        return f"{CACHE_KEY_PREFIX}{station_id}"

    def save(self, station_id: str, data: LiveWeather) -> None:
        """Write a snapshot.  Failures are logged and ignored."""
        envelope = {
            "data": data.to_dict(),
            "timestamp": int(self._clock() * 1000),
            "station_id": station_id,
        }
        value = json.dumps(envelope)
        db: Session = self._session_factory()
        try:
            row = db.get(WeatherCacheModel, self._key(station_id))
            if row is None:
                db.add(WeatherCacheModel(key=self._key(station_id), value=value))
            else:
                row.value = value
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to save weather cache for %s: %s", station_id, exc)
        finally:
            db.close()

    def load(self, station_id: str) -> Optional[LiveWeather]:
        """Return a fresh, well-formed snapshot or None.

        Expired entries are deleted.  Entries whose fields have the wrong
        types are ignored rather than reported.
        """
        db: Session = self._session_factory()
        try:
            row = db.get(WeatherCacheModel, self._key(station_id))
            if row is None:
                return None

            try:
                envelope = _CacheEnvelope.model_validate_json(row.value)
            except ValidationError:
                logger.warning("Invalid weather cache entry for %s", station_id)
                return None

            age_ms = self._clock() * 1000 - envelope.timestamp
            if age_ms > self.ttl_seconds * 1000:
                logger.info("Cached weather for %s expired, removing", station_id)
                db.delete(row)
                db.commit()
                return None

            try:
                snap = _CachedSnapshot.model_validate(envelope.data)
            except ValidationError:
                logger.warning("Invalid weather data structure in cache for %s", station_id)
                return None
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Failed to read weather cache for %s: %s", station_id, exc)
            return None
        finally:
            db.close()

        return LiveWeather(
            temperature=snap.temperature,
            humidity=snap.humidity,
            wind_speed=snap.wind_speed,
            weather_code=snap.weather_code,
            condition=snap.condition,
            condition_label_key=snap.condition_label_key,
            timestamp=snap.timestamp,
        )
