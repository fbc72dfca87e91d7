"""Result types shared by the weather sources, caches, pipeline and climatology."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class WeatherCondition(str, Enum):
    SUNNY = "sunny"
    PARTLY_SUNNY = "partly-sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    SNOWY = "snowy"
    FOGGY = "foggy"
    CLEAR_NIGHT = "clear-night"
    PARTLY_CLOUDY_NIGHT = "partly-cloudy-night"


@dataclass(frozen=True)
class LiveWeather:
    """Current conditions at one station (or a blend of several)."""
    temperature: int  # °C
    humidity: int  # %
    wind_speed: int  # km/h
    weather_code: int  # WMO code
    condition: WeatherCondition
    condition_label_key: str  # display label key, e.g. "clearSky"
    timestamp: str  # observation time

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["condition"] = self.condition.value
        return d


@dataclass(frozen=True)
class LiveWeatherResult:
    """A snapshot plus where it came from."""
    data: LiveWeather
    is_from_cache: bool
    source: str  # "aemet", "open_meteo", "rate_limit_cache", "offline_cache", "mock"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class SunChanceResult:
    """How often a station's location historically qualified as sunny."""
    sunny_days: int
    total_days: int
    sun_chance: int  # percent, 0-100
    confidence: Confidence

    @classmethod
    def empty(cls) -> "SunChanceResult":
        return cls(sunny_days=0, total_days=0, sun_chance=0, confidence=Confidence.LOW)
