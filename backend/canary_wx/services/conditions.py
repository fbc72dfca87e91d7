"""Map raw observations onto the WeatherCondition set.

Two mappings exist because the two live sources report differently:
Open-Meteo gives a WMO weather code, AEMET stations give raw measurements
(precipitation, visibility, humidity) that we classify by threshold.
"""

from datetime import datetime
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo

from ..config import settings
from .weather_types import WeatherCondition

# Local hours considered night (simple heuristic, good enough at 28°N).
NIGHT_START_HOUR = 20
NIGHT_END_HOUR = 7


class ConditionMapping(NamedTuple):
    condition: WeatherCondition
    label_key: str


C = WeatherCondition

# WMO Weather interpretation codes (WW), as used by Open-Meteo.
WMO_CODE_MAP: dict[int, ConditionMapping] = {
    0: ConditionMapping(C.SUNNY, "clearSky"),
    1: ConditionMapping(C.SUNNY, "mainlyClear"),
    2: ConditionMapping(C.PARTLY_SUNNY, "partlyCloudy"),
    3: ConditionMapping(C.CLOUDY, "overcast"),
    45: ConditionMapping(C.FOGGY, "fog"),
    48: ConditionMapping(C.FOGGY, "rimeFog"),
    51: ConditionMapping(C.RAINY, "lightDrizzle"),
    53: ConditionMapping(C.RAINY, "drizzle"),
    55: ConditionMapping(C.RAINY, "denseDrizzle"),
    56: ConditionMapping(C.RAINY, "freezingDrizzle"),
    57: ConditionMapping(C.RAINY, "denseFreezingDrizzle"),
    61: ConditionMapping(C.RAINY, "lightRain"),
    63: ConditionMapping(C.RAINY, "rain"),
    65: ConditionMapping(C.RAINY, "heavyRain"),
    66: ConditionMapping(C.RAINY, "freezingRain"),
    67: ConditionMapping(C.RAINY, "heavyFreezingRain"),
    71: ConditionMapping(C.SNOWY, "lightSnow"),
    73: ConditionMapping(C.SNOWY, "snow"),
    75: ConditionMapping(C.SNOWY, "heavySnow"),
    77: ConditionMapping(C.SNOWY, "snowGrains"),
    80: ConditionMapping(C.RAINY, "showers"),
    81: ConditionMapping(C.RAINY, "showers"),
    82: ConditionMapping(C.RAINY, "violentShowers"),
    85: ConditionMapping(C.SNOWY, "snowShowers"),
    86: ConditionMapping(C.SNOWY, "heavySnowShowers"),
    95: ConditionMapping(C.STORMY, "thunderstorm"),
    96: ConditionMapping(C.STORMY, "thunderstormHail"),
    99: ConditionMapping(C.STORMY, "severeThunderstorm"),
}

UNKNOWN_MAPPING = ConditionMapping(C.CLOUDY, "unknown")


def is_night_time(now: Optional[datetime] = None) -> bool:
    """True between 20:00 and 07:00 local (archipelago) time."""
    local = (now or datetime.now(ZoneInfo(settings.timezone)))
    if local.tzinfo is not None:
        local = local.astimezone(ZoneInfo(settings.timezone))
    return local.hour >= NIGHT_START_HOUR or local.hour < NIGHT_END_HOUR


def _night_variant(mapping: ConditionMapping) -> ConditionMapping:
    if mapping.condition is C.SUNNY:
        return ConditionMapping(C.CLEAR_NIGHT, "clearNight")
    if mapping.condition is C.PARTLY_SUNNY:
        return ConditionMapping(C.PARTLY_CLOUDY_NIGHT, "partlyCloudyNight")
    return mapping


def map_wmo_code(code: int, is_night: bool = False) -> ConditionMapping:
    """Condition and label for a WMO code; unknown codes read as cloudy."""
    mapping = WMO_CODE_MAP.get(code, UNKNOWN_MAPPING)
    return _night_variant(mapping) if is_night else mapping


def classify_observation(
    precip_mm: Optional[float],
    visibility_km: Optional[float],
    humidity_pct: Optional[float],
    is_night: bool = False,
) -> tuple[ConditionMapping, int]:
    """Classify raw station measurements.

    Returns the condition mapping and the equivalent WMO code.  Rules are
    checked in order: rain, fog, overcast, partly cloudy, clear.
    """
    if precip_mm is not None and precip_mm > 0:
        if precip_mm > 5:
            return ConditionMapping(C.RAINY, "heavyRain"), 65
        return ConditionMapping(C.RAINY, "lightRain"), 61
    if visibility_km is not None and visibility_km < 1:
        return ConditionMapping(C.FOGGY, "fog"), 45
    if humidity_pct is not None and humidity_pct > 90:
        return ConditionMapping(C.CLOUDY, "overcast"), 3
    if humidity_pct is not None and humidity_pct > 70:
        mapping = ConditionMapping(C.PARTLY_SUNNY, "partlyCloudy")
        return (_night_variant(mapping) if is_night else mapping), 2
    mapping = ConditionMapping(C.SUNNY, "clearSky")
    return (_night_variant(mapping) if is_night else mapping), 0
