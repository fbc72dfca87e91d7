"""Inverse-distance-weighted blending of per-station results.

A point that is not right next to a station is described by the three
nearest stations, each weighted by 1/d².  Numeric fields are blended;
categorical fields (condition, label) always come from the nearest station.

Callers decide between single-station and blended mode with
use_single_station(); this module only does the math.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from .weather_types import Confidence, LiveWeather, SunChanceResult

# Floor on distance so a query sitting on a station does not divide by zero.
MIN_DISTANCE_KM = 0.1

# Closer than this to the nearest station: use it verbatim, no blending.
SINGLE_STATION_THRESHOLD_KM = 5.0

INTERPOLATION_STATION_COUNT = 3


@dataclass(frozen=True)
class StationContribution:
    """Provenance for one station that fed a (possibly blended) result."""
    station_id: str
    name: str
    distance_km: float
    weight: float
    sun_chance: Optional[int] = None


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from negative infinity, the way display values are rounded."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def linear_interpolate(x0: float, y0: float, x1: float, y1: float, x: float) -> float:
    """Value at x on the straight line through (x0, y0) and (x1, y1)."""
    if x1 == x0:
        return y0
    return y0 + (y1 - y0) * ((x - x0) / (x1 - x0))


def use_single_station(distance_km: float) -> bool:
    """True when the nearest station is close enough to skip blending."""
    return distance_km < SINGLE_STATION_THRESHOLD_KM


def distance_weights(distances: Sequence[float]) -> list[float]:
    """Normalised inverse-square-distance weights (sum to 1)."""
    inverse = [1.0 / max(d, MIN_DISTANCE_KM) ** 2 for d in distances]
    total = sum(inverse)
    if total == 0:
        return []
    return [w / total for w in inverse]


def blend_live_weather(
    observations: Sequence[tuple[LiveWeather, float]],
    now: Optional[datetime] = None,
) -> tuple[LiveWeather, list[float]]:
    """Blend live snapshots given as (snapshot, distance_km), nearest first.

    Returns the blended snapshot and the weight applied to each input.
    A single input is returned unchanged with weight 1.
    """
    if not observations:
        raise ValueError("blend_live_weather needs at least one observation")
    if len(observations) == 1:
        return observations[0][0], [1.0]

    weights = distance_weights([dist for _, dist in observations])
    temperature = sum(obs.temperature * w for (obs, _), w in zip(observations, weights))
    humidity = sum(obs.humidity * w for (obs, _), w in zip(observations, weights))
    wind_speed = sum(obs.wind_speed * w for (obs, _), w in zip(observations, weights))

    nearest = observations[0][0]
    blended = LiveWeather(
        temperature=int(round_half_up(temperature)),
        humidity=int(round_half_up(humidity)),
        wind_speed=int(round_half_up(wind_speed)),
        weather_code=nearest.weather_code,
        condition=nearest.condition,
        condition_label_key=nearest.condition_label_key,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
    )
    return blended, weights


def blend_sun_chance(
    results: Sequence[tuple[SunChanceResult, float]],
) -> tuple[SunChanceResult, list[float]]:
    """Blend per-station sun chance given as (result, distance_km).

    The percentage is weighted by distance.  Day counts are plain means across
    stations for display; they are not meant to reconstruct a pooled sample.
    """
    if not results:
        raise ValueError("blend_sun_chance needs at least one result")
    if len(results) == 1:
        return results[0][0], [1.0]

    weights = distance_weights([dist for _, dist in results])
    sun_chance = sum(r.sun_chance * w for (r, _), w in zip(results, weights))
    n = len(results)
    mean_sunny = sum(r.sunny_days for r, _ in results) / n
    mean_total = sum(r.total_days for r, _ in results) / n

    if mean_total >= 50 and n >= 2:
        confidence = Confidence.HIGH
    elif mean_total >= 20:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    blended = SunChanceResult(
        sunny_days=int(round_half_up(mean_sunny)),
        total_days=int(round_half_up(mean_total)),
        sun_chance=int(round_half_up(sun_chance)),
        confidence=confidence,
    )
    return blended, weights
