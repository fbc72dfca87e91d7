"""Calima (Saharan dust) detection from Open-Meteo air quality.

Calima shows up as a PM10 spike.  50 µg/m³ is treated as an episode and
100 µg/m³ as a severe one.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ..config import settings
from .interpolation import round_half_up

logger = logging.getLogger(__name__)

PM10_CALIMA_THRESHOLD = 50.0
PM10_SEVERE_THRESHOLD = 100.0


@dataclass(frozen=True)
class CalimaStatus:
    is_detected: bool
    is_severe: bool
    pm10: int  # µg/m³
    timestamp: str


class _AirQualityCurrent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: str
    pm10: float


class _AirQualityResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: _AirQualityCurrent


def classify_pm10(pm10: float, timestamp: str) -> CalimaStatus:
    return CalimaStatus(
        is_detected=pm10 >= PM10_CALIMA_THRESHOLD,
        is_severe=pm10 >= PM10_SEVERE_THRESHOLD,
        pm10=int(round_half_up(pm10)),
        timestamp=timestamp,
    )


async def fetch_calima_status(
    lat: float,
    lon: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[CalimaStatus]:
    """Current Calima status at a coordinate, or None when unavailable."""
    url = f"{settings.air_quality_base_url.rstrip('/')}/air-quality"
    params = {"latitude": lat, "longitude": lon, "current": "pm10", "timezone": "auto"}
    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout, transport=transport) as client:
            resp = await client.get(url, params=params, headers={"Accept": "application/json"})
            resp.raise_for_status()
            current = _AirQualityResponse.model_validate(resp.json()).current
    except (httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("Air quality fetch failed for (%s, %s): %s", lat, lon, exc)
        return None

    status = classify_pm10(current.pm10, current.time)
    if status.is_detected:
        logger.info("Calima detected at (%s, %s): PM10 %d", lat, lon, status.pm10)
    return status
