"""Open-Meteo current-conditions client (fallback live source).

Works for any coordinate, so it covers points where AEMET has no usable
station or no API key is configured.  No key is required.

Docs: https://open-meteo.com/en/docs
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ..config import settings
from .conditions import map_wmo_code
from .interpolation import round_half_up
from .weather_types import LiveWeather

logger = logging.getLogger(__name__)

CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m"


class _Current(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: str
    temperature_2m: float
    relative_humidity_2m: float
    weather_code: int
    wind_speed_10m: float


class _ForecastResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: _Current


async def fetch_current_weather(
    client: httpx.AsyncClient,
    lat: float,
    lon: float,
    is_night: bool = False,
    base_url: Optional[str] = None,
) -> Optional[LiveWeather]:
    """Fetch current conditions at a coordinate, or None on any failure."""
    url = f"{(base_url or settings.open_meteo_base_url).rstrip('/')}/forecast"
    params = {
        "latitude": lat,
        "longitude": lon,
        "current": CURRENT_FIELDS,
        "timezone": "auto",
    }
    try:
        resp = await client.get(url, params=params, headers={"Accept": "application/json"})
        resp.raise_for_status()
        current = _ForecastResponse.model_validate(resp.json()).current
    except (httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("Open-Meteo fetch failed for (%s, %s): %s", lat, lon, exc)
        return None

    mapping = map_wmo_code(current.weather_code, is_night)
    return LiveWeather(
        temperature=int(round_half_up(current.temperature_2m)),
        humidity=int(round_half_up(current.relative_humidity_2m)),
        wind_speed=int(round_half_up(current.wind_speed_10m)),
        weather_code=current.weather_code,
        condition=mapping.condition,
        condition_label_key=mapping.label_key,
        timestamp=current.time,
    )
