"""AEMET OpenData client for live station observations.

AEMET uses a two-step protocol: the API endpoint answers with a small
envelope whose ``datos`` field is a short-lived URL, and that URL serves the
actual payload.  The same protocol is used by the historical importer.

AEMET docs: https://opendata.aemet.es/dist/index.html
"""

import json
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from ..config import settings
from .conditions import classify_observation
from .interpolation import round_half_up
from .weather_types import LiveWeather

logger = logging.getLogger(__name__)

OBSERVATION_PATH = "/observacion/convencional/datos/estacion/{station_id}"
# AEMET serves its data payloads as text/plain;charset=ISO-8859-15
FALLBACK_ENCODING = "iso-8859-15"


class AemetEnvelope(BaseModel):
    """First-step response: status plus the URL of the real data."""
    model_config = ConfigDict(extra="ignore")

    estado: Optional[int] = None
    descripcion: Optional[str] = None
    datos: Optional[str] = None


class AemetObservation(BaseModel):
    """One hourly conventional observation (only the fields we use)."""
    model_config = ConfigDict(extra="ignore")

    idema: Optional[str] = None
    fint: str  # observation time, ISO
    ta: Optional[float] = None  # air temperature, °C
    hr: Optional[float] = None  # relative humidity, %
    vv: Optional[float] = None  # mean wind speed
    prec: Optional[float] = None  # precipitation, mm
    vis: Optional[float] = None  # visibility, km


_observations = TypeAdapter(list[AemetObservation])


def decode_json(resp: httpx.Response) -> Any:
    """Decode a JSON body honouring its declared charset.

    Without a charset, UTF-8 is tried first and ISO-8859-15 second.
    Raises ValueError on undecodable or malformed bodies.
    """
    if resp.charset_encoding is not None:
        return json.loads(resp.text)
    try:
        return json.loads(resp.content.decode("utf-8"))
    except UnicodeDecodeError:
        return json.loads(resp.content.decode(FALLBACK_ENCODING))


async def fetch_datos(
    client: httpx.AsyncClient,
    url: str,
    api_key: str,
) -> Optional[Any]:
    """Run the two-step request and return the decoded payload, or None."""
    try:
        resp = await client.get(url, headers={"api_key": api_key, "Accept": "application/json"})
        resp.raise_for_status()
        envelope = AemetEnvelope.model_validate(decode_json(resp))
    except (httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("AEMET meta request failed for %s: %s", url, exc)
        return None

    if not envelope.datos:
        logger.warning("AEMET response has no data URL (estado=%s: %s)",
                       envelope.estado, envelope.descripcion)
        return None

    try:
        resp = await client.get(envelope.datos, headers={"Accept": "application/json"})
        resp.raise_for_status()
        return decode_json(resp)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("AEMET data request failed: %s", exc)
        return None


def map_observation(obs: AemetObservation, is_night: bool = False) -> Optional[LiveWeather]:
    """Turn a raw observation into a snapshot.

    Temperature, humidity and wind are all required; an observation missing
    any of them is unusable and the caller moves on to the next source.
    """
    if obs.ta is None or obs.hr is None or obs.vv is None:
        logger.warning("AEMET observation %s at %s is incomplete", obs.idema, obs.fint)
        return None

    mapping, code = classify_observation(obs.prec, obs.vis, obs.hr, is_night)
    return LiveWeather(
        temperature=int(round_half_up(obs.ta)),
        humidity=int(round_half_up(obs.hr)),
        wind_speed=int(round_half_up(obs.vv)),
        weather_code=code,
        condition=mapping.condition,
        condition_label_key=mapping.label_key,
        timestamp=obs.fint,
    )


async def fetch_latest_observation(
    client: httpx.AsyncClient,
    station_id: str,
    is_night: bool = False,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> Optional[LiveWeather]:
    """Fetch the most recent observation for a station.

    Args:
        client: httpx async client (timeout pre-configured).
        station_id: AEMET station id, e.g. "C447A".
        is_night: Use night variants for clear/partly cloudy conditions.
        api_key: Overrides settings.aemet_api_key.
        base_url: Overrides settings.aemet_base_url.

    Returns:
        LiveWeather, or None when unconfigured or on any failure.
    """
    api_key = settings.aemet_api_key if api_key is None else api_key
    if not api_key:
        logger.debug("AEMET API key not configured, skipping")
        return None

    base = (base_url or settings.aemet_base_url).rstrip("/")
    payload = await fetch_datos(client, base + OBSERVATION_PATH.format(station_id=station_id), api_key)
    if payload is None:
        return None

    try:
        observations = _observations.validate_python(payload)
    except ValidationError as exc:
        logger.warning("AEMET observations for %s failed validation: %s", station_id, exc)
        return None

    if not observations:
        logger.warning("AEMET returned no observations for %s", station_id)
        return None

    # AEMET lists the last 24 hours oldest first
    weather = map_observation(observations[-1], is_night)
    if weather is not None:
        logger.info("AEMET live data for %s: %d°C, wind %d (%s)",
                    station_id, weather.temperature, weather.wind_speed, weather.timestamp)
    return weather
