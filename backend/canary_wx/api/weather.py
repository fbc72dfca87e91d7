"""GET /api/weather - live conditions for a station or an arbitrary point."""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..schemas.weather import (
    InterpolatedWeatherResponse,
    LiveWeatherOut,
    LiveWeatherResponse,
    StationContributionOut,
)
from ..services.live_weather import LiveWeatherService
from ..services.station_catalog import StationCatalog
from ..services.weather_types import LiveWeather
from .dependencies import get_catalog, get_live_weather

router = APIRouter()


def weather_out(data: LiveWeather) -> LiveWeatherOut:
    return LiveWeatherOut.model_validate(data.to_dict())


@router.get("/weather/live", response_model=LiveWeatherResponse)
async def live_weather(
    station_id: Optional[str] = None,
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lon: Optional[float] = Query(default=None, ge=-180, le=180),
    force_refresh: bool = False,
    catalog: StationCatalog = Depends(get_catalog),
    service: LiveWeatherService = Depends(get_live_weather),
):
    """Live weather by station id (coordinates default to the station's) or by lat/lon."""
    if station_id is not None:
        station = catalog.get(station_id)
        if station is None:
            raise HTTPException(404, f"Unknown station: {station_id}")
        lat = station.latitude if lat is None else lat
        lon = station.longitude if lon is None else lon
    elif lat is None or lon is None:
        raise HTTPException(422, "Provide station_id or both lat and lon")

    result = await service.fetch_live_weather(lat, lon, station_id, force_refresh)
    if result is None:
        return LiveWeatherResponse(status="unavailable", station_id=station_id)
    return LiveWeatherResponse(
        status="cached" if result.is_from_cache else "fresh",
        station_id=station_id,
        source=result.source,
        data=weather_out(result.data),
    )


@router.get("/weather/interpolated", response_model=InterpolatedWeatherResponse)
async def interpolated_weather(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    force_refresh: bool = False,
    service: LiveWeatherService = Depends(get_live_weather),
):
    """Live weather at a point, blended from up to three nearby stations."""
    result = await service.fetch_interpolated_weather(lat, lon, force_refresh)
    if result is None:
        return InterpolatedWeatherResponse(status="unavailable")
    return InterpolatedWeatherResponse(
        status="cached" if result.is_from_cache else "fresh",
        is_single_station=result.is_single_station,
        stations=[StationContributionOut.model_validate(asdict(s)) for s in result.stations],
        data=weather_out(result.data),
    )
