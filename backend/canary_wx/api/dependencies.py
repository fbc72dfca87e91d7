"""Shared FastAPI dependencies.

Long-lived services are built once in the application lifespan and kept on
app.state; endpoints reach them through these functions so tests can swap
them with app.dependency_overrides.
"""

from fastapi import Depends, HTTPException, Request, status

from ..services.climatology import ClimatologyService
from ..services.live_weather import LiveWeatherService
from ..services.station_catalog import Station, StationCatalog
from ..services.station_resolver import StationResolver


def get_catalog(request: Request) -> StationCatalog:
    return request.app.state.catalog


def get_resolver(request: Request) -> StationResolver:
    return request.app.state.resolver


def get_live_weather(request: Request) -> LiveWeatherService:
    return request.app.state.live_weather


def get_climatology(request: Request) -> ClimatologyService:
    return request.app.state.climatology


def get_station_or_404(station_id: str, catalog: StationCatalog = Depends(get_catalog)) -> Station:
    station = catalog.get(station_id)
    if station is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown station: {station_id}")
    return station
