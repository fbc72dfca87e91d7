"""GET /api/stations - catalog listing, nearest-station and alias lookups."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ..schemas.station import NearestStationOut, StationOut, StationSearchResponse
from ..services.interpolation import round_half_up
from ..services.station_catalog import Station, StationCatalog
from ..services.station_resolver import NearestStation, StationResolver
from .dependencies import get_catalog, get_resolver, get_station_or_404

router = APIRouter()


def station_out(station: Station) -> StationOut:
    return StationOut.model_validate(asdict(station))


def nearest_out(nearest: NearestStation) -> NearestStationOut:
    return NearestStationOut(
        station=station_out(nearest.station),
        distance_km=round_half_up(nearest.distance_km, 2),
        is_high_altitude_fallback=nearest.is_high_altitude_fallback,
    )


@router.get("/stations", response_model=list[StationOut])
def list_stations(catalog: StationCatalog = Depends(get_catalog)):
    """All catalogued stations in catalog order."""
    return [station_out(s) for s in catalog]


@router.get("/stations/nearest", response_model=NearestStationOut | None)
def nearest_station(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    exclude_high_altitude: bool = True,
    force_high_altitude: bool = False,
    resolver: StationResolver = Depends(get_resolver),
):
    nearest = resolver.find_nearest(lat, lon, exclude_high_altitude, force_high_altitude)
    return nearest_out(nearest) if nearest is not None else None


@router.get("/stations/nearby", response_model=list[NearestStationOut])
def nearby_stations(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    count: int = Query(default=3, ge=1, le=20),
    exclude_high_altitude: bool = True,
    resolver: StationResolver = Depends(get_resolver),
):
    return [nearest_out(n) for n in resolver.find_nearest_stations(lat, lon, count, exclude_high_altitude)]


@router.get("/stations/search", response_model=StationSearchResponse)
def search_station(
    q: str = Query(..., description="Place name, e.g. 'Puerto de la Cruz'"),
    catalog: StationCatalog = Depends(get_catalog),
    resolver: StationResolver = Depends(get_resolver),
):
    station_id = resolver.find_by_alias(q)
    station = catalog.get(station_id) if station_id else None
    return StationSearchResponse(query=q, station=station_out(station) if station else None)


@router.get("/stations/{station_id}", response_model=StationOut)
def get_station(station: Station = Depends(get_station_or_404)):
    return station_out(station)
