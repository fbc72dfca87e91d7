"""Pydantic schemas for station API."""

from pydantic import BaseModel


class StationOut(BaseModel):
    station_id: str
    name: str
    island: str
    municipality: str
    latitude: float
    longitude: float
    altitude: int
    is_high_altitude: bool
    is_northern: bool
    aliases: list[str]


class NearestStationOut(BaseModel):
    station: StationOut
    distance_km: float
    is_high_altitude_fallback: bool = False


class StationSearchResponse(BaseModel):
    query: str
    station: StationOut | None = None
