"""Pydantic schemas for live weather API."""

from typing import Literal

from pydantic import BaseModel

Status = Literal["fresh", "cached", "unavailable"]


class LiveWeatherOut(BaseModel):
    temperature: int
    humidity: int
    wind_speed: int
    weather_code: int
    condition: str
    condition_label_key: str
    timestamp: str


class StationContributionOut(BaseModel):
    station_id: str
    name: str
    distance_km: float
    weight: float
    sun_chance: int | None = None


class LiveWeatherResponse(BaseModel):
    status: Status
    station_id: str | None = None
    source: str | None = None
    data: LiveWeatherOut | None = None


class InterpolatedWeatherResponse(BaseModel):
    status: Status
    is_single_station: bool = False
    stations: list[StationContributionOut] = []
    data: LiveWeatherOut | None = None
