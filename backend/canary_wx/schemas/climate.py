"""Pydantic schemas for climatology API."""

from pydantic import BaseModel

from .weather import StationContributionOut


class SunChanceOut(BaseModel):
    sunny_days: int
    total_days: int
    sun_chance: int
    confidence: str


class StationSunChanceResponse(SunChanceOut):
    station_id: str
    month: int
    day_start: int
    day_end: int


class InterpolatedSunChanceResponse(SunChanceOut):
    month: int
    is_single_station: bool
    stations: list[StationContributionOut]


class MonthlyStatsOut(BaseModel):
    month: int
    avg_tmax: float
    avg_tmin: float
    avg_precip: float
    avg_sol: float
    sun_chance: int
    rain_days: int
    total_days: int


class BestWeekOut(BaseModel):
    week_start: int
    week_end: int
    month: int
    start_date: str
    end_date: str
    sun_chance: int
    avg_tmax: float
