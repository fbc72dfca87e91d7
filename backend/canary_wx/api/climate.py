"""GET /api/climate - sun chance, monthly statistics and best weeks."""

import asyncio
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from ..schemas.climate import (
    BestWeekOut,
    InterpolatedSunChanceResponse,
    MonthlyStatsOut,
    StationSunChanceResponse,
)
from ..schemas.weather import StationContributionOut
from ..services.climatology import ClimatologyService
from ..services.station_catalog import Station
from ..services.station_resolver import StationResolver
from .dependencies import get_climatology, get_resolver, get_station_or_404

router = APIRouter()


def _check_day_range(day_start: int, day_end: int) -> None:
    if day_start > day_end:
        raise HTTPException(422, "day_start must not be after day_end")


@router.get("/climate/sun-chance", response_model=InterpolatedSunChanceResponse)
async def point_sun_chance(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    month: int = Query(..., ge=1, le=12),
    day_start: int = Query(default=1, ge=1, le=31),
    day_end: int = Query(default=31, ge=1, le=31),
    resolver: StationResolver = Depends(get_resolver),
    climatology: ClimatologyService = Depends(get_climatology),
):
    """Sun chance at a point, blended from nearby stations."""
    _check_day_range(day_start, day_end)
    result = await climatology.interpolated_sun_chance(resolver, lat, lon, month, day_start, day_end)
    if result is None:
        raise HTTPException(503, "No stations available")
    r = result.result
    return InterpolatedSunChanceResponse(
        sunny_days=r.sunny_days,
        total_days=r.total_days,
        sun_chance=r.sun_chance,
        confidence=r.confidence.value,
        month=month,
        is_single_station=result.is_single_station,
        stations=[StationContributionOut.model_validate(asdict(s)) for s in result.stations],
    )


@router.get("/climate/{station_id}/sun-chance", response_model=StationSunChanceResponse)
async def station_sun_chance(
    month: int = Query(..., ge=1, le=12),
    day_start: int = Query(default=1, ge=1, le=31),
    day_end: int = Query(default=31, ge=1, le=31),
    station: Station = Depends(get_station_or_404),
    climatology: ClimatologyService = Depends(get_climatology),
):
    _check_day_range(day_start, day_end)
    r = await asyncio.to_thread(climatology.sun_chance, station.station_id, month, day_start, day_end)
    return StationSunChanceResponse(
        station_id=station.station_id,
        month=month,
        day_start=day_start,
        day_end=day_end,
        sunny_days=r.sunny_days,
        total_days=r.total_days,
        sun_chance=r.sun_chance,
        confidence=r.confidence.value,
    )


@router.get("/climate/{station_id}/monthly", response_model=list[MonthlyStatsOut])
async def station_monthly(
    station: Station = Depends(get_station_or_404),
    climatology: ClimatologyService = Depends(get_climatology),
):
    stats = await asyncio.to_thread(climatology.monthly_stats, station.station_id)
    return [MonthlyStatsOut.model_validate(asdict(s)) for s in stats]


@router.get("/climate/{station_id}/best-weeks", response_model=list[BestWeekOut])
async def station_best_weeks(
    station: Station = Depends(get_station_or_404),
    climatology: ClimatologyService = Depends(get_climatology),
):
    weeks = await asyncio.to_thread(climatology.best_weeks, station.station_id)
    return [BestWeekOut.model_validate(asdict(w)) for w in weeks]
