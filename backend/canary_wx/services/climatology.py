"""Sun-chance climatology over the last ten years of daily records.

A day counts as sunny when it had more than 6 hours of sunshine and no
measurable rain.  Many stations never recorded sunshine hours; for those a
dry day stands in for a sunny one, damped by 0.85 on the cloudier northern
coasts where dry days are often still overcast.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional, Sequence

from .history_store import DailyRecord, HistoryStore
from .interpolation import (
    INTERPOLATION_STATION_COUNT,
    StationContribution,
    blend_sun_chance,
    round_half_up,
    use_single_station,
)
from .station_catalog import StationCatalog
from .station_resolver import NearestStation, StationResolver
from .weather_types import Confidence, SunChanceResult

logger = logging.getLogger(__name__)

MIN_SUN_HOURS = 6.0
MAX_PRECIP_MM = 0.0
NORTHERN_MULTIPLIER = 0.85
HISTORY_YEARS = 10

HIGH_CONFIDENCE_DAYS = 50
MEDIUM_CONFIDENCE_DAYS = 20

# Best-weeks windows: 7 days starting on day-of-year 1, 8, ..., 358
WEEK_LENGTH = 7
LAST_WEEK_START = 358
DAYS_IN_YEAR = 365
BEST_WEEKS_COUNT = 3
# Leap year, so every day-of-year maps onto a calendar date
REFERENCE_YEAR = 2024


@dataclass(frozen=True)
class MonthlyStats:
    month: int
    avg_tmax: float
    avg_tmin: float
    avg_precip: float
    avg_sol: float
    sun_chance: int
    rain_days: int
    total_days: int


@dataclass(frozen=True)
class BestWeek:
    week_start: int  # day of year
    week_end: int
    month: int  # calendar month of week_start
    start_date: str  # "MM-DD"
    end_date: str
    sun_chance: int
    avg_tmax: float


@dataclass(frozen=True)
class InterpolatedSunChance:
    result: SunChanceResult
    stations: list[StationContribution]
    is_single_station: bool


def is_dry(record: DailyRecord) -> bool:
    return record.precip is None or record.precip <= MAX_PRECIP_MM


def is_sunny(record: DailyRecord) -> bool:
    return record.sol is not None and record.sol > MIN_SUN_HOURS and is_dry(record)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _percent(part: float, whole: float) -> int:
    return int(round_half_up(part / whole * 100)) if whole > 0 else 0


def years_ago(today: date, years: int) -> date:
    """Same calendar day `years` back; Feb 29 rolls over to Mar 1."""
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return date(today.year - years, 3, 1)


class ClimatologyService:
    """Historical statistics per station, backed by a HistoryStore."""

    def __init__(
        self,
        store: HistoryStore,
        catalog: StationCatalog,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.catalog = catalog
        self._today = today

    def _records(self, station_id: str) -> Optional[list[DailyRecord]]:
        result = self.store.query_since(station_id, years_ago(self._today(), HISTORY_YEARS))
        if result.error is not None:
            logger.warning("Climatology for %s unavailable: %s", station_id, result.error)
            return None
        return result.records

    def _is_northern(self, station_id: str) -> bool:
        station = self.catalog.get(station_id)
        return station.is_northern if station is not None else False

    def sun_chance(
        self,
        station_id: str,
        month: int,
        day_start: int = 1,
        day_end: int = 31,
    ) -> SunChanceResult:
        """Share of sunny days for a month (optionally a day range within it)."""
        records = self._records(station_id)
        if not records:
            return SunChanceResult.empty()

        selected = [
            r for r in records
            if r.date.month == month and day_start <= r.date.day <= day_end
        ]
        total = len(selected)
        has_sol = any(r.sol is not None for r in selected)

        if has_sol:
            sunny = sum(1 for r in selected if is_sunny(r))
        else:
            dry = sum(1 for r in selected if is_dry(r))
            sunny = int(round_half_up(dry * NORTHERN_MULTIPLIER)) if self._is_northern(station_id) else dry

        if total >= HIGH_CONFIDENCE_DAYS and has_sol:
            confidence = Confidence.HIGH
        elif total >= MEDIUM_CONFIDENCE_DAYS:
            confidence = Confidence.MEDIUM
        else:
            confidence = Confidence.LOW

        return SunChanceResult(
            sunny_days=sunny,
            total_days=total,
            sun_chance=_percent(sunny, total),
            confidence=confidence,
        )

    def monthly_stats(self, station_id: str) -> list[MonthlyStats]:
        """Twelve months of averages; months without data are zero-filled."""
        records = self._records(station_id)
        if not records:
            return []

        by_month: dict[int, list[DailyRecord]] = {m: [] for m in range(1, 13)}
        for r in records:
            by_month[r.date.month].append(r)

        stats = []
        for month, rows in by_month.items():
            stats.append(MonthlyStats(
                month=month,
                avg_tmax=round_half_up(_mean([r.tmax for r in rows if r.tmax is not None]), 1),
                avg_tmin=round_half_up(_mean([r.tmin for r in rows if r.tmin is not None]), 1),
                avg_precip=round_half_up(_mean([r.precip for r in rows if r.precip is not None]), 1),
                avg_sol=round_half_up(_mean([r.sol for r in rows if r.sol is not None]), 1),
                sun_chance=_percent(sum(1 for r in rows if is_sunny(r)), len(rows)),
                rain_days=sum(1 for r in rows if r.precip is not None and r.precip > 0),
                total_days=len(rows),
            ))
        return stats

    def best_weeks(self, station_id: str) -> list[BestWeek]:
        """The three best 7-day windows of the year for a visit.

        Windows are scored on sun chance with a bonus for comfortable
        afternoon temperatures.
        """
        records = self._records(station_id)
        if not records:
            return []

        has_sol = any(r.sol is not None for r in records)
        damping = NORTHERN_MULTIPLIER if self._is_northern(station_id) and not has_sol else 1.0

        # day of year -> [sunny weight, days, tmax sum, tmax count]
        qualifies = is_sunny if has_sol else is_dry
        buckets: dict[int, list[float]] = {}
        for r in records:
            bucket = buckets.setdefault(r.date.timetuple().tm_yday, [0.0, 0, 0.0, 0])
            bucket[1] += 1
            if qualifies(r):
                bucket[0] += damping
            if r.tmax is not None:
                bucket[2] += r.tmax
                bucket[3] += 1

        scored: list[tuple[float, int, int, float]] = []
        for start in range(1, LAST_WEEK_START + 1, WEEK_LENGTH):
            sunny = days = tmax_sum = tmax_count = 0
            for day in range(start, min(start + WEEK_LENGTH, DAYS_IN_YEAR + 1)):
                if day in buckets:
                    s, n, t, c = buckets[day]
                    sunny += s
                    days += n
                    tmax_sum += t
                    tmax_count += c
            if days == 0:
                continue
            chance = _percent(sunny, days)
            avg_tmax = round_half_up(tmax_sum / tmax_count, 1) if tmax_count else 0.0
            scored.append((week_score(chance, avg_tmax), start, chance, avg_tmax))

        scored.sort(key=lambda w: w[0], reverse=True)

        weeks = []
        for _, start, chance, avg_tmax in scored[:BEST_WEEKS_COUNT]:
            first = date(REFERENCE_YEAR, 1, 1) + timedelta(days=start - 1)
            last = first + timedelta(days=WEEK_LENGTH - 1)
            weeks.append(BestWeek(
                week_start=start,
                week_end=start + WEEK_LENGTH - 1,
                month=first.month,
                start_date=first.strftime("%m-%d"),
                end_date=last.strftime("%m-%d"),
                sun_chance=chance,
                avg_tmax=avg_tmax,
            ))
        return weeks

    async def interpolated_sun_chance(
        self,
        resolver: StationResolver,
        lat: float,
        lon: float,
        month: int,
        day_start: int = 1,
        day_end: int = 31,
    ) -> Optional[InterpolatedSunChance]:
        """Sun chance at a point from up to three nearby stations.

        Returns None only when there are no stations at all.  Stations with
        no records in the period are left out of the blend.
        """
        nearby = resolver.find_nearest_stations(lat, lon, INTERPOLATION_STATION_COUNT)
        if not nearby:
            return None

        if use_single_station(nearby[0].distance_km):
            closest = nearby[0]
            result = await asyncio.to_thread(self.sun_chance, closest.station_id, month, day_start, day_end)
            return InterpolatedSunChance(
                result=result,
                stations=[_contribution(closest, 1.0, result)],
                is_single_station=True,
            )

        results = await asyncio.gather(
            *(asyncio.to_thread(self.sun_chance, n.station_id, month, day_start, day_end) for n in nearby),
            return_exceptions=True,
        )

        valid: list[tuple[NearestStation, SunChanceResult]] = []
        for n, result in zip(nearby, results):
            if isinstance(result, BaseException):
                logger.error("Sun chance for %s raised", n.station_id, exc_info=result)
            elif result.total_days > 0:
                valid.append((n, result))

        if not valid:
            return InterpolatedSunChance(result=SunChanceResult.empty(), stations=[], is_single_station=False)

        blended, weights = blend_sun_chance([(r, n.distance_km) for n, r in valid])
        return InterpolatedSunChance(
            result=blended,
            stations=[_contribution(n, w, r) for (n, r), w in zip(valid, weights)],
            is_single_station=len(valid) == 1,
        )


def week_score(sun_chance: int, avg_tmax: float) -> float:
    score = sun_chance * 1.5
    if 24 <= avg_tmax <= 27:
        score += 20
    elif 22 <= avg_tmax <= 29:
        score += 10
    elif avg_tmax < 20 or avg_tmax > 32:
        score -= 10
    return score


def _contribution(nearby: NearestStation, weight: float, result: SunChanceResult) -> StationContribution:
    return StationContribution(
        station_id=nearby.station_id,
        name=nearby.station.name,
        distance_km=round_half_up(nearby.distance_km, 2),
        weight=round_half_up(weight, 2),
        sun_chance=result.sun_chance,
    )
