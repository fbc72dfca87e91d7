"""Read/write access to the imported daily climatology.

Reads report failures as a value rather than raising, so the climatology
engine can degrade to an empty result when the database is unavailable.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..models.weather_record import DailyWeatherRecordModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyRecord:
    """One station-day of climatology.  Any measurement may be missing."""
    station_id: str
    date: date
    tmax: Optional[float] = None
    tmin: Optional[float] = None
    tavg: Optional[float] = None
    precip: Optional[float] = None
    sol: Optional[float] = None
    wind_speed: Optional[float] = None
    is_interpolated: bool = False

    def with_tavg(self, tavg: float) -> "DailyRecord":
        return replace(self, tavg=tavg, is_interpolated=True)


@dataclass
class HistoryQueryResult:
    records: list[DailyRecord]
    error: Optional[str] = None


@dataclass
class UpsertResult:
    inserted: int = 0
    failed_batches: int = 0


def _from_model(row: DailyWeatherRecordModel) -> DailyRecord:
    return DailyRecord(
        station_id=row.station_id,
        date=row.date,
        tmax=row.tmax,
        tmin=row.tmin,
        tavg=row.tavg,
        precip=row.precip,
        sol=row.sol,
        wind_speed=row.wind_speed,
        is_interpolated=row.is_interpolated,
    )


class HistoryStore:
    """Queries and batched upserts over the weather_data table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def query_since(self, station_id: str, since: date) -> HistoryQueryResult:
        """All records for a station dated on or after `since`, oldest first."""
        db: Session = self._session_factory()
        try:
            rows = db.scalars(
                select(DailyWeatherRecordModel)
                .where(
                    DailyWeatherRecordModel.station_id == station_id,
                    DailyWeatherRecordModel.date >= since,
                )
                .order_by(DailyWeatherRecordModel.date)
            ).all()
            return HistoryQueryResult(records=[_from_model(r) for r in rows])
        except SQLAlchemyError as exc:
            logger.warning("History query failed for %s: %s", station_id, exc)
            return HistoryQueryResult(records=[], error=str(exc))
        finally:
            db.close()

    def upsert(self, records: Sequence[DailyRecord], batch_size: Optional[int] = None) -> UpsertResult:
        """Insert or update records keyed on (station_id, date).

        Each batch commits on its own; a failed batch is rolled back, counted
        and skipped.
        """
        batch_size = batch_size or settings.upload_batch_size
        result = UpsertResult()
        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            db: Session = self._session_factory()
            try:
                db.execute(_upsert_statement(batch))
                db.commit()
                result.inserted += len(batch)
            except SQLAlchemyError as exc:
                db.rollback()
                result.failed_batches += 1
                logger.warning("Upsert batch %d failed: %s", start // batch_size + 1, exc)
            finally:
                db.close()
        return result


def _upsert_statement(batch: Iterable[DailyRecord]):
    values = [
        {
            "station_id": r.station_id,
            "date": r.date,
            "tmax": r.tmax,
            "tmin": r.tmin,
            "tavg": r.tavg,
            "precip": r.precip,
            "sol": r.sol,
            "wind_speed": r.wind_speed,
            "is_interpolated": r.is_interpolated,
        }
        for r in batch
    ]
    stmt = insert(DailyWeatherRecordModel).values(values)
    return stmt.on_conflict_do_update(
        index_elements=["station_id", "date"],
        set_={
            **{
                col: stmt.excluded[col]
                for col in ("tmax", "tmin", "tavg", "precip", "sol", "wind_speed", "is_interpolated")
            },
            # ORM onupdate does not fire for ON CONFLICT
            "updated_at": func.now(),
        },
    )
