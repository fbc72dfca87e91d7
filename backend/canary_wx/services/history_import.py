"""Batch import of AEMET daily climatology into the history store.

Two stages, usually run back to back by the CLI:

  fetch   Pull ten years of daily values for one station from AEMET in
          4-month chunks (AEMET rejects ranges longer than 6 months), fill
          missing mean temperatures and write a JSON artifact per station.
  upload  Read the artifact and upsert it into weather_data.

AEMET's free tier rate limits aggressively, so requests are spaced out and
429/500/503 answers are retried after a pause.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from ..config import settings
from .aemet import AemetEnvelope, decode_json
from .gap_fill import fill_missing_tavg
from .history_store import DailyRecord, HistoryStore, UpsertResult

logger = logging.getLogger(__name__)

DAILY_PATH = (
    "/valores/climatologicos/diarios/datos"
    "/fechaini/{start}/fechafin/{end}/estacion/{station_id}"
)
RETRYABLE_STATUS = (429, 500, 503)
# Pause between the envelope request and the data request
DATOS_DELAY_SEC = 1.0


class AemetRequestError(Exception):
    """A failed AEMET request; `status` is the HTTP or estado code if known."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status in RETRYABLE_STATUS


class AemetDailyValue(BaseModel):
    """One day of AEMET climatology.  Numbers arrive as strings."""
    model_config = ConfigDict(extra="ignore")

    fecha: str
    indicativo: str
    tmax: Optional[str] = None
    tmin: Optional[str] = None
    tmed: Optional[str] = None
    prec: Optional[str] = None
    sol: Optional[str] = None
    velmedia: Optional[str] = None


_daily_values = TypeAdapter(list[AemetDailyValue])


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime
    label: str


@dataclass
class PeriodResult:
    records: list[DailyRecord] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class StationFetchResult:
    station_id: str
    path: Path
    total_records: int
    interpolated_records: int
    errors: list[dict[str, str]]


def generate_periods(start_year: int, end_year: int) -> list[Period]:
    """Three 4-month periods per year for years in [start_year, end_year)."""
    periods = []
    for year in range(start_year, end_year):
        periods.append(Period(datetime(year, 1, 1), datetime(year, 4, 30, 23, 59, 59), f"{year}-Q1"))
        periods.append(Period(datetime(year, 5, 1), datetime(year, 8, 31, 23, 59, 59), f"{year}-Q2"))
        periods.append(Period(datetime(year, 9, 1), datetime(year, 12, 31, 23, 59, 59), f"{year}-Q3"))
    return periods


def parse_aemet_number(value: Optional[str]) -> Optional[float]:
    """Parse an AEMET numeric string.

    AEMET writes decimals with a comma and uses "Ip" for trace precipitation
    and "Acum" for values accumulated over several days; both carry no
    usable daily number.
    """
    if value is None:
        return None
    value = value.strip()
    if value in ("", "Ip", "Acum"):
        return None
    try:
        return float(value.replace(",", "."))
    except ValueError:
        return None


def format_aemet_date(moment: datetime) -> str:
    """AEMET's date format: 2024-01-31T23:59:59UTC."""
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + "UTC"


def _to_record(value: AemetDailyValue) -> DailyRecord:
    return DailyRecord(
        station_id=value.indicativo,
        date=date.fromisoformat(value.fecha),
        tmax=parse_aemet_number(value.tmax),
        tmin=parse_aemet_number(value.tmin),
        tavg=parse_aemet_number(value.tmed),
        precip=parse_aemet_number(value.prec),
        sol=parse_aemet_number(value.sol),
        wind_speed=parse_aemet_number(value.velmedia),
    )


def record_to_json(record: DailyRecord) -> dict[str, Any]:
    return {
        "station_id": record.station_id,
        "date": record.date.isoformat(),
        "tmax": record.tmax,
        "tmin": record.tmin,
        "tavg": record.tavg,
        "precip": record.precip,
        "sol": record.sol,
        "wind_speed": record.wind_speed,
        "is_interpolated": record.is_interpolated,
    }


def record_from_json(raw: dict[str, Any]) -> DailyRecord:
    return DailyRecord(
        station_id=raw["station_id"],
        date=date.fromisoformat(raw["date"]),
        tmax=raw.get("tmax"),
        tmin=raw.get("tmin"),
        tavg=raw.get("tavg"),
        precip=raw.get("precip"),
        sol=raw.get("sol"),
        wind_speed=raw.get("wind_speed"),
        is_interpolated=bool(raw.get("is_interpolated", False)),
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class HistoryImporter:
    """Fetches AEMET daily values to artifacts and uploads artifacts to the store.

    The HTTP transport, sleep and clock are injectable so the importer can be
    driven without network access or real delays.
    """

    def __init__(
        self,
        store: Optional[HistoryStore] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        import_dir: Optional[Path] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.api_key = settings.aemet_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.aemet_base_url).rstrip("/")
        self.import_dir = Path(import_dir or settings.import_dir)
        self._transport = transport
        self._sleep = sleep
        self._now = now

    def artifact_path(self, station_id: str) -> Path:
        return self.import_dir / f"station_{station_id}.json"

    # --- fetch ---

    def _request_period(self, client: httpx.Client, url: str) -> list[DailyRecord]:
        try:
            resp = client.get(url, headers={"api_key": self.api_key, "Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise AemetRequestError(f"AEMET request failed: {exc}") from exc
        if resp.status_code != 200:
            raise AemetRequestError(f"AEMET API error: {resp.status_code}", resp.status_code)

        try:
            envelope = AemetEnvelope.model_validate(decode_json(resp))
        except (ValidationError, ValueError) as exc:
            raise AemetRequestError(f"Malformed AEMET response: {exc}") from exc
        if envelope.estado != 200 or not envelope.datos:
            raise AemetRequestError(
                f"AEMET API returned estado {envelope.estado}: {envelope.descripcion}",
                envelope.estado,
            )

        self._sleep(DATOS_DELAY_SEC)

        try:
            resp = client.get(envelope.datos, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise AemetRequestError(f"AEMET data request failed: {exc}") from exc
        if resp.status_code != 200:
            raise AemetRequestError(f"Failed to fetch data: {resp.status_code}", resp.status_code)

        try:
            values = _daily_values.validate_python(decode_json(resp))
            return [_to_record(v) for v in values]
        except (ValidationError, ValueError) as exc:
            raise AemetRequestError(f"Malformed AEMET data: {exc}") from exc

    def fetch_period(self, client: httpx.Client, station_id: str, period: Period) -> PeriodResult:
        """Fetch one period, retrying rate-limit and server errors."""
        now = self._now()
        if period.start > now:
            return PeriodResult()
        end = min(period.end, now)

        url = self.base_url + DAILY_PATH.format(
            start=format_aemet_date(period.start),
            end=format_aemet_date(end),
            station_id=station_id,
        )
        retries = 0
        while True:
            try:
                records = self._request_period(client, url)
                logger.info("[%s] Fetched %d records", period.label, len(records))
                return PeriodResult(records=records)
            except AemetRequestError as exc:
                if exc.retryable and retries < settings.import_max_retries:
                    retries += 1
                    logger.warning("[%s] %s, retry %d/%d in %ss", period.label, exc,
                                   retries, settings.import_max_retries, settings.import_retry_delay_sec)
                    self._sleep(settings.import_retry_delay_sec)
                    continue
                logger.error("[%s] Failed: %s", period.label, exc)
                return PeriodResult(error=str(exc))

    def fetch_station(
        self,
        station_id: str,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
    ) -> StationFetchResult:
        """Fetch every period for a station and write its artifact."""
        if not self.api_key:
            raise ValueError("AEMET API key is not configured")

        start_year = start_year or settings.import_start_year
        end_year = end_year or settings.import_end_year
        periods = generate_periods(start_year, end_year)
        logger.info("Fetching %s: %d periods from %d to %d", station_id, len(periods), start_year, end_year)

        records: list[DailyRecord] = []
        errors: list[dict[str, str]] = []
        with httpx.Client(timeout=settings.request_timeout, transport=self._transport) as client:
            for i, period in enumerate(periods):
                result = self.fetch_period(client, station_id, period)
                records.extend(result.records)
                if result.error:
                    errors.append({"period": period.label, "error": result.error})
                if i < len(periods) - 1:
                    self._sleep(settings.import_period_delay_sec)

        filled = fill_missing_tavg(records)
        interpolated = sum(1 for r in filled if r.is_interpolated)

        path = self.artifact_path(station_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        artifact = {
            "station_id": station_id,
            "fetched_at": datetime.now(timezone.utc).isoformat(),
            "date_range": {"start": f"{start_year}-01-01", "end": f"{end_year}-01-01"},
            "total_records": len(filled),
            "interpolated_records": interpolated,
            "errors": errors,
            "data": [record_to_json(r) for r in filled],
        }
        path.write_text(json.dumps(artifact, indent=2), encoding="utf-8")
        logger.info("Saved %d records for %s (%d interpolated, %d errors) to %s",
                    len(filled), station_id, interpolated, len(errors), path)

        return StationFetchResult(
            station_id=station_id,
            path=path,
            total_records=len(filled),
            interpolated_records=interpolated,
            errors=errors,
        )

    # --- upload ---

    def load_artifact(self, station_id: str) -> list[DailyRecord]:
        """Read a station artifact.  Raises FileNotFoundError or ValueError."""
        path = self.artifact_path(station_id)
        raw = json.loads(path.read_text(encoding="utf-8"))
        try:
            return [record_from_json(r) for r in raw["data"]]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed artifact {path}: {exc}") from exc

    def upload_station(self, station_id: str) -> UpsertResult:
        """Upsert a station's artifact into the store."""
        if self.store is None:
            raise ValueError("No history store configured for upload")
        records = self.load_artifact(station_id)
        logger.info("Uploading %d records for %s", len(records), station_id)
        result = self.store.upsert(records)
        logger.info("Uploaded %d records for %s (%d failed batches)",
                    result.inserted, station_id, result.failed_batches)
        return result
