"""Tests for the AEMET history importer and the history store."""

import json
from datetime import date, datetime

import httpx
import pytest
from sqlalchemy import select, update

from canary_wx.config import settings
from canary_wx.models.weather_record import DailyWeatherRecordModel
from canary_wx.services.history_import import (
    HistoryImporter,
    Period,
    format_aemet_date,
    generate_periods,
    parse_aemet_number,
)
from canary_wx.services.history_store import DailyRecord, HistoryStore

NOW = datetime(2026, 10, 18, 9, 0, 0)
DATOS_URL = "https://opendata.aemet.es/opendata/sh/daily"


class TestHelpers:
    def test_periods(self):
        periods = generate_periods(2016, 2026)
        assert len(periods) == 30
        assert periods[0].label == "2016-Q1"
        assert periods[0].end == datetime(2016, 4, 30, 23, 59, 59)
        assert periods[1].start == datetime(2016, 5, 1)
        assert periods[-1].label == "2025-Q3"
        assert periods[-1].end == datetime(2025, 12, 31, 23, 59, 59)

    @pytest.mark.parametrize("raw, expected", [
        ("23,4", 23.4),
        ("0,0", 0.0),
        ("-1,5", -1.5),
        ("12", 12.0),
        ("Ip", None),
        ("Acum", None),
        ("", None),
        (None, None),
        ("n/a", None),
    ])
    def test_parse_aemet_number(self, raw, expected):
        assert parse_aemet_number(raw) == expected

    def test_format_aemet_date(self):
        assert format_aemet_date(datetime(2024, 1, 31, 23, 59, 59)) == "2024-01-31T23:59:59UTC"


class FakeAemet:
    """Two-step AEMET daily endpoint with a programmable sequence of statuses.

    The canned days are served on the first data request only; later periods
    come back empty.
    """

    def __init__(self, statuses=(), days=None):
        self.statuses = list(statuses)
        self.days = days if days is not None else [
            {"fecha": "2024-01-01", "indicativo": "C447A", "tmax": "20,1", "tmin": "14,0",
             "tmed": "17,1", "prec": "0,0", "sol": "8,2", "velmedia": "3,1"},
            {"fecha": "2024-01-02", "indicativo": "C447A", "tmax": "19,0", "tmin": "13,0",
             "prec": "Ip", "sol": "5,0"},
            {"fecha": "2024-01-03", "indicativo": "C447A", "tmax": "21,0", "tmin": "15,0",
             "tmed": "18,1", "prec": "Acum"},
        ]
        self.paths: list[str] = []
        self.served = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == DATOS_URL:
            days = [] if self.served else self.days
            self.served = True
            return httpx.Response(200, json=days)
        self.paths.append(request.url.path)
        status = self.statuses.pop(0) if self.statuses else 200
        if status != 200:
            return httpx.Response(status, json={"estado": status, "descripcion": "error"})
        return httpx.Response(200, json={"estado": 200, "datos": DATOS_URL})


def importer(handler, tmp_path, store=None, sleeps=None):
    return HistoryImporter(
        store=store,
        api_key="test-key",
        import_dir=tmp_path,
        transport=httpx.MockTransport(handler),
        sleep=(sleeps.append if sleeps is not None else (lambda s: None)),
        now=lambda: NOW,
    )


class TestFetchPeriod:
    def test_parses_records(self, tmp_path):
        aemet = FakeAemet()
        imp = importer(aemet, tmp_path)
        period = Period(datetime(2024, 1, 1), datetime(2024, 4, 30, 23, 59, 59), "2024-Q1")
        with httpx.Client(transport=httpx.MockTransport(aemet)) as client:
            result = imp.fetch_period(client, "C447A", period)
        assert result.error is None
        assert len(result.records) == 3
        first, second, third = result.records
        assert first == DailyRecord("C447A", date(2024, 1, 1), 20.1, 14.0, 17.1, 0.0, 8.2, 3.1)
        assert second.precip is None and second.tavg is None
        assert third.precip is None
        assert aemet.paths[0].endswith(
            "/fechaini/2024-01-01T00:00:00UTC/fechafin/2024-04-30T23:59:59UTC/estacion/C447A")

    def test_latin1_payload(self, tmp_path):
        days = [{"fecha": "2024-01-01", "indicativo": "C430E", "nombre": "IZAÑA",
                 "tmax": "10,2", "tmin": "4,0", "tmed": "7,1", "prec": "0,0", "sol": "9,5"}]
        body = json.dumps(days, ensure_ascii=False).encode("iso-8859-15")
        aemet = FakeAemet()

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == DATOS_URL:
                return httpx.Response(200, content=body,
                                      headers={"content-type": "text/plain;charset=ISO-8859-15"})
            return aemet(request)

        imp = importer(handler, tmp_path)
        period = Period(datetime(2024, 1, 1), datetime(2024, 4, 30, 23, 59, 59), "2024-Q1")
        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            result = imp.fetch_period(client, "C430E", period)
        assert result.error is None
        assert result.records == [DailyRecord("C430E", date(2024, 1, 1), 10.2, 4.0, 7.1, 0.0, 9.5)]

    def test_retries_rate_limit(self, tmp_path):
        aemet = FakeAemet(statuses=[429, 503])
        sleeps = []
        imp = importer(aemet, tmp_path, sleeps=sleeps)
        period = Period(datetime(2024, 1, 1), datetime(2024, 4, 30, 23, 59, 59), "2024-Q1")
        with httpx.Client(transport=httpx.MockTransport(aemet)) as client:
            result = imp.fetch_period(client, "C447A", period)
        assert result.error is None
        assert len(aemet.paths) == 3
        assert sleeps.count(settings.import_retry_delay_sec) == 2

    def test_gives_up_after_max_retries(self, tmp_path):
        aemet = FakeAemet(statuses=[500] * 10)
        imp = importer(aemet, tmp_path)
        period = Period(datetime(2024, 1, 1), datetime(2024, 4, 30, 23, 59, 59), "2024-Q1")
        with httpx.Client(transport=httpx.MockTransport(aemet)) as client:
            result = imp.fetch_period(client, "C447A", period)
        assert result.error is not None
        assert len(aemet.paths) == settings.import_max_retries + 1

    def test_other_errors_not_retried(self, tmp_path):
        aemet = FakeAemet(statuses=[401])
        imp = importer(aemet, tmp_path)
        period = Period(datetime(2024, 1, 1), datetime(2024, 4, 30, 23, 59, 59), "2024-Q1")
        with httpx.Client(transport=httpx.MockTransport(aemet)) as client:
            result = imp.fetch_period(client, "C447A", period)
        assert "401" in result.error
        assert len(aemet.paths) == 1

    def test_future_period_skipped_and_end_clipped(self, tmp_path):
        aemet = FakeAemet()
        imp = importer(aemet, tmp_path)
        with httpx.Client(transport=httpx.MockTransport(aemet)) as client:
            future = imp.fetch_period(client, "C447A", Period(datetime(2027, 1, 1), datetime(2027, 4, 30), "2027-Q1"))
            assert future.records == [] and future.error is None
            assert aemet.paths == []
            imp.fetch_period(client, "C447A", Period(datetime(2026, 9, 1), datetime(2026, 12, 31, 23, 59, 59), "2026-Q3"))
        assert "/fechafin/2026-10-18T09:00:00UTC/" in aemet.paths[0]


class TestFetchStation:
    def test_writes_artifact_with_gap_fill(self, tmp_path):
        sleeps = []
        imp = importer(FakeAemet(), tmp_path, sleeps=sleeps)
        result = imp.fetch_station("C447A", start_year=2024, end_year=2025)

        assert result.total_records == 3
        assert result.interpolated_records == 1
        assert result.errors == []
        assert sleeps.count(settings.import_period_delay_sec) == 2

        artifact = json.loads((tmp_path / "station_C447A.json").read_text())
        assert artifact["station_id"] == "C447A"
        assert artifact["date_range"] == {"start": "2024-01-01", "end": "2025-01-01"}
        jan2 = [d for d in artifact["data"] if d["date"] == "2024-01-02"][0]
        assert jan2["tavg"] == pytest.approx(17.6)
        assert jan2["is_interpolated"] is True

    def test_records_period_errors(self, tmp_path):
        imp = importer(FakeAemet(statuses=[404]), tmp_path)
        result = imp.fetch_station("C447A", start_year=2024, end_year=2025)
        assert result.errors[0]["period"] == "2024-Q1"
        assert result.total_records == 3

    def test_requires_api_key(self, tmp_path):
        imp = HistoryImporter(api_key="", import_dir=tmp_path)
        with pytest.raises(ValueError):
            imp.fetch_station("C447A")


class TestUpload:
    def test_upsert_is_idempotent(self, tmp_path, session_factory):
        store = HistoryStore(session_factory)
        imp = importer(FakeAemet(), tmp_path, store=store)
        imp.fetch_station("C447A", start_year=2024, end_year=2025)

        first = imp.upload_station("C447A")
        second = imp.upload_station("C447A")
        assert first.failed_batches == 0 and second.failed_batches == 0

        records = store.query_since("C447A", date(2000, 1, 1)).records
        assert [r.date for r in records] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
        assert records[0].wind_speed == 3.1
        assert records[1].is_interpolated

    def test_batches(self, session_factory):
        store = HistoryStore(session_factory)
        records = [DailyRecord("S", date.fromordinal(738000 + i), tavg=15.0) for i in range(12)]
        result = store.upsert(records, batch_size=5)
        assert result.inserted == 12
        assert len(store.query_since("S", date(2000, 1, 1)).records) == 12

    def test_update_existing_row(self, session_factory):
        store = HistoryStore(session_factory)
        store.upsert([DailyRecord("S", date(2024, 1, 1), tmax=20.0)])
        store.upsert([DailyRecord("S", date(2024, 1, 1), tmax=22.0)])
        records = store.query_since("S", date(2024, 1, 1)).records
        assert len(records) == 1
        assert records[0].tmax == 22.0

    def test_update_refreshes_updated_at(self, session_factory):
        store = HistoryStore(session_factory)
        store.upsert([DailyRecord("S", date(2024, 1, 1), tmax=20.0)])
        old = datetime(2000, 1, 1)
        with session_factory() as db:
            db.execute(update(DailyWeatherRecordModel).values(updated_at=old))
            db.commit()

        store.upsert([DailyRecord("S", date(2024, 1, 1), tmax=22.0)])
        with session_factory() as db:
            row = db.scalars(select(DailyWeatherRecordModel)).one()
        assert row.tmax == 22.0
        assert row.updated_at > old

    def test_missing_artifact(self, tmp_path, session_factory):
        imp = importer(FakeAemet(), tmp_path, store=HistoryStore(session_factory))
        with pytest.raises(FileNotFoundError):
            imp.upload_station("NOPE")
