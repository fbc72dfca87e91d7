"""Shared fixtures: a small station catalog and throwaway SQLite databases."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from canary_wx.models import weather_cache, weather_record  # noqa: F401  (register tables)
from canary_wx.models.database import Base
from canary_wx.services.station_catalog import Station, StationCatalog
from canary_wx.services.station_resolver import StationResolver


def make_station(station_id, lat, lon, altitude=50, high=False, northern=False, aliases=(), name=None):
    return Station(
        station_id=station_id,
        name=name or f"Station {station_id}",
        island="Tenerife",
        municipality="",
        latitude=lat,
        longitude=lon,
        altitude=altitude,
        is_high_altitude=high,
        is_northern=northern,
        aliases=tuple(aliases),
    )


@pytest.fixture
def catalog() -> StationCatalog:
    return StationCatalog([
        make_station("X", 28.0, -16.5, aliases=("Los Cristianos", "Arona")),
        make_station("Y", 28.3, -16.9, altitude=2300, high=True, aliases=("Teide",)),
        make_station("N1", 28.45, -16.3, northern=True, aliases=("La Laguna", "Santa Cruz")),
    ])


@pytest.fixture
def resolver(catalog) -> StationResolver:
    return StationResolver(catalog)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def tableless_session_factory(tmp_path):
    """Sessions on a database where no tables were ever created."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'empty.db'}",
        connect_args={"check_same_thread": False},
    )
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()

class FakeClock:
    """Settable time source (seconds since epoch)."""

    def __init__(self, now: float = 1_750_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
