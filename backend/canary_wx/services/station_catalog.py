"""Static catalog of AEMET stations covering the archipelago.

The catalog is read once at startup from a JSON file and is immutable for the
lifetime of the process.  Iteration order is the order of the file, which
also decides alias tie-breaks in the resolver.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

from ..config import settings

logger = logging.getLogger(__name__)


class StationCatalogError(RuntimeError):
    """The station catalog is missing, malformed, or empty."""


@dataclass(frozen=True)
class Station:
    """A fixed physical weather-observation point."""
    station_id: str  # AEMET "indicativo"
    name: str
    island: str
    municipality: str
    latitude: float
    longitude: float
    altitude: int  # meters
    is_high_altitude: bool = False
    is_northern: bool = False
    aliases: tuple[str, ...] = field(default_factory=tuple)


class StationCatalog:
    """Read-only, ordered collection of stations with lookup by id."""

    def __init__(self, stations: Iterable[Station]):
        self._stations: tuple[Station, ...] = tuple(stations)
        self._by_id: dict[str, Station] = {s.station_id: s for s in self._stations}

    def __iter__(self) -> Iterator[Station]:
        return iter(self._stations)

    def __len__(self) -> int:
        return len(self._stations)

    def all(self) -> list[Station]:
        return list(self._stations)

    def get(self, station_id: str) -> Optional[Station]:
        return self._by_id.get(station_id)


def _parse_station(station_id: str, raw: dict) -> Station:
    return Station(
        station_id=station_id,
        name=str(raw["name"]),
        island=str(raw["island"]),
        municipality=str(raw.get("municipality", "")),
        latitude=float(raw["latitude"]),
        longitude=float(raw["longitude"]),
        altitude=int(raw["altitude"]),
        is_high_altitude=bool(raw.get("isHighAltitude", False)),
        is_northern=bool(raw.get("isNorthern", False)),
        aliases=tuple(str(a) for a in raw.get("aliases", [])),
    )


def load_catalog(path: Optional[Path] = None) -> StationCatalog:
    """Load the station catalog from JSON.

    Raises StationCatalogError when the file cannot be read or parsed, or
    when it defines no stations.  This is a deployment defect, so it is
    surfaced at startup rather than per request.
    """
    path = path or settings.catalog_file
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        entries = raw["stations"]
        stations = [_parse_station(sid, entry) for sid, entry in entries.items()]
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise StationCatalogError(f"Cannot load station catalog {path}: {exc}") from exc

    if not stations:
        raise StationCatalogError(f"Station catalog {path} defines no stations")

    logger.info("Loaded %d stations from %s", len(stations), path)
    return StationCatalog(stations)
