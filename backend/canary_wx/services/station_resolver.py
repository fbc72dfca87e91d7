"""Resolve a map point to the station(s) that best describe it.

Catalogs hold a few dozen stations, so every lookup is a plain linear scan.
High-altitude stations (summit observatories) are kept apart from regular
ones: ordinary queries ignore them, mountain-peak queries prefer them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .geo import haversine_km
from .station_catalog import Station, StationCatalog

logger = logging.getLogger(__name__)

# Use a regular station for a peak when the nearest high-altitude station is
# more than this many times farther away...
HIGH_ALT_FALLBACK_RATIO = 3.0
# ...and the regular station is closer than this.
REGULAR_STATION_MAX_KM = 40.0


@dataclass(frozen=True)
class NearestStation:
    """A station paired with its distance from the query point."""
    station: Station
    distance_km: float
    is_high_altitude_fallback: bool = False

    @property
    def station_id(self) -> str:
        return self.station.station_id


class StationResolver:
    """Nearest-station and alias lookups over a StationCatalog."""

    def __init__(self, catalog: StationCatalog):
        self.catalog = catalog

    def find_nearest(
        self,
        lat: float,
        lon: float,
        exclude_high_altitude: bool = True,
        force_high_altitude: bool = False,
    ) -> Optional[NearestStation]:
        """Return the single nearest station, or None for an empty catalog.

        Args:
            lat: Query latitude in decimal degrees.
            lon: Query longitude in decimal degrees.
            exclude_high_altitude: Ignore high-altitude stations (ordinary
                ground-level queries).
            force_high_altitude: Prefer the nearest high-altitude station
                (mountain peaks), falling back to a regular station when the
                high-altitude one is disproportionately far away.
        """
        nearest_high: Optional[NearestStation] = None
        nearest_regular: Optional[NearestStation] = None

        for station in self.catalog:
            dist = haversine_km(lat, lon, station.latitude, station.longitude)
            if station.is_high_altitude:
                if nearest_high is None or dist < nearest_high.distance_km:
                    nearest_high = NearestStation(station, dist)
            elif nearest_regular is None or dist < nearest_regular.distance_km:
                nearest_regular = NearestStation(station, dist)

        if force_high_altitude:
            should_fallback = (
                nearest_high is not None
                and nearest_regular is not None
                and nearest_regular.distance_km < REGULAR_STATION_MAX_KM
                and nearest_high.distance_km > nearest_regular.distance_km * HIGH_ALT_FALLBACK_RATIO
            )
            if nearest_high is not None and not should_fallback:
                return nearest_high
            if nearest_regular is not None:
                logger.info(
                    "High-altitude station too far (%s km), using fallback %s (%.1f km)",
                    f"{nearest_high.distance_km:.1f}" if nearest_high else "n/a",
                    nearest_regular.station.name, nearest_regular.distance_km,
                )
                return NearestStation(
                    nearest_regular.station,
                    nearest_regular.distance_km,
                    is_high_altitude_fallback=True,
                )
            return None

        if exclude_high_altitude and nearest_regular is not None:
            return nearest_regular

        if nearest_regular is not None and nearest_high is not None:
            if nearest_regular.distance_km < nearest_high.distance_km:
                return nearest_regular
            return nearest_high
        return nearest_regular or nearest_high

    def find_nearest_stations(
        self,
        lat: float,
        lon: float,
        count: int = 3,
        exclude_high_altitude: bool = True,
    ) -> list[NearestStation]:
        """Return up to `count` stations sorted nearest-first.

        Ties keep catalog order (the sort is stable).
        """
        candidates = [
            NearestStation(s, haversine_km(lat, lon, s.latitude, s.longitude))
            for s in self.catalog
            if not (exclude_high_altitude and s.is_high_altitude)
        ]
        candidates.sort(key=lambda c: c.distance_km)
        return candidates[:max(count, 0)]

    def find_by_alias(self, text: str) -> Optional[str]:
        """Resolve a place name to a station id.

        Exact case-insensitive alias match first, then substring containment
        in either direction.  The first station in catalog order wins.
        """
        needle = text.strip().lower()
        if not needle:
            return None

        for station in self.catalog:
            if any(alias.lower() == needle for alias in station.aliases):
                return station.station_id

        for station in self.catalog:
            for alias in station.aliases:
                candidate = alias.lower()
                if candidate and (needle in candidate or candidate in needle):
                    return station.station_id

        return None
