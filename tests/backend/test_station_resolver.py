"""Tests for nearest-station and alias resolution."""

import math

from canary_wx.services.geo import EARTH_RADIUS_KM
from canary_wx.services.station_catalog import StationCatalog
from canary_wx.services.station_resolver import StationResolver

from conftest import make_station

KM_PER_DEG_LAT = EARTH_RADIUS_KM * math.pi / 180


def north_of(lat: float, km: float) -> float:
    return lat + km / KM_PER_DEG_LAT


class TestFindNearest:
    def test_regular_station_for_ordinary_query(self, resolver):
        nearest = resolver.find_nearest(28.05, -16.55)
        assert nearest.station_id == "X"
        assert not nearest.is_high_altitude_fallback

    def test_deterministic(self, resolver):
        assert resolver.find_nearest(28.2, -16.6) == resolver.find_nearest(28.2, -16.6)

    def test_high_altitude_within_ratio(self):
        catalog = StationCatalog([
            make_station("REG", north_of(28.0, -20), -16.5),
            make_station("HIGH", north_of(28.0, 50), -16.5, high=True),
        ])
        nearest = StationResolver(catalog).find_nearest(28.0, -16.5, force_high_altitude=True)
        assert nearest.station_id == "HIGH"
        assert not nearest.is_high_altitude_fallback

    def test_fallback_when_high_altitude_too_far(self):
        """130 km vs 20 km: more than 3x and regular within 40 km."""
        catalog = StationCatalog([
            make_station("REG", north_of(28.0, -20), -16.5),
            make_station("HIGH", north_of(28.0, 130), -16.5, high=True),
        ])
        nearest = StationResolver(catalog).find_nearest(28.0, -16.5, force_high_altitude=True)
        assert nearest.station_id == "REG"
        assert nearest.is_high_altitude_fallback

    def test_no_fallback_when_regular_beyond_40_km(self):
        catalog = StationCatalog([
            make_station("REG", north_of(28.0, -45), -16.5),
            make_station("HIGH", north_of(28.0, 200), -16.5, high=True),
        ])
        nearest = StationResolver(catalog).find_nearest(28.0, -16.5, force_high_altitude=True)
        assert nearest.station_id == "HIGH"

    def test_only_high_altitude_catalogued(self):
        catalog = StationCatalog([make_station("Y", 28.3, -16.9, high=True)])
        resolver = StationResolver(catalog)
        assert resolver.find_nearest(27.0, -15.0, force_high_altitude=True).station_id == "Y"
        # No regular station to prefer, so the default query also lands on Y
        assert resolver.find_nearest(27.0, -15.0).station_id == "Y"

    def test_force_without_high_altitude_uses_regular_with_flag(self):
        catalog = StationCatalog([make_station("REG", 28.0, -16.5)])
        nearest = StationResolver(catalog).find_nearest(28.1, -16.5, force_high_altitude=True)
        assert nearest.station_id == "REG"
        assert nearest.is_high_altitude_fallback

    def test_include_high_altitude_picks_closer(self, resolver):
        nearest = resolver.find_nearest(28.3, -16.9, exclude_high_altitude=False)
        assert nearest.station_id == "Y"

    def test_include_high_altitude_tie_goes_to_high_altitude(self):
        catalog = StationCatalog([
            make_station("REG", 28.2, -16.5),
            make_station("HIGH", 28.2, -16.5, altitude=2300, high=True),
        ])
        nearest = StationResolver(catalog).find_nearest(28.0, -16.5, exclude_high_altitude=False)
        assert nearest.station_id == "HIGH"
        assert not nearest.is_high_altitude_fallback

    def test_empty_catalog(self):
        assert StationResolver(StationCatalog([])).find_nearest(28.0, -16.0) is None


class TestFindNearestStations:
    def test_sorted_and_excludes_high_altitude(self, resolver):
        nearby = resolver.find_nearest_stations(28.3, -16.9)
        assert [n.station_id for n in nearby] == ["X", "N1"]
        assert nearby[0].distance_km <= nearby[1].distance_km

    def test_count_limits_result(self, resolver):
        assert len(resolver.find_nearest_stations(28.0, -16.5, count=1)) == 1

    def test_ties_keep_catalog_order(self):
        catalog = StationCatalog([
            make_station("B", 28.1, -16.5),
            make_station("A", 28.1, -16.5),
        ])
        nearby = StationResolver(catalog).find_nearest_stations(28.0, -16.5)
        assert [n.station_id for n in nearby] == ["B", "A"]


class TestFindByAlias:
    def test_exact_case_insensitive(self, resolver):
        assert resolver.find_by_alias("  los cristianos ") == "X"

    def test_substring_either_direction(self, resolver):
        assert resolver.find_by_alias("Laguna") == "N1"
        assert resolver.find_by_alias("Hotel in Santa Cruz centre") == "N1"

    def test_exact_beats_earlier_substring(self):
        catalog = StationCatalog([
            make_station("FIRST", 28.0, -16.5, aliases=("Puerto de la Cruz Norte",)),
            make_station("SECOND", 28.1, -16.5, aliases=("Puerto de la Cruz",)),
        ])
        assert StationResolver(catalog).find_by_alias("puerto de la cruz") == "SECOND"

    def test_no_match_and_blank(self, resolver):
        assert resolver.find_by_alias("Reykjavik") is None
        assert resolver.find_by_alias("   ") is None
