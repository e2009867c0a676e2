"""
Tests for GeofenceEngine distance and zone membership.
"""
import math

import pytest

from geovault.geofence import GeofenceEngine
from geovault.models import Coordinate, TrustedZone

from conftest import NORTH_OF_ZONE, TIMES_SQUARE


@pytest.fixture
def engine():
    return GeofenceEngine()


def _zone(center, radius, zone_id="z"):
    return TrustedZone(id=zone_id, name=zone_id, center=center, radius_meters=radius)


class TestDistance:
    """Tests for the haversine distance."""

    def test_same_point_is_zero(self, engine):
        assert engine.distance(TIMES_SQUARE, TIMES_SQUARE) == 0

    def test_symmetric(self, engine):
        a = Coordinate(51.5007, -0.1246)
        b = Coordinate(48.8584, 2.2945)
        assert engine.distance(a, b) == pytest.approx(engine.distance(b, a))

    def test_known_distance(self, engine):
        """London to Paris is roughly 340 km."""
        d = engine.distance(Coordinate(51.5007, -0.1246), Coordinate(48.8584, 2.2945))
        assert 330_000 < d < 350_000

    def test_scenario_offset_is_about_a_kilometer(self, engine):
        d = engine.distance(TIMES_SQUARE, NORTH_OF_ZONE)
        assert d == pytest.approx(1056, abs=10)

    def test_antipodal_points(self, engine):
        """Half the circumference, without NaN."""
        d = engine.distance(Coordinate(0, 0), Coordinate(0, 180))
        assert not math.isnan(d)
        assert d == pytest.approx(math.pi * 6_371_000, rel=1e-9)
        assert d == pytest.approx(20_015_000, abs=1_000)

    def test_pole_to_pole(self, engine):
        d = engine.distance(Coordinate(90, 0), Coordinate(-90, 45))
        assert not math.isnan(d)
        assert d == pytest.approx(math.pi * 6_371_000, rel=1e-9)

    def test_near_antipodal_does_not_overshoot(self, engine):
        d = engine.distance(Coordinate(45, 10), Coordinate(-45, -170))
        assert not math.isnan(d)
        assert d <= math.pi * 6_371_000 + 1e-6


class TestZoneMembership:
    """Tests for is_within_zone and is_within_any_zone."""

    def test_center_is_inside(self, engine):
        assert engine.is_within_zone(TIMES_SQUARE, _zone(TIMES_SQUARE, 100))

    def test_boundary_is_inclusive(self, engine):
        point = Coordinate(40.7590, -73.9855)
        exact = engine.distance(point, TIMES_SQUARE)
        assert engine.is_within_zone(point, _zone(TIMES_SQUARE, exact))

    def test_just_beyond_boundary(self, engine):
        point = Coordinate(40.7590, -73.9855)
        exact = engine.distance(point, TIMES_SQUARE)
        assert not engine.is_within_zone(point, _zone(TIMES_SQUARE, exact - 0.01))

    def test_any_zone_is_logical_or(self, engine):
        far = _zone(Coordinate(10, 10), 100, "far")
        near = _zone(TIMES_SQUARE, 100, "near")
        assert engine.is_within_any_zone(TIMES_SQUARE, [far, near])
        assert engine.is_within_any_zone(TIMES_SQUARE, [near, far])

    def test_outside_every_zone(self, engine):
        zones = [_zone(TIMES_SQUARE, 100), _zone(Coordinate(10, 10), 5000, "far")]
        assert not engine.is_within_any_zone(NORTH_OF_ZONE, zones)

    def test_no_zones(self, engine):
        assert not engine.is_within_any_zone(TIMES_SQUARE, [])


class TestNearestZone:
    """Tests for nearest_zone reporting."""

    def test_returns_closest(self, engine):
        near = _zone(NORTH_OF_ZONE, 100, "near")
        far = _zone(Coordinate(10, 10), 100, "far")
        zone, d = engine.nearest_zone(TIMES_SQUARE, [far, near])
        assert zone is near
        assert d == pytest.approx(engine.distance(TIMES_SQUARE, NORTH_OF_ZONE))

    def test_none_without_zones(self, engine):
        assert engine.nearest_zone(TIMES_SQUARE, []) is None
