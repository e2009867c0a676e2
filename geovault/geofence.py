"""
Geofence computations: great-circle distance and trusted zone membership.
"""

import math
from typing import Iterable, Optional, Tuple

from . import config
from .models import Coordinate, TrustedZone


class GeofenceEngine:
    """Pure geometric checks against trusted zones."""

    def __init__(self, earth_radius: float = config.EARTH_RADIUS_METERS):
        self.earth_radius = earth_radius

    def distance(self, a: Coordinate, b: Coordinate) -> float:
        """
        Great-circle distance in meters using the haversine formula.

        The haversine term is clamped to [0, 1] so floating-point overshoot
        near antipodal points cannot produce NaN.
        """
        phi1 = math.radians(a.latitude)
        phi2 = math.radians(b.latitude)
        d_phi = math.radians(b.latitude - a.latitude)
        d_lambda = math.radians(b.longitude - a.longitude)

        h = (math.sin(d_phi / 2) ** 2
             + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
        h = min(1.0, max(0.0, h))
        return 2 * self.earth_radius * math.asin(math.sqrt(h))

    def is_within_zone(self, point: Coordinate, zone: TrustedZone) -> bool:
        """Boundary inclusive."""
        return self.distance(point, zone.center) <= zone.radius_meters

    def is_within_any_zone(self, point: Coordinate, zones: Iterable[TrustedZone]) -> bool:
        return any(self.is_within_zone(point, zone) for zone in zones)

    def nearest_zone(self, point: Coordinate, zones: Iterable[TrustedZone]) -> Optional[Tuple[TrustedZone, float]]:
        """Return the closest zone and its center distance, or None without zones."""
        best = None
        for zone in zones:
            d = self.distance(point, zone.center)
            if best is None or d < best[1]:
                best = (zone, d)
        return best
