"""
Plaintext reference distances for differential testing.

Verification only: it sees coordinates in the clear and is never part of
the encrypted path.
"""

from typing import Tuple

import numpy as np

from .codec import GeoPoint
from .haversine import EARTH_RADIUS_KM


def _radians(p: GeoPoint, q: GeoPoint) -> Tuple[float, float, float]:
    lat1, lat2 = np.radians([p.latitude, q.latitude])
    # Shortest signed longitude difference in (-pi, pi]
    dlon = np.radians((q.longitude - p.longitude + 180.0) % 360.0 - 180.0)
    return lat1, lat2, dlon


class PlaintextOracle:
    """Exact haversine, the small-angle approximation and the clear a term."""

    def __init__(self, earth_radius_km: float = EARTH_RADIUS_KM):
        self.earth_radius_km = earth_radius_km

    def a_term(self, p: GeoPoint, q: GeoPoint) -> float:
        lat1, lat2, dlon = _radians(p, q)
        return float(
            np.sin((lat2 - lat1) / 2) ** 2
            + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
        )

    def haversine_km(self, p: GeoPoint, q: GeoPoint) -> float:
        a = min(max(self.a_term(p, q), 0.0), 1.0)
        return float(2 * self.earth_radius_km * np.arcsin(np.sqrt(a)))

    def small_angle_km(self, p: GeoPoint, q: GeoPoint) -> float:
        """Equirectangular distance with the mean latitude's cosine."""
        lat1, lat2, dlon = _radians(p, q)
        x = dlon * np.cos((lat1 + lat2) / 2)
        y = lat2 - lat1
        return float(self.earth_radius_km * np.hypot(x, y))

    def expected_closer(self, x: GeoPoint, y: GeoPoint, z: GeoPoint) -> bool:
        """True when x is strictly closer to z than y is."""
        return self.haversine_km(x, z) < self.haversine_km(y, z)
