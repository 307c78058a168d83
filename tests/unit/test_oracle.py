"""
Plaintext reference distances.
"""

import math
import unittest

from services.geo import GeoPoint, PlaintextOracle

BASEL = GeoPoint("Basel", 47.5596, 7.5886)
LUGANO = GeoPoint("Lugano", 46.0037, 8.9511)
ZURICH = GeoPoint("Zurich", 47.3769, 8.5417)
TOKYO = GeoPoint("Tokyo", 35.6762, 139.6503)
NEW_YORK = GeoPoint("NewYork", 40.7128, -74.0060)
LONDON = GeoPoint("London", 51.5074, -0.1278)
HAWAII = GeoPoint("Hawaii", 21.3069, -157.8583)
DATELINE = GeoPoint("Dateline", 0.0, 180.0)


class TestPlaintextOracle(unittest.TestCase):

    def setUp(self):
        self.oracle = PlaintextOracle()

    def test_known_distances(self):
        self.assertAlmostEqual(self.oracle.haversine_km(BASEL, ZURICH), 74.47, delta=0.5)
        self.assertAlmostEqual(self.oracle.haversine_km(LUGANO, ZURICH), 155.85, delta=0.5)
        self.assertAlmostEqual(self.oracle.haversine_km(NEW_YORK, LONDON), 5570.0, delta=15.0)

    def test_a_terms(self):
        self.assertAlmostEqual(self.oracle.a_term(TOKYO, LONDON), 0.4645, delta=2e-3)
        self.assertAlmostEqual(self.oracle.a_term(NEW_YORK, LONDON), 0.1791, delta=2e-3)
        self.assertAlmostEqual(self.oracle.a_term(TOKYO, DATELINE), 0.1906, delta=2e-3)
        self.assertAlmostEqual(self.oracle.a_term(HAWAII, DATELINE), 0.0685, delta=2e-3)

    def test_symmetric(self):
        self.assertAlmostEqual(
            self.oracle.haversine_km(TOKYO, HAWAII),
            self.oracle.haversine_km(HAWAII, TOKYO),
        )

    def test_longitude_wraps(self):
        east = GeoPoint("east", 0.0, 179.5)
        west = GeoPoint("west", 0.0, -179.5)
        expected = 2 * 6371 * math.asin(math.sin(math.radians(0.5)))
        self.assertAlmostEqual(self.oracle.haversine_km(east, west), expected, places=6)

    def test_antipodes(self):
        north = GeoPoint("n", 90.0, 0.0)
        south = GeoPoint("s", -90.0, 0.0)
        self.assertAlmostEqual(self.oracle.haversine_km(north, south), math.pi * 6371, places=6)

    def test_small_angle_close_for_short_distances(self):
        exact = self.oracle.haversine_km(BASEL, ZURICH)
        approx = self.oracle.small_angle_km(BASEL, ZURICH)
        self.assertAlmostEqual(approx, exact, delta=0.1)

    def test_expected_closer(self):
        self.assertTrue(self.oracle.expected_closer(BASEL, LUGANO, ZURICH))
        self.assertFalse(self.oracle.expected_closer(TOKYO, NEW_YORK, LONDON))
        self.assertFalse(self.oracle.expected_closer(TOKYO, HAWAII, DATELINE))

    def test_ties_are_not_closer(self):
        self.assertFalse(self.oracle.expected_closer(BASEL, BASEL, ZURICH))

    def test_custom_radius(self):
        unit = PlaintextOracle(earth_radius_km=1)
        self.assertAlmostEqual(
            unit.haversine_km(BASEL, ZURICH) * 6371,
            self.oracle.haversine_km(BASEL, ZURICH),
        )


if __name__ == '__main__':
    unittest.main()
