"""
Angular separation tests on the simulated backend.
"""

import math
import unittest

from hypothesis import given, settings, strategies as st

from config.pipeline import LongitudeConvention, PipelineConfig
from services.fhe import FheSession
from services.geo import CircuitBudget, DeltaEngine, FixedPointCodec, GeoPoint

SCALE = 10**6
WIDTH = 64


class TestAbsDiff(unittest.TestCase):

    def setUp(self):
        self.session = FheSession("simulated", WIDTH)

    def tearDown(self):
        self.session.close()

    @settings(max_examples=100, deadline=None)
    @given(st.integers(0, 2**40), st.integers(0, 2**40))
    def test_matches_absolute_difference(self, p, q):
        diff = DeltaEngine.abs_diff(self.session.encrypt(p), self.session.encrypt(q))
        self.assertEqual(self.session.decrypt(diff), abs(p - q))

    def test_symmetric(self):
        a, b = self.session.encrypt(1234), self.session.encrypt(98765)
        self.assertEqual(
            self.session.decrypt(DeltaEngine.abs_diff(a, b)),
            self.session.decrypt(DeltaEngine.abs_diff(b, a)),
        )

    def test_equal_inputs(self):
        a = self.session.encrypt(42)
        self.assertEqual(self.session.decrypt(DeltaEngine.abs_diff(a, a)), 0)


class TestLongitudeFolding(unittest.TestCase):

    def _deltas(self, codec, fold, a, b):
        engine = DeltaEngine(codec, fold_antimeridian=fold)
        with FheSession("simulated", WIDTH) as session:
            dlat, dlon = engine.deltas(codec.encrypt(a, session), codec.encrypt(b, session))
            return session.decrypt(dlat), session.decrypt(dlon)

    def test_antimeridian_is_short_in_both_conventions(self):
        a = GeoPoint("east", 0.0, 179.0)
        b = GeoPoint("west", 0.0, -179.0)
        for convention in LongitudeConvention:
            codec = FixedPointCodec(SCALE, WIDTH, convention)
            _, dlon = self._deltas(codec, True, a, b)
            self.assertAlmostEqual(dlon / SCALE, math.radians(2.0), delta=3.0 / SCALE)

    def test_unfolded_keeps_direct_difference(self):
        codec = FixedPointCodec(SCALE, WIDTH, LongitudeConvention.SIGNED_180)
        a = GeoPoint("east", 0.0, 179.0)
        b = GeoPoint("west", 0.0, -179.0)
        _, dlon = self._deltas(codec, False, a, b)
        self.assertAlmostEqual(dlon / SCALE, math.radians(358.0), delta=3.0 / SCALE)

    def test_latitude_delta(self):
        codec = FixedPointCodec(SCALE, WIDTH)
        dlat, _ = self._deltas(codec, True, GeoPoint("s", -30.0, 0.0), GeoPoint("n", 30.0, 0.0))
        self.assertAlmostEqual(dlat / SCALE, math.radians(60.0), delta=3.0 / SCALE)

    def test_deltas_reach_pi_scale(self):
        codec = FixedPointCodec(SCALE, WIDTH)
        bound = CircuitBudget().delta_bound(PipelineConfig(scale=SCALE, width=WIDTH))

        south, north = GeoPoint("s", -90.0, 0.0), GeoPoint("n", 90.0, 180.0)
        dlat, dlon = self._deltas(codec, True, south, north)
        for delta in (dlat, dlon):
            self.assertAlmostEqual(delta / SCALE, math.pi, delta=3.0 / SCALE)
            self.assertGreater(delta, SCALE // 2)
            self.assertLessEqual(delta, bound)

    @settings(max_examples=60, deadline=None)
    @given(
        st.floats(-180.0, 180.0, allow_nan=False),
        st.floats(-180.0, 180.0, allow_nan=False),
        st.sampled_from(list(LongitudeConvention)),
    )
    def test_folded_is_shorter_arc(self, lon_a, lon_b, convention):
        codec = FixedPointCodec(SCALE, WIDTH, convention)
        a, b = GeoPoint("a", 10.0, lon_a), GeoPoint("b", 20.0, lon_b)
        _, dlon = self._deltas(codec, True, a, b)

        direct = abs(codec.encode(a).lon - codec.encode(b).lon)
        self.assertEqual(dlon, min(direct, codec.full_turn - direct))
        self.assertLessEqual(dlon, codec.half_turn)


if __name__ == '__main__':
    unittest.main()
