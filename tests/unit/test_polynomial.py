"""
Integer series tests: coefficients, accuracy against math.sin and arcsin,
and agreement between the plain-integer and ciphertext evaluations.
"""

import math
import unittest
from fractions import Fraction

from hypothesis import given, settings, strategies as st

from services.fhe import FheSession
from services.geo import (
    ARCSIN_COEFFICIENTS,
    SIN2_HALF_DIVISORS,
    PolynomialApproximator,
    series_error_bound,
    series_peak,
)
from services.geo.budget import SERIES_DEPTH

SCALE = 10**12
PI_UNITS = round(math.pi * SCALE)


class TestCoefficients(unittest.TestCase):

    def test_sin2_half_divisors(self):
        for k, divisor in enumerate(SIN2_HALF_DIVISORS, start=1):
            self.assertEqual(divisor, 2 * math.factorial(2 * k))

    def test_arcsin_coefficients(self):
        for k, (numerator, denominator) in enumerate(ARCSIN_COEFFICIENTS):
            expected = Fraction(
                math.factorial(2 * k),
                4**k * math.factorial(k) ** 2 * (2 * k + 1),
            )
            self.assertEqual(Fraction(numerator, denominator), expected)

    def test_error_bound_at_degree_five(self):
        self.assertAlmostEqual(series_error_bound(5, 10**14), 9.648e-4, delta=1e-7)

    def test_error_bound_shrinks_with_degree(self):
        bounds = [series_error_bound(n, SCALE) for n in range(1, 6)]
        self.assertEqual(bounds, sorted(bounds, reverse=True))


class TestSeriesAccuracy(unittest.TestCase):

    @settings(max_examples=150, deadline=None)
    @given(st.integers(1, 5), st.integers(0, PI_UNITS))
    def test_within_error_bound(self, degree, x):
        approx = PolynomialApproximator(SCALE, degree)
        value = approx.evaluate(x)
        exact = math.sin(x / SCALE / 2) ** 2

        self.assertGreaterEqual(value, 0)
        self.assertLessEqual(abs(value / SCALE - exact), series_error_bound(degree, SCALE))
        self.assertLessEqual(value, series_peak(degree, SCALE))

    def test_small_angle_is_nearly_exact(self):
        approx = PolynomialApproximator(SCALE, 5)
        x = round(math.radians(1.0) * SCALE)
        self.assertAlmostEqual(approx.evaluate(x) / SCALE, math.sin(x / SCALE / 2) ** 2, delta=1e-11)

    def test_zero(self):
        for degree in range(1, 6):
            self.assertEqual(PolynomialApproximator(SCALE, degree).evaluate(0), 0)

    def test_products_follow_degree(self):
        for degree in range(1, 6):
            raw = PolynomialApproximator(SCALE, degree).products(PI_UNITS)
            self.assertEqual(sorted(raw), [2 * k for k in range(1, degree + 1)])

    def test_invalid_degree(self):
        for degree in (0, 6):
            with self.assertRaises(ValueError):
                PolynomialApproximator(SCALE, degree)
        for terms in (0, 6):
            with self.assertRaises(ValueError):
                PolynomialApproximator(SCALE, 5, arcsin_terms=terms)


class TestCiphertextEvaluation(unittest.TestCase):

    def setUp(self):
        self.session = FheSession("simulated", 128)

    def tearDown(self):
        self.session.close()

    def test_matches_plain_integers(self):
        for degree in range(1, 6):
            approx = PolynomialApproximator(SCALE, degree)
            for x in (0, 1, SCALE // 3, PI_UNITS // 2, PI_UNITS):
                encrypted = approx.evaluate(self.session.encrypt(x))
                self.assertEqual(self.session.decrypt(encrypted), approx.evaluate(x))

    def test_depth_per_degree(self):
        for degree, depth in SERIES_DEPTH.items():
            approx = PolynomialApproximator(SCALE, degree)
            result = approx.evaluate(self.session.encrypt(PI_UNITS))
            self.assertEqual(result.depth, depth)

    def test_arcsin_matches_plain_integers(self):
        approx = PolynomialApproximator(SCALE, 5)
        a = SCALE // 5
        s = math.isqrt(a * SCALE)
        encrypted = approx.arcsin(self.session.encrypt(s), self.session.encrypt(a))
        self.assertEqual(self.session.decrypt(encrypted), approx.arcsin(s, a))


class TestArcsin(unittest.TestCase):

    @settings(max_examples=100, deadline=None)
    @given(st.floats(0.0, 0.25, allow_nan=False))
    def test_close_to_math_asin(self, a_float):
        approx = PolynomialApproximator(SCALE, 5, arcsin_terms=5)
        a = round(a_float * SCALE)
        s = math.isqrt(a * SCALE)
        angle = approx.arcsin(s, a) / SCALE
        self.assertAlmostEqual(angle, math.asin(math.sqrt(a / SCALE)), delta=1e-4)

    def test_single_term_is_identity(self):
        approx = PolynomialApproximator(SCALE, 5, arcsin_terms=1)
        self.assertEqual(approx.arcsin(123456, 999), 123456)

    def test_more_terms_are_more_accurate(self):
        a = SCALE // 4
        s = math.isqrt(a * SCALE)
        errors = [
            abs(PolynomialApproximator(SCALE, 5, terms).arcsin(s, a) / SCALE - math.pi / 6)
            for terms in range(1, 6)
        ]
        self.assertEqual(errors, sorted(errors, reverse=True))


if __name__ == '__main__':
    unittest.main()
