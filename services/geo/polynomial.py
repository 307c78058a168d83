"""
Truncated Series on Fixed-Point Integers

Evaluates the two series the proximity circuit needs with multiply,
divide-by-public-constant, add and subtract only:

    sin^2(x/2)    = x^2/4 - x^4/48 + x^6/1440 - x^8/80640 + x^10/7257600 - ...
    arcsin(s)     = s + s^3/6 + 3 s^5/40 + 5 s^7/112 + 35 s^9/1152 + ...

The k-th sin^2(x/2) divisor is 2 * (2k)!.

Key Features:
- Shared power ladder: x^2, x^4 = x^2 * x^2, x^6 = x^4 * x^2,
  x^8 = x^4 * x^4, x^10 = x^8 * x^2; multiplicative depth 4 at degree 5
- Only the powers the configured degree needs are built
- Each term is one product divided once by (divisor * M), so every term is
  floored exactly once
- Positive terms are summed first and the negative terms subtracted once;
  on [0, pi] each negative term is no larger than the positive term before
  it, so the unsigned result never wraps

The same code runs on EncryptedUInt and on plain int, which is how
CircuitBudget sweeps the integer arithmetic in the clear.

Example:
    ```python
    approx = PolynomialApproximator(scale=10**6, degree=5)
    approx.evaluate(round(math.pi / 3 * 10**6))   # ~ 0.25 * 10**6
    ```
"""

import logging
import math
from typing import Dict, Tuple, Union

from config.pipeline import MAX_ARCSIN_TERMS, MAX_SERIES_DEGREE
from services.fhe.session import EncryptedUInt

logger = logging.getLogger(__name__)

Number = Union[EncryptedUInt, int]

SIN2_HALF_DIVISORS: Tuple[int, ...] = (4, 48, 1440, 80640, 7257600)

# (numerator, denominator) of the s^(2k+1) coefficient of arcsin(s)
ARCSIN_COEFFICIENTS: Tuple[Tuple[int, int], ...] = (
    (1, 1),
    (1, 6),
    (3, 40),
    (5, 112),
    (35, 1152),
)


def series_error_bound(degree: int, scale: int) -> float:
    """
    Absolute error bound of the integer sin^2(x/2) series on [0, pi].

    The alternating terms decrease in magnitude at x = pi, so truncation
    error is at most the first omitted term; flooring adds under two units
    of 1/M per term.
    """
    omitted = 2 * (degree + 1)
    truncation = math.pi ** omitted / (2 * math.factorial(omitted))
    return truncation + (2 * degree + 2) / scale


def series_peak(degree: int, scale: int) -> int:
    """Upper bound of the integer sin^2(x/2) series on [0, pi * M]."""
    x = math.pi + 1.0 / scale
    positive = sum(
        x ** (2 * k) / SIN2_HALF_DIVISORS[k - 1]
        for k in range(1, degree + 1, 2)
    )
    return math.ceil(positive * scale) + 1


class PolynomialApproximator:
    """
    Integer evaluation of sin^2(x/2) and arcsin(sqrt(a)) at scale M.

    Inputs and outputs are fixed-point integers at the shared scale.
    """

    def __init__(self, scale: int, degree: int = MAX_SERIES_DEGREE, arcsin_terms: int = MAX_ARCSIN_TERMS):
        if not 1 <= degree <= MAX_SERIES_DEGREE:
            raise ValueError(f"Series degree must be between 1 and {MAX_SERIES_DEGREE}")
        if not 1 <= arcsin_terms <= MAX_ARCSIN_TERMS:
            raise ValueError(f"Arcsin terms must be between 1 and {MAX_ARCSIN_TERMS}")
        self.scale = scale
        self.degree = degree
        self.arcsin_terms = arcsin_terms

    def products(self, x: Number) -> Dict[int, Number]:
        """
        Unrescaled products of the power ladder, keyed by exponent.

        products[2k] is x^2k at scale M^2; the rescaled powers feeding later
        rungs are x^2, x^4 and x^8 at scale M.
        """
        m = self.scale
        n = self.degree
        raw = {2: x * x}
        if n >= 2:
            x2 = raw[2] // m
            raw[4] = x2 * x2
            if n >= 3:
                x4 = raw[4] // m
                raw[6] = x4 * x2
                if n >= 4:
                    raw[8] = x4 * x4
                    if n >= 5:
                        x8 = raw[8] // m
                        raw[10] = x8 * x2
        return raw

    def terms(self, x: Number) -> Tuple[Number, ...]:
        """Magnitudes of the series terms at scale M, lowest power first."""
        raw = self.products(x)
        return tuple(
            raw[2 * k] // (SIN2_HALF_DIVISORS[k - 1] * self.scale)
            for k in range(1, self.degree + 1)
        )

    def evaluate(self, x: Number) -> Number:
        """sin^2(x/2) at scale M for x in [0, pi * M]."""
        terms = self.terms(x)
        positive = terms[0]
        for term in terms[2::2]:
            positive = positive + term
        if len(terms) == 1:
            return positive
        negative = terms[1]
        for term in terms[3::2]:
            negative = negative + term
        return positive - negative

    def arcsin(self, s: Number, a: Number) -> Number:
        """
        arcsin(s) at scale M, given s = sqrt(a) and a, both at scale M.

        Odd powers of s are formed as s * a^k, so no power of s beyond the
        first is ever needed.
        """
        m = self.scale
        a_powers = [a]
        if self.arcsin_terms >= 3:
            a_powers.append(a * a // m)
        if self.arcsin_terms >= 4:
            a_powers.append(a_powers[1] * a // m)
        if self.arcsin_terms >= 5:
            a_powers.append(a_powers[1] * a_powers[1] // m)

        total = s
        for k in range(1, self.arcsin_terms):
            numerator, denominator = ARCSIN_COEFFICIENTS[k]
            total = total + (s * a_powers[k - 1] * numerator) // (denominator * m)
        return total
