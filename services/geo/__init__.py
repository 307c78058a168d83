"""
Encrypted Geo-Proximity Circuit

Decides which of two candidate points is closer to a reference point while
the computing party sees ciphertexts only.

Components:
- FixedPointCodec: degrees to scaled unsigned integers, sine/cosine in the clear
- DeltaEngine: wraparound-correct unsigned angular separations
- PolynomialApproximator: sin^2(x/2) and arcsin series on fixed-point integers
- HaversineTermCombiner: the monotonic closeness term a (and the distance)
- ProximityComparator: one encrypted less-than per request
- PlaintextOracle: clear reference distances, verification only
- CircuitBudget: bit-width and depth analysis per configuration
- ProximityPipeline: the whole request, with stage timings

Usage:
    from services.geo import GeoPoint, ProximityPipeline
    report = ProximityPipeline().compare(x, y, z)
"""

from .codec import (
    GeoPoint,
    PlainEncoding,
    EncodedPoint,
    FixedPointCodec,
)

from .delta import DeltaEngine

from .polynomial import (
    PolynomialApproximator,
    SIN2_HALF_DIVISORS,
    ARCSIN_COEFFICIENTS,
    series_error_bound,
    series_peak,
)

from .haversine import (
    HaversineTermCombiner,
    EARTH_RADIUS_KM,
)

from .comparator import (
    ProximityComparator,
    ComparisonResult,
)

from .oracle import PlaintextOracle

from .budget import (
    CircuitBudget,
    CircuitBounds,
    SeriesDomainReport,
)

from .pipeline import (
    ProximityPipeline,
    ComparisonReport,
    StageTiming,
    Baseline,
)

__all__ = [
    # Codec
    "GeoPoint",
    "PlainEncoding",
    "EncodedPoint",
    "FixedPointCodec",
    # Circuit
    "DeltaEngine",
    "PolynomialApproximator",
    "SIN2_HALF_DIVISORS",
    "ARCSIN_COEFFICIENTS",
    "series_error_bound",
    "series_peak",
    "HaversineTermCombiner",
    "EARTH_RADIUS_KM",
    "ProximityComparator",
    "ComparisonResult",
    # Verification
    "PlaintextOracle",
    "CircuitBudget",
    "CircuitBounds",
    "SeriesDomainReport",
    # Pipeline
    "ProximityPipeline",
    "ComparisonReport",
    "StageTiming",
    "Baseline",
]
