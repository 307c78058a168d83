"""
Circuit Budget Analysis

Static bounds for the proximity circuit under a given configuration, checked
before any key is generated.

Key Features:
- Largest intermediate value of every stage (delta squares, power ladder,
  cosine product, square root and arcsin powers) and the bits it needs
- Multiplicative depth of the deepest path, matching the depth the session
  tracks at run time
- Clear sweep of the integer sin^2(x/2) series over the whole delta domain:
  no unsigned wrap, and error within the documented bound

The trade-off it checks: M must be small enough that the largest product
fits the ciphertext width, yet large enough that rounding stays below the
smallest distance difference the comparison must resolve.

References:
- TFHE integer bit widths: https://docs.zama.ai/tfhe-rs
- Concrete bit-width analysis: https://docs.zama.ai/concrete
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from config.pipeline import CompareMode, PipelineConfig
from services.errors import EncodingOverflow
from .codec import FixedPointCodec
from .haversine import HaversineTermCombiner
from .delta import DeltaEngine
from .polynomial import ARCSIN_COEFFICIENTS, PolynomialApproximator, series_error_bound, series_peak

logger = logging.getLogger(__name__)

# Multiplicative depth of the sin^2(x/2) ladder, by series degree
SERIES_DEPTH = {1: 1, 2: 2, 3: 3, 4: 3, 5: 4}


@dataclass
class CircuitBounds:
    """Static bounds of one circuit configuration."""
    width: int
    scale: int
    delta_bound: int
    a_bound: int
    max_intermediate: int
    max_depth: int
    series_error_bound: float

    @property
    def required_bits(self) -> int:
        return self.max_intermediate.bit_length()

    @property
    def headroom_bits(self) -> int:
        return self.width - self.required_bits

    @property
    def resolution(self) -> float:
        """Smallest representable step of a fixed-point value."""
        return 1.0 / self.scale

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "scale": self.scale,
            "required_bits": self.required_bits,
            "headroom_bits": self.headroom_bits,
            "max_depth": self.max_depth,
            "resolution": self.resolution,
            "series_error_bound": self.series_error_bound,
        }


@dataclass
class SeriesDomainReport:
    """Outcome of the clear series sweep."""
    samples: int
    delta_bound: int
    max_error: float
    error_bound: float
    min_margin: int

    @property
    def within_bound(self) -> bool:
        return self.max_error <= self.error_bound


class CircuitBudget:
    """
    Bit-width and depth analysis for PipelineConfig.

    Example:
        ```python
        bounds = CircuitBudget().analyse(PipelineConfig())
        print(f"{bounds.required_bits} of {bounds.width} bits, depth {bounds.max_depth}")
        ```
    """

    def delta_bound(self, config: PipelineConfig) -> int:
        codec = FixedPointCodec(config.scale, config.width, config.longitude_convention)
        if config.fold_antimeridian:
            return max(codec.lat_bound, codec.half_turn)
        return max(codec.lat_bound, codec.lon_bound)

    def analyse(self, config: PipelineConfig) -> CircuitBounds:
        """
        Bound every intermediate of the circuit.

        Raises:
            EncodingOverflow: if the largest intermediate needs more bits
                than the configured width
        """
        m = config.scale
        n = config.series_degree
        codec = FixedPointCodec(config.scale, config.width, config.longitude_convention)
        approximator = PolynomialApproximator(m, n, config.arcsin_terms)
        combiner = HaversineTermCombiner(
            DeltaEngine(codec, config.fold_antimeridian), approximator, config.earth_radius_km
        )

        delta = self.delta_bound(config)
        candidates = [codec.full_turn]

        # Power ladder: the largest product of each rung
        products = approximator.products(delta)
        candidates.extend(products.values())
        sin2_peak = series_peak(n, m)

        # Cosine product and the weighted longitude term
        candidates.append(m * m)
        candidates.append(m * sin2_peak)
        a_bound = combiner.a_bound
        candidates.append(a_bound)

        depth = SERIES_DEPTH[n] + 1

        if config.compare_mode == CompareMode.FULL_DISTANCE:
            radicand = a_bound * m
            candidates.append(radicand)
            root_bound = (1 << combiner.sqrt_bits) - 1
            candidates.append(root_bound * root_bound)

            a_powers = [a_bound, a_bound * a_bound // m]
            a_powers.append(a_powers[1] * a_bound // m)
            a_powers.append(a_powers[1] * a_powers[1] // m)
            candidates.append(a_bound * a_bound)
            candidates.append(a_powers[1] * a_powers[1])

            angle = root_bound
            for k in range(1, config.arcsin_terms):
                numerator, denominator = ARCSIN_COEFFICIENTS[k]
                product = root_bound * a_powers[k - 1] * numerator
                candidates.append(product)
                angle += product // (denominator * m)
            candidates.append(angle * 2 * config.earth_radius_km)

            depth = self._distance_depth(depth, combiner.sqrt_bits, config.arcsin_terms)

        bounds = CircuitBounds(
            width=config.width,
            scale=m,
            delta_bound=delta,
            a_bound=a_bound,
            max_intermediate=max(candidates),
            max_depth=depth,
            series_error_bound=series_error_bound(n, m),
        )

        if bounds.required_bits > config.width:
            raise EncodingOverflow(
                f"Circuit needs {bounds.required_bits} bits at scale {m} "
                f"(degree {n}, {config.compare_mode.value}); width is {config.width}"
            )

        logger.debug(f"Circuit bounds: {bounds.to_dict()}")
        return bounds

    @staticmethod
    def _distance_depth(a_depth: int, sqrt_bits: int, arcsin_terms: int) -> int:
        # Each square-root iteration squares the previous root
        root_depth = a_depth + max(sqrt_bits - 1, 0)
        power_depths = [a_depth, a_depth + 1, a_depth + 2, a_depth + 2]
        depth = root_depth
        for k in range(1, arcsin_terms):
            depth = max(depth, max(root_depth, power_depths[k - 1]) + 1)
        return depth

    def verify_series_domain(self, config: PipelineConfig, samples: int = 2049) -> SeriesDomainReport:
        """
        Evaluate the integer series in the clear across [0, delta bound].

        Raises:
            EncodingOverflow: if a subtraction of negative terms would wrap
        """
        m = config.scale
        approximator = PolynomialApproximator(m, config.series_degree)
        delta = self.delta_bound(config)

        points = {int(v) for v in np.linspace(0, delta, samples).round()}
        points.add(delta)

        max_error = 0.0
        min_margin = None
        for x in sorted(points):
            terms = approximator.terms(x)
            margin = sum(terms[0::2]) - sum(terms[1::2])
            if margin < 0:
                raise EncodingOverflow(
                    f"Series partial sum would wrap below zero at delta {x / m:.6f} rad "
                    f"(degree {config.series_degree}, scale {m})"
                )
            min_margin = margin if min_margin is None else min(min_margin, margin)
            exact = math.sin(x / m / 2) ** 2
            max_error = max(max_error, abs(margin / m - exact))

        report = SeriesDomainReport(
            samples=len(points),
            delta_bound=delta,
            max_error=max_error,
            error_bound=series_error_bound(config.series_degree, m),
            min_margin=min_margin,
        )
        logger.info(
            f"Series sweep: {report.samples} points, max error {report.max_error:.3e} "
            f"(bound {report.error_bound:.3e})"
        )
        return report
