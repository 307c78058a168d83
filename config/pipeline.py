"""
Pipeline Configuration Module

Every structural choice of the encrypted proximity circuit is fixed here,
before any ciphertext exists: fixed-point scale, integer width, series
degree, longitude convention, antimeridian folding, comparison mode and the
encryption backend. Nothing in the circuit is decided by inspecting data.

Usage:
    from config.pipeline import PipelineConfig
    config = PipelineConfig.from_env()
"""

import os
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional
from enum import Enum

logger = logging.getLogger(__name__)

ENV_PREFIX = "GEOPROX_"

# Largest series degree with tabulated divisors (x^2 .. x^10).
MAX_SERIES_DEGREE = 5
MAX_ARCSIN_TERMS = 5

# Wrapping subtraction adds a width+1 bit term, and Concrete compares at most
# 16-bit operands.
MAX_CONCRETE_WIDTH = 15


class CompareMode(Enum):
    """What the comparator compares."""
    A_TERM = "a-term"                 # haversine 'a', monotonic in distance
    FULL_DISTANCE = "full-distance"   # 2R * arcsin(sqrt(a)), diagnostic


class LongitudeConvention(Enum):
    """Range longitudes are normalised into before encoding."""
    ZERO_TO_360 = "0-360"
    SIGNED_180 = "-180-180"


class BackendKind(Enum):
    """Encryption engines."""
    SIMULATED = "simulated"   # clear unsigned arithmetic, not secure
    CONCRETE = "concrete"     # TFHE via concrete-python


@dataclass(frozen=True)
class PipelineConfig:
    """Complete configuration of one proximity pipeline."""

    # Fixed-point scale M shared by every encrypted value
    scale: int = 10**14
    # Ciphertext integer width in bits
    width: int = 128

    # Number of sin^2(x/2) series terms (1..5)
    series_degree: int = 5
    # Number of arcsin series terms for the full-distance mode (1..5)
    arcsin_terms: int = 5

    longitude_convention: LongitudeConvention = LongitudeConvention.ZERO_TO_360
    fold_antimeridian: bool = True

    compare_mode: CompareMode = CompareMode.A_TERM
    backend: BackendKind = BackendKind.SIMULATED

    # Evaluate the two candidate terms in worker threads
    parallel: bool = False
    # Compute the plaintext baseline alongside the encrypted result
    include_baseline: bool = True

    earth_radius_km: int = 6371

    @classmethod
    def from_env(cls, base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        """Load configuration from GEOPROX_* environment variables."""
        config = base or cls()
        overrides = {}

        if env_val := os.getenv(f"{ENV_PREFIX}VARIANT"):
            config = cls.for_variant(env_val, base=config)

        for name in ("scale", "width", "series_degree", "arcsin_terms"):
            env_val = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if env_val:
                overrides[name] = int(env_val)

        if env_val := os.getenv(f"{ENV_PREFIX}LONGITUDE_CONVENTION"):
            overrides["longitude_convention"] = LongitudeConvention(env_val)
        if env_val := os.getenv(f"{ENV_PREFIX}COMPARE_MODE"):
            overrides["compare_mode"] = CompareMode(env_val)
        if env_val := os.getenv(f"{ENV_PREFIX}BACKEND"):
            overrides["backend"] = BackendKind(env_val.lower())

        for name in ("fold_antimeridian", "parallel", "include_baseline"):
            env_val = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if env_val:
                overrides[name] = env_val.lower() in ("true", "1", "yes")

        return replace(config, **overrides)

    @classmethod
    def for_variant(cls, name: str, base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        """
        Get the configuration of a named pipeline variant.

        Variants:
            a-term: compare haversine 'a' terms (default)
            full-distance: also run arcsin/sqrt and the radius multiply
            small-angle: single-term series, sin^2(x/2) ~ x^2/4
        """
        config = base or cls()
        variants = {
            "a-term": dict(compare_mode=CompareMode.A_TERM),
            "full-distance": dict(compare_mode=CompareMode.FULL_DISTANCE),
            "small-angle": dict(compare_mode=CompareMode.A_TERM, series_degree=1),
        }
        if name not in variants:
            raise ValueError(f"Unknown variant: {name}. Available: {sorted(variants)}")
        return replace(config, **variants[name])

    @property
    def variant_name(self) -> str:
        if self.compare_mode == CompareMode.FULL_DISTANCE:
            return "full-distance"
        if self.series_degree == 1:
            return "small-angle"
        return "a-term"

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings/errors."""
        issues = []

        if self.scale < 2:
            issues.append("ERROR: Scale factor must be at least 2")
        if self.width < 8:
            issues.append("ERROR: Integer width must be at least 8 bits")
        if not 1 <= self.series_degree <= MAX_SERIES_DEGREE:
            issues.append(f"ERROR: Series degree must be between 1 and {MAX_SERIES_DEGREE}")
        if not 1 <= self.arcsin_terms <= MAX_ARCSIN_TERMS:
            issues.append(f"ERROR: Arcsin terms must be between 1 and {MAX_ARCSIN_TERMS}")
        if self.earth_radius_km <= 0:
            issues.append("ERROR: Earth radius must be positive")

        # 0.0001 degree apart needs ~1e-12 resolution in 'a'
        if self.scale < 10**12:
            issues.append(
                "WARNING: Scale below 1e12 cannot order points closer than ~0.001 degrees"
            )
        if self.scale * 7 > 2**53:
            issues.append(
                "WARNING: Scale exceeds double precision; encoding will not be exact "
                "to one fixed-point unit"
            )
        if not self.fold_antimeridian:
            issues.append(
                "WARNING: Unfolded longitude deltas reach a full turn, outside the "
                "series domain; orderings across the antimeridian will be wrong"
            )
        if self.backend == BackendKind.CONCRETE and self.width > MAX_CONCRETE_WIDTH:
            issues.append(
                f"ERROR: Concrete backend compiles widths up to {MAX_CONCRETE_WIDTH} bits, "
                f"got {self.width}"
            )

        return issues

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "variant": self.variant_name,
            "scale": self.scale,
            "width": self.width,
            "series_degree": self.series_degree,
            "arcsin_terms": self.arcsin_terms,
            "longitude_convention": self.longitude_convention.value,
            "fold_antimeridian": self.fold_antimeridian,
            "compare_mode": self.compare_mode.value,
            "backend": self.backend.value,
            "parallel": self.parallel,
        }


def validate_and_log_config(config: Optional[PipelineConfig] = None) -> PipelineConfig:
    """Load, validate, and log configuration."""
    config = config or PipelineConfig.from_env()

    issues = config.validate()
    for issue in issues:
        if issue.startswith("ERROR"):
            logger.error(issue)
        else:
            logger.warning(issue)

    logger.info(f"Configuration loaded: {config.to_dict()}")

    return config
