"""
Configuration package for the encrypted geo-proximity pipeline.

This package fixes every structural parameter of the comparison circuit
(scale, width, series degree, conventions, backend) ahead of evaluation.
"""

from .pipeline import (
    PipelineConfig,
    CompareMode,
    LongitudeConvention,
    BackendKind,
    MAX_SERIES_DEGREE,
    MAX_ARCSIN_TERMS,
    validate_and_log_config,
)

__all__ = [
    "PipelineConfig",
    "CompareMode",
    "LongitudeConvention",
    "BackendKind",
    "MAX_SERIES_DEGREE",
    "MAX_ARCSIN_TERMS",
    "validate_and_log_config",
]
