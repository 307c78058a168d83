"""
GeoProx CLI - Command line interface for encrypted geo-proximity comparison.

Decides which of two points is closer to a reference point under
homomorphic encryption, prints per-stage timings, and aggregates the
timings of pipeline variants.
"""

__version__ = "1.0.0"
__author__ = "GeoProx Team"
