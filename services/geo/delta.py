"""
Angular separations on unsigned ciphertexts.

A single wrapping subtraction cannot carry a sign, so both orderings are
computed and the encrypted minimum kept: for p >= q, p - q is the distance
and q - p wraps to 2^W - (p - q), which is always larger.

Deltas are angles in radians scaled by M, so they lie in [0, pi * M]: a
latitude delta reaches pi * M between the poles, and a folded longitude delta
reaches pi * M at half a turn. CircuitBudget.delta_bound uses that bound,
not M / 2.
"""

import logging
from typing import Tuple

from services.fhe.session import EncryptedUInt
from .codec import EncodedPoint, FixedPointCodec

logger = logging.getLogger(__name__)


class DeltaEngine:
    """Latitude and longitude deltas between two encoded points."""

    def __init__(self, codec: FixedPointCodec, fold_antimeridian: bool = True):
        self.codec = codec
        self.fold_antimeridian = fold_antimeridian

    @staticmethod
    def abs_diff(p: EncryptedUInt, q: EncryptedUInt) -> EncryptedUInt:
        """|p - q| as min(p - q, q - p) under wrapping subtraction."""
        return (p - q).min(q - p)

    def latitude(self, a: EncodedPoint, b: EncodedPoint) -> EncryptedUInt:
        return self.abs_diff(a.lat, b.lat)

    def longitude(self, a: EncodedPoint, b: EncodedPoint) -> EncryptedUInt:
        """
        Shortest longitude separation, min(|d|, full_turn - |d|).

        Both stored longitudes lie in [0, full_turn), whatever the
        convention, so one complementary candidate covers every case.
        """
        direct = self.abs_diff(a.lon, b.lon)
        if not self.fold_antimeridian:
            return direct
        return direct.min(self.codec.full_turn - direct)

    def deltas(self, a: EncodedPoint, b: EncodedPoint) -> Tuple[EncryptedUInt, EncryptedUInt]:
        return self.latitude(a, b), self.longitude(a, b)
