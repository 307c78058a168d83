"""
Haversine Term Combiner

Builds the closeness term

    a = sin^2(dlat/2) + cos(lat1) * cos(lat2) * sin^2(dlon/2)

from encrypted deltas and the affine-encoded cosines. arcsin and the radius
multiply are increasing on the domain of a, so comparing a orders the
candidates exactly as the great-circle distance would; the distance path
(integer square root, arcsin series, 2R multiply) is kept as a diagnostic.
"""

import logging
import math
from typing import Union

from services.fhe.session import EncryptedUInt
from .codec import EncodedPoint
from .delta import DeltaEngine
from .polynomial import PolynomialApproximator, series_peak

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371


class HaversineTermCombiner:
    """
    Assembles a (and optionally the distance) for one candidate/reference pair.

    Example:
        ```python
        combiner = HaversineTermCombiner(delta_engine, approximator)
        a_xz = combiner.a_term_for(x_encoded, z_encoded)
        ```
    """

    def __init__(
        self,
        delta_engine: DeltaEngine,
        approximator: PolynomialApproximator,
        earth_radius_km: int = EARTH_RADIUS_KM,
    ):
        self.delta_engine = delta_engine
        self.approximator = approximator
        self.scale = approximator.scale
        self.earth_radius_km = earth_radius_km

        # a <= sin2(dlat/2) + sin2(dlon/2), both bounded by the series peak
        self.a_bound = 2 * series_peak(approximator.degree, self.scale)
        radicand_bound = self.a_bound * self.scale
        self.sqrt_bits = math.ceil(radicand_bound.bit_length() / 2)

    def cos_product(self, c1: EncryptedUInt, c2: EncryptedUInt) -> EncryptedUInt:
        """cos(lat1) * cos(lat2) at scale M from (v + 1) * M / 2 encodings."""
        m = self.scale
        return ((c1 * 2 - m) * (c2 * 2 - m)) // m

    def a_term(
        self,
        sin2_lat: EncryptedUInt,
        sin2_lon: EncryptedUInt,
        c1: EncryptedUInt,
        c2: EncryptedUInt,
    ) -> EncryptedUInt:
        return sin2_lat + (self.cos_product(c1, c2) * sin2_lon) // self.scale

    def a_term_for(self, point: EncodedPoint, reference: EncodedPoint) -> EncryptedUInt:
        """Deltas, series and combination for one pair."""
        dlat, dlon = self.delta_engine.deltas(point, reference)
        return self.a_term(
            self.approximator.evaluate(dlat),
            self.approximator.evaluate(dlon),
            point.cos_lat,
            reference.cos_lat,
        )

    def isqrt(self, v: EncryptedUInt, bits: int) -> EncryptedUInt:
        """
        floor(sqrt(v)) by fixed-iteration digit-by-digit square root.

        One candidate bit per iteration, highest first: the bit is kept when
        the candidate's square does not exceed v. The number of iterations is
        fixed by the public bound, never by v.
        """
        root: Union[EncryptedUInt, int] = 0
        for bit in reversed(range(bits)):
            candidate = root + (1 << bit)
            too_big = v.lt(candidate * candidate)
            root = too_big.select(root, candidate)
        return root

    def angular_distance(self, a: EncryptedUInt) -> EncryptedUInt:
        """Central angle c = arcsin(sqrt(a)) at scale M."""
        s = self.isqrt(a * self.scale, self.sqrt_bits)
        return self.approximator.arcsin(s, a)

    def distance(self, a: EncryptedUInt) -> EncryptedUInt:
        """Great-circle distance 2 * R * c, in kilometres at scale M."""
        return self.angular_distance(a) * (2 * self.earth_radius_km)
