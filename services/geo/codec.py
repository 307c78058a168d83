"""
Fixed-Point Codec

Client-side conversion of plaintext coordinates into the unsigned
fixed-point integers the encrypted circuit works on.

Every field shares one scale factor M:
- latitude:   round((phi + pi/2) * M)          phi in radians, in [0, pi*M]
- longitude:  round(lambda * M) mod full turn  lambda in radians, normalised
- sin/cos:    round((v + 1) * M / 2)           v in [-1, 1], in [0, M]

The latitude offset keeps southern latitudes nonnegative; differences
between two latitudes are unaffected by it. Sine and cosine are computed in
the clear here because the encrypted engine has no transcendental functions.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math

from config.pipeline import LongitudeConvention
from services.errors import CoordinateError, EncodingOverflow
from services.fhe.session import EncryptedUInt, FheSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPoint:
    """A plaintext location; never leaves the data owner."""
    label: Optional[str]
    latitude: float
    longitude: float

    def __post_init__(self):
        for name in ("latitude", "longitude"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise CoordinateError(f"{name} must be a number, got {type(value).__name__}")
            if not math.isfinite(value):
                raise CoordinateError(f"{name} must be finite")
        if not -90.0 <= self.latitude <= 90.0:
            raise CoordinateError("latitude must lie in [-90, 90] degrees")

    @property
    def name(self) -> str:
        return self.label or "unnamed"


@dataclass(frozen=True)
class PlainEncoding:
    """Scaled unsigned integers of one point, before encryption."""
    lat: int
    lon: int
    sin_lat: int
    cos_lat: int


@dataclass(frozen=True)
class EncodedPoint:
    """Encrypted fixed-point fields of one point; read-only circuit input."""
    label: Optional[str]
    lat: EncryptedUInt
    lon: EncryptedUInt
    sin_lat: EncryptedUInt
    cos_lat: EncryptedUInt

    @property
    def name(self) -> str:
        return self.label or "unnamed"


class FixedPointCodec:
    """
    Maps degrees to scaled unsigned integers and back.

    The longitude convention and the full-turn constant defined here are the
    ones DeltaEngine folds against; both must come from the same codec.
    """

    def __init__(
        self,
        scale: int,
        width: int,
        longitude_convention: LongitudeConvention = LongitudeConvention.ZERO_TO_360,
    ):
        self.scale = scale
        self.width = width
        self.longitude_convention = longitude_convention

        self.full_turn = round(2 * math.pi * scale)
        self.half_turn = self.full_turn // 2
        self.lat_bound = round(math.pi * scale)
        self.lon_bound = self.full_turn - 1
        self.trig_bound = scale

        largest = max(self.lat_bound, self.lon_bound, self.trig_bound)
        if largest >= 1 << width:
            raise EncodingOverflow(
                f"Scale {scale} needs {largest.bit_length()} bits per coordinate; "
                f"width is {width}"
            )

    @property
    def epsilon_degrees(self) -> float:
        """Round-trip error bound in degrees: half a unit of rounding plus double-precision error."""
        return math.degrees(2.0 / self.scale)

    def normalize_longitude(self, longitude: float) -> float:
        """Bring a longitude into the configured range."""
        if self.longitude_convention == LongitudeConvention.SIGNED_180:
            return (longitude + 180.0) % 360.0 - 180.0
        return longitude % 360.0

    def _longitude_offset(self) -> float:
        if self.longitude_convention == LongitudeConvention.SIGNED_180:
            return 180.0
        return 0.0

    def encode(self, point: GeoPoint) -> PlainEncoding:
        """Scale one point's coordinates and trigonometric values."""
        phi = math.radians(point.latitude)
        stored_lon = self.normalize_longitude(point.longitude) + self._longitude_offset()

        lat = round((phi + math.pi / 2) * self.scale)
        lon = round(math.radians(stored_lon) * self.scale) % self.full_turn
        sin_lat = round((math.sin(phi) + 1.0) * self.scale / 2)
        # cosine is nonnegative on [-90, 90]; keep 2c - M from wrapping
        cos_lat = max(round((math.cos(phi) + 1.0) * self.scale / 2), (self.scale + 1) // 2)

        return PlainEncoding(
            lat=min(lat, self.lat_bound),
            lon=lon,
            sin_lat=min(sin_lat, self.trig_bound),
            cos_lat=min(cos_lat, self.trig_bound),
        )

    def decode(self, encoding: PlainEncoding) -> Tuple[float, float]:
        """Recover (latitude, longitude) degrees from scaled integers."""
        latitude = math.degrees(encoding.lat / self.scale - math.pi / 2)
        longitude = math.degrees(encoding.lon / self.scale) - self._longitude_offset()
        return latitude, self.normalize_longitude(longitude)

    def decode_trig(self, encoding: PlainEncoding) -> Tuple[float, float]:
        """Recover (sin(lat), cos(lat)) from their affine encoding."""
        return (
            2.0 * encoding.sin_lat / self.scale - 1.0,
            2.0 * encoding.cos_lat / self.scale - 1.0,
        )

    def encrypt(self, point: GeoPoint, session: FheSession) -> EncodedPoint:
        """Encode and encrypt a point with the data owner's session."""
        encoding = self.encode(point)
        encoded = EncodedPoint(
            label=point.label,
            lat=session.encrypt(encoding.lat, bound=self.lat_bound),
            lon=session.encrypt(encoding.lon, bound=self.lon_bound),
            sin_lat=session.encrypt(encoding.sin_lat, bound=self.trig_bound),
            cos_lat=session.encrypt(encoding.cos_lat, bound=self.trig_bound),
        )
        logger.debug(f"Encrypted point '{point.name}'")
        return encoded
