"""
Error types shared by the encryption layer, the geo circuit and the CLI.

Every failure inside a comparison request surfaces as exactly one of these;
nothing is retried, since the circuit is a pure function of its inputs.
"""


class GeoProximityError(Exception):
    """Base class for all errors raised by this project."""


class EncodingOverflow(GeoProximityError):
    """A scaled input or an intermediate value does not fit the integer width."""


class EncryptionFailure(GeoProximityError):
    """Encrypt/decrypt failed, a ciphertext met the wrong session, or the backend broke."""


class ArgumentError(GeoProximityError):
    """The command line received the wrong number of arguments or a bad coordinate."""


class CoordinateError(GeoProximityError, ValueError):
    """A coordinate is outside its valid range or not a finite number."""


class ConfigError(GeoProximityError):
    """Configuration-related error."""
