"""
Simulated FHE Backend

Executes the encrypted-integer operation set in the clear with the exact
semantics of a TFHE unsigned integer type: fixed width, wrapping add/sub/mul,
floor division by public constants, minimum, less-than and select.

It provides no confidentiality. Its purpose is the same as Concrete's
simulation mode: validating circuits, bounds and orderings quickly. Every
handle is tagged with the key id of the session that produced it, so
evaluation-context mismatches fail as they would with real keys.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging
import secrets

from services.errors import EncryptionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulatedCiphertext:
    """Handle of a simulated ciphertext."""
    key_id: str
    value: int = field(repr=False)


class SimulatedBackend:
    """Clear-text engine with unsigned modular integer semantics."""

    name = "simulated"

    def __init__(self, width: int):
        """
        Args:
            width: Integer width in bits; results wrap modulo 2^width
        """
        self.width = width
        self._mask = (1 << width) - 1
        self._key_id: Optional[str] = None

    def keygen(self) -> None:
        self._key_id = secrets.token_hex(16)
        logger.debug(f"Simulated keys generated (width={self.width})")

    def destroy_keys(self) -> None:
        self._key_id = None

    def encrypt(self, value: int, bound: Optional[int] = None) -> SimulatedCiphertext:
        return self._wrap(value)

    def constant(self, value: int) -> SimulatedCiphertext:
        # Trivial encryption of a public value
        return self._wrap(value)

    def decrypt(self, handle: SimulatedCiphertext) -> int:
        return self._open(handle)

    def add(self, a, b) -> SimulatedCiphertext:
        return self._wrap(self._open(a) + self._open(b))

    def sub(self, a, b) -> SimulatedCiphertext:
        return self._wrap(self._open(a) - self._open(b))

    def mul(self, a, b) -> SimulatedCiphertext:
        return self._wrap(self._open(a) * self._open(b))

    def mul_const(self, a, constant: int) -> SimulatedCiphertext:
        return self._wrap(self._open(a) * constant)

    def div_const(self, a, constant: int) -> SimulatedCiphertext:
        return self._wrap(self._open(a) // constant)

    def minimum(self, a, b) -> SimulatedCiphertext:
        return self._wrap(min(self._open(a), self._open(b)))

    def less_than(self, a, b) -> SimulatedCiphertext:
        return self._wrap(int(self._open(a) < self._open(b)))

    def select(self, condition, if_true, if_false) -> SimulatedCiphertext:
        chosen = if_true if self._open(condition) else if_false
        return self._wrap(self._open(chosen))

    def _wrap(self, value: int) -> SimulatedCiphertext:
        if self._key_id is None:
            raise EncryptionFailure("No key material: keys not generated or already destroyed")
        return SimulatedCiphertext(self._key_id, value & self._mask)

    def _open(self, handle: SimulatedCiphertext) -> int:
        if not isinstance(handle, SimulatedCiphertext):
            raise EncryptionFailure(f"Not a simulated ciphertext: {type(handle).__name__}")
        if self._key_id is None or handle.key_id != self._key_id:
            raise EncryptionFailure("Ciphertext was produced under a different key")
        return handle.value
