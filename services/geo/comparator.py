"""
Homomorphic comparison of two closeness terms.

The computing party only ever calls less-than on ciphertexts; the resulting
encrypted boolean goes back to the key holder, who may decrypt it once.
"""

import logging
import threading

from services.errors import EncryptionFailure
from services.fhe.session import EncryptedBool, EncryptedUInt, FheSession

logger = logging.getLogger(__name__)


class ComparisonResult:
    """Encrypted "candidate 1 is closer than candidate 2"; decrypted at most once."""

    def __init__(self, closer: EncryptedBool):
        self._closer = closer
        self._consumed = False
        self._lock = threading.Lock()

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def ciphertext(self) -> EncryptedBool:
        return self._closer

    def decrypt(self, session: FheSession) -> bool:
        """Decrypt with the key holder's session and discard the ciphertext."""
        with self._lock:
            if self._consumed:
                raise EncryptionFailure("Comparison result was already decrypted")
            self._consumed = True
            closer = self._closer
            self._closer = None
        return session.decrypt(closer)

    def __repr__(self) -> str:
        return f"<ComparisonResult consumed={self._consumed}>"


class ProximityComparator:
    """Strict encrypted less-than between two terms of the same kind and scale."""

    def compare(self, first: EncryptedUInt, second: EncryptedUInt) -> ComparisonResult:
        # Ties decrypt to False: the first candidate is not strictly closer
        return ComparisonResult(first.lt(second))
