"""
FHE Backend Module

Explicit encryption sessions and opaque encrypted unsigned integers.

Supported Backends:
- simulated: clear unsigned arithmetic with TFHE integer semantics
- concrete: TFHE via Zama's concrete-python (optional extra)

Usage:
    from services.fhe import FheSession
    with FheSession("simulated", width=64) as session:
        x = session.encrypt(41) + 1
        assert session.decrypt(x) == 42
"""

from .session import (
    FheSession,
    FheBackend,
    EncryptedUInt,
    EncryptedBool,
    CircuitStats,
    create_backend,
)

from .simulated_backend import (
    SimulatedBackend,
    SimulatedCiphertext,
)

__all__ = [
    "FheSession",
    "FheBackend",
    "EncryptedUInt",
    "EncryptedBool",
    "CircuitStats",
    "create_backend",
    "SimulatedBackend",
    "SimulatedCiphertext",
]
