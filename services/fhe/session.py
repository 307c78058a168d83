"""
Encryption Session and Opaque Ciphertext Types

The session is the explicit handle to key material and the evaluation
context. It is created once, passed to every operation that touches a
ciphertext, and torn down with close(); there is no process-wide key state.

EncryptedUInt and EncryptedBool are opaque: they expose exactly the integer
operations a TFHE engine offers on unsigned values (add, wrapping subtract,
multiply, divide by a public constant, minimum, less-than, select) and
refuse every conversion that would let code branch on secret data.

Example:
    ```python
    with FheSession(BackendKind.SIMULATED, width=64) as session:
        a = session.encrypt(7)
        b = session.encrypt(3)
        diff = (a - b).min(b - a)          # |a - b| on unsigned integers
        closer = diff.lt(session.encrypt(5))
        assert session.decrypt(closer) is True
    ```
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Union
import logging
import threading
import time

from config.pipeline import BackendKind
from services.errors import EncodingOverflow, EncryptionFailure, GeoProximityError

logger = logging.getLogger(__name__)


class FheBackend(Protocol):
    """Operations an encryption engine must provide on its native handles."""

    name: str

    def keygen(self) -> None: ...
    def destroy_keys(self) -> None: ...
    def encrypt(self, value: int, bound: Optional[int] = None) -> Any: ...
    def constant(self, value: int) -> Any: ...
    def decrypt(self, handle: Any) -> int: ...
    def add(self, a: Any, b: Any) -> Any: ...
    def sub(self, a: Any, b: Any) -> Any: ...
    def mul(self, a: Any, b: Any) -> Any: ...
    def mul_const(self, a: Any, constant: int) -> Any: ...
    def div_const(self, a: Any, constant: int) -> Any: ...
    def minimum(self, a: Any, b: Any) -> Any: ...
    def less_than(self, a: Any, b: Any) -> Any: ...
    def select(self, condition: Any, if_true: Any, if_false: Any) -> Any: ...


@dataclass
class CircuitStats:
    """Operation counts and multiplicative depth of the evaluated circuit."""
    operations: Dict[str, int] = field(default_factory=dict)
    max_depth: int = 0

    def record(self, operation: str, depth: int = 0):
        self.operations[operation] = self.operations.get(operation, 0) + 1
        self.max_depth = max(self.max_depth, depth)

    @property
    def multiplications(self) -> int:
        """Ciphertext x ciphertext multiplications."""
        return self.operations.get("mul", 0)

    @property
    def total(self) -> int:
        return sum(
            count for op, count in self.operations.items()
            if op not in ("encrypt", "decrypt")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operations": dict(sorted(self.operations.items())),
            "multiplications": self.multiplications,
            "max_depth": self.max_depth,
            "total": self.total,
        }


def _refuse(name: str):
    def method(self, *args):
        raise TypeError(
            f"{type(self).__name__} does not support {name}: ciphertexts "
            "cannot be inspected or branched on; use .lt()/.min()/.select()"
        )
    method.__name__ = name
    return method


class _Ciphertext:
    __slots__ = ("_session", "_handle", "depth")

    def __init__(self, session: "FheSession", handle: Any, depth: int = 0):
        self._session = session
        self._handle = handle
        self.depth = depth

    __bool__ = _refuse("__bool__")
    __int__ = _refuse("__int__")
    __index__ = _refuse("__index__")
    __float__ = _refuse("__float__")
    __eq__ = _refuse("__eq__")
    __ne__ = _refuse("__ne__")
    __lt__ = _refuse("__lt__")
    __le__ = _refuse("__le__")
    __gt__ = _refuse("__gt__")
    __ge__ = _refuse("__ge__")
    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return f"<{type(self).__name__} depth={self.depth} session={self._session.session_id}>"


class EncryptedUInt(_Ciphertext):
    """Encrypted unsigned integer of the session's width; arithmetic wraps."""

    __slots__ = ()

    def __add__(self, other):
        return self._session._apply("add", self, other)

    __radd__ = __add__

    def __sub__(self, other):
        return self._session._apply("sub", self, other)

    def __rsub__(self, other):
        return self._session._apply("sub", other, self)

    def __mul__(self, other):
        if isinstance(other, EncryptedUInt):
            return self._session._apply("mul", self, other)
        return self._session._scalar("mul_const", self, other)

    __rmul__ = __mul__

    def __floordiv__(self, divisor: int):
        if isinstance(divisor, _Ciphertext):
            raise TypeError("Division is only defined by a public constant")
        return self._session._scalar("div_const", self, divisor)

    __truediv__ = _refuse("__truediv__")
    __mod__ = _refuse("__mod__")
    __neg__ = _refuse("__neg__")

    def min(self, other: Union["EncryptedUInt", int]) -> "EncryptedUInt":
        """Encrypted minimum."""
        return self._session._apply("minimum", self, other)

    def lt(self, other: Union["EncryptedUInt", int]) -> "EncryptedBool":
        """Encrypted strict less-than."""
        return self._session._apply("less_than", self, other, result=EncryptedBool)


class EncryptedBool(_Ciphertext):
    """Encrypted boolean produced by a homomorphic comparison."""

    __slots__ = ()

    def select(
        self,
        if_true: Union[EncryptedUInt, int],
        if_false: Union[EncryptedUInt, int],
    ) -> EncryptedUInt:
        """Encrypted if-then-else; both branches are always evaluated."""
        return self._session._apply("select", self, if_true, if_false)


def create_backend(kind: Union[str, BackendKind], width: int) -> FheBackend:
    """Instantiate an encryption backend by name."""
    kind = BackendKind(kind) if isinstance(kind, str) else kind

    if kind == BackendKind.SIMULATED:
        from .simulated_backend import SimulatedBackend
        return SimulatedBackend(width)
    if kind == BackendKind.CONCRETE:
        from .concrete_backend import ConcreteBackend
        return ConcreteBackend(width)
    raise EncryptionFailure(f"Unsupported backend: {kind}")


class FheSession:
    """
    Explicit encryption context: keys, evaluation context and statistics.

    Holds the secret key, so only the data owner should hold a session that
    decrypts; the computing party only ever calls ciphertext operators.
    """

    _counter = 0
    _counter_lock = threading.Lock()

    def __init__(
        self,
        backend: Union[str, BackendKind, FheBackend] = BackendKind.SIMULATED,
        width: int = 128,
    ):
        """
        Create a session and generate keys.

        Args:
            backend: Backend kind or an already constructed backend
            width: Unsigned integer width in bits
        """
        if width < 1:
            raise ValueError("Integer width must be positive")

        self.width = width
        self.modulus = 1 << width
        if isinstance(backend, (str, BackendKind)):
            backend = create_backend(backend, width)
        self._backend = backend
        self._stats = CircuitStats()
        self._lock = threading.Lock()
        self._closed = False

        with FheSession._counter_lock:
            FheSession._counter += 1
            self.session_id = FheSession._counter

        start = time.perf_counter()
        try:
            self._backend.keygen()
        except GeoProximityError:
            raise
        except Exception as e:
            raise EncryptionFailure(f"Key generation failed: {e}") from e
        self.keygen_seconds = time.perf_counter() - start

        logger.info(
            f"FheSession {self.session_id} created: backend={self._backend.name}, "
            f"width={width}, keygen={self.keygen_seconds:.3f}s"
        )

    @property
    def backend_name(self) -> str:
        return self._backend.name

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "FheSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Destroy key material; the session cannot be used afterwards."""
        if self._closed:
            return
        self._backend.destroy_keys()
        self._closed = True
        logger.info(f"FheSession {self.session_id} closed")

    def encrypt(self, value: int, bound: Optional[int] = None) -> EncryptedUInt:
        """
        Encrypt an unsigned integer.

        Args:
            value: Plaintext integer in [0, 2^width)
            bound: Optional public upper bound of this input's domain

        Returns:
            EncryptedUInt owned by this session
        """
        self._ensure_open()
        value = self._check_constant(value)
        if bound is not None and value > bound:
            raise EncodingOverflow(f"Encoded value exceeds its declared bound {bound}")
        handle = self._invoke("encrypt", value, bound)
        self._record("encrypt", 0)
        return EncryptedUInt(self, handle)

    def decrypt(self, value: Union[EncryptedUInt, EncryptedBool]) -> Union[int, bool]:
        """Decrypt a ciphertext of this session."""
        self._ensure_open()
        self._check_owner(value)
        plaintext = self._invoke("decrypt", value._handle)
        self._record("decrypt", value.depth)
        if isinstance(value, EncryptedBool):
            return bool(plaintext)
        return int(plaintext)

    def stats(self) -> CircuitStats:
        """Snapshot of operation counts since the last reset."""
        with self._lock:
            return CircuitStats(dict(self._stats.operations), self._stats.max_depth)

    def reset_stats(self) -> None:
        with self._lock:
            self._stats = CircuitStats()

    # Operator plumbing used by the ciphertext types

    def _apply(self, operation: str, *operands, result=EncryptedUInt):
        self._ensure_open()
        handles = []
        depth = 0
        for operand in operands:
            if isinstance(operand, _Ciphertext):
                self._check_owner(operand)
                handles.append(operand._handle)
                depth = max(depth, operand.depth)
            else:
                handles.append(self._invoke("constant", self._check_constant(operand)))

        if operation == "mul":
            depth += 1

        handle = self._invoke(operation, *handles)
        self._record(operation, depth)
        return result(self, handle, depth)

    def _scalar(self, operation: str, value: EncryptedUInt, constant: int) -> EncryptedUInt:
        self._ensure_open()
        self._check_owner(value)
        constant = self._check_constant(constant)
        if operation == "div_const" and constant == 0:
            raise ZeroDivisionError("Division of a ciphertext by zero")

        handle = self._invoke(operation, value._handle, constant)
        self._record(operation, value.depth)
        return EncryptedUInt(self, handle, value.depth)

    def _invoke(self, operation: str, *args):
        try:
            return getattr(self._backend, operation)(*args)
        except GeoProximityError:
            raise
        except Exception as e:
            raise EncryptionFailure(
                f"Backend '{self._backend.name}' failed during {operation}: {e}"
            ) from e

    def _record(self, operation: str, depth: int) -> None:
        with self._lock:
            self._stats.record(operation, depth)

    def _check_constant(self, value) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected an unsigned integer, got {type(value).__name__}")
        if not 0 <= value < self.modulus:
            raise EncodingOverflow(f"Value does not fit in {self.width} unsigned bits")
        return value

    def _check_owner(self, value) -> None:
        if not isinstance(value, _Ciphertext):
            raise TypeError(f"Expected a ciphertext, got {type(value).__name__}")
        if value._session is not self:
            raise EncryptionFailure(
                f"Ciphertext of session {value._session.session_id} used in "
                f"session {self.session_id}"
            )

    def _ensure_open(self) -> None:
        if self._closed:
            raise EncryptionFailure(f"FheSession {self.session_id} is closed")
