"""
TFHE Backend using Concrete

Runs the proximity circuit under real TFHE encryption with Zama's
concrete-python compiler.

Concrete compiles whole functions rather than executing ciphertext
operations one at a time, so this backend records every operation as a node
of an acyclic data-flow graph. When a result is decrypted, the subgraph that
produces it is compiled to an FHE circuit, keys are generated, the recorded
client inputs are encrypted with them, the circuit runs on ciphertexts only,
and the output is decrypted.

Limits:
- Wrapping subtraction is expressed as a - b + (a < b) * 2^width. The
  correction term takes width + 1 bits and feeds later comparisons, which
  Concrete supports up to 16 bits, so widths above 15 bits are rejected.
- Bit widths are traced from the recorded inputs, so products of large
  values fail to compile even below that width.

References:
- Concrete: https://github.com/zama-ai/concrete
"""

import inspect
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from config.pipeline import MAX_CONCRETE_WIDTH
from services.errors import EncryptionFailure

logger = logging.getLogger(__name__)


@dataclass
class FHECircuitStats:
    """Statistics about the compiled FHE circuit."""
    compilation_time: float = 0.0
    execution_time: float = 0.0
    max_bit_width: int = 0
    programmable_bootstrap_count: int = 0
    input_count: int = 0
    node_count: int = 0


@dataclass
class _Node:
    op: str
    args: Tuple[Any, ...] = ()
    # Client-side plaintext of an input node, encrypted at run time
    value: Optional[int] = field(default=None, repr=False)
    bound: Optional[int] = None


class ConcreteBackend:
    """
    Graph-recording backend compiled with concrete-python.

    Example:
        ```python
        session = FheSession("concrete", width=8)
        a, b = session.encrypt(6, bound=7), session.encrypt(2, bound=7)
        assert session.decrypt((a - b).min(b - a)) == 4
        ```
    """

    name = "concrete"

    def __init__(self, width: int, configuration: Any = None):
        """
        Args:
            width: Unsigned integer width emulated by the circuit
            configuration: Optional concrete ``fhe.Configuration``
        """
        try:
            from concrete import fhe
        except ImportError as e:
            raise EncryptionFailure(
                "concrete-python is not installed. "
                "Install with: pip install 'fhe-geo-proximity[concrete]'"
            ) from e

        if width > MAX_CONCRETE_WIDTH:
            raise EncryptionFailure(
                f"Concrete backend supports widths up to {MAX_CONCRETE_WIDTH} bits, got {width}"
            )

        self._fhe = fhe
        self._configuration = configuration
        self.width = width
        self._modulus = 1 << width
        self._nodes: List[_Node] = []
        self._results: Dict[int, int] = {}
        self._lock = threading.Lock()
        self._ready = False
        self.last_circuit_stats = FHECircuitStats()

    def keygen(self) -> None:
        # Keys are bound to a compiled circuit; generated per circuit in _execute
        self._ready = True

    def destroy_keys(self) -> None:
        with self._lock:
            self._nodes.clear()
            self._results.clear()
        self._ready = False

    def encrypt(self, value: int, bound: Optional[int] = None) -> int:
        return self._add_node(_Node("input", value=value, bound=bound))

    def constant(self, value: int) -> int:
        return self._add_node(_Node("const", (value,)))

    def decrypt(self, handle: int) -> int:
        node = self._node(handle)
        if node.op == "input":
            return node.value
        if node.op == "const":
            return node.args[0]
        if handle not in self._results:
            self._results[handle] = self._execute(handle)
        return self._results[handle]

    def add(self, a, b) -> int:
        return self._add_node(_Node("add", (a, b)))

    def sub(self, a, b) -> int:
        return self._add_node(_Node("sub", (a, b)))

    def mul(self, a, b) -> int:
        return self._add_node(_Node("mul", (a, b)))

    def mul_const(self, a, constant: int) -> int:
        return self._add_node(_Node("mul_const", (a, constant)))

    def div_const(self, a, constant: int) -> int:
        return self._add_node(_Node("div_const", (a, constant)))

    def minimum(self, a, b) -> int:
        return self._add_node(_Node("minimum", (a, b)))

    def less_than(self, a, b) -> int:
        return self._add_node(_Node("less_than", (a, b)))

    def select(self, condition, if_true, if_false) -> int:
        return self._add_node(_Node("select", (condition, if_true, if_false)))

    # Graph handling

    def _add_node(self, node: _Node) -> int:
        if not self._ready:
            raise EncryptionFailure("No key material: keys not generated or already destroyed")
        with self._lock:
            self._nodes.append(node)
            return len(self._nodes) - 1

    def _node(self, handle: int) -> _Node:
        if not isinstance(handle, int) or not 0 <= handle < len(self._nodes):
            raise EncryptionFailure("Ciphertext does not belong to this evaluation context")
        return self._nodes[handle]

    def _subgraph(self, output: int) -> List[int]:
        """Handles reachable from output, in creation (topological) order."""
        needed = set()
        stack = [output]
        while stack:
            handle = stack.pop()
            if handle in needed:
                continue
            needed.add(handle)
            node = self._nodes[handle]
            if node.op in ("input", "const"):
                continue
            operands = node.args[:1] if node.op in ("mul_const", "div_const") else node.args
            stack.extend(operands)
        return sorted(needed)

    def _evaluate(self, output: int, order: List[int], inputs: Dict[int, Any]):
        values: Dict[int, Any] = {}
        for handle in order:
            node = self._nodes[handle]
            op, args = node.op, node.args
            if op == "input":
                values[handle] = inputs[handle]
            elif op == "const":
                values[handle] = args[0]
            elif op == "mul_const":
                values[handle] = values[args[0]] * args[1]
            elif op == "div_const":
                values[handle] = values[args[0]] // args[1]
            elif op == "select":
                cond, if_true, if_false = (values[arg] for arg in args)
                values[handle] = if_false + cond * (if_true - if_false)
            else:
                a, b = values[args[0]], values[args[1]]
                if op == "add":
                    values[handle] = a + b
                elif op == "sub":
                    values[handle] = a - b + (a < b) * self._modulus
                elif op == "mul":
                    values[handle] = a * b
                elif op == "minimum":
                    values[handle] = np.minimum(a, b)
                elif op == "less_than":
                    values[handle] = a < b
                else:
                    raise EncryptionFailure(f"Unknown graph operation: {op}")
        return values[output]

    def _execute(self, output: int) -> int:
        fhe = self._fhe
        order = self._subgraph(output)
        input_handles = [h for h in order if self._nodes[h].op == "input"]
        names = [f"input_{i}" for i in range(len(input_handles))]

        def circuit_function(*args, **kwargs):
            # The compiler traces with keyword arguments named after the signature
            args = args or tuple(kwargs[name] for name in names)
            return self._evaluate(output, order, dict(zip(input_handles, args)))

        circuit_function.__signature__ = inspect.Signature([
            inspect.Parameter(name, inspect.Parameter.POSITIONAL_OR_KEYWORD)
            for name in names
        ])

        client_values = tuple(self._nodes[h].value for h in input_handles)
        bounds = tuple(
            self._nodes[h].bound if self._nodes[h].bound is not None else self._nodes[h].value
            for h in input_handles
        )
        inputset = [client_values, tuple(0 for _ in input_handles), bounds]

        logger.info(f"Compiling FHE circuit: {len(order)} nodes, {len(input_handles)} inputs")
        start_time = time.time()
        try:
            compiler = fhe.Compiler(circuit_function, {name: "encrypted" for name in names})
            circuit = compiler.compile(inputset, self._configuration)
        except Exception as e:
            raise EncryptionFailure(
                f"Concrete could not compile the circuit (reduce scale or width): {e}"
            ) from e
        compilation_time = time.time() - start_time

        start_time = time.time()
        circuit.keygen()
        encrypted_args = circuit.encrypt(*client_values)
        if not isinstance(encrypted_args, tuple):
            encrypted_args = (encrypted_args,)
        encrypted_result = circuit.run(*encrypted_args)
        result = circuit.decrypt(encrypted_result)
        execution_time = time.time() - start_time

        self.last_circuit_stats = FHECircuitStats(
            compilation_time=compilation_time,
            execution_time=execution_time,
            max_bit_width=circuit.graph.maximum_integer_bit_width(),
            programmable_bootstrap_count=getattr(circuit, "programmable_bootstrap_count", 0),
            input_count=len(input_handles),
            node_count=len(order),
        )
        logger.info(
            f"Circuit executed: compile={compilation_time:.2f}s, run={execution_time:.2f}s, "
            f"max_bits={self.last_circuit_stats.max_bit_width}"
        )

        return int(result)
