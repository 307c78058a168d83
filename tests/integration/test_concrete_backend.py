"""
Concrete TFHE backend tests.

The graph and small-circuit tests need concrete-python installed; compiling
at the widest supported width additionally needs GEOPROX_RUN_CONCRETE=1.
"""

import importlib.util
import os
import unittest

from config.pipeline import MAX_CONCRETE_WIDTH
from services.errors import EncryptionFailure
from services.fhe import FheSession

HAS_CONCRETE = importlib.util.find_spec("concrete") is not None
RUN_CONCRETE = HAS_CONCRETE and os.getenv("GEOPROX_RUN_CONCRETE", "").lower() in ("1", "true", "yes")


class TestConcreteLimits(unittest.TestCase):

    def test_wide_sessions_rejected(self):
        # Without concrete installed this fails on the import instead
        for width in (MAX_CONCRETE_WIDTH + 1, 128):
            with self.assertRaises(EncryptionFailure):
                FheSession("concrete", width)


@unittest.skipUnless(HAS_CONCRETE, "concrete-python not installed")
class TestConcreteGraph(unittest.TestCase):

    def setUp(self):
        from services.fhe.concrete_backend import ConcreteBackend
        self.backend = ConcreteBackend(8)
        self.backend.keygen()

    def test_inputs_decrypt_without_compiling(self):
        handle = self.backend.encrypt(7, bound=15)
        self.assertEqual(self.backend.decrypt(handle), 7)

    def test_subgraph_is_topological(self):
        a = self.backend.encrypt(3)
        b = self.backend.encrypt(5)
        unused = self.backend.encrypt(11)
        total = self.backend.add(a, b)
        scaled = self.backend.mul_const(total, 2)
        order = self.backend._subgraph(scaled)
        self.assertEqual(order, [a, b, total, scaled])
        self.assertNotIn(unused, order)

    def test_wrapping_subtraction_formula(self):
        a = self.backend.encrypt(3)
        b = self.backend.encrypt(5)
        diff = self.backend.sub(a, b)
        order = self.backend._subgraph(diff)
        value = self.backend._evaluate(diff, order, {a: 3, b: 5})
        self.assertEqual(value, 2**8 - 2)

    def test_select_formula(self):
        a = self.backend.encrypt(3)
        b = self.backend.encrypt(5)
        flag = self.backend.less_than(a, b)
        chosen = self.backend.select(flag, a, b)
        order = self.backend._subgraph(chosen)
        self.assertEqual(self.backend._evaluate(chosen, order, {a: 3, b: 5}), 3)

    def test_destroyed_keys(self):
        self.backend.destroy_keys()
        with self.assertRaises(EncryptionFailure):
            self.backend.encrypt(1)

    def test_foreign_handle(self):
        with self.assertRaises(EncryptionFailure):
            self.backend.decrypt(999)


@unittest.skipUnless(HAS_CONCRETE, "concrete-python not installed")
class TestConcreteExecution(unittest.TestCase):
    """Tiny circuits that compile in a few seconds."""

    def test_absolute_difference(self):
        with FheSession("concrete", 8) as session:
            a = session.encrypt(6, bound=7)
            b = session.encrypt(2, bound=7)
            self.assertEqual(session.decrypt((a - b).min(b - a)), 4)
            self.assertEqual(session.decrypt((b - a).min(a - b)), 4)

    def test_less_than(self):
        with FheSession("concrete", 8) as session:
            a = session.encrypt(6, bound=7)
            b = session.encrypt(2, bound=7)
            self.assertTrue(session.decrypt(b.lt(a)))

    def test_circuit_stats_recorded(self):
        from services.fhe.concrete_backend import ConcreteBackend
        backend = ConcreteBackend(8)
        with FheSession(backend, 8) as session:
            a = session.encrypt(5, bound=7)
            b = session.encrypt(3, bound=7)
            self.assertEqual(session.decrypt(a + b), 8)
            stats = backend.last_circuit_stats
            self.assertEqual(stats.input_count, 2)
            self.assertGreater(stats.max_bit_width, 0)


@unittest.skipUnless(RUN_CONCRETE, "set GEOPROX_RUN_CONCRETE=1 to compile the widest circuits")
class TestConcreteWidestWidth(unittest.TestCase):

    def test_wrapped_difference_at_max_width(self):
        with FheSession("concrete", MAX_CONCRETE_WIDTH) as session:
            a = session.encrypt(9, bound=15)
            b = session.encrypt(4, bound=15)
            self.assertEqual(session.decrypt((a - b).min(b - a)), 5)


if __name__ == '__main__':
    unittest.main()
