"""
Opaque ciphertext types and session handling on the simulated backend.
"""

import unittest

from services.errors import EncodingOverflow, EncryptionFailure
from services.fhe import (
    EncryptedBool,
    EncryptedUInt,
    FheSession,
    SimulatedBackend,
    create_backend,
)


class FailingKeygenBackend(SimulatedBackend):
    def keygen(self):
        raise RuntimeError("entropy source unavailable")


class FailingAddBackend(SimulatedBackend):
    def add(self, a, b):
        raise RuntimeError("bootstrap failed")


class TestOpaqueValues(unittest.TestCase):

    def setUp(self):
        self.session = FheSession("simulated", 32)
        self.value = self.session.encrypt(7)

    def tearDown(self):
        self.session.close()

    def test_refuses_conversions(self):
        with self.assertRaises(TypeError):
            bool(self.value)
        with self.assertRaises(TypeError):
            int(self.value)
        with self.assertRaises(TypeError):
            float(self.value)
        with self.assertRaises(TypeError):
            [0, 1, 2][self.value]

    def test_refuses_native_comparisons(self):
        other = self.session.encrypt(3)
        with self.assertRaises(TypeError):
            self.value == other
        with self.assertRaises(TypeError):
            self.value < other
        with self.assertRaises(TypeError):
            self.value >= 3

    def test_refuses_signed_and_true_division(self):
        with self.assertRaises(TypeError):
            -self.value
        with self.assertRaises(TypeError):
            self.value / 2
        with self.assertRaises(TypeError):
            self.value % 2

    def test_divide_only_by_public_constant(self):
        with self.assertRaises(TypeError):
            self.value // self.session.encrypt(2)
        with self.assertRaises(ZeroDivisionError):
            self.value // 0
        self.assertEqual(self.session.decrypt(self.value // 2), 3)

    def test_boolean_is_opaque(self):
        flag = self.value.lt(9)
        self.assertIsInstance(flag, EncryptedBool)
        with self.assertRaises(TypeError):
            if flag:
                pass

    def test_repr_hides_value(self):
        secret = self.session.encrypt(987654321)
        self.assertNotIn("987654321", repr(secret))
        self.assertIn("EncryptedUInt", repr(secret))

    def test_usable_as_dict_key(self):
        self.assertEqual({self.value: "x"}[self.value], "x")


class TestUnsignedArithmetic(unittest.TestCase):

    def setUp(self):
        self.session = FheSession("simulated", 8)

    def tearDown(self):
        self.session.close()

    def decrypt(self, value):
        return self.session.decrypt(value)

    def test_wrapping_subtraction(self):
        self.assertEqual(self.decrypt(self.session.encrypt(3) - 5), 254)
        self.assertEqual(self.decrypt(5 - self.session.encrypt(3)), 2)

    def test_wrapping_multiplication(self):
        self.assertEqual(self.decrypt(self.session.encrypt(16) * 16), 0)
        self.assertEqual(self.decrypt(self.session.encrypt(16) * self.session.encrypt(15)), 240)

    def test_reflected_operators(self):
        a = self.session.encrypt(10)
        self.assertEqual(self.decrypt(1 + a), 11)
        self.assertEqual(self.decrypt(3 * a), 30)

    def test_min_lt_select(self):
        a, b = self.session.encrypt(9), self.session.encrypt(4)
        self.assertEqual(self.decrypt(a.min(b)), 4)
        self.assertEqual(self.decrypt(b.min(a)), 4)
        self.assertTrue(self.decrypt(b.lt(a)))
        self.assertFalse(self.decrypt(a.lt(b)))
        self.assertFalse(self.decrypt(a.lt(9)))
        self.assertEqual(self.decrypt(b.lt(a).select(a, b)), 9)
        self.assertEqual(self.decrypt(a.lt(b).select(a, 77)), 77)

    def test_results_are_encrypted_uint(self):
        a = self.session.encrypt(1)
        for value in (a + 1, a - 1, a * a, a // 1, a.min(0), a.lt(2).select(a, 0)):
            self.assertIsInstance(value, EncryptedUInt)


class TestStatistics(unittest.TestCase):

    def test_depth_and_counts(self):
        with FheSession("simulated", 64) as session:
            a, b = session.encrypt(2), session.encrypt(3)
            c = a * b
            d = c * a + 1
            e = (d * 5) // 2

            self.assertEqual(c.depth, 1)
            self.assertEqual(d.depth, 2)
            self.assertEqual(e.depth, 2)

            stats = session.stats()
            self.assertEqual(stats.operations["encrypt"], 2)
            self.assertEqual(stats.multiplications, 2)
            self.assertEqual(stats.operations["mul_const"], 1)
            self.assertEqual(stats.operations["div_const"], 1)
            self.assertEqual(stats.max_depth, 2)
            self.assertEqual(stats.total, 5)

            session.reset_stats()
            self.assertEqual(session.stats().operations, {})
            self.assertEqual(session.stats().max_depth, 0)

    def test_to_dict(self):
        with FheSession("simulated", 64) as session:
            a = session.encrypt(2)
            a * a
            data = session.stats().to_dict()
        self.assertEqual(data["multiplications"], 1)
        self.assertEqual(data["max_depth"], 1)
        self.assertEqual(list(data["operations"]), sorted(data["operations"]))


class TestSessionBoundaries(unittest.TestCase):

    def test_cross_session_operands_rejected(self):
        with FheSession("simulated", 32) as first, FheSession("simulated", 32) as second:
            a, b = first.encrypt(1), second.encrypt(2)
            with self.assertRaises(EncryptionFailure):
                a + b
            with self.assertRaises(EncryptionFailure):
                first.decrypt(b)

    def test_closed_session_rejects_use(self):
        session = FheSession("simulated", 32)
        a = session.encrypt(5)
        session.close()
        self.assertTrue(session.closed)
        with self.assertRaises(EncryptionFailure):
            session.encrypt(1)
        with self.assertRaises(EncryptionFailure):
            a + 1
        with self.assertRaises(EncryptionFailure):
            session.decrypt(a)
        # Closing twice is harmless
        session.close()

    def test_plaintext_range_checks(self):
        with FheSession("simulated", 8) as session:
            with self.assertRaises(EncodingOverflow):
                session.encrypt(256)
            with self.assertRaises(EncodingOverflow):
                session.encrypt(-1)
            with self.assertRaises(EncodingOverflow):
                session.encrypt(10, bound=5)
            with self.assertRaises(EncodingOverflow):
                session.encrypt(1) + 300

    def test_plaintext_type_checks(self):
        with FheSession("simulated", 8) as session:
            with self.assertRaises(TypeError):
                session.encrypt(1.5)
            with self.assertRaises(TypeError):
                session.encrypt(True)
            with self.assertRaises(TypeError):
                session.decrypt(3)

    def test_invalid_width(self):
        with self.assertRaises(ValueError):
            FheSession("simulated", 0)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_backend("paillier", 32)

    def test_keygen_failure_is_encryption_failure(self):
        with self.assertRaises(EncryptionFailure):
            FheSession(FailingKeygenBackend(32), 32)

    def test_backend_failure_is_encryption_failure(self):
        with FheSession(FailingAddBackend(32), 32) as session:
            a = session.encrypt(1)
            with self.assertRaises(EncryptionFailure):
                a + a

    def test_session_ids_are_distinct(self):
        with FheSession() as first, FheSession() as second:
            self.assertNotEqual(first.session_id, second.session_id)
            self.assertEqual(first.backend_name, "simulated")
            self.assertEqual(first.width, 128)


class TestSimulatedBackend(unittest.TestCase):

    def test_handles_bound_to_key(self):
        first, second = SimulatedBackend(16), SimulatedBackend(16)
        first.keygen()
        second.keygen()
        handle = first.encrypt(5)
        self.assertEqual(first.decrypt(handle), 5)
        with self.assertRaises(EncryptionFailure):
            second.decrypt(handle)

    def test_destroyed_keys(self):
        backend = SimulatedBackend(16)
        backend.keygen()
        handle = backend.encrypt(5)
        backend.destroy_keys()
        with self.assertRaises(EncryptionFailure):
            backend.decrypt(handle)
        with self.assertRaises(EncryptionFailure):
            backend.encrypt(1)

    def test_handle_repr_hides_value(self):
        backend = SimulatedBackend(16)
        backend.keygen()
        handle = backend.encrypt(4321)
        self.assertEqual(repr(handle), f"SimulatedCiphertext(key_id={handle.key_id!r})")


if __name__ == '__main__':
    unittest.main()
