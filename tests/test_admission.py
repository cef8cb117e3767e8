"""
Tests for the per-guild admission gate.
"""

import unittest

from utils.admission import AdmissionGate


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestAdmissionGate(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.gate = AdmissionGate(5.0, clock=self.clock)

    def test_first_request_admitted(self):
        self.assertTrue(self.gate.try_admit("guild-1"))

    def test_rejected_inside_cooldown(self):
        self.assertTrue(self.gate.try_admit("guild-1"))
        self.clock.now += 4.9
        self.assertFalse(self.gate.try_admit("guild-1"))

    def test_admitted_at_exact_cooldown(self):
        self.assertTrue(self.gate.try_admit("guild-1"))
        self.clock.now += 5.0
        self.assertTrue(self.gate.try_admit("guild-1"))

    def test_admitted_after_cooldown(self):
        self.assertTrue(self.gate.try_admit("guild-1"))
        self.clock.now += 7.5
        self.assertTrue(self.gate.try_admit("guild-1"))

    def test_rejection_does_not_extend_window(self):
        self.assertTrue(self.gate.try_admit("guild-1"))
        self.clock.now += 3.0
        self.assertFalse(self.gate.try_admit("guild-1"))
        self.clock.now += 2.0  # 5s after the admitted request
        self.assertTrue(self.gate.try_admit("guild-1"))

    def test_guilds_are_independent(self):
        self.assertTrue(self.gate.try_admit("guild-a"))
        self.assertTrue(self.gate.try_admit("guild-b"))
        self.assertFalse(self.gate.try_admit("guild-a"))
        self.assertFalse(self.gate.try_admit("guild-b"))
        self.assertTrue(self.gate.try_admit("guild-c"))

    def test_explicit_now(self):
        self.assertTrue(self.gate.try_admit(42, now=1000.0))
        self.assertFalse(self.gate.try_admit(42, now=1002.0))
        self.assertTrue(self.gate.try_admit(42, now=1005.0))

    def test_explicit_now_ignores_clock(self):
        self.clock.now = 100.0
        self.assertTrue(self.gate.try_admit("g", now=0.0))
        self.clock.now = 200.0
        self.assertFalse(self.gate.try_admit("g", now=2.0))
        self.assertAlmostEqual(self.gate.retry_after("g", now=2.0), 3.0)
        self.assertTrue(self.gate.try_admit("g", now=5.0))

    def test_sweep_with_explicit_now(self):
        self.gate.try_admit("guild-a", now=10.0)
        self.gate.try_admit("guild-b", now=13.0)
        self.assertEqual(self.gate.sweep(now=16.0), 1)
        self.assertFalse(self.gate.try_admit("guild-b", now=16.0))

    def test_retry_after(self):
        self.assertEqual(self.gate.retry_after("guild-1"), 0.0)
        self.gate.try_admit("guild-1")
        self.clock.now += 1.5
        self.assertAlmostEqual(self.gate.retry_after("guild-1"), 3.5)
        self.clock.now += 10
        self.assertEqual(self.gate.retry_after("guild-1"), 0.0)

    def test_retry_after_is_read_only(self):
        self.gate.try_admit("guild-1")
        self.clock.now += 1.0
        self.gate.retry_after("guild-1")
        self.clock.now += 4.0
        self.assertTrue(self.gate.try_admit("guild-1"))

    def test_sweep_evicts_expired_records(self):
        self.gate.try_admit("guild-a")
        self.gate.try_admit("guild-b")
        self.clock.now += 2.0
        self.gate.try_admit("guild-c")
        self.clock.now += 3.5  # a and b expired, c still cooling down
        self.assertEqual(self.gate.sweep(), 2)
        self.assertEqual(len(self.gate), 1)
        self.assertFalse(self.gate.try_admit("guild-c"))

    def test_bounded_size(self):
        gate = AdmissionGate(5.0, maxsize=3, clock=self.clock)
        for i in range(10):
            self.assertTrue(gate.try_admit(i))
        self.assertLessEqual(len(gate), 3)

    def test_zero_cooldown_always_admits(self):
        gate = AdmissionGate(0.0, clock=self.clock)
        self.assertTrue(gate.try_admit("guild-1"))
        self.assertTrue(gate.try_admit("guild-1"))

    def test_negative_cooldown_rejected(self):
        with self.assertRaises(ValueError):
            AdmissionGate(-1.0)


if __name__ == "__main__":
    unittest.main()
