import unittest

import numpy as np

from montgomery_engine import EngineMode, engine_latency
from timing_profile import exponent_bit_leakage, mean_difference, profile_exponentiations


class TestTimingProfile(unittest.TestCase):

    def test_fixed_exponent_has_constant_product_count(self):
        bases = [2, 3, 42, 1000, 3232]
        profile = profile_exponentiations(3233, 64, bases, [2753] * len(bases), 12)
        self.assertTrue(np.all(profile.products == profile.products[0]))
        self.assertTrue(np.all(profile.cycles == profile.products * engine_latency(64)))
        # The engine's conditional additions still depend on the base
        self.assertGreater(len(set(profile.add_counts.tolist())), 1)

    def test_step_and_collapsed_report_the_same_counts(self):
        args = (3233, 64, [5, 7, 11], [17, 2753, 3], 12)
        step = profile_exponentiations(*args, mode=EngineMode.STEP)
        collapsed = profile_exponentiations(*args, mode=EngineMode.COLLAPSED)
        np.testing.assert_array_equal(step.cycles, collapsed.cycles)
        np.testing.assert_array_equal(step.add_counts, collapsed.add_counts)

    def test_each_set_exponent_bit_costs_one_product(self):
        bit_count = 4
        leakage = exponent_bit_leakage(3233, 64, bit_count, exponents=range(2 ** bit_count))
        self.assertEqual(leakage.shape, (bit_count,))
        np.testing.assert_allclose(leakage, engine_latency(64))

    def test_random_exponents_are_reproducible(self):
        first = exponent_bit_leakage(3233, 64, 6, samples=10, seed=3)
        second = exponent_bit_leakage(3233, 64, 6, samples=10, seed=3)
        np.testing.assert_array_equal(first, second)

    def test_mean_difference(self):
        values = np.array([10, 20, 30, 40])
        self.assertEqual(mean_difference(values, np.array([True, True, False, False])), 20.0)
        self.assertEqual(mean_difference(values, np.zeros(4, dtype=bool)), 0.0)

    def test_summary(self):
        profile = profile_exponentiations(3233, 64, [2, 3], [17, 17], 5)
        summary = profile.summary()
        self.assertEqual(summary['samples'], 2)
        self.assertEqual(summary['cycles_std'], 0.0)
        self.assertEqual(summary['cycles_mean'], float(10 * engine_latency(64)))


if __name__ == '__main__':
    unittest.main(verbosity=2)
