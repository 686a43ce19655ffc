import math
import unittest

import numpy as np

from tunneling_physics import (
    HBAR2_2M,
    Phase,
    PHASE_COLORS,
    GLOW_COLORS,
    calculate_tunneling_probability,
    evaluate,
)


class TestClassicalRegime(unittest.TestCase):
    def test_energy_above_or_equal_barrier_transmits(self):
        for energy, height in [(10.0, 8.0), (8.0, 8.0), (20.0, 0.5), (0.0, 0.0)]:
            physics = evaluate(energy, height, 1.5)
            self.assertTrue(physics.is_classical)
            self.assertEqual(physics.probability, 1.0)
            self.assertEqual(physics.kappa, 0.0)
            self.assertEqual(physics.reflection_probability, 0.0)

    def test_classical_always_tunnels(self):
        physics = evaluate(10.0, 8.0, 1.5)
        rng = np.random.default_rng(0)
        self.assertTrue(all(physics.sample_will_tunnel(rng) for _ in range(200)))

    def test_classical_decay_is_flat(self):
        physics = evaluate(10.0, 8.0, 1.5)
        for progress in (0.0, 0.3, 1.0):
            self.assertEqual(physics.evanescent_decay(progress), 1.0)


class TestWkbTransmission(unittest.TestCase):
    def test_reference_configuration(self):
        physics = evaluate(5.0, 8.0, 1.5, 1.0)
        self.assertFalse(physics.is_classical)
        self.assertAlmostEqual(physics.kappa, math.sqrt(3.0 / HBAR2_2M))
        self.assertAlmostEqual(physics.kappa, 8.87, places=1)
        self.assertAlmostEqual(physics.k, math.sqrt(5.0 / HBAR2_2M))
        self.assertGreater(physics.probability, 1e-12)
        self.assertLess(physics.probability, 1e-11)
        self.assertAlmostEqual(physics.reflection_probability, 1.0)

    def test_wider_barrier_never_transmits_more(self):
        widths = [0.0, 0.1, 0.5, 1.0, 1.5, 3.0, 10.0]
        values = [evaluate(5.0, 8.0, w).probability for w in widths]
        for wider, narrower in zip(values[1:], values[:-1]):
            self.assertLessEqual(wider, narrower)

    def test_energy_closer_to_barrier_transmits_more(self):
        energies = [0.5, 1.0, 3.0, 5.0, 7.0, 7.9, 7.99]
        values = [evaluate(e, 8.0, 0.5).probability for e in energies]
        for higher, lower in zip(values[1:], values[:-1]):
            self.assertGreaterEqual(higher, lower)

    def test_probability_always_in_unit_interval(self):
        for energy in (0.0, 1.0, 5.0, 8.0, 20.0):
            for height in (0.0, 0.1, 8.0, 20.0):
                for width in (0.0, 0.5, 100.0, 1e6):
                    physics = evaluate(energy, height, width)
                    self.assertGreaterEqual(physics.probability, 0.0)
                    self.assertLessEqual(physics.probability, 1.0)
                    self.assertAlmostEqual(physics.probability + physics.reflection_probability, 1.0)

    def test_heavier_particle_tunnels_less(self):
        light = evaluate(5.0, 8.0, 0.3, 1.0).probability
        heavy = evaluate(5.0, 8.0, 0.3, 2.0).probability
        self.assertLess(heavy, light)

    def test_shortcut_matches_evaluate(self):
        self.assertEqual(
            calculate_tunneling_probability(5.0, 6.0, 0.07),
            evaluate(5.0, 6.0, 0.07).probability,
        )


class TestDegenerateInputs(unittest.TestCase):
    def test_negative_width_clamps_to_one(self):
        physics = evaluate(5.0, 8.0, -1e6)
        self.assertEqual(physics.probability, 1.0)

    def test_huge_width_underflows_to_zero(self):
        physics = evaluate(1.0, 20.0, 1e9)
        self.assertEqual(physics.probability, 0.0)
        self.assertFalse(math.isnan(physics.probability))

    def test_zero_energy_has_zero_wave_number(self):
        physics = evaluate(0.0, 8.0, 1.0)
        self.assertEqual(physics.k, 0.0)

    def test_non_positive_mass_uses_unit_mass(self):
        with self.assertLogs('quantum_tunneling.physics', level='WARNING'):
            physics = evaluate(5.0, 8.0, 0.5, 0.0)
        self.assertEqual(physics.probability, evaluate(5.0, 8.0, 0.5, 1.0).probability)


class TestEvanescentDecay(unittest.TestCase):
    def test_non_increasing_through_barrier(self):
        physics = evaluate(5.0, 8.0, 1.5)
        values = [physics.evanescent_decay(p) for p in np.linspace(0.0, 1.0, 21)]
        self.assertEqual(values[0], 1.0)
        for later, earlier in zip(values[1:], values[:-1]):
            self.assertLessEqual(later, earlier)
        self.assertAlmostEqual(values[-1], math.exp(-physics.kappa * 1.5))

    def test_progress_outside_barrier_is_clipped(self):
        physics = evaluate(5.0, 8.0, 1.5)
        self.assertEqual(physics.evanescent_decay(-0.5), 1.0)
        self.assertEqual(physics.evanescent_decay(2.0), physics.evanescent_decay(1.0))


class TestSampling(unittest.TestCase):
    def test_opaque_barrier_reflects(self):
        physics = evaluate(5.0, 8.0, 1.5)
        rng = np.random.default_rng(3)
        self.assertFalse(any(physics.sample_will_tunnel(rng) for _ in range(1000)))

    def test_sample_frequency_converges_to_probability(self):
        physics = evaluate(5.0, 6.0, 0.07)
        self.assertGreater(physics.probability, 0.4)
        self.assertLess(physics.probability, 0.6)
        rng = np.random.default_rng(1234)
        hits = sum(physics.sample_will_tunnel(rng) for _ in range(5000))
        self.assertLess(abs(hits / 5000 - physics.probability), 0.025)

    def test_works_without_generator(self):
        physics = evaluate(5.0, 6.0, 0.07)
        self.assertIsInstance(physics.sample_will_tunnel(), bool)


class TestPalette(unittest.TestCase):
    def test_every_phase_has_colours(self):
        for phase in Phase:
            self.assertIn(phase, PHASE_COLORS)
            self.assertIn(phase, GLOW_COLORS)


if __name__ == "__main__":
    unittest.main()
