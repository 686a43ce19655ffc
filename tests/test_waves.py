import math
import unittest

import numpy as np

from config import WaveConfig
from tunneling_physics import evaluate
from waves import WaveCurves, WaveOverlay, sample_waves

CFG = WaveConfig()


def edges(width):
    return -width / 2.0, width / 2.0


class TestSampleWaves(unittest.TestCase):
    def test_all_segments_for_partial_transmission(self):
        physics = evaluate(5.0, 6.0, 0.5)
        curves = sample_waves(0.0, physics, *edges(0.5), CFG)
        names = [name for name, _ in curves.segments()]
        self.assertEqual(names, ['incident', 'reflected', 'evanescent', 'transmitted'])
        for _, points in curves.segments():
            self.assertEqual(points.ndim, 2)
            self.assertEqual(points.shape[1], 2)
            self.assertGreaterEqual(points.shape[0], 2)

    def test_segments_cover_their_regions(self):
        left, right = edges(0.4)
        curves = sample_waves(0.7, evaluate(5.0, 6.0, 0.4), left, right, CFG)
        self.assertAlmostEqual(curves.incident[0, 0], CFG.domain_min)
        self.assertLessEqual(curves.incident[-1, 0], left)
        self.assertAlmostEqual(curves.evanescent[0, 0], left)
        self.assertLessEqual(curves.evanescent[-1, 0], right + 1e-9)
        self.assertAlmostEqual(curves.transmitted[0, 0], right)
        self.assertLessEqual(curves.transmitted[-1, 0], CFG.domain_max + 1e-9)
        np.testing.assert_allclose(np.diff(curves.incident[:, 0]), CFG.sample_step)
        np.testing.assert_allclose(np.diff(curves.evanescent[:, 0]), CFG.barrier_sample_step)

    def test_classical_has_no_reflection_or_decay(self):
        curves = sample_waves(1.0, evaluate(10.0, 8.0, 1.5), *edges(1.5), CFG)
        self.assertIsNotNone(curves.incident)
        self.assertIsNone(curves.reflected)
        self.assertIsNone(curves.evanescent)
        self.assertIsNotNone(curves.transmitted)

    def test_opaque_barrier_has_no_transmitted_wave(self):
        physics = evaluate(5.0, 8.0, 1.5)
        self.assertLess(physics.probability, CFG.transmitted_threshold)
        curves = sample_waves(1.0, physics, *edges(1.5), CFG)
        self.assertIsNone(curves.transmitted)
        self.assertIsNotNone(curves.reflected)

    def test_faint_reflection_is_omitted(self):
        physics = evaluate(5.0, 5.01, 0.005)
        self.assertLessEqual(physics.reflection_probability, CFG.reflected_threshold)
        curves = sample_waves(0.0, physics, *edges(0.005), CFG)
        self.assertIsNone(curves.reflected)

    def test_curves_sit_on_the_energy_level(self):
        physics = evaluate(6.0, 7.0, 0.4)
        baseline = 3.0
        curves = sample_waves(2.3, physics, *edges(0.4), CFG)
        incident_dev = np.abs(curves.incident[:, 1] - baseline)
        self.assertLessEqual(incident_dev.max(), CFG.amplitude + 1e-12)

        reflected_dev = np.abs(curves.reflected[:, 1] - (baseline + CFG.reflected_offset))
        self.assertLessEqual(reflected_dev.max(), CFG.amplitude * math.sqrt(physics.reflection_probability) + 1e-12)

        transmitted_dev = np.abs(curves.transmitted[:, 1] - baseline)
        self.assertLessEqual(transmitted_dev.max(), CFG.amplitude * math.sqrt(physics.probability) + 1e-12)

    def test_evanescent_envelope_decays(self):
        physics = evaluate(5.0, 8.0, 1.5)
        curves = sample_waves(1.0, physics, *edges(1.5), CFG)
        deviation = np.abs(curves.evanescent[:, 1] - 2.5)
        self.assertTrue(np.all(np.diff(deviation) <= 1e-12))
        self.assertAlmostEqual(deviation[0], CFG.amplitude * abs(math.sin(-1.0)))

    def test_phase_moves_the_wave(self):
        physics = evaluate(5.0, 6.0, 0.5)
        a = sample_waves(0.0, physics, *edges(0.5), CFG)
        b = sample_waves(1.0, physics, *edges(0.5), CFG)
        np.testing.assert_array_equal(a.incident[:, 0], b.incident[:, 0])
        self.assertFalse(np.allclose(a.incident[:, 1], b.incident[:, 1]))


class TestWaveOverlay(unittest.TestCase):
    def setUp(self):
        self.overlay = WaveOverlay(CFG)
        self.physics = evaluate(5.0, 6.0, 0.5)

    def test_phase_accumulates_frame_time(self):
        self.overlay.advance(0.1)
        self.overlay.advance(0.2)
        self.assertAlmostEqual(self.overlay.time, 0.3 * CFG.time_rate)

    def test_bad_frame_time_is_ignored(self):
        self.overlay.advance(0.5)
        before = self.overlay.time
        for dt in (0.0, -1.0, float('nan'), float('inf')):
            self.overlay.advance(dt)
        self.assertEqual(self.overlay.time, before)

    def test_individual_toggles(self):
        self.overlay.show_reflected = False
        self.overlay.show_transmitted = False
        curves = self.overlay.sample(self.physics, *edges(0.5))
        self.assertEqual([name for name, _ in curves.segments()], ['incident', 'evanescent'])

    def test_hidden_overlay_is_empty(self):
        self.overlay.visible = False
        curves = self.overlay.sample(self.physics, *edges(0.5))
        self.assertEqual(curves, WaveCurves())
        self.assertEqual(list(curves.segments()), [])


if __name__ == "__main__":
    unittest.main()
