import unittest

import numpy as np

from matting.chroma import chroma_key_alpha, chroma_key_factor, key_distance
from matting.config import MAX_RGB_DISTANCE


class TestChromaKey(unittest.TestCase):
    def setUp(self):
        # white key; distances 0, 30, 55, 150 along the red channel
        self.rgb = np.array([[[255, 255, 255], [225, 255, 255], [200, 255, 255], [105, 255, 255]]], dtype=np.uint8)
        self.alpha = np.ones((1, 4), dtype=np.float64)

    def test_distance_is_euclidean(self):
        rgb = np.array([[[0, 0, 0]]], dtype=np.uint8)
        d = key_distance(rgb, (255, 255, 255))
        self.assertAlmostEqual(float(d[0, 0]), MAX_RGB_DISTANCE)

    def test_hard_cut_and_soft_ramp(self):
        out = chroma_key_alpha(self.alpha, self.rgb, (255, 255, 255), tolerance=10)
        cut = 0.10 * MAX_RGB_DISTANCE
        self.assertEqual(float(out[0, 0]), 0.0)
        self.assertEqual(float(out[0, 1]), 0.0)
        self.assertAlmostEqual(float(out[0, 2]), (55 - cut) / (0.5 * cut))
        self.assertEqual(float(out[0, 3]), 1.0)

    def test_zero_tolerance_cuts_exact_matches_only(self):
        factor = chroma_key_factor(self.rgb, (255, 255, 255), tolerance=0)
        np.testing.assert_array_equal(factor, [[0.0, 1.0, 1.0, 1.0]])

    def test_scales_existing_alpha(self):
        alpha = np.full((1, 4), 0.5)
        out = chroma_key_alpha(alpha, self.rgb, (255, 255, 255), tolerance=10)
        self.assertEqual(float(out[0, 3]), 0.5)
        self.assertEqual(float(out[0, 0]), 0.0)

    def test_tolerance_out_of_range(self):
        with self.assertRaises(ValueError):
            chroma_key_factor(self.rgb, (0, 0, 0), tolerance=51)


if __name__ == "__main__":
    unittest.main()
