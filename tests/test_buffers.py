import unittest

import numpy as np

from matting.buffers import RGBA_CHANNELS, as_mask, as_pixel_buffer, check_dimensions
from matting.errors import InvalidDimensionsError


class TestLayout(unittest.TestCase):
    def test_pixel_buffer_strides(self):
        h, w = 5, 7
        px = as_pixel_buffer(np.zeros((h, w, RGBA_CHANNELS), dtype=np.uint8))
        self.assertEqual(px.strides, (w * RGBA_CHANNELS, RGBA_CHANNELS, 1))
        self.assertEqual(as_mask(np.zeros((h, w), dtype=np.uint8)).strides, (w, 1))

    def test_flat_bytes_match_indexing(self):
        h, w = 5, 7
        px = np.arange(h * w * RGBA_CHANNELS, dtype=np.uint8).reshape(h, w, RGBA_CHANNELS)
        flat = as_pixel_buffer(px).tobytes()
        for y, x in ((0, 0), (2, 3), (4, 6)):
            base = (y * w + x) * RGBA_CHANNELS
            self.assertEqual(list(flat[base : base + RGBA_CHANNELS]), px[y, x].tolist())


class TestValidation(unittest.TestCase):
    def test_non_contiguous_input_is_copied(self):
        big = np.zeros((4, 8, 4), dtype=np.uint8)
        view = big[:, ::2]
        out = as_pixel_buffer(view)
        self.assertTrue(out.flags["C_CONTIGUOUS"])
        self.assertEqual(out.shape, (4, 4, 4))

    def test_rejects_wrong_shapes(self):
        with self.assertRaises(InvalidDimensionsError):
            as_pixel_buffer(np.zeros((0, 4, 4), dtype=np.uint8))
        with self.assertRaises(InvalidDimensionsError):
            as_mask(np.zeros((4, 4, 1), dtype=np.uint8))
        with self.assertRaises(InvalidDimensionsError):
            as_mask([[0, 1]])

    def test_check_dimensions(self):
        px = np.zeros((3, 5, 4), dtype=np.uint8)
        self.assertEqual(check_dimensions(px, np.zeros((3, 5), dtype=np.uint8)), (3, 5))
        with self.assertRaises(InvalidDimensionsError):
            check_dimensions(px, np.zeros((5, 3), dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
