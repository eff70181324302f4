import unittest

import numpy as np

from matting.config import TARGET_SIZE
from matting.inference import restore_mask_to_original
from matting.preprocess import normalize, resize_with_padding


class TestPreprocessAspectRatios(unittest.TestCase):
    def _make_rgba(self, h: int, w: int) -> np.ndarray:
        # deterministic synthetic RGBA
        img = np.zeros((h, w, 4), dtype=np.uint8)
        img[..., 0] = 10
        img[..., 1] = 20
        img[..., 2] = 30
        img[..., 3] = 255
        return img

    def _make_prob_with_center_box(self) -> np.ndarray:
        m = np.zeros((TARGET_SIZE, TARGET_SIZE), dtype=np.float32)
        m[TARGET_SIZE // 4 : 3 * TARGET_SIZE // 4, TARGET_SIZE // 4 : 3 * TARGET_SIZE // 4] = 1.0
        return m

    def test_resize_with_padding_wide(self):
        img = self._make_rgba(256, 1024)
        padded, meta = resize_with_padding(img)
        self.assertEqual(padded.shape, (TARGET_SIZE, TARGET_SIZE, 3))
        self.assertEqual(meta.orig_h, 256)
        self.assertEqual(meta.orig_w, 1024)
        self.assertGreaterEqual(meta.x_offset, 0)
        self.assertGreaterEqual(meta.y_offset, 0)
        self.assertLessEqual(meta.resized_h, TARGET_SIZE)
        self.assertLessEqual(meta.resized_w, TARGET_SIZE)

        restored = restore_mask_to_original(self._make_prob_with_center_box(), meta)
        self.assertEqual(restored.shape, (256, 1024))
        self.assertEqual(restored.dtype, np.uint8)

    def test_resize_with_padding_tall(self):
        img = self._make_rgba(1024, 256)
        padded, meta = resize_with_padding(img)
        self.assertEqual(padded.shape, (TARGET_SIZE, TARGET_SIZE, 3))
        self.assertEqual(meta.orig_h, 1024)
        self.assertEqual(meta.orig_w, 256)

        restored = restore_mask_to_original(self._make_prob_with_center_box(), meta)
        self.assertEqual(restored.shape, (1024, 256))

    def test_resize_with_padding_square(self):
        img = self._make_rgba(800, 800)
        padded, meta = resize_with_padding(img)
        self.assertEqual(padded.shape, (TARGET_SIZE, TARGET_SIZE, 3))
        # for a perfect square, offsets match (no padding at all)
        self.assertEqual(meta.x_offset, meta.y_offset)
        self.assertEqual(meta.x_offset, 0)

        restored = restore_mask_to_original(self._make_prob_with_center_box(), meta)
        self.assertEqual(restored.shape, (800, 800))
        self.assertEqual(int(restored[400, 400]), 255)
        self.assertEqual(int(restored[5, 5]), 0)

    def test_custom_target_size(self):
        padded, meta = resize_with_padding(self._make_rgba(30, 60), target_size=64)
        self.assertEqual(padded.shape, (64, 64, 3))
        self.assertEqual((meta.resized_h, meta.resized_w), (32, 64))
        self.assertEqual(meta.y_offset, 16)

    def test_normalize_shape_and_range(self):
        padded, _meta = resize_with_padding(self._make_rgba(40, 40), target_size=32)
        x = normalize(padded)
        self.assertEqual(tuple(x.shape), (1, 3, 32, 32))
        self.assertAlmostEqual(float(x[0, 0, 0, 0]), 10 / 255 - 0.5, places=5)


if __name__ == "__main__":
    unittest.main()
