import unittest

import numpy as np
import torch

from matting.adapter import SegmentationAdapter
from matting.errors import ModelLoadError


class _SplitLogitsModel(torch.nn.Module):
    """Left half foreground, right half background, as logits."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        _, _, h, w = x.shape
        y = torch.full((1, 1, h, w), -20.0)
        y[..., : w // 2] = 20.0
        return y


class _NestedProbabilityModel(torch.nn.Module):
    """RMBG-style output: ([finest, coarser, ...], [features]) with probabilities."""

    def forward(self, x: torch.Tensor):
        _, _, h, w = x.shape
        finest = torch.full((1, 1, h, w), 0.75)
        coarse = torch.zeros((1, 1, h // 2, w // 2))
        return [finest, coarse], [torch.zeros(1)]


class _RecordingModel(torch.nn.Module):
    """Keeps the last input tensor so tests can check preprocessing."""

    def __init__(self):
        super().__init__()
        self.last_input = None

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        self.last_input = x.detach().clone()
        return torch.zeros((1, 1) + tuple(x.shape[-2:]))


class _ClosingModel(torch.nn.Module):
    """Releases the adapter from inside its own forward pass."""

    def __init__(self, adapter_ref):
        super().__init__()
        self.adapter_ref = adapter_ref

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        self.adapter_ref["adapter"].close()
        return torch.full((1, 1) + tuple(x.shape[-2:]), 20.0)


def _image(h: int = 32, w: int = 32) -> np.ndarray:

    img = np.zeros((h, w, 4), dtype=np.uint8)
    img[..., 3] = 255
    return img


class TestSegmentationAdapter(unittest.TestCase):
    def test_mask_matches_image_size(self):
        adapter = SegmentationAdapter(
            variants=["fake"],
            device=torch.device("cpu"),
            target_size=64,
            loader=lambda spec, device: _SplitLogitsModel(),
        )
        mask = adapter.predict_mask(_image(32, 32))
        self.assertEqual(mask.shape, (32, 32))
        self.assertEqual(mask.dtype, np.uint8)
        self.assertTrue((mask[:, :14] >= 254).all())
        self.assertTrue((mask[:, 18:] <= 1).all())

    def test_non_square_image(self):
        adapter = SegmentationAdapter(
            variants=["fake"],
            device=torch.device("cpu"),
            target_size=64,
            loader=lambda spec, device: _SplitLogitsModel(),
        )
        mask = adapter.predict_mask(_image(20, 48))
        self.assertEqual(mask.shape, (20, 48))

    def test_falls_back_to_next_variant(self):
        def loader(spec, device):
            if spec == "hf:broken/model":
                raise OSError("download failed")
            return _SplitLogitsModel()

        adapter = SegmentationAdapter(
            variants=["hf:broken/model", "hf:working/model"],
            device=torch.device("cpu"),
            loader=loader,
        )
        adapter.initialize()
        self.assertEqual(adapter.model_id, "hf:working/model")
        self.assertIn("hf:broken/model", adapter.load_errors)
        self.assertIn("download failed", adapter.load_errors["hf:broken/model"])

    def test_all_variants_fail(self):
        def loader(spec, device):
            raise RuntimeError(f"cannot load {spec}")

        adapter = SegmentationAdapter(variants=["a", "b"], device=torch.device("cpu"), loader=loader)
        with self.assertRaises(ModelLoadError):
            adapter.initialize()
        self.assertEqual(set(adapter.load_errors), {"a", "b"})
        self.assertFalse(adapter.is_initialized)

    def test_model_loaded_once(self):
        calls = {"n": 0}

        def loader(spec, device):
            calls["n"] += 1
            return _SplitLogitsModel()

        adapter = SegmentationAdapter(variants=["fake"], device=torch.device("cpu"), target_size=32, loader=loader)
        adapter.predict_mask(_image())
        adapter.predict_mask(_image())
        adapter.initialize()
        self.assertEqual(calls["n"], 1)

    def test_probability_output_is_not_squashed(self):
        adapter = SegmentationAdapter(
            variants=["hf:briaai/RMBG-1.4"],
            device=torch.device("cpu"),
            target_size=32,
            loader=lambda spec, device: _NestedProbabilityModel(),
        )
        mask = adapter.predict_mask(_image(16, 16))
        np.testing.assert_array_equal(mask, 191)

    def test_close_releases_model(self):
        adapter = SegmentationAdapter(
            variants=["fake"],
            device=torch.device("cpu"),
            loader=lambda spec, device: _SplitLogitsModel(),
        )
        adapter.initialize()
        adapter.close()
        self.assertFalse(adapter.is_initialized)
        self.assertIsNone(adapter.model_id)

    def test_predict_after_close_reloads(self):
        calls = {"n": 0}

        def loader(spec, device):
            calls["n"] += 1
            return _SplitLogitsModel()

        adapter = SegmentationAdapter(variants=["fake"], device=torch.device("cpu"), target_size=32, loader=loader)
        adapter.predict_mask(_image())
        adapter.close()
        mask = adapter.predict_mask(_image())
        self.assertEqual(mask.shape, (32, 32))
        self.assertEqual(calls["n"], 2)
        self.assertEqual(adapter.model_id, "fake")

    def test_close_during_prediction_finishes_call(self):
        ref = {}
        adapter = SegmentationAdapter(
            variants=["fake"],
            device=torch.device("cpu"),
            target_size=32,
            loader=lambda spec, device: _ClosingModel(ref),
        )
        ref["adapter"] = adapter
        mask = adapter.predict_mask(_image(16, 16))
        self.assertTrue((mask >= 254).all())
        self.assertFalse(adapter.is_initialized)

    def test_rmbg_normalization(self):
        model = _RecordingModel()
        adapter = SegmentationAdapter(
            variants=["hf:briaai/RMBG-1.4"],
            device=torch.device("cpu"),
            target_size=32,
            loader=lambda spec, device: model,
        )
        img = _image(16, 16)
        img[..., :3] = 128
        adapter.predict_mask(img)
        self.assertAlmostEqual(float(model.last_input[0, 0, 5, 5]), 128 / 255 - 0.5, places=4)

    def test_birefnet_uses_imagenet_normalization(self):
        model = _RecordingModel()
        adapter = SegmentationAdapter(
            variants=["hf:ZhengPeng7/BiRefNet"],
            device=torch.device("cpu"),
            target_size=32,
            loader=lambda spec, device: model,
        )
        img = _image(16, 16)
        img[..., :3] = 128
        adapter.predict_mask(img)
        x = model.last_input[0, :, 5, 5]
        self.assertAlmostEqual(float(x[0]), (128 / 255 - 0.485) / 0.229, places=4)
        self.assertAlmostEqual(float(x[1]), (128 / 255 - 0.456) / 0.224, places=4)
        self.assertAlmostEqual(float(x[2]), (128 / 255 - 0.406) / 0.225, places=4)



if __name__ == "__main__":
    unittest.main()
