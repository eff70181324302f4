from __future__ import annotations

import cv2
import numpy as np
import torch

from .model import forward_model
from .preprocess import PreprocessMeta


def _extract_primary_output(y):
    """
    Segmentation models may return:
      - a single tensor
      - (tensor, ...) tuple/list, possibly nested (final stage is the first or last entry)
      - dict / ModelOutput with tensor fields

    RMBG-style models put the finest prediction first; BiRefNet-style models put it last.
    For lists we take the first tensor found at the top level of a nested list (RMBG) and
    otherwise the last tensor.
    """
    if isinstance(y, torch.Tensor):
        return y
    logits = getattr(y, "logits", None)
    if isinstance(logits, torch.Tensor):
        return logits
    if isinstance(y, (list, tuple)) and len(y) > 0:
        if isinstance(y[0], (list, tuple)) and len(y[0]) > 0:
            return _extract_primary_output(y[0][0])
        for item in reversed(y):
            if isinstance(item, torch.Tensor):
                return item
        return _extract_primary_output(y[-1])
    if isinstance(y, dict):
        for k in ("logits", "pred", "alpha", "mask"):
            v = y.get(k, None)
            if isinstance(v, torch.Tensor):
                return v
        for v in y.values():
            if isinstance(v, torch.Tensor):
                return v
    return y


def predict_probability(
    model: torch.nn.Module,
    x: torch.Tensor,
    device: torch.device,
    *,
    logits: bool = True,
) -> np.ndarray:
    """
    Forward pass -> foreground probability in model space.

    Output:
      - float32 numpy array in [0,1]
      - shape (S, S) matching the input tensor's spatial size
    """
    if x.ndim != 4 or x.shape[0] != 1:
        raise ValueError(f"Expected input tensor (1,3,H,W), got {tuple(x.shape)}")
    size = tuple(x.shape[-2:])

    y = forward_model(model, x.float().to(device))
    y = _extract_primary_output(y)
    if not isinstance(y, torch.Tensor):
        raise RuntimeError(f"Model output is not a tensor: {type(y)}")

    # Expect (1,1,H,W), (1,H,W) or (H,W)
    if y.ndim == 4:
        y = y[0, 0]
    elif y.ndim == 3:
        y = y[0]
    elif y.ndim != 2:
        raise RuntimeError(f"Unexpected output tensor shape: {tuple(y.shape)}")

    y = y.float()
    if tuple(y.shape) != size:
        y = torch.nn.functional.interpolate(
            y.unsqueeze(0).unsqueeze(0),
            size=size,
            mode="bilinear",
            align_corners=False,
        )[0, 0]

    p = torch.sigmoid(y) if logits else y
    if torch.isnan(p).any():
        raise RuntimeError("NaNs detected in predicted mask.")

    prob = p.detach().to("cpu").numpy().astype(np.float32, copy=False)
    return np.clip(prob, 0.0, 1.0)


def restore_mask_to_original(prob: np.ndarray, meta: PreprocessMeta) -> np.ndarray:
    """
    Model-space probability -> uint8 mask at the source resolution.

    Steps:
      1) remove padding using x/y offsets + resized sizes
      2) bilinear resize back to (orig_w, orig_h)
      3) scale to 0..255 (truncating, like a uint8 tensor cast)
    """
    if prob.ndim != 2:
        raise ValueError(f"Expected 2D mask, got shape={prob.shape}")

    x0, y0 = meta.x_offset, meta.y_offset
    x1, y1 = x0 + meta.resized_w, y0 + meta.resized_h
    cropped = prob[y0:y1, x0:x1].astype(np.float32, copy=False)
    if cropped.size == 0:
        raise ValueError("Mask crop is empty; check preprocessing meta.")

    restored = cv2.resize(cropped, (meta.orig_w, meta.orig_h), interpolation=cv2.INTER_LINEAR)
    restored = np.clip(restored, 0.0, 1.0)
    return (restored * 255.0).astype(np.uint8)
