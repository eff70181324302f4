from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import cv2
import numpy as np
import torch

from .config import NORM_MEAN, NORM_STD, PAD_COLOR, TARGET_SIZE


@dataclass(frozen=True)
class PreprocessMeta:
    """Metadata required to map model-space masks back to the source canvas."""

    orig_h: int
    orig_w: int
    resized_h: int
    resized_w: int
    scale: float
    x_offset: int
    y_offset: int
    target_size: int = TARGET_SIZE


def resize_with_padding(img: np.ndarray, target_size: int = TARGET_SIZE) -> Tuple[np.ndarray, PreprocessMeta]:
    """
    Aspect-safe resize of an RGB(A) uint8 image into a target_size square, padded with PAD_COLOR.

    Returns:
      - padded_rgb: uint8 ndarray (target_size, target_size, 3)
      - meta: PreprocessMeta containing scale and offsets
    """
    if img.ndim != 3 or img.shape[2] not in (3, 4):
        raise ValueError(f"Expected RGB or RGBA image (H,W,3|4), got shape={img.shape}")

    rgb = np.ascontiguousarray(img[..., :3])
    orig_h, orig_w = rgb.shape[:2]
    if orig_h <= 0 or orig_w <= 0:
        raise ValueError(f"Invalid image size: {(orig_h, orig_w)}")

    # Segmentation models are trained at a fixed square size, so small inputs are upscaled too.
    scale = float(target_size) / float(max(orig_h, orig_w))
    resized_w = max(1, int(round(orig_w * scale)))
    resized_h = max(1, int(round(orig_h * scale)))

    resized = cv2.resize(rgb, (resized_w, resized_h), interpolation=cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC)

    padded = np.full((target_size, target_size, 3), PAD_COLOR, dtype=np.uint8)
    x_offset = (target_size - resized_w) // 2
    y_offset = (target_size - resized_h) // 2
    padded[y_offset : y_offset + resized_h, x_offset : x_offset + resized_w] = resized

    meta = PreprocessMeta(
        orig_h=orig_h,
        orig_w=orig_w,
        resized_h=resized_h,
        resized_w=resized_w,
        scale=scale,
        x_offset=x_offset,
        y_offset=y_offset,
        target_size=target_size,
    )
    return padded, meta


def normalize(
    img: np.ndarray,
    mean: Sequence[float] = NORM_MEAN,
    std: Sequence[float] = NORM_STD,
) -> torch.Tensor:
    """
    uint8 RGB square -> float32 NCHW tensor, (x/255 - mean) / std.
    """
    if img.ndim != 3 or img.shape[2] != 3 or img.shape[0] != img.shape[1]:
        raise ValueError(f"Expected square RGB image (S,S,3), got {img.shape}")
    x = img.astype(np.float32) / 255.0
    mean_arr = np.array(mean, dtype=np.float32).reshape(1, 1, 3)
    std_arr = np.array(std, dtype=np.float32).reshape(1, 1, 3)
    x = (x - mean_arr) / std_arr
    x = np.transpose(x, (2, 0, 1))  # CHW
    return torch.from_numpy(np.ascontiguousarray(x)).unsqueeze(0).float()


def meta_to_dict(meta: PreprocessMeta) -> Dict[str, int | float]:
    """JSON-friendly view of the preprocessing metadata (used in debug logs)."""
    return {
        "orig_h": meta.orig_h,
        "orig_w": meta.orig_w,
        "resized_h": meta.resized_h,
        "resized_w": meta.resized_w,
        "scale": float(meta.scale),
        "x_offset": int(meta.x_offset),
        "y_offset": int(meta.y_offset),
        "target_size": int(meta.target_size),
    }
