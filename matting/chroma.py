"""
Manual colour-key pass.

Metric: Euclidean RGB distance to the key colour. The tolerance (0-50) is a percentage
of the largest possible RGB distance and defines the cut radius t:

  d <= t               -> alpha * 0      (hard cut)
  t < d < t * 1.5      -> alpha * linear ramp 0..1
  d >= t * 1.5         -> alpha unchanged

Tolerance 0 removes only exact key-colour pixels.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .config import CHROMA_KEY_RAMP, CHROMA_KEY_TOLERANCE, CHROMA_KEY_TOLERANCE_MAX, MAX_RGB_DISTANCE


def key_distance(rgb: np.ndarray, key_color: Sequence[int]) -> np.ndarray:
    """Per-pixel Euclidean RGB distance to key_color, float64 (H, W)."""
    if rgb.ndim != 3 or rgb.shape[2] < 3:
        raise ValueError(f"Expected colour buffer (H,W,3+), got {rgb.shape}")
    key = np.asarray(key_color, dtype=np.float64)[:3]
    diff = rgb[..., :3].astype(np.float64) - key
    return np.sqrt((diff**2).sum(axis=-1))


def chroma_key_factor(
    rgb: np.ndarray,
    key_color: Sequence[int],
    tolerance: int = CHROMA_KEY_TOLERANCE,
) -> np.ndarray:
    """
    Opacity multiplier in [0, 1] for every pixel.
    """
    if not 0 <= tolerance <= CHROMA_KEY_TOLERANCE_MAX:
        raise ValueError(f"Chroma key tolerance must be in [0, {CHROMA_KEY_TOLERANCE_MAX}], got {tolerance}")
    d = key_distance(rgb, key_color)
    cut = (float(tolerance) / 100.0) * MAX_RGB_DISTANCE
    ramp = cut * CHROMA_KEY_RAMP
    if ramp <= 0:
        return (d > 0).astype(np.float64)
    return np.clip((d - cut) / ramp, 0.0, 1.0)


def chroma_key_alpha(
    alpha: np.ndarray,
    rgb: np.ndarray,
    key_color: Sequence[int],
    tolerance: int = CHROMA_KEY_TOLERANCE,
) -> np.ndarray:
    """
    Suppress alpha for pixels close to key_color. Returns a new float64 alpha.
    """
    if alpha.shape != rgb.shape[:2]:
        raise ValueError(f"Alpha shape {alpha.shape} does not match colour buffer {rgb.shape[:2]}")
    factor = chroma_key_factor(rgb, key_color, tolerance)
    return np.clip(alpha.astype(np.float64) * factor, 0.0, 1.0)
