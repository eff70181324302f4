from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from .buffers import as_mask
from .config import (
    ALPHA_THRESHOLD,
    BACKGROUND_SAMPLE_LEVEL,
    BASE_ALPHA_WEIGHT,
    FOREGROUND_SAMPLE_LEVEL,
    MATTE_SAMPLE_RADIUS,
    REFINE_ALPHA_HIGH,
    REFINE_ALPHA_LOW,
)


def base_alpha(final: np.ndarray, threshold: int = ALPHA_THRESHOLD) -> np.ndarray:
    """
    Threshold ramp from mask confidence to opacity.

    v <= threshold -> 0, otherwise (v - threshold) / (255 - threshold), clamped to [0, 1].
    Returns float64 (H, W).
    """
    m = as_mask(final)
    t = int(threshold)
    if not 0 <= t < 255:
        raise ValueError(f"Alpha threshold must be in [0, 254], got {threshold}")
    v = m.astype(np.float64)
    alpha = np.where(v > t, (v - t) / (255.0 - t), 0.0)
    return np.clip(alpha, 0.0, 1.0)


def _window_sum(values: np.ndarray, radius: int) -> np.ndarray:
    """
    Sum over a (2r+1)x(2r+1) window clipped to the canvas (out-of-canvas taps contribute 0).
    """
    r = int(radius)
    padded = np.pad(values, r, mode="constant", constant_values=0.0)
    k = 2 * r + 1
    summed = cv2.boxFilter(padded, -1, (k, k), normalize=False)
    return summed[r : r + values.shape[0], r : r + values.shape[1]]


def refine_alpha(
    alpha: np.ndarray,
    final: np.ndarray,
    rgb: np.ndarray,
    background_color: Optional[Sequence[int]] = None,
    radius: int = MATTE_SAMPLE_RADIUS,
) -> np.ndarray:
    """
    Correct transition-band alpha (REFINE_ALPHA_LOW < a < REFINE_ALPHA_HIGH) with local colour evidence.

    Neighbours with final mask > FOREGROUND_SAMPLE_LEVEL are foreground samples. Neighbours
    below BACKGROUND_SAMPLE_LEVEL are background samples, unless a background colour was
    supplied, in which case that colour is the background estimate. With no background
    samples the estimate stays black.

      colorAlpha = d_bg / (d_fg + d_bg)
      alpha      = 0.6 * alpha + 0.4 * colorAlpha

    Pixels without foreground samples, or with d_fg + d_bg == 0, keep their base alpha.
    """
    m = as_mask(final)
    if alpha.shape != m.shape:
        raise ValueError(f"Alpha shape {alpha.shape} does not match mask {m.shape}")
    if rgb.ndim != 3 or rgb.shape[2] < 3 or rgb.shape[:2] != m.shape:
        raise ValueError(f"Expected colour buffer (H,W,3+) matching mask {m.shape}, got {rgb.shape}")

    a = alpha.astype(np.float64)
    band = (a > REFINE_ALPHA_LOW) & (a < REFINE_ALPHA_HIGH)
    if not band.any():
        return a.copy()

    color = rgb[..., :3].astype(np.float64)

    fg = (m > FOREGROUND_SAMPLE_LEVEL).astype(np.float64)
    fg_count = _window_sum(fg, radius)[band]
    fg_sum = np.stack([_window_sum(color[..., c] * fg, radius)[band] for c in range(3)], axis=-1)

    if background_color is None:
        bg = (m < BACKGROUND_SAMPLE_LEVEL).astype(np.float64)
        bg_count = _window_sum(bg, radius)[band]
        bg_sum = np.stack([_window_sum(color[..., c] * bg, radius)[band] for c in range(3)], axis=-1)
        bg_mean = np.divide(
            bg_sum,
            bg_count[:, None],
            out=np.zeros_like(bg_sum),
            where=bg_count[:, None] > 0,
        )
    else:
        bg_mean = np.broadcast_to(np.asarray(background_color, dtype=np.float64)[:3], fg_sum.shape)

    has_fg = fg_count > 0
    fg_mean = np.divide(
        fg_sum,
        fg_count[:, None],
        out=np.zeros_like(fg_sum),
        where=has_fg[:, None],
    )

    px = color[band]
    d_fg = np.sqrt(((px - fg_mean) ** 2).sum(axis=-1))
    d_bg = np.sqrt(((px - bg_mean) ** 2).sum(axis=-1))
    denom = d_fg + d_bg

    usable = has_fg & (denom > 0)
    color_alpha = np.divide(d_bg, denom, out=np.zeros_like(denom), where=usable)

    band_alpha = a[band]
    band_alpha = np.where(
        usable,
        BASE_ALPHA_WEIGHT * band_alpha + (1.0 - BASE_ALPHA_WEIGHT) * color_alpha,
        band_alpha,
    )

    out = a.copy()
    out[band] = band_alpha
    return np.clip(out, 0.0, 1.0)
