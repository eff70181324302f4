from __future__ import annotations

import cv2
import numpy as np

from .buffers import as_mask
from .config import GAUSSIAN_SIGMA, KERNEL_SIZE, SMOOTH_BAND_HIGH, SMOOTH_BAND_LOW


def gaussian_kernel(size: int = KERNEL_SIZE, sigma: float = GAUSSIAN_SIGMA) -> np.ndarray:
    """
    Normalized 2D Gaussian kernel (size x size, float64, sums to 1).
    """
    if size <= 0 or size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd integer, got {size}")
    if sigma <= 0:
        raise ValueError(f"Sigma must be positive, got {sigma}")
    half = size // 2
    offsets = np.arange(size, dtype=np.float64) - half
    d2 = offsets[None, :] ** 2 + offsets[:, None] ** 2
    kernel = np.exp(-d2 / (2.0 * sigma**2))
    return kernel / kernel.sum()


def selective_blur(
    mask: np.ndarray,
    kernel_size: int = KERNEL_SIZE,
    sigma: float = GAUSSIAN_SIGMA,
) -> np.ndarray:
    """
    Gaussian-smooth only the ambiguous band of the mask (SMOOTH_BAND_LOW < v < SMOOTH_BAND_HIGH).

    Out-of-canvas taps are dropped from both the weighted sum and the weight total,
    so the kernel is renormalized at the borders instead of darkening them.
    Confident interior/exterior pixels are copied through unchanged.
    """
    m = as_mask(mask)
    kernel = gaussian_kernel(kernel_size, sigma)

    src = m.astype(np.float64)
    weighted = cv2.filter2D(src, -1, kernel, borderType=cv2.BORDER_CONSTANT)
    weights = cv2.filter2D(np.ones_like(src), -1, kernel, borderType=cv2.BORDER_CONSTANT)
    smoothed = np.floor(weighted / weights + 0.5)

    band = (m > SMOOTH_BAND_LOW) & (m < SMOOTH_BAND_HIGH)
    out = m.copy()
    out[band] = np.clip(smoothed[band], 0, 255).astype(np.uint8)
    return out
