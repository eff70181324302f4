from __future__ import annotations

from typing import Sequence

import numpy as np

from .config import (
    DEFRINGE_ALPHA_HIGH,
    DEFRINGE_ALPHA_LOW,
    DEFRINGE_STRENGTH,
    DISPLAY_GAMMA,
    LUMA_WEIGHTS,
)


def _to_byte(values: np.ndarray) -> np.ndarray:
    """Round half-up and clamp to uint8."""
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def _check(rgb: np.ndarray, alpha: np.ndarray) -> None:
    if rgb.ndim != 3 or rgb.shape[2] < 3:
        raise ValueError(f"Expected colour buffer (H,W,3+), got {rgb.shape}")
    if alpha.ndim != 2 or alpha.shape != rgb.shape[:2]:
        raise ValueError(f"Alpha shape {alpha.shape} does not match colour buffer {rgb.shape[:2]}")


def compose_rgba(rgb: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    """
    Stack uint8 RGB and a float alpha in [0,1] into a new RGBA buffer, alpha = round(a * 255).
    """
    _check(rgb, alpha)
    a8 = _to_byte(np.clip(alpha, 0.0, 1.0) * 255.0)
    return np.ascontiguousarray(np.dstack([rgb[..., :3].astype(np.uint8), a8]))


def to_linear(channel: np.ndarray) -> np.ndarray:
    return np.power(channel.astype(np.float64) / 255.0, DISPLAY_GAMMA)


def to_display(linear: np.ndarray) -> np.ndarray:
    return np.power(np.clip(linear, 0.0, 1.0), 1.0 / DISPLAY_GAMMA) * 255.0


def composite_opaque(rgb: np.ndarray, alpha: np.ndarray, background: Sequence[int]) -> np.ndarray:
    """
    Gamma-correct blend over a solid colour; the result is fully opaque.

    Both colours are linearized with (c/255)^2.2, mixed by alpha, and encoded back with
    x^(1/2.2) * 255.
    """
    _check(rgb, alpha)
    a = np.clip(alpha.astype(np.float64), 0.0, 1.0)[..., None]
    src = to_linear(rgb[..., :3])
    bg = to_linear(np.asarray(background, dtype=np.float64)[:3])
    out_rgb = _to_byte(to_display(src * a + bg * (1.0 - a)))

    opaque = np.full(alpha.shape, 255, dtype=np.uint8)
    return np.ascontiguousarray(np.dstack([out_rgb, opaque]))


def defringe(rgb: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    """
    Pull semi-transparent edge colours (DEFRINGE_ALPHA_LOW < a < DEFRINGE_ALPHA_HIGH)
    toward their luminance by (1 - a) * DEFRINGE_STRENGTH. Returns float64 RGB.
    """
    _check(rgb, alpha)
    color = rgb[..., :3].astype(np.float64)
    a = alpha.astype(np.float64)
    luminance = color @ np.asarray(LUMA_WEIGHTS, dtype=np.float64)

    amount = np.where((a > DEFRINGE_ALPHA_LOW) & (a < DEFRINGE_ALPHA_HIGH), (1.0 - a) * DEFRINGE_STRENGTH, 0.0)
    amount = amount[..., None]
    return color * (1.0 - amount) + luminance[..., None] * amount


def composite_transparent(rgb: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    """
    Keep source colour (defringed on soft edges) and write alpha = round(a * 255).
    """
    _check(rgb, alpha)
    a = np.clip(alpha.astype(np.float64), 0.0, 1.0)
    return compose_rgba(_to_byte(defringe(rgb, a)), a)
