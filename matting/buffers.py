"""
Buffer conventions shared by every stage.

- PixelBuffer: uint8 ndarray (H, W, 4), RGBA, C-contiguous row-major, no padding.
  Row stride is W*4 bytes, pixel stride 4 bytes, so `px[y, x, c]` is flat byte
  `(y*W + x)*4 + c`. Stages index through the ndarray, never through raw offsets.
- Mask / derived masks: uint8 ndarray (H, W), row stride W bytes.
- Stages never write into their inputs; each result is a fresh array that later
  stages only read.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import InvalidDimensionsError

RGBA_CHANNELS = 4


def as_pixel_buffer(pixels: np.ndarray) -> np.ndarray:
    """
    Validate an RGBA pixel buffer and return it as a C-contiguous uint8 view/copy.
    """
    if not isinstance(pixels, np.ndarray):
        raise InvalidDimensionsError(f"Expected ndarray pixel buffer, got {type(pixels).__name__}")
    if pixels.ndim != 3 or pixels.shape[2] != RGBA_CHANNELS:
        raise InvalidDimensionsError(f"Expected RGBA buffer (H,W,4), got shape={pixels.shape}")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise InvalidDimensionsError(f"Empty pixel buffer: shape={pixels.shape}")
    if pixels.dtype != np.uint8:
        raise InvalidDimensionsError(f"Expected uint8 pixel buffer, got dtype={pixels.dtype}")
    return np.ascontiguousarray(pixels)


def as_mask(mask: np.ndarray) -> np.ndarray:
    """
    Validate a single-channel uint8 mask.
    """
    if not isinstance(mask, np.ndarray):
        raise InvalidDimensionsError(f"Expected ndarray mask, got {type(mask).__name__}")
    if mask.ndim != 2:
        raise InvalidDimensionsError(f"Expected 2D mask, got shape={mask.shape}")
    if mask.dtype != np.uint8:
        raise InvalidDimensionsError(f"Expected uint8 mask, got dtype={mask.dtype}")
    return np.ascontiguousarray(mask)


def check_dimensions(pixels: np.ndarray, mask: np.ndarray) -> Tuple[int, int]:
    """
    Ensure mask and pixel buffer share one canvas. Returns (height, width).
    """
    if pixels.shape[:2] != mask.shape:
        raise InvalidDimensionsError(
            f"Mask shape {mask.shape} does not match image {pixels.shape[:2]}; "
            "the mask must be resized to the image before matting."
        )
    return int(mask.shape[0]), int(mask.shape[1])
