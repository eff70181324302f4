from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from .buffers import as_mask
from .config import ERODE_BACKGROUND_LEVEL, ERODE_MIN_BACKGROUND_NEIGHBORS

# 4-connected structuring element (self + up/down/left/right).
_CROSS = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))


def _axis_neighbors(m: np.ndarray) -> np.ndarray:
    """
    Stack of the four axis-aligned neighbours (up, down, left, right), shape (4, H, W).
    Out-of-canvas neighbours read as 0.
    """
    p = np.pad(m, 1, mode="constant", constant_values=0)
    return np.stack([p[:-2, 1:-1], p[2:, 1:-1], p[1:-1, :-2], p[1:-1, 2:]])


def adaptive_erode(mask: np.ndarray) -> np.ndarray:
    """
    Erode a pixel only when at least two of its axis neighbours look like background.

    Thin structures (hair, fingers, cables) usually have a single weak neighbour and
    are left alone; edge pixels flanked by background take the 4-neighbour minimum.
    """
    m = as_mask(mask)
    neighbors = _axis_neighbors(m)
    background_count = (neighbors < ERODE_BACKGROUND_LEVEL).sum(axis=0)

    eroded = cv2.erode(m, _CROSS, borderType=cv2.BORDER_CONSTANT, borderValue=0)
    erode_here = (m > 0) & (background_count >= ERODE_MIN_BACKGROUND_NEIGHBORS)

    out = np.where(erode_here, eroded, m).astype(np.uint8)
    return out


def dilate_open(eroded: np.ndarray) -> np.ndarray:
    """
    Dilation half of the opening: nonzero pixels take the max of themselves and their
    axis neighbours, zero pixels stay zero.
    """
    m = as_mask(eroded)
    dilated = cv2.dilate(m, _CROSS, borderType=cv2.BORDER_CONSTANT, borderValue=0)
    out = np.where(m > 0, dilated, 0).astype(np.uint8)
    return out


def open_mask(mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Adaptive erosion followed by dilation. Returns (eroded, opened).
    """
    eroded = adaptive_erode(mask)
    opened = dilate_open(eroded)
    return eroded, opened
