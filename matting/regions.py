from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
import structlog

from .buffers import as_mask
from .config import (
    MIN_REGION_ABSOLUTE,
    MIN_REGION_RATIO_OF_LARGEST,
    MIN_REGION_RATIO_OF_TOTAL,
    REGION_SEED_THRESHOLD,
)

log = structlog.get_logger(__name__)

UNLABELED = -1


@dataclass(frozen=True)
class RegionFilterResult:
    final: np.ndarray
    labels: np.ndarray
    sizes: np.ndarray
    effective_min: int
    removed_regions: int
    removed_pixels: int

    @property
    def region_count(self) -> int:
        return int(self.sizes.size)

    @property
    def largest(self) -> int:
        return int(self.sizes.max()) if self.sizes.size else 0


def label_regions(mask: np.ndarray, threshold: int = REGION_SEED_THRESHOLD) -> Tuple[np.ndarray, np.ndarray]:
    """
    8-connected labeling of pixels with value > threshold.

    Returns:
      - labels: int32 (H, W), -1 for unlabeled pixels, otherwise a dense region id
        assigned in raster-scan order of each region's first pixel
      - sizes: int64 (n_regions,), pixel count per region id
    """
    m = as_mask(mask)
    binary = (m > int(threshold)).astype(np.uint8)
    if not binary.any():
        return np.full(m.shape, UNLABELED, dtype=np.int32), np.zeros(0, dtype=np.int64)

    num_labels, cc_labels, stats, _centroids = cv2.connectedComponentsWithStats(
        binary, connectivity=8, ltype=cv2.CV_32S
    )

    # OpenCV's label order depends on the algorithm it picks; renumber by first raster occurrence.
    flat = cc_labels.ravel()
    found, first_index = np.unique(flat, return_index=True)
    found_fg = found[found > 0]
    first_fg = first_index[found > 0]
    discovery = found_fg[np.argsort(first_fg, kind="stable")]

    lut = np.full(num_labels, UNLABELED, dtype=np.int32)
    lut[discovery] = np.arange(discovery.size, dtype=np.int32)
    labels = lut[cc_labels]
    sizes = stats[discovery, cv2.CC_STAT_AREA].astype(np.int64)
    return labels, sizes


def effective_min_region_size(
    total_pixels: int,
    max_size: int,
    min_absolute: int = MIN_REGION_ABSOLUTE,
    ratio_of_total: float = MIN_REGION_RATIO_OF_TOTAL,
    ratio_of_largest: float = MIN_REGION_RATIO_OF_LARGEST,
) -> int:
    """
    Smallest region size that survives noise filtering:
      max(min_absolute, floor(ratio_of_total * total), floor(ratio_of_largest * largest))
    """
    return max(
        int(min_absolute),
        int(math.floor(total_pixels * ratio_of_total)),
        int(math.floor(max_size * ratio_of_largest)),
    )


def filter_small_regions(
    opened: np.ndarray,
    threshold: int = REGION_SEED_THRESHOLD,
    min_absolute: int = MIN_REGION_ABSOLUTE,
    ratio_of_total: float = MIN_REGION_RATIO_OF_TOTAL,
    ratio_of_largest: float = MIN_REGION_RATIO_OF_LARGEST,
) -> RegionFilterResult:
    """
    Zero out connected regions that are too small to be foreground.

    Pixels that never joined a region keep their (sub-threshold) value. When no region
    exists at all the final mask is empty.
    """
    m = as_mask(opened)
    labels, sizes = label_regions(m, threshold=threshold)

    max_size = int(sizes.max()) if sizes.size else 0
    effective_min = effective_min_region_size(
        int(m.size),
        max_size,
        min_absolute=min_absolute,
        ratio_of_total=ratio_of_total,
        ratio_of_largest=ratio_of_largest,
    )

    if sizes.size == 0:
        final = np.zeros_like(m)
        removed_regions = 0
        removed_pixels = 0
    else:
        small = sizes < effective_min
        drop = np.zeros(labels.shape, dtype=bool)
        labeled = labels >= 0
        drop[labeled] = small[labels[labeled]]
        final = m.copy()
        final[drop] = 0
        removed_regions = int(small.sum())
        removed_pixels = int(drop.sum())

    log.info(
        "Region filter",
        regions=int(sizes.size),
        largest=max_size,
        threshold=effective_min,
        removed=removed_regions,
        removed_px=removed_pixels,
    )
    return RegionFilterResult(
        final=final,
        labels=labels,
        sizes=sizes,
        effective_min=effective_min,
        removed_regions=removed_regions,
        removed_pixels=removed_pixels,
    )
