from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .buffers import as_mask
from .contracts import MattingParams
from .morphology import open_mask
from .regions import RegionFilterResult, filter_small_regions
from .smoothing import selective_blur


@dataclass(frozen=True)
class RefinedMask:
    """Every intermediate mask of the refinement chain, each produced exactly once."""

    blurred: np.ndarray
    eroded: np.ndarray
    opened: np.ndarray
    regions: RegionFilterResult
    smoothing_s: float = 0.0
    morphology_s: float = 0.0
    regions_s: float = 0.0

    def __post_init__(self) -> None:
        # Shared with every later stage and the caller; nothing may write into them.
        for buf in (self.blurred, self.eroded, self.opened, self.regions.final, self.regions.labels, self.regions.sizes):
            buf.setflags(write=False)

    @property
    def final(self) -> np.ndarray:
        return self.regions.final


def refine_mask(mask: np.ndarray, params: Optional[MattingParams] = None) -> RefinedMask:
    """
    Full mask refinement:
      1) selective Gaussian blur of the ambiguous band
      2) adaptive erosion + dilation (opening)
      3) connected-component noise filter
    """
    params = params or MattingParams()
    m = as_mask(mask)

    t0 = time.perf_counter()
    blurred = selective_blur(m, kernel_size=params.kernel_size, sigma=params.gaussian_sigma)
    t1 = time.perf_counter()
    eroded, opened = open_mask(blurred)
    t2 = time.perf_counter()
    regions = filter_small_regions(
        opened,
        min_absolute=params.min_region_absolute,
        ratio_of_total=params.min_region_ratio_of_total,
        ratio_of_largest=params.min_region_ratio_of_largest,
    )
    t3 = time.perf_counter()

    return RefinedMask(
        blurred=blurred,
        eroded=eroded,
        opened=opened,
        regions=regions,
        smoothing_s=t1 - t0,
        morphology_s=t2 - t1,
        regions_s=t3 - t2,
    )
