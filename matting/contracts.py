from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import (
    ALPHA_THRESHOLD,
    CHROMA_KEY_TOLERANCE,
    CHROMA_KEY_TOLERANCE_MAX,
    GAUSSIAN_SIGMA,
    KERNEL_SIZE,
    MATTE_SAMPLE_RADIUS,
    MIN_REGION_ABSOLUTE,
    MIN_REGION_RATIO_OF_LARGEST,
    MIN_REGION_RATIO_OF_TOTAL,
)

RGB = Tuple[int, int, int]


def parse_hex_color(value: str) -> RGB:
    """
    Parse "#RRGGBB" or "RRGGBB" into an (r, g, b) tuple.
    """
    hex_str = value.strip().lstrip("#")
    if len(hex_str) != 6:
        raise ValueError(f"Expected a #RRGGBB color, got {value!r}")
    try:
        return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))
    except ValueError as e:
        raise ValueError(f"Expected a #RRGGBB color, got {value!r}") from e


def _coerce_rgb(value: Any) -> Optional[RGB]:
    if value is None:
        return None
    if isinstance(value, str):
        return parse_hex_color(value)
    if isinstance(value, np.ndarray) and value.ndim == 1:
        value = value.tolist()
    if isinstance(value, (list, tuple)) and len(value) == 3:
        rgb = tuple(int(c) for c in value)
        if any(c < 0 or c > 255 for c in rgb):
            raise ValueError(f"RGB components must be in 0..255, got {rgb}")
        return rgb  # type: ignore[return-value]
    raise ValueError(f"Expected a hex string or (r, g, b) triple, got {value!r}")


class MattingParams(BaseModel):
    """Per-call parameters. Defaults reproduce the production pipeline."""

    model_config = ConfigDict(frozen=True)

    alpha_threshold: int = Field(default=ALPHA_THRESHOLD, ge=0, le=254)
    gaussian_sigma: float = Field(default=GAUSSIAN_SIGMA, gt=0.0)
    kernel_size: int = Field(default=KERNEL_SIZE, ge=1)
    min_region_absolute: int = Field(default=MIN_REGION_ABSOLUTE, ge=0)
    min_region_ratio_of_total: float = Field(default=MIN_REGION_RATIO_OF_TOTAL, ge=0.0)
    min_region_ratio_of_largest: float = Field(default=MIN_REGION_RATIO_OF_LARGEST, ge=0.0)
    matte_sample_radius: int = Field(default=MATTE_SAMPLE_RADIUS, ge=0)
    background_color: Optional[RGB] = None
    chroma_key_color: Optional[RGB] = None
    chroma_key_tolerance: int = Field(default=CHROMA_KEY_TOLERANCE, ge=0, le=CHROMA_KEY_TOLERANCE_MAX)

    @field_validator("kernel_size")
    @classmethod
    def _kernel_must_be_odd(cls, v: int) -> int:
        if v % 2 == 0:
            raise ValueError(f"kernel_size must be odd, got {v}")
        return v

    @field_validator("background_color", "chroma_key_color", mode="before")
    @classmethod
    def _parse_rgb(cls, v: Any) -> Optional[RGB]:
        return _coerce_rgb(v)


@dataclass(frozen=True)
class StageTimings:
    smoothing_s: float
    morphology_s: float
    regions_s: float
    alpha_s: float
    composite_s: float
    total_s: float


@dataclass(frozen=True)
class ImageTimings:
    decode_s: float
    inference_s: float
    matting_s: float
    encode_s: float
    total_s: float
