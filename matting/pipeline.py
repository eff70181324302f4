from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from .alpha import base_alpha, refine_alpha
from .buffers import as_mask, as_pixel_buffer, check_dimensions
from .chroma import chroma_key_alpha
from .composite import composite_opaque, composite_transparent
from .contracts import ImageTimings, MattingParams, StageTimings
from .io import load_image, save_rgba_png
from .postprocess import RefinedMask, refine_mask

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MattingResult:
    rgba: np.ndarray
    alpha: np.ndarray
    refined: Optional[RefinedMask]
    timings: StageTimings


def degenerate_alpha(mask: np.ndarray) -> Optional[np.ndarray]:
    """
    Alpha for masks with no matting work to do: all-zero -> fully transparent,
    all-255 -> fully opaque. Returns None for any other mask.
    """
    if not mask.any():
        return np.zeros(mask.shape, dtype=np.float64)
    if (mask == 255).all():
        return np.ones(mask.shape, dtype=np.float64)
    return None


def compute_alpha(final: np.ndarray, pixels: np.ndarray, params: MattingParams) -> np.ndarray:
    """
    Threshold ramp + colour-based matting refinement on the final mask.
    """
    alpha = base_alpha(final, params.alpha_threshold)
    return refine_alpha(
        alpha,
        final,
        pixels,
        background_color=params.background_color,
        radius=params.matte_sample_radius,
    )


def composite(pixels: np.ndarray, alpha: np.ndarray, params: MattingParams) -> np.ndarray:
    """
    Apply the optional chroma key, then produce the output buffer: an opaque blend when a
    background colour is set, otherwise a transparent cutout.
    """
    if params.chroma_key_color is not None:
        alpha = chroma_key_alpha(alpha, pixels, params.chroma_key_color, params.chroma_key_tolerance)
    if params.background_color is not None:
        return composite_opaque(pixels, alpha, params.background_color)
    return composite_transparent(pixels, alpha)


def run_pipeline(
    pixels: np.ndarray,
    mask: np.ndarray,
    params: Optional[MattingParams] = None,
) -> MattingResult:
    """
    Deterministic, linear pipeline over one image:
      1) Mask smoothing
      2) Morphological refinement
      3) Connected-component denoise
      4) Alpha compute + matting refinement
      5) Composite (chroma key, then opaque or transparent output)
    """
    params = params or MattingParams()
    px = as_pixel_buffer(pixels)
    m = as_mask(mask)
    check_dimensions(px, m)

    t0 = time.perf_counter()

    refined: Optional[RefinedMask] = None
    alpha = degenerate_alpha(m)
    if alpha is None:
        refined = refine_mask(m, params)
        t_alpha0 = time.perf_counter()
        alpha = compute_alpha(refined.final, px, params)
        t_alpha1 = time.perf_counter()
    else:
        log.info("Degenerate mask, skipping refinement", opaque=bool(alpha.any()))
        t_alpha0 = t_alpha1 = time.perf_counter()

    t_comp0 = time.perf_counter()
    rgba = composite(px, alpha, params)
    t_comp1 = time.perf_counter()

    timings = StageTimings(
        smoothing_s=refined.smoothing_s if refined else 0.0,
        morphology_s=refined.morphology_s if refined else 0.0,
        regions_s=refined.regions_s if refined else 0.0,
        alpha_s=t_alpha1 - t_alpha0,
        composite_s=t_comp1 - t_comp0,
        total_s=t_comp1 - t0,
    )
    log.debug("Matting complete", width=int(m.shape[1]), height=int(m.shape[0]), total_s=round(timings.total_s, 4))
    return MattingResult(rgba=rgba, alpha=alpha, refined=refined, timings=timings)


def process_buffers(
    pixels: np.ndarray,
    mask: np.ndarray,
    params: Optional[MattingParams] = None,
) -> np.ndarray:
    """
    Pure transform: RGBA pixel buffer + same-size uint8 mask -> new RGBA pixel buffer.
    """
    return run_pipeline(pixels, mask, params).rgba


def process_image(
    image_path: str,
    out_path: str,
    adapter,
    params: Optional[MattingParams] = None,
) -> ImageTimings:
    """
    File-level run: load image, ask the adapter for a mask, matte, save PNG.
    """
    t0 = time.perf_counter()

    t_dec0 = time.perf_counter()
    pixels = load_image(image_path)
    t_dec1 = time.perf_counter()

    t_inf0 = time.perf_counter()
    mask = adapter.predict_mask(pixels)
    t_inf1 = time.perf_counter()

    t_mat0 = time.perf_counter()
    result = run_pipeline(pixels, mask, params)
    t_mat1 = time.perf_counter()

    if not result.alpha.any():
        log.warning("No foreground detected", image=image_path)

    t_enc0 = time.perf_counter()
    save_rgba_png(result.rgba, out_path)
    t_enc1 = time.perf_counter()

    t1 = time.perf_counter()
    return ImageTimings(
        decode_s=t_dec1 - t_dec0,
        inference_s=t_inf1 - t_inf0,
        matting_s=t_mat1 - t_mat0,
        encode_s=t_enc1 - t_enc0,
        total_s=t1 - t0,
    )
