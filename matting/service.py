from __future__ import annotations

import asyncio
import time
from typing import Optional

import structlog

from .contracts import MattingParams
from .io import decode_image, encode_png
from .pipeline import run_pipeline

log = structlog.get_logger(__name__)


async def remove_background(
    image_bytes: bytes,
    adapter,
    params: Optional[MattingParams] = None,
    limiter: Optional[asyncio.Semaphore] = None,
) -> bytes:
    """
    Encoded image in, PNG bytes out.

    Awaits the segmentation adapter and the PNG encoder in worker threads; the matting
    stages between them run synchronously on the event loop thread and never suspend.
    `limiter` is a caller-owned semaphore bounding concurrent requests. Timeouts and
    cancellation belong to the caller; a cancelled call returns nothing partial.
    """
    params = params or MattingParams()
    # A private semaphore is an uncontended no-op guard.
    limiter = limiter or asyncio.Semaphore()

    async with limiter:
        t0 = time.perf_counter()
        pixels = decode_image(image_bytes)
        mask = await asyncio.to_thread(adapter.predict_mask, pixels)
        result = run_pipeline(pixels, mask, params)
        png = await asyncio.to_thread(encode_png, result.rgba)

    log.info(
        "Background removed",
        model=getattr(adapter, "model_id", None),
        width=int(pixels.shape[1]),
        height=int(pixels.shape[0]),
        matting_s=round(result.timings.total_s, 4),
        elapsed_s=round(time.perf_counter() - t0, 4),
    )
    return png

