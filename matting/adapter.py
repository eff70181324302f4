from __future__ import annotations

import threading
from typing import Callable, Dict, Optional, Sequence

import numpy as np
import structlog
import torch

from .buffers import as_pixel_buffer
from .config import MODEL_VARIANTS, TARGET_SIZE
from .errors import ModelLoadError
from .inference import predict_probability, restore_mask_to_original
from .model import get_device, load_model, normalization_for, output_is_logits
from .preprocess import meta_to_dict, normalize, resize_with_padding

log = structlog.get_logger(__name__)

ModelLoader = Callable[[str, torch.device], torch.nn.Module]


class SegmentationAdapter:
    """
    Owns the segmentation model for the hosting process.

    The model is loaded once (first successful variant wins) and reused by every call;
    `predict_mask` hands the matting core a uint8 mask already resized to the image.
    """

    def __init__(
        self,
        variants: Sequence[str] = MODEL_VARIANTS,
        device: Optional[torch.device] = None,
        target_size: int = TARGET_SIZE,
        loader: ModelLoader = load_model,
    ):
        if not variants:
            raise ValueError("At least one model variant is required.")
        self.variants = tuple(variants)
        self.device = device
        self.target_size = int(target_size)
        self._loader = loader
        self._lock = threading.Lock()
        self._model: Optional[torch.nn.Module] = None
        self.model_id: Optional[str] = None
        self.load_errors: Dict[str, str] = {}

    @property
    def is_initialized(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        with self._lock:
            if self._model is not None:
                log.debug("Using cached model", model=self.model_id)
                return
            if self.device is None:
                self.device = get_device()

            for spec in self.variants:
                log.info("Attempting to load model", model=spec, device=str(self.device))
                try:
                    model = self._loader(spec, self.device)
                except Exception as e:  # noqa: BLE001 - try the next variant
                    self.load_errors[spec] = f"{type(e).__name__}: {e}"
                    log.warning("Model variant failed to load", model=spec, error=self.load_errors[spec])
                    continue
                self._model = model
                self.model_id = spec
                log.info("Model loaded", model=spec)
                return

        raise ModelLoadError(f"Failed to load any model variant: {self.load_errors}")

    def predict_mask(self, pixels: np.ndarray) -> np.ndarray:
        """
        RGBA uint8 (H, W, 4) -> foreground mask uint8 (H, W), 0 background .. 255 foreground.
        """
        if not self.is_initialized:
            self.initialize()
        # Hold our own references so a concurrent close() cannot pull the model mid-call.
        with self._lock:
            model, model_id, device = self._model, self.model_id, self.device
        if model is None:
            raise ModelLoadError("Model was released before the prediction could start.")
        px = as_pixel_buffer(pixels)

        padded, meta = resize_with_padding(px, target_size=self.target_size)
        log.debug("Preprocessed", **meta_to_dict(meta))
        mean, std = normalization_for(model_id)
        prob = predict_probability(
            model,
            normalize(padded, mean=mean, std=std),
            device,
            logits=output_is_logits(model_id),
        )
        return restore_mask_to_original(prob, meta)

    def close(self) -> None:
        with self._lock:
            self._model = None
            self.model_id = None
        if self.device is not None and self.device.type == "cuda":
            torch.cuda.empty_cache()
