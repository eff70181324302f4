from __future__ import annotations


class MattingError(Exception):
    """Base class for structural errors raised by the matting pipeline."""


class InvalidDimensionsError(MattingError, ValueError):
    """Pixel buffer and mask do not describe the same canvas, or a buffer is malformed."""


class ModelLoadError(MattingError, RuntimeError):
    """No segmentation model variant could be loaded."""
