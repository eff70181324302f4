from __future__ import annotations

import io
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

from .buffers import as_pixel_buffer


def _to_rgba(decoded: np.ndarray) -> np.ndarray:
    """
    OpenCV decode output (gray / BGR / BGRA, any bit depth) -> RGBA uint8.
    """
    if decoded.dtype == np.uint16:
        # 16-bit PNG/TIFF: keep the high byte.
        decoded = (decoded >> 8).astype(np.uint8)
    elif decoded.dtype != np.uint8:
        raise ValueError(f"Unsupported image dtype: {decoded.dtype}")
    if decoded.ndim == 2:
        return cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGBA)
    if decoded.shape[2] == 3:
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGBA)
    if decoded.shape[2] == 4:
        return cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
    raise ValueError(f"Unsupported channel count: shape={decoded.shape}")


def load_image(path: str) -> np.ndarray:
    """
    Load an image as RGBA uint8 ndarray of shape (H, W, 4).
    """
    decoded = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if decoded is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return _to_rgba(decoded)


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (PNG/JPEG/WebP/...) to RGBA uint8 (H, W, 4).
    """
    buf = np.frombuffer(data, dtype=np.uint8)
    decoded = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    if decoded is None:
        raise ValueError("Could not decode image bytes.")
    return _to_rgba(decoded)


def encode_png(rgba: np.ndarray) -> bytes:
    """
    Lossless RGBA PNG bytes.
    """
    img = Image.fromarray(as_pixel_buffer(rgba))
    out = io.BytesIO()
    img.save(out, format="PNG", optimize=False)
    return out.getvalue()


def save_rgba_png(rgba: np.ndarray, out_path: str) -> None:
    """
    Save as lossless RGBA PNG, creating parent directories.
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(encode_png(rgba))
