"""Image processing utilities for screenpager.

Shared image encoding, conversion, and preprocessing functions used
by the capture, detection and extraction modules.
"""

from __future__ import annotations

import base64
import logging

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


def ensure_bgr(image: np.ndarray) -> np.ndarray:
    """Return a 3-channel BGR view of a grayscale, BGR or BGRA image."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    channels = image.shape[2]
    if channels == 3:
        return image
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    raise ValueError(f"Unsupported channel count: {channels}")


def numpy_to_base64_png(image: np.ndarray) -> str:
    """Convert a numpy image array (BGR, OpenCV format) to base64 PNG."""
    success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError("Failed to encode image to PNG")
    return base64.b64encode(buffer.tobytes()).decode("utf-8")


def numpy_to_data_url(image: np.ndarray) -> str:
    """Encode an image as a ``data:image/png;base64,...`` URL."""
    return DATA_URL_PREFIX + numpy_to_base64_png(image)


def strip_data_url(data: str) -> str:
    """Remove a ``data:image/...;base64,`` prefix if present."""
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


def data_url_to_numpy(data: str) -> np.ndarray:
    """Decode a base64 PNG (optionally a data URL) into a BGR array."""
    raw = base64.b64decode(strip_data_url(data))
    image = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Failed to decode image data")
    return image


def numpy_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a numpy image array (BGR or grayscale) to a PIL Image."""
    if image.ndim == 2:
        return Image.fromarray(image)
    rgb = cv2.cvtColor(ensure_bgr(image), cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def crop(image: np.ndarray, x: int, y: int, width: int, height: int) -> np.ndarray:
    """Crop a rectangle out of an image, clamped to the image bounds."""
    h, w = image.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(w, x + width), min(h, y + height)
    if x1 <= x0 or y1 <= y0:
        raise ValueError(
            f"Region ({x},{y},{width}x{height}) lies outside the {w}x{h} image"
        )
    return image[y0:y1, x0:x1].copy()


def prepare_for_ocr(image: np.ndarray, max_width: int = 2000) -> np.ndarray:
    """Enhance a screenshot for local OCR.

    Converts to grayscale, stretches contrast to the full range,
    downscales wide images, and applies a light sharpening kernel.
    """
    gray = cv2.cvtColor(ensure_bgr(image), cv2.COLOR_BGR2GRAY)
    normalized = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)

    h, w = normalized.shape[:2]
    if w > max_width:
        scale = max_width / w
        normalized = cv2.resize(
            normalized, (max_width, int(h * scale)), interpolation=cv2.INTER_AREA
        )

    kernel = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)
    return cv2.filter2D(normalized, -1, kernel)
