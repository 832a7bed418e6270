"""
Image loading and encoding utilities.

All functions work on RGB uint8 arrays; head reconstruction samples and
textures in RGB, so BGR only appears at the OpenCV file boundary.
"""

import io

import cv2
import numpy as np
from PIL import Image


def load_image_from_bytes(data: bytes) -> np.ndarray:
    """
    Decode an uploaded photo.

    Args:
        data: Raw image bytes (JPEG, PNG, ...)

    Returns:
        RGB image as numpy array
    """
    pil_image = Image.open(io.BytesIO(data))

    if pil_image.mode != "RGB":
        pil_image = pil_image.convert("RGB")

    return np.array(pil_image)


def load_image_from_path(path: str) -> np.ndarray | None:
    """
    Load an image file.

    Returns:
        RGB image or None if the file cannot be read
    """
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def resize_image(
    image: np.ndarray,
    max_dimension: int = 1920,
) -> tuple[np.ndarray, float]:
    """
    Downscale so neither side exceeds max_dimension, preserving aspect ratio.

    Returns:
        Tuple of (resized image, scale factor)
    """
    h, w = image.shape[:2]
    scale = 1.0

    if max(h, w) > max_dimension:
        scale = max_dimension / max(h, w)
        new_w = int(w * scale)
        new_h = int(h * scale)
        image = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)

    return image, scale


def encode_image_to_bytes(image: np.ndarray, format: str = "JPEG", quality: int = 85) -> bytes:
    """
    Encode an RGB image.

    Args:
        image: RGB uint8 image
        format: Output format (JPEG, PNG)
        quality: JPEG quality 1-100, ignored for PNG

    Returns:
        Encoded image bytes
    """
    pil_image = Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8))

    buffer = io.BytesIO()
    if format.upper() in ("JPEG", "JPG"):
        pil_image.save(buffer, format="JPEG", quality=quality)
    else:
        pil_image.save(buffer, format=format)
    return buffer.getvalue()
