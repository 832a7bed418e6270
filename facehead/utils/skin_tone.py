"""
Skin tone sampling from the source photo.

The tone is the plain average of small patches around a few skin landmarks.
It is used both as the flat shell colour and as the texture background.
"""

import logging
from typing import Sequence

import numpy as np

from facehead.config import SKIN_FALLBACK
from facehead.core.topology import SKIN_ANCHORS

logger = logging.getLogger(__name__)


def landmark_to_pixel(x: float, y: float, width: int, height: int) -> tuple[float, float]:
    """Map a canonical landmark (x, y) to image pixel coordinates (row 0 = top)."""
    img_x = (-x + 0.5) * width
    img_y = (1 - (y + 0.5)) * height
    return img_x, img_y


def sample_patch(
    image: np.ndarray,
    img_x: float,
    img_y: float,
    patch_size: int = 24,
) -> tuple[float, float, float] | None:
    """
    Average colour of a square patch centred on a pixel position.

    The patch is clipped to the image. Returns normalized RGB, or None when
    the image is empty or the patch lies entirely outside it.
    """
    if image is None or image.ndim < 2:
        return None

    h, w = image.shape[:2]
    if h == 0 or w == 0:
        return None

    x0 = int(np.floor(img_x - patch_size / 2))
    y0 = int(np.floor(img_y - patch_size / 2))
    x1 = min(x0 + patch_size, w)
    y1 = min(y0 + patch_size, h)
    x0 = max(x0, 0)
    y0 = max(y0, 0)

    if x1 <= x0 or y1 <= y0:
        return None

    patch = image[y0:y1, x0:x1]
    if patch.ndim == 2:
        patch = np.repeat(patch[:, :, np.newaxis], 3, axis=2)

    mean = patch[:, :, :3].reshape(-1, 3).astype(np.float64).mean(axis=0) / 255.0
    return float(mean[0]), float(mean[1]), float(mean[2])


def sample_skin_tone(
    image: np.ndarray,
    landmarks: np.ndarray,
    anchors: Sequence[int] = SKIN_ANCHORS,
    patch_size: int = 24,
) -> tuple[float, float, float]:
    """
    Average skin colour from patches at the anchor landmarks.

    Anchors whose patch cannot be read are skipped. If none succeed the fixed
    SKIN_FALLBACK tone is returned. Never raises for image problems.

    Args:
        image: RGB uint8 source photo
        landmarks: (468, 3) canonical landmarks
        anchors: Landmark indices to sample (forehead, cheeks)
        patch_size: Patch edge length in pixels

    Returns:
        Normalized RGB skin tone
    """
    samples = []

    if image is not None and image.ndim >= 2:
        h, w = image.shape[:2]
        for index in anchors:
            if not 0 <= index < len(landmarks):
                logger.warning("Skin anchor %d is not a landmark index, skipping", index)
                continue

            img_x, img_y = landmark_to_pixel(landmarks[index][0], landmarks[index][1], w, h)
            color = sample_patch(image, img_x, img_y, patch_size)
            if color is None:
                logger.warning(
                    "Skin anchor %d at (%.1f, %.1f) is outside the %dx%d image, skipping",
                    index, img_x, img_y, w, h,
                )
                continue
            samples.append(color)

    if not samples:
        logger.warning("No skin anchor could be sampled, using fallback tone")
        return SKIN_FALLBACK

    tone = np.mean(np.array(samples), axis=0)
    return float(tone[0]), float(tone[1]), float(tone[2])
