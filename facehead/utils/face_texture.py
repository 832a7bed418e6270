"""
Face diffuse texture built from the source photo.

The canvas is filled with the sampled skin tone, then the photo is drawn only
inside the (slightly inset) face oval so hair and background at the silhouette
never reach the face surface.
"""

import logging

import cv2
import numpy as np

from facehead.config import DEFAULT_CONFIG, HeadBuildConfig
from facehead.core.topology import FACE_OVAL
from facehead.utils.head_mesh import landmark_uvs

logger = logging.getLogger(__name__)

# Rec. 601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def oval_polygon(
    landmarks: np.ndarray,
    width: int,
    height: int,
    inset: float = 0.02,
    oval: np.ndarray = FACE_OVAL,
) -> np.ndarray:
    """
    Face oval in texture pixel coordinates.

    UVs are pulled toward (0.5, 0.5) by ``inset`` and v is flipped because
    raster row 0 is the top.

    Returns:
        (N, 2) float array of (x, y) pixel positions
    """
    uv = landmark_uvs(np.asarray(landmarks)[oval])
    uv = 0.5 + (uv - 0.5) * (1 - inset)
    return np.column_stack([uv[:, 0] * width, (1 - uv[:, 1]) * height])


def oval_mask(polygon: np.ndarray, width: int, height: int) -> np.ndarray:
    """Binary mask (uint8, 255 inside) of a pixel-space polygon."""
    mask = np.zeros((height, width), dtype=np.uint8)
    pts = np.round(polygon).astype(np.int32).reshape(-1, 1, 2)
    cv2.fillPoly(mask, [pts], 255)
    return mask


def grade_colors(
    image: np.ndarray,
    contrast: float = 1.0,
    saturation: float = 1.0,
) -> np.ndarray:
    """
    Apply contrast then saturation to an RGB uint8 image.

    contrast:   c' = (c - 0.5) * contrast + 0.5
    saturation: c'' = L + (c' - L) * saturation, L = Rec. 601 luma of c'

    Both factors at 1.0 leave the image unchanged; values below 1 flatten
    and desaturate.
    """
    if contrast == 1.0 and saturation == 1.0:
        return image.copy()

    rgb = image.astype(np.float64) / 255.0
    rgb = (rgb - 0.5) * contrast + 0.5

    luma = (rgb @ LUMA_WEIGHTS)[..., np.newaxis]
    rgb = luma + (rgb - luma) * saturation

    rgb = np.clip(rgb, 0.0, 1.0)
    return np.round(rgb * 255).astype(np.uint8)


def compose_face_texture(
    image: np.ndarray,
    landmarks: np.ndarray,
    skin_tone: tuple[float, float, float],
    config: HeadBuildConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """
    Render the square face texture.

    Args:
        image: RGB uint8 source photo
        landmarks: (468, 3) canonical landmarks
        skin_tone: Normalized RGB background colour
        config: Texture size, oval inset and colour grade

    Returns:
        RGB uint8 texture of shape (size, size, 3)
    """
    size = config.texture_size
    fill = np.array([int(round(c * 255)) for c in skin_tone], dtype=np.uint8)
    texture = np.empty((size, size, 3), dtype=np.uint8)
    texture[:] = fill

    if image is None or image.ndim < 2 or image.shape[0] == 0 or image.shape[1] == 0:
        logger.warning("Source photo is empty, face texture is skin tone only")
        return texture

    photo = image
    if photo.ndim == 3 and photo.shape[2] == 1:
        photo = np.ascontiguousarray(photo[:, :, 0])
    if photo.ndim == 2:
        photo = cv2.cvtColor(photo, cv2.COLOR_GRAY2RGB)
    elif photo.shape[2] == 4:
        photo = cv2.cvtColor(photo, cv2.COLOR_RGBA2RGB)

    photo = cv2.resize(photo, (size, size), interpolation=cv2.INTER_LANCZOS4)
    photo = grade_colors(photo, config.contrast, config.saturation)

    polygon = oval_polygon(landmarks, size, size, config.oval_inset)
    mask = oval_mask(polygon, size, size) > 0
    texture[mask] = photo[mask]

    logger.debug("Face texture %dx%d, %d pixels from photo", size, size, int(mask.sum()))
    return texture
