"""
Landmark capture using MediaPipe Face Landmarker (Tasks API).

Converts MediaPipe's normalized image-space landmarks into the canonical
head space used for reconstruction:

    x = -(mx - 0.5)    centred, mirrored so the subject's left is negative
    y = -(my - 0.5)    centred, flipped so up is positive
    z = -mz * z_scale  flipped so toward the viewer is positive
"""

import logging
import urllib.request
from pathlib import Path
from typing import Sequence

import numpy as np

from facehead.core.models import validate_landmarks
from facehead.core.topology import NUM_LANDMARKS

logger = logging.getLogger(__name__)

# Model URL and local path
MODEL_URL = "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/1/face_landmarker.task"
MODEL_DIR = Path(__file__).parent.parent.parent / "models"
MODEL_PATH = MODEL_DIR / "face_landmarker.task"

DEFAULT_Z_SCALE = 0.5


def ensure_model_downloaded(model_path: Path = MODEL_PATH) -> str:
    """Download the face landmarker model if not present."""
    model_path = Path(model_path)
    if model_path.exists():
        return str(model_path)

    model_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading face landmarker model to %s", model_path)
    urllib.request.urlretrieve(MODEL_URL, model_path)
    logger.info("Model downloaded")
    return str(model_path)


def landmarks_from_normalized(
    points: Sequence[Sequence[float]] | np.ndarray,
    z_scale: float = DEFAULT_Z_SCALE,
) -> np.ndarray:
    """
    Convert normalized MediaPipe (x, y, z) landmarks to canonical space.

    Refined meshes carry 10 extra iris points (478 total); only the first
    468 belong to the face mesh topology and are kept.

    Returns:
        Read-only (468, 3) landmark array

    Raises:
        MalformedLandmarksError: fewer than 468 points or bad values
    """
    raw = np.asarray(points, dtype=np.float64)
    if raw.ndim == 2 and raw.shape[0] > NUM_LANDMARKS:
        raw = raw[:NUM_LANDMARKS]

    if raw.ndim == 2 and raw.shape[1] == 3:
        raw = np.column_stack([
            -(raw[:, 0] - 0.5),
            -(raw[:, 1] - 0.5),
            -raw[:, 2] * z_scale,
        ])

    return validate_landmarks(raw)


class FaceCapture:
    """
    Single-face landmark detector.

    MediaPipe is imported lazily so the reconstruction pipeline works without
    it installed; only capture from photos needs the ``capture`` extra.
    """

    def __init__(
        self,
        min_confidence: float = 0.5,
        z_scale: float = DEFAULT_Z_SCALE,
        model_path: Path = MODEL_PATH,
    ):
        from mediapipe.tasks import python
        from mediapipe.tasks.python import vision

        self.z_scale = z_scale

        base_options = python.BaseOptions(model_asset_path=ensure_model_downloaded(model_path))
        options = vision.FaceLandmarkerOptions(
            base_options=base_options,
            output_face_blendshapes=False,
            output_facial_transformation_matrixes=False,
            num_faces=1,
            min_face_detection_confidence=min_confidence,
            min_face_presence_confidence=min_confidence,
            min_tracking_confidence=min_confidence,
        )
        self.landmarker = vision.FaceLandmarker.create_from_options(options)

    def detect(self, image: np.ndarray) -> np.ndarray | None:
        """
        Detect a face and return its canonical landmarks.

        Args:
            image: RGB uint8 photo

        Returns:
            (468, 3) landmarks or None if no face detected
        """
        import mediapipe as mp

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(image))
        results = self.landmarker.detect(mp_image)

        if not results.face_landmarks:
            logger.info("No face detected")
            return None

        raw = [[lm.x, lm.y, lm.z] for lm in results.face_landmarks[0]]
        return landmarks_from_normalized(raw, self.z_scale)

    def close(self):
        """Release resources."""
        if hasattr(self, "landmarker"):
            self.landmarker.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
