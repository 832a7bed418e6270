import numpy as np
import pytest

from facehead.core.exceptions import MalformedLandmarksError
from facehead.core.models import BoundingBox, BuildEvent, BuildStage, Material, validate_landmarks


def test_validate_returns_read_only_copy(landmarks):
    points = validate_landmarks(landmarks)
    assert points.shape == (468, 3)
    assert not np.shares_memory(points, landmarks)
    with pytest.raises(ValueError):
        points[0, 0] = 0.0


@pytest.mark.parametrize("bad", [
    np.zeros((467, 3)),
    np.zeros((469, 3)),
    np.zeros((468, 2)),
    np.zeros(468 * 3),
    [["a", "b", "c"]] * 468,
])
def test_validate_rejects(bad):
    with pytest.raises(MalformedLandmarksError):
        validate_landmarks(bad)


def test_validate_names_bad_landmark(landmarks):
    landmarks[42, 2] = np.inf
    with pytest.raises(MalformedLandmarksError, match="Landmark 42"):
        validate_landmarks(landmarks)


def test_bounding_box_from_points():
    bbox = BoundingBox.from_points(np.array([[0.0, 1.0, 2.0], [2.0, 3.0, 6.0]]))
    np.testing.assert_allclose(bbox.center, [1.0, 2.0, 4.0])
    np.testing.assert_allclose(bbox.size, [2.0, 2.0, 4.0])
    assert bbox.to_dict()["max"] == [2.0, 3.0, 6.0]


def test_material_hex_colour():
    material = Material("shell", (212 / 255, 149 / 255, 106 / 255), 0.9, 0.0)
    assert material.hex_color == "#d4956a"
    assert material.to_dict()["textured"] is False


def test_build_event_fraction():
    assert BuildEvent(BuildStage.MERGE, 5, 8).fraction == pytest.approx(0.625)
