import numpy as np
import pytest

from facehead.config import HeadBuildConfig
from facehead.utils.face_texture import compose_face_texture, grade_colors, oval_mask, oval_polygon

SKIN = (212 / 255, 149 / 255, 106 / 255)


@pytest.fixture()
def plain_config():
    return HeadBuildConfig(texture_size=64, contrast=1.0, saturation=1.0)


def test_texture_shape(landmarks, skin_image):
    texture = compose_face_texture(skin_image, landmarks, SKIN, HeadBuildConfig(texture_size=128))
    assert texture.shape == (128, 128, 3)
    assert texture.dtype == np.uint8


def test_photo_only_inside_oval(landmarks, make_image, plain_config):
    texture = compose_face_texture(make_image((10, 200, 30)), landmarks, SKIN, plain_config)

    # Centre of the face comes from the photo
    np.testing.assert_allclose(texture[32, 32], [10, 200, 30], atol=1)
    # Corners are outside the oval and keep the skin fill
    np.testing.assert_array_equal(texture[0, 0], [212, 149, 106])
    np.testing.assert_array_equal(texture[63, 63], [212, 149, 106])


def test_empty_photo_gives_skin_fill(landmarks, plain_config):
    texture = compose_face_texture(np.zeros((0, 0, 3), dtype=np.uint8), landmarks, SKIN, plain_config)
    assert np.all(texture == np.array([212, 149, 106], dtype=np.uint8))


def test_rgba_photo(landmarks, plain_config):
    rgba = np.zeros((32, 32, 4), dtype=np.uint8)
    rgba[:] = (50, 60, 70, 255)
    texture = compose_face_texture(rgba, landmarks, SKIN, plain_config)
    np.testing.assert_allclose(texture[32, 32], [50, 60, 70], atol=1)


def test_single_channel_photo(landmarks, plain_config):
    gray = np.full((64, 64, 1), 128, dtype=np.uint8)
    texture = compose_face_texture(gray, landmarks, SKIN, plain_config)
    assert texture.shape == (64, 64, 3)
    np.testing.assert_allclose(texture[32, 32], [128, 128, 128], atol=1)


def test_inset_shrinks_oval(landmarks):
    loose = oval_mask(oval_polygon(landmarks, 128, 128, inset=0.0), 128, 128)
    tight = oval_mask(oval_polygon(landmarks, 128, 128, inset=0.2), 128, 128)
    assert (tight > 0).sum() < (loose > 0).sum()
    assert np.all(loose[tight > 0] > 0)


def test_oval_polygon_flips_v(landmarks):
    polygon = oval_polygon(landmarks, 100, 100, inset=0.0)
    # Landmark 10 (forehead, first in the loop) is at the top of the raster
    assert polygon[0, 1] == pytest.approx(0.0)
    assert polygon[0, 0] == pytest.approx(50.0)


def test_grade_identity():
    image = np.random.default_rng(0).integers(0, 256, (8, 8, 3), dtype=np.uint8)
    graded = grade_colors(image, 1.0, 1.0)
    np.testing.assert_array_equal(graded, image)
    assert graded is not image


def test_grade_zero_saturation_is_gray():
    image = np.random.default_rng(1).integers(0, 256, (8, 8, 3), dtype=np.uint8)
    graded = grade_colors(image, contrast=1.0, saturation=0.0)
    assert np.all(np.abs(graded.astype(int) - graded[..., :1].astype(int)) <= 1)


def test_grade_zero_contrast_is_mid_gray():
    image = np.random.default_rng(2).integers(0, 256, (8, 8, 3), dtype=np.uint8)
    graded = grade_colors(image, contrast=0.0, saturation=1.0)
    assert np.all(graded == 128)


def test_grade_contrast_spreads_values():
    image = np.array([[[100, 100, 100], [160, 160, 160]]], dtype=np.uint8)
    graded = grade_colors(image, contrast=1.5, saturation=1.0)
    assert graded[0, 0, 0] < 100
    assert graded[0, 1, 0] > 160
