import asyncio
import colorsys
import math

import numpy as np
import pytest
import trimesh

from facehead.config import HEADWEAR_CALIBRATIONS, HeadBuildConfig, HeadwearCalibration
from facehead.core.exceptions import DegeneratePropError, PropLoadError
from facehead.core.models import BoundingBox, PropMesh, PropPart
from facehead.utils.head_mesh import compute_bounding_box
from facehead.utils.headwear import (
    fit_headwear,
    head_radius,
    hue_to_rgb,
    load_prop_mesh,
    load_prop_mesh_async,
    prop_from_trimesh,
)


def _rx(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[1, 0, 0], [0, c, -s], [0, s, c]])


def _ry(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]])


def _rz(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]])


def test_head_radius():
    bbox = BoundingBox(-0.4, 0.4, -0.5, 0.5, 0.0, 0.15)
    assert head_radius(bbox) == pytest.approx(0.5 * math.sqrt(0.8 ** 2 + 1.0 ** 2 + 0.4 ** 2))


def test_bounding_radius_matches_head_radius(landmarks, box_prop):
    bbox = compute_bounding_box(landmarks)
    fitted = fit_headwear(box_prop, bbox)
    assert fitted.scale == pytest.approx(head_radius(bbox))
    assert fitted.bounding_radius == pytest.approx(fitted.head_radius)


def test_scale_factor_override(landmarks, box_prop):
    bbox = compute_bounding_box(landmarks)
    fitted = fit_headwear(box_prop, bbox, HeadBuildConfig(headwear_scale=1.3))
    assert fitted.bounding_radius == pytest.approx(1.3 * fitted.head_radius)


def test_prop_centre_lands_on_target(landmarks, sphere_prop):
    bbox = compute_bounding_box(landmarks)
    fitted = fit_headwear(sphere_prop, bbox)
    radius = fitted.head_radius
    expected = bbox.center + np.array([0.0, 0.47 * radius, -0.72 * radius])
    np.testing.assert_allclose(fitted.bounds().center, expected, atol=1e-9)


def test_offset_prop_is_recentred(landmarks):
    bbox = compute_bounding_box(landmarks)
    shifted = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    shifted.apply_translation([10.0, -4.0, 3.0])
    fitted = fit_headwear(prop_from_trimesh(shifted), bbox)
    radius = fitted.head_radius
    expected = bbox.center + np.array([0.0, 0.47 * radius, -0.72 * radius])
    np.testing.assert_allclose(fitted.bounds().center, expected, atol=1e-9)


def test_rotation_is_intrinsic_xyz(landmarks, box_prop):
    bbox = compute_bounding_box(landmarks)
    fitted = fit_headwear(box_prop, bbox)
    a, b, c = HEADWEAR_CALIBRATIONS["sfera_helmet"].rotation
    np.testing.assert_allclose(fitted.rotation_matrix, _rx(a) @ _ry(b) @ _rz(c), atol=1e-12)


def test_custom_calibration(landmarks, box_prop):
    bbox = compute_bounding_box(landmarks)
    calibration = HeadwearCalibration(asset_id="cap", rotation=(0.0, 0.0, 0.0), offset_up=0.0, offset_back=0.0)
    fitted = fit_headwear(box_prop, bbox, calibration=calibration)
    np.testing.assert_allclose(fitted.rotation_matrix, np.eye(3), atol=1e-12)
    np.testing.assert_allclose(fitted.bounds().center, bbox.center, atol=1e-9)
    # Long box axis stays along x
    size = fitted.bounds().size
    assert size[0] == pytest.approx(2 * size[1])


def test_headwear_material(landmarks, box_prop):
    bbox = compute_bounding_box(landmarks)
    fitted = fit_headwear(box_prop, bbox, HeadBuildConfig(headwear_hue=0.0))
    assert fitted.material.roughness == pytest.approx(0.08)
    assert fitted.material.metalness == pytest.approx(0.92)
    assert fitted.material.color == pytest.approx(colorsys.hls_to_rgb(0.0, 0.45, 0.35))


def test_degenerate_prop(landmarks):
    bbox = compute_bounding_box(landmarks)
    point = PropMesh("dot", [PropPart("dot", np.zeros((3, 3)), np.array([[0, 1, 2]]))])
    with pytest.raises(DegeneratePropError):
        fit_headwear(point, bbox)


def test_empty_prop(landmarks):
    bbox = compute_bounding_box(landmarks)
    with pytest.raises(DegeneratePropError):
        fit_headwear(PropMesh("empty", []), bbox)


def test_hue_lightness_interpolation():
    _, low, _ = colorsys.rgb_to_hls(*hue_to_rgb(0.0))
    _, high, _ = colorsys.rgb_to_hls(*hue_to_rgb(359.0))
    assert low == pytest.approx(0.45)
    assert high == pytest.approx(0.45 + 0.30 * 359 / 360)
    assert hue_to_rgb(360.0) == pytest.approx(hue_to_rgb(0.0))


def test_scene_parts_are_transformed():
    scene = trimesh.Scene()
    scene.add_geometry(trimesh.creation.box(extents=(1, 1, 1)), node_name="visor")
    moved = np.eye(4)
    moved[:3, 3] = [5.0, 0.0, 0.0]
    scene.add_geometry(trimesh.creation.box(extents=(1, 1, 1)), node_name="shell", transform=moved)

    prop = prop_from_trimesh(scene, name="helmet")
    assert sorted(part.name for part in prop.parts) == ["shell", "visor"]
    bounds = prop.bounds()
    assert bounds.max_x == pytest.approx(5.5)
    assert bounds.min_x == pytest.approx(-0.5)


def test_load_prop_from_file(tmp_path):
    path = tmp_path / "helmet.obj"
    trimesh.creation.icosphere(subdivisions=1).export(path)

    prop = load_prop_mesh(path)
    assert prop.name == "helmet"
    assert len(prop.vertices) > 0
    np.testing.assert_allclose(prop.bounds().size, [2.0, 2.0, 2.0], atol=1e-3)


def test_load_prop_async(tmp_path):
    path = tmp_path / "helmet.obj"
    trimesh.creation.icosphere(subdivisions=1).export(path)
    prop = asyncio.run(load_prop_mesh_async(path))
    assert prop.parts


def test_missing_prop_file(tmp_path):
    with pytest.raises(PropLoadError):
        load_prop_mesh(tmp_path / "missing.obj")


def test_unsupported_prop_type():
    with pytest.raises(TypeError):
        prop_from_trimesh("not a mesh")
