import asyncio

import numpy as np
import pytest
import trimesh

from facehead.config import HeadBuildConfig
from facehead.core.exceptions import MalformedLandmarksError, PropLoadError
from facehead.core.models import BuildStage
from facehead.core.pipeline import HeadAssemblyBuilder, build_head_assembly, build_head_mesh

CONFIG = HeadBuildConfig(texture_size=64)


def _collect(builder, *args):
    async def run():
        return [event async for event in builder.stream(*args)]
    return asyncio.run(run())


def test_build_head_mesh_end_to_end(landmarks, skin_image):
    head = build_head_mesh(landmarks, skin_image, CONFIG)

    assert head.geometry.vertex_count == 613
    assert head.geometry.triangle_count == 1132
    assert head.texture.shape == (64, 64, 3)
    assert head.face_material.texture is head.texture
    assert head.shell_material.color == pytest.approx((200 / 255, 150 / 255, 120 / 255))
    assert head.shell_material.double_sided
    assert head.face_material.roughness == pytest.approx(0.75)
    assert head.shell_material.roughness == pytest.approx(0.9)


def test_build_accepts_plain_lists(landmarks, skin_image):
    head = build_head_mesh(landmarks.tolist(), skin_image, CONFIG)
    assert head.geometry.vertex_count == 613


def test_malformed_landmarks_rejected(landmarks, skin_image):
    with pytest.raises(MalformedLandmarksError):
        build_head_mesh(landmarks[:400], skin_image, CONFIG)

    bad = landmarks.copy()
    bad[17, 1] = np.nan
    with pytest.raises(MalformedLandmarksError):
        build_head_mesh(bad, skin_image, CONFIG)


def test_stream_milestones(landmarks, skin_image, box_prop):
    events = _collect(HeadAssemblyBuilder(CONFIG), landmarks, skin_image, box_prop)

    assert [event.stage for event in events] == list(BuildStage)
    assert [event.step for event in events] == list(range(1, 9))
    assert events[-1].fraction == pytest.approx(1.0)
    assert all(event.assembly is None for event in events[:-1])
    assert events[-1].assembly is not None


def test_stream_restarts(landmarks, skin_image, box_prop):
    builder = HeadAssemblyBuilder(CONFIG)
    first = _collect(builder, landmarks, skin_image, box_prop)
    second = _collect(builder, landmarks, skin_image, box_prop)
    assert len(first) == len(second) == 8
    np.testing.assert_array_equal(
        first[-1].assembly.head.geometry.positions,
        second[-1].assembly.head.geometry.positions,
    )


def test_build_reports_progress(landmarks, skin_image, box_prop):
    seen = []
    assembly = asyncio.run(
        HeadAssemblyBuilder(CONFIG).build(landmarks, skin_image, box_prop, on_progress=seen.append)
    )
    assert len(seen) == 8
    assert seen[-1].assembly is assembly


def test_assembly_is_centred(landmarks, skin_image, box_prop):
    shifted = landmarks + np.array([0.1, -0.2, 0.3])
    assembly = asyncio.run(build_head_assembly(shifted, skin_image, box_prop, CONFIG))

    np.testing.assert_allclose(assembly.root_offset, -assembly.head.bbox.center)
    face = assembly.head_positions()[:468]
    # The root offset centres the landmark bounding box, not the vertex mean
    centre =(face.min(axis=0) + face.max(axis=0)) / 2
    np.testing.assert_allclose(centre, 0.0, atol=1e-12)


def test_headwear_above_and_behind_face(landmarks, skin_image, sphere_prop):
    assembly = asyncio.run(build_head_assembly(landmarks, skin_image, sphere_prop, CONFIG))
    parts = assembly.headwear_parts()
    centre = np.vstack([part.vertices for part in parts]).mean(axis=0)
    assert centre[1] > 0
    assert centre[2] < 0


def test_awaitable_prop(landmarks, skin_image, box_prop):
    async def load():
        await asyncio.sleep(0)
        return box_prop

    assembly = asyncio.run(build_head_assembly(landmarks, skin_image, load(), CONFIG))
    assert assembly.headwear.prop is box_prop


def test_trimesh_prop(landmarks, skin_image):
    mesh = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    assembly = asyncio.run(build_head_assembly(landmarks, skin_image, mesh, CONFIG))
    assert len(assembly.headwear.prop.parts) == 1


def test_failed_prop_raises(landmarks, skin_image):
    async def broken():
        raise OSError("network down")

    seen = []
    with pytest.raises(PropLoadError, match="network down"):
        asyncio.run(build_head_assembly(landmarks, skin_image, broken(), CONFIG, seen.append))
    # Head stages completed, but no result was delivered
    assert [event.stage for event in seen][-1] is BuildStage.TEXTURE


def test_prop_resolving_to_nothing(landmarks, skin_image):
    async def nothing():
        return None

    with pytest.raises(PropLoadError):
        asyncio.run(build_head_assembly(landmarks, skin_image, nothing(), CONFIG))


def test_missing_prop_path(landmarks, skin_image, tmp_path):
    with pytest.raises(PropLoadError):
        asyncio.run(build_head_assembly(landmarks, skin_image, tmp_path / "none.obj", CONFIG))


def test_build_is_deterministic(landmarks, skin_image, box_prop):
    first = asyncio.run(build_head_assembly(landmarks, skin_image, box_prop, CONFIG))
    second = asyncio.run(build_head_assembly(landmarks, skin_image, box_prop, CONFIG))
    np.testing.assert_array_equal(first.head.geometry.positions, second.head.geometry.positions)
    np.testing.assert_array_equal(first.head.geometry.indices, second.head.geometry.indices)
    np.testing.assert_array_equal(first.head.texture, second.head.texture)
    np.testing.assert_array_equal(first.headwear.position, second.headwear.position)


def test_shrink_nose_option(landmarks, skin_image):
    plain = build_head_mesh(landmarks, skin_image, CONFIG)
    shrunk = build_head_mesh(landmarks, skin_image, HeadBuildConfig(texture_size=64, shrink_nose=True))
    assert not np.array_equal(plain.geometry.positions[1], shrunk.geometry.positions[1])
    np.testing.assert_array_equal(plain.geometry.positions[10], shrunk.geometry.positions[10])


def test_assembly_to_dict(landmarks, skin_image, box_prop):
    assembly = asyncio.run(build_head_assembly(landmarks, skin_image, box_prop, CONFIG))
    data = assembly.to_dict()
    assert data["head"]["vertex_count"] == 613
    assert [m["name"] for m in data["head"]["materials"]] == ["face", "shell"]
    assert data["headwear"]["name"] == "box"
