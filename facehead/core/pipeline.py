"""
Head assembly pipeline.

Runs the reconstruction stages in order:
1. Validate landmarks
2. Bounding box
3. Face surface
4. Back shell
5. Merge
6. Skin tone + face texture
7. Headwear fit
8. Centre the assembly on the face bounding box

Everything except the prop is synchronous; awaiting the prop is the only
suspension point.
"""

import inspect
import logging
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Union

import numpy as np
import trimesh

from facehead.config import DEFAULT_CONFIG, HeadBuildConfig
from facehead.core.exceptions import HeadBuildError, PropLoadError
from facehead.core.models import (
    BuildEvent,
    BuildStage,
    GeometryBuffer,
    HeadAssembly,
    HeadMesh,
    Material,
    PropMesh,
    validate_landmarks,
)
from facehead.core.topology import FACE_OVAL, NOSE, TRIANGULATION
from facehead.utils.face_texture import compose_face_texture
from facehead.utils.head_mesh import (
    build_back_shell,
    build_face_surface,
    compute_bounding_box,
    merge_geometry,
)
from facehead.utils.headwear import fit_headwear, load_prop_mesh_async, prop_from_trimesh
from facehead.utils.logging_utils import log_execution_time
from facehead.utils.skin_tone import sample_skin_tone

logger = logging.getLogger(__name__)

PropSource = Union[PropMesh, trimesh.Trimesh, trimesh.Scene, str, Path, Awaitable]
ProgressCallback = Callable[[BuildEvent], None]

STAGES = list(BuildStage)


def face_material(texture: np.ndarray, config: HeadBuildConfig = DEFAULT_CONFIG) -> Material:
    return Material(
        name="face",
        color=(1.0, 1.0, 1.0),
        roughness=config.face_roughness,
        metalness=config.face_metalness,
        texture=texture,
    )


def shell_material(
    skin_tone: tuple[float, float, float],
    config: HeadBuildConfig = DEFAULT_CONFIG,
) -> Material:
    # Side wall and back cap are visible from inside the helmet opening
    return Material(
        name="shell",
        color=skin_tone,
        roughness=config.shell_roughness,
        metalness=config.shell_metalness,
        double_sided=True,
    )


@log_execution_time()
def build_head_geometry(
    landmarks: np.ndarray,
    config: HeadBuildConfig = DEFAULT_CONFIG,
) -> GeometryBuffer:
    """Merged face + shell geometry for validated landmarks."""
    bbox = compute_bounding_box(landmarks)
    nose = NOSE if config.shrink_nose else None
    face = build_face_surface(landmarks, TRIANGULATION, nose, config.nose_scale)
    shell = build_back_shell(landmarks, bbox, FACE_OVAL, config)
    return merge_geometry(face, shell)


@log_execution_time()
def build_head_materials(
    landmarks: np.ndarray,
    image: np.ndarray,
    config: HeadBuildConfig = DEFAULT_CONFIG,
) -> tuple[Material, Material]:
    """Sample the skin tone and render the face texture."""
    skin_tone = sample_skin_tone(image, landmarks, config.skin_anchors, config.skin_patch_size)
    texture = compose_face_texture(image, landmarks, skin_tone, config)
    return face_material(texture, config), shell_material(skin_tone, config)


def build_head_mesh(
    landmarks,
    image: np.ndarray,
    config: HeadBuildConfig = DEFAULT_CONFIG,
) -> HeadMesh:
    """
    Build the textured head without headwear.

    Args:
        landmarks: 468 (x, y, z) canonical landmarks
        image: RGB uint8 source photo
        config: Reconstruction parameters

    Returns:
        HeadMesh with face material (group 0) and shell material (group 1)

    Raises:
        MalformedLandmarksError: landmark contract violated
    """
    points = validate_landmarks(landmarks)
    geometry = build_head_geometry(points, config)
    materials = build_head_materials(points, image, config)
    return HeadMesh(
        geometry=geometry,
        materials=materials,
        bbox=compute_bounding_box(points),
        skin_tone=materials[1].color,
    )


async def resolve_prop(prop: PropSource) -> PropMesh:
    """
    Turn any supported prop source into a PropMesh.

    Raises:
        PropLoadError: the source failed, resolved to nothing or has an
            unsupported type
    """
    if isinstance(prop, (str, Path)):
        return await load_prop_mesh_async(prop)

    if inspect.isawaitable(prop):
        try:
            prop = await prop
        except HeadBuildError:
            raise
        except Exception as exc:
            raise PropLoadError("awaitable", cause=exc)

    if isinstance(prop, (trimesh.Trimesh, trimesh.Scene)):
        prop = prop_from_trimesh(prop)

    if not isinstance(prop, PropMesh):
        raise PropLoadError(
            "awaitable",
            cause=TypeError(f"expected a prop mesh, got {type(prop).__name__}"),
        )
    if not prop.parts:
        raise PropLoadError(prop.name, cause=ValueError("prop has no parts"))

    return prop


class HeadAssemblyBuilder:
    """
    Builds a centred head + headwear assembly and reports progress.

    Usage:
        builder = HeadAssemblyBuilder()
        async for event in builder.stream(landmarks, image, prop):
            print(event.stage, event.fraction)
    """

    def __init__(self, config: HeadBuildConfig | None = None):
        self.config = config or DEFAULT_CONFIG

    def _event(self, stage: BuildStage, assembly: HeadAssembly | None = None) -> BuildEvent:
        step = STAGES.index(stage) + 1
        logger.debug("Stage %d/%d: %s", step, len(STAGES), stage.value)
        return BuildEvent(stage=stage, step=step, total=len(STAGES), assembly=assembly)

    async def stream(
        self,
        landmarks,
        image: np.ndarray,
        prop: PropSource,
    ) -> AsyncIterator[BuildEvent]:
        """
        Run every stage, yielding one event after each.

        Each call starts from scratch. The final COMPLETE event carries the
        assembly; nothing partial is ever yielded as a result.
        """
        config = self.config

        points = validate_landmarks(landmarks)
        yield self._event(BuildStage.VALIDATED)

        bbox = compute_bounding_box(points)
        yield self._event(BuildStage.BOUNDING_BOX)

        nose = NOSE if config.shrink_nose else None
        face = build_face_surface(points, TRIANGULATION, nose, config.nose_scale)
        yield self._event(BuildStage.FACE_SURFACE)

        shell = build_back_shell(points, bbox, FACE_OVAL, config)
        yield self._event(BuildStage.BACK_SHELL)

        geometry = merge_geometry(face, shell)
        yield self._event(BuildStage.MERGE)

        materials = build_head_materials(points, image, config)
        head = HeadMesh(geometry=geometry, materials=materials, bbox=bbox, skin_tone=materials[1].color)
        yield self._event(BuildStage.TEXTURE)

        prop_mesh = await resolve_prop(prop)
        headwear = fit_headwear(prop_mesh, bbox, config)
        yield self._event(BuildStage.HEADWEAR)

        assembly = HeadAssembly(head=head, headwear=headwear, root_offset=-bbox.center)
        logger.info(
            "Built head assembly: %d vertices, %d triangles, headwear '%s'",
            geometry.vertex_count, geometry.triangle_count, prop_mesh.name,
        )
        yield self._event(BuildStage.COMPLETE, assembly)

    async def build(
        self,
        landmarks,
        image: np.ndarray,
        prop: PropSource,
        on_progress: ProgressCallback | None = None,
    ) -> HeadAssembly:
        """
        Drive stream() to completion.

        Args:
            landmarks: 468 canonical landmarks
            image: RGB uint8 source photo
            prop: PropMesh, trimesh object, file path or awaitable of one
            on_progress: Called with each event between stages

        Returns:
            The centred HeadAssembly
        """
        assembly = None
        async for event in self.stream(landmarks, image, prop):
            if on_progress is not None:
                on_progress(event)
            if event.stage is BuildStage.COMPLETE:
                assembly = event.assembly
        return assembly


async def build_head_assembly(
    landmarks,
    image: np.ndarray,
    prop: PropSource,
    config: HeadBuildConfig | None = None,
    on_progress: ProgressCallback | None = None,
) -> HeadAssembly:
    """Convenience wrapper around HeadAssemblyBuilder.build()."""
    return await HeadAssemblyBuilder(config).build(landmarks, image, prop, on_progress)
