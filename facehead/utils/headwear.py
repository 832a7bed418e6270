"""
Headwear (helmet) loading and fitting.

The prop is sized and placed using only the head's bounding box: no rigging,
no contact solving. Orientation comes from a per-asset calibration table
because authored models use arbitrary "front" axes.
"""

import asyncio
import colorsys
import logging
from pathlib import Path

import numpy as np
import trimesh
from scipy.spatial.transform import Rotation

from facehead.config import DEFAULT_CONFIG, HeadBuildConfig, HeadwearCalibration
from facehead.core.exceptions import DegeneratePropError, PropLoadError
from facehead.core.models import BoundingBox, FittedHeadwear, Material, PropMesh, PropPart

logger = logging.getLogger(__name__)


def prop_from_trimesh(obj, name: str = "prop") -> PropMesh:
    """
    Convert a trimesh Trimesh or Scene into a PropMesh.

    Scene nodes keep their own sub-mesh and have their scene-graph transform
    baked into the vertices.
    """
    if isinstance(obj, trimesh.Trimesh):
        return PropMesh(
            name=name,
            parts=[PropPart(name, np.asarray(obj.vertices, dtype=np.float64),
                            np.asarray(obj.faces, dtype=np.int64))],
        )

    if isinstance(obj, trimesh.Scene):
        parts = []
        for node in obj.graph.nodes_geometry:
            transform, geometry_name = obj.graph[node]
            mesh = obj.geometry[geometry_name]
            if not isinstance(mesh, trimesh.Trimesh):
                continue
            vertices = trimesh.transformations.transform_points(mesh.vertices, transform)
            parts.append(PropPart(str(node), np.asarray(vertices, dtype=np.float64),
                                  np.asarray(mesh.faces, dtype=np.int64)))
        return PropMesh(name=name, parts=parts)

    raise TypeError(f"Unsupported prop type: {type(obj).__name__}")


def load_prop_mesh(path: str | Path, name: str | None = None) -> PropMesh:
    """
    Load a prop from an OBJ/GLB/PLY file.

    Raises:
        PropLoadError: file missing, unparsable or without triangles
    """
    path = Path(path)
    name = name or path.stem

    try:
        loaded = trimesh.load(str(path), process=False)
        prop = prop_from_trimesh(loaded, name=name)
    except Exception as exc:
        raise PropLoadError(str(path), cause=exc)

    if not prop.parts or len(prop.vertices) == 0:
        raise PropLoadError(str(path), cause=ValueError("no triangle geometry"))

    logger.info("Loaded prop '%s' with %d parts", name, len(prop.parts))
    return prop


async def load_prop_mesh_async(path: str | Path, name: str | None = None) -> PropMesh:
    """Load a prop in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(load_prop_mesh, path, name)


def head_radius(bbox: BoundingBox) -> float:
    """Half the diagonal of the head extent, with depth taken as half the width."""
    depth = bbox.width * 0.5
    return float(np.linalg.norm([bbox.width, bbox.height, depth]) / 2)


def hue_to_rgb(
    hue: float,
    saturation: float = 0.35,
    lightness: tuple[float, float] = (0.45, 0.75),
) -> tuple[float, float, float]:
    """
    HSL colour for a hue in degrees.

    Lightness is interpolated between the two bounds by hue / 360, so the
    whole hue wheel stays in a readable range.
    """
    h = (hue % 360.0) / 360.0
    low, high = lightness
    light = low + (high - low) * h
    r, g, b = colorsys.hls_to_rgb(h, light, saturation)
    return r, g, b


def headwear_material(config: HeadBuildConfig = DEFAULT_CONFIG) -> Material:
    return Material(
        name="headwear",
        color=hue_to_rgb(config.headwear_hue, config.headwear_saturation, config.headwear_lightness),
        roughness=config.headwear_roughness,
        metalness=config.headwear_metalness,
    )


def fit_headwear(
    prop: PropMesh,
    bbox: BoundingBox,
    config: HeadBuildConfig = DEFAULT_CONFIG,
    calibration: HeadwearCalibration | None = None,
) -> FittedHeadwear:
    """
    Scale, orient and position a prop on the head.

    Args:
        prop: Parsed prop mesh in its own local space
        bbox: Bounding box of the face landmarks
        config: Material and hue settings
        calibration: Asset placement constants (defaults to the configured asset)

    Returns:
        FittedHeadwear whose transform maps prop space into head space

    Raises:
        DegeneratePropError: the prop has no extent
    """
    calibration = calibration or config.calibration()

    prop_bounds = prop.bounds()
    if prop_bounds is None or prop_bounds.size.max() <= 0:
        size = None if prop_bounds is None else tuple(prop_bounds.size.tolist())
        raise DegeneratePropError(prop.name, size)

    radius = head_radius(bbox)
    prop_radius = float(prop_bounds.size.max() / 2)
    scale = radius * calibration.scale_factor / prop_radius

    rotation = Rotation.from_euler("XYZ", calibration.rotation)
    matrix = rotation.as_matrix()

    # Centre of the scaled, rotated prop before translation
    rotated = (prop.vertices * scale) @ matrix.T
    rotated_center = BoundingBox.from_points(rotated).center

    target = bbox.center + np.array([
        0.0,
        radius * calibration.offset_up,
        -radius * calibration.offset_back,
    ])
    position = target - rotated_center

    logger.debug(
        "Fitted '%s': head radius %.4f, prop radius %.4f, scale %.4f",
        prop.name, radius, prop_radius, scale,
    )

    return FittedHeadwear(
        prop=prop,
        scale=scale,
        rotation=tuple(calibration.rotation),
        rotation_matrix=matrix,
        position=position,
        material=headwear_material(config),
        head_radius=radius,
    )
