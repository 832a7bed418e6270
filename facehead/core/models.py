"""
Data models for head reconstruction results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

import numpy as np

from facehead.core.exceptions import MalformedLandmarksError
from facehead.core.topology import NUM_LANDMARKS


def validate_landmarks(landmarks: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    """
    Check the landmark contract and return a read-only (468, 3) float64 copy.

    Raises:
        MalformedLandmarksError: wrong count, wrong shape or non-finite values
    """
    try:
        points = np.array(landmarks, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedLandmarksError(
            f"Landmarks are not numeric: {exc}",
            expected=f"({NUM_LANDMARKS}, 3) floats",
            actual=type(landmarks).__name__,
        )

    if points.ndim != 2 or points.shape[1] != 3:
        raise MalformedLandmarksError(
            "Landmarks must be (x, y, z) triples",
            expected=f"({NUM_LANDMARKS}, 3)",
            actual=points.shape,
        )
    if points.shape[0] != NUM_LANDMARKS:
        raise MalformedLandmarksError(
            "Wrong number of landmarks",
            expected=NUM_LANDMARKS,
            actual=points.shape[0],
        )
    if not np.all(np.isfinite(points)):
        bad = int(np.argwhere(~np.isfinite(points))[0][0])
        raise MalformedLandmarksError(
            f"Landmark {bad} has a non-finite coordinate",
            expected="finite values",
            actual=points[bad].tolist(),
        )

    points.setflags(write=False)
    return points


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent of a point set."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float

    @property
    def center(self) -> np.ndarray:
        return np.array([
            (self.min_x + self.max_x) / 2,
            (self.min_y + self.max_y) / 2,
            (self.min_z + self.max_z) / 2,
        ])

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def depth(self) -> float:
        return self.max_z - self.min_z

    @property
    def size(self) -> np.ndarray:
        return np.array([self.width, self.height, self.depth])

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        mins = points.min(axis=0)
        maxs = points.max(axis=0)
        return cls(
            min_x=float(mins[0]), max_x=float(maxs[0]),
            min_y=float(mins[1]), max_y=float(maxs[1]),
            min_z=float(mins[2]), max_z=float(maxs[2]),
        )

    def to_dict(self) -> dict:
        return {
            "min": [self.min_x, self.min_y, self.min_z],
            "max": [self.max_x, self.max_y, self.max_z],
            "center": self.center.tolist(),
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class MaterialGroup:
    """A contiguous run of triangles drawn with one material."""
    start: int           # first triangle
    count: int           # number of triangles
    material_index: int


@dataclass
class GeometryBuffer:
    """Indexed triangle geometry."""
    positions: np.ndarray   # (N, 3) float64
    uvs: np.ndarray         # (N, 2) float64
    indices: np.ndarray     # (M, 3) int64
    groups: list[MaterialGroup] = field(default_factory=list)
    normals: np.ndarray | None = None  # (N, 3) unit normals, set by merging

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices)


@dataclass
class Material:
    """Surface appearance shared by a material group or prop."""
    name: str
    color: tuple[float, float, float]   # RGB in [0, 1]
    roughness: float
    metalness: float
    texture: np.ndarray | None = None   # RGB uint8 diffuse map
    double_sided: bool = False

    @property
    def hex_color(self) -> str:
        r, g, b = (int(round(c * 255)) for c in self.color)
        return f"#{r:02x}{g:02x}{b:02x}"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "color": self.hex_color,
            "roughness": self.roughness,
            "metalness": self.metalness,
            "textured": self.texture is not None,
            "double_sided": self.double_sided,
        }


@dataclass
class HeadMesh:
    """Merged face + shell geometry with its two materials."""
    geometry: GeometryBuffer
    materials: tuple[Material, Material]   # (face, shell)
    bbox: BoundingBox
    skin_tone: tuple[float, float, float]

    @property
    def face_material(self) -> Material:
        return self.materials[0]

    @property
    def shell_material(self) -> Material:
        return self.materials[1]

    @property
    def texture(self) -> np.ndarray:
        return self.materials[0].texture


@dataclass
class PropPart:
    """One sub-mesh of an externally authored prop."""
    name: str
    vertices: np.ndarray    # (N, 3)
    faces: np.ndarray       # (M, 3)


@dataclass
class PropMesh:
    """An already-parsed prop made of one or more sub-meshes."""
    name: str
    parts: list[PropPart]

    @property
    def vertices(self) -> np.ndarray:
        if not self.parts:
            return np.zeros((0, 3))
        return np.vstack([part.vertices for part in self.parts])

    def bounds(self) -> BoundingBox | None:
        points = self.vertices
        if len(points) == 0:
            return None
        return BoundingBox.from_points(points)


@dataclass
class FittedHeadwear:
    """A prop with the transform and material that place it on the head."""
    prop: PropMesh
    scale: float
    rotation: tuple[float, float, float]   # intrinsic XYZ Euler angles
    rotation_matrix: np.ndarray             # (3, 3)
    position: np.ndarray                    # (3,)
    material: Material
    head_radius: float

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Map prop-local points into head space: R @ (s * p) + t."""
        return (points * self.scale) @ self.rotation_matrix.T + self.position

    def world_parts(self) -> list[PropPart]:
        return [
            PropPart(part.name, self.transform_points(part.vertices), part.faces)
            for part in self.prop.parts
        ]

    def bounds(self) -> BoundingBox:
        return BoundingBox.from_points(self.transform_points(self.prop.vertices))

    @property
    def bounding_radius(self) -> float:
        return float(self.bounds().size.max() / 2)


@dataclass
class HeadAssembly:
    """
    Head and headwear nodes under one root.

    The root offset moves the face bounding-box centre to the local origin,
    so the assembly can be parented anywhere without further offsets.
    """
    head: HeadMesh
    headwear: FittedHeadwear
    root_offset: np.ndarray

    def head_positions(self) -> np.ndarray:
        """Head vertices in root space."""
        return self.head.geometry.positions + self.root_offset

    def headwear_parts(self) -> list[PropPart]:
        """Headwear sub-meshes in root space."""
        return [
            PropPart(part.name, part.vertices + self.root_offset, part.faces)
            for part in self.headwear.world_parts()
        ]

    def to_dict(self) -> dict:
        return {
            "root_offset": self.root_offset.tolist(),
            "head": {
                "vertex_count": self.head.geometry.vertex_count,
                "triangle_count": self.head.geometry.triangle_count,
                "bbox": self.head.bbox.to_dict(),
                "materials": [m.to_dict() for m in self.head.materials],
            },
            "headwear": {
                "name": self.headwear.prop.name,
                "scale": self.headwear.scale,
                "rotation": list(self.headwear.rotation),
                "position": self.headwear.position.tolist(),
                "material": self.headwear.material.to_dict(),
            },
        }


class BuildStage(Enum):
    """Milestones reported while an assembly is built."""
    VALIDATED = "validated"
    BOUNDING_BOX = "bounding_box"
    FACE_SURFACE = "face_surface"
    BACK_SHELL = "back_shell"
    MERGE = "merge"
    TEXTURE = "texture"
    HEADWEAR = "headwear"
    COMPLETE = "complete"


@dataclass(frozen=True)
class BuildEvent:
    """One progress milestone; the COMPLETE event carries the result."""
    stage: BuildStage
    step: int
    total: int
    assembly: HeadAssembly | None = None

    @property
    def fraction(self) -> float:
        return self.step / self.total
