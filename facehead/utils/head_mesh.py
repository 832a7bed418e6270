"""
Closed head mesh built from the 468 face landmarks.

Rather than attaching a template sphere, the face mesh's own perimeter is
extruded backward to form the rest of the head:

1. Face surface - the canonical triangulation over the landmarks (group 0)
2. Side wall    - three quad strips from the face oval to a tapered back ring
3. Back cap     - a triangle fan from one dome apex to the back ring

Parts 2 and 3 share group 1. Both builders are pure functions returning fresh
arrays; merging always places face vertices before shell vertices.
"""

import logging

import numpy as np

from facehead.config import DEFAULT_CONFIG, HeadBuildConfig
from facehead.core.exceptions import TopologyError
from facehead.core.models import BoundingBox, GeometryBuffer, MaterialGroup
from facehead.core.topology import FACE_OVAL, NUM_LANDMARKS, TRIANGULATION

logger = logging.getLogger(__name__)

# Floor for the bbox height when normalizing y, keeps flat input finite
MIN_EXTENT = 0.01

# Ring depths as fractions of the shell depth
RING_DEPTHS = (0.0, 0.33, 0.66, 1.0)

# Taper growth from chin (t=0) to forehead (t=1) on the two middle rings
MID_RING_TAPER_GAIN = 0.02


def compute_bounding_box(landmarks: np.ndarray) -> BoundingBox:
    """Axis-aligned extent and centre of the landmark set."""
    return BoundingBox.from_points(np.asarray(landmarks, dtype=np.float64))


def landmark_uvs(points: np.ndarray) -> np.ndarray:
    """
    UV coordinates for canonical landmarks.

    Landmarks were mirrored in x and flipped in y when lifted out of image
    space; this undoes both so (0, 0) is the bottom-left of the photo.
    """
    points = np.asarray(points, dtype=np.float64)
    return np.column_stack([-points[:, 0] + 0.5, points[:, 1] + 0.5])


def build_face_surface(
    landmarks: np.ndarray,
    triangulation: np.ndarray = TRIANGULATION,
    nose_indices: np.ndarray | None = None,
    nose_scale: float = 0.85,
) -> GeometryBuffer:
    """
    Build the UV-mapped front face surface.

    Args:
        landmarks: (468, 3) canonical landmarks
        triangulation: (M, 3) index triples over the landmarks
        nose_indices: Optional landmark subset to pull toward its centroid
        nose_scale: Fraction of the distance to the centroid to keep

    Returns:
        GeometryBuffer with one material group (index 0)
    """
    positions = np.array(landmarks, dtype=np.float64)
    uvs = landmark_uvs(positions)

    if nose_indices is not None and len(nose_indices) > 0:
        nose = np.asarray(nose_indices)
        centroid = positions[nose].mean(axis=0)
        positions[nose] = centroid + (positions[nose] - centroid) * nose_scale

    triangles = np.asarray(triangulation, dtype=np.int64).reshape(-1, 3)
    if triangles.size and (triangles.min() < 0 or triangles.max() >= len(positions)):
        raise TopologyError(
            "Triangulation references a missing landmark",
            context={"max_index": int(triangles.max()), "vertices": len(positions)},
        )

    # The x mirror reverses the table's winding; swap the 2nd and 3rd index
    # so normals face the viewer.
    indices = triangles[:, [0, 2, 1]].copy()

    return GeometryBuffer(
        positions=positions,
        uvs=uvs,
        indices=indices,
        groups=[MaterialGroup(start=0, count=len(indices), material_index=0)],
    )


def taper_at(t: np.ndarray | float, config: HeadBuildConfig = DEFAULT_CONFIG):
    """Back-ring taper for normalized height t (0 = chin, 1 = forehead)."""
    return config.taper_min + config.taper_range * np.clip(t, 0.0, 1.0)


def build_back_shell(
    landmarks: np.ndarray,
    bbox: BoundingBox,
    oval: np.ndarray = FACE_OVAL,
    config: HeadBuildConfig = DEFAULT_CONFIG,
) -> GeometryBuffer:
    """
    Extrude the face oval backward into a tapering shell closed by a dome.

    Vertex layout is [front, ring1, ring2, back] per oval vertex followed by
    the dome apex, so N oval vertices give 4N + 1 vertices and 7N triangles.

    Args:
        landmarks: (468, 3) canonical landmarks
        bbox: Bounding box of the landmarks
        oval: Ordered closed loop of landmark indices
        config: Shell tunables

    Returns:
        GeometryBuffer with one material group (index 1) and zero UVs
    """
    oval = np.asarray(oval, dtype=np.int64)
    n = len(oval)
    if n < 3:
        raise TopologyError("Face oval needs at least 3 vertices", context={"n": n})
    if oval.min() < 0 or oval.max() >= NUM_LANDMARKS:
        raise TopologyError("Face oval index out of range", context={"max_index": int(oval.max())})

    points = np.asarray(landmarks, dtype=np.float64)
    front = points[oval]
    cx, cy, _ = bbox.center

    depth = bbox.width * config.depth_factor
    y_range = max(bbox.height, MIN_EXTENT)
    t = np.clip((front[:, 1] - bbox.min_y) / y_range, 0.0, 1.0)

    bulge = depth * config.forehead_bulge
    tapers = (
        config.ring1_taper + MID_RING_TAPER_GAIN * t,
        config.ring2_taper + MID_RING_TAPER_GAIN * t,
        taper_at(t, config),
    )

    rings = [front]
    for ring_depth, taper in zip(RING_DEPTHS[1:], tapers):
        ring = np.empty_like(front)
        ring[:, 0] = cx + (front[:, 0] - cx) * taper
        ring[:, 1] = cy + (front[:, 1] - cy) * taper + t * bulge
        ring[:, 2] = bbox.min_z - depth * ring_depth
        rings.append(ring)

    back_z = bbox.min_z - depth
    apex = np.array([cx, cy + bulge * 0.5, back_z - depth * config.dome_height])

    # Interleave rings per oval vertex: [f0, r1_0, r2_0, b0, f1, ...]
    positions = np.vstack([np.stack(rings, axis=1).reshape(-1, 3), apex])
    apex_index = 4 * n

    indices = []
    for i in range(n):
        nxt = (i + 1) % n
        on_right = (front[i, 0] + front[nxt, 0]) / 2 >= cx
        for ring in range(3):
            a, b = i * 4 + ring, nxt * 4 + ring
            c, d = a + 1, b + 1
            if on_right:
                indices.append((a, b, c))
                indices.append((c, b, d))
            else:
                indices.append((a, c, b))
                indices.append((c, d, b))

    for i in range(n):
        nxt = (i + 1) % n
        indices.append((apex_index, nxt * 4 + 3, i * 4 + 3))

    indices = np.array(indices, dtype=np.int64)

    return GeometryBuffer(
        positions=positions,
        uvs=np.zeros((len(positions), 2)),
        indices=indices,
        groups=[MaterialGroup(start=0, count=len(indices), material_index=1)],
    )


def compute_vertex_normals(positions: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """
    Area-weighted vertex normals.

    Each triangle adds its un-normalized cross product to its three vertices,
    so larger triangles weigh more. Vertices without incident area get a zero
    normal.
    """
    positions = np.asarray(positions, dtype=np.float64)
    indices = np.asarray(indices, dtype=np.int64)

    v0 = positions[indices[:, 0]]
    v1 = positions[indices[:, 1]]
    v2 = positions[indices[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0)

    normals = np.zeros_like(positions)
    for corner in range(3):
        np.add.at(normals, indices[:, corner], face_normals)

    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    np.divide(normals, lengths, out=normals, where=lengths > 0)
    return normals


def merge_geometry(face: GeometryBuffer, shell: GeometryBuffer) -> GeometryBuffer:
    """
    Concatenate face and shell buffers into one two-group geometry.

    Shell indices are offset by the face vertex count. Vertices are not
    welded: the shell's front ring duplicates the oval landmarks.
    """
    offset = face.vertex_count
    positions = np.vstack([face.positions, shell.positions])
    uvs = np.vstack([face.uvs, shell.uvs])
    indices = np.vstack([face.indices, shell.indices + offset])

    groups = [
        MaterialGroup(start=0, count=face.triangle_count, material_index=0),
        MaterialGroup(start=face.triangle_count, count=shell.triangle_count, material_index=1),
    ]

    logger.debug(
        "Merged %d face + %d shell vertices, %d triangles",
        face.vertex_count, shell.vertex_count, len(indices),
    )

    return GeometryBuffer(
        positions=positions,
        uvs=uvs,
        indices=indices,
        groups=groups,
        normals=compute_vertex_normals(positions, indices),
    )
